"""Episode grouping for long narrations.

Responsibilities:
- Slice paragraph URLs into episodes at requested break indices.
- Aggregate paragraph metadata into episode-level metadata.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from ..models.datatypes import EpisodeAudio, EpisodeMetadata, ParagraphMetadata

DEFAULT_EPISODE_MOOD = "Neutral"
DEFAULT_EPISODE_GENRE = "Fiction"
_TITLE_PREVIEW_CHARS = 20


def episode_ranges(paragraph_count: int, breaks: Sequence[int]) -> list[tuple[int, int]]:
    """Return non-empty `[start, end)` paragraph ranges split at `breaks`.

    Breaks outside `(0, paragraph_count)` are ignored, so an empty break list
    yields a single range covering every paragraph.
    """

    boundaries = sorted({index for index in breaks if 0 < index < paragraph_count})
    boundaries.append(paragraph_count)
    ranges: list[tuple[int, int]] = []
    start = 0
    for end in boundaries:
        if end > start:
            ranges.append((start, end))
        start = end
    return ranges


def summarize_episode(
    episode_number: int,
    texts: Sequence[str],
    metadata: Sequence[ParagraphMetadata],
) -> EpisodeMetadata:
    """Aggregate paragraph metadata into one episode record.

    The dominant mood/genre is the most frequent label; ties go to the label
    seen first.
    """

    mood_counts = Counter(item.mood for item in metadata if item.mood)
    genre_counts = Counter(item.genre for item in metadata if item.genre)
    mood = mood_counts.most_common(1)[0][0] if mood_counts else DEFAULT_EPISODE_MOOD
    genre = genre_counts.most_common(1)[0][0] if genre_counts else DEFAULT_EPISODE_GENRE
    if metadata:
        intensity = sum(item.intensity for item in metadata) / float(len(metadata))
    else:
        intensity = 5.0

    if texts:
        title = f"Episode {episode_number}: {texts[0][:_TITLE_PREVIEW_CHARS]}..."
    else:
        title = f"Episode {episode_number}"

    return EpisodeMetadata(
        episode_number=episode_number,
        title=title,
        mood=mood,
        genre=genre,
        intensity=round(intensity, 2),
    )


def group_episodes(
    texts: Sequence[str],
    metadata: Sequence[ParagraphMetadata],
    paragraph_urls: Sequence[str],
    breaks: Sequence[int],
    first_episode_number: int = 1,
) -> list[EpisodeAudio]:
    """Group paragraph outputs into numbered episodes."""

    if not (len(texts) == len(metadata) == len(paragraph_urls)):
        raise ValueError("Episode grouping requires one text, metadata, and URL per paragraph.")

    episodes: list[EpisodeAudio] = []
    for offset, (start, end) in enumerate(episode_ranges(len(paragraph_urls), breaks)):
        number = first_episode_number + offset
        episodes.append(
            EpisodeAudio(
                episode_number=number,
                paragraph_urls=tuple(paragraph_urls[start:end]),
                metadata=summarize_episode(number, texts[start:end], metadata[start:end]),
            )
        )
    return episodes
