"""Unit tests for paragraph splitting and episode grouping."""

from __future__ import annotations

import pytest

from narrator.errors import ValidationError
from narrator.models.datatypes import ParagraphMetadata
from narrator.text.episodes import episode_ranges, group_episodes, summarize_episode
from narrator.text.paragraphs import ParagraphSplitter, single_paragraph


def test_split_prefers_author_delimiter_and_drops_blanks() -> None:
    """`$` markers should split text; empty pieces are discarded."""

    paragraphs = ParagraphSplitter().split("  First part. $ $Second part.\n\n$ Third ")

    assert [item.text for item in paragraphs] == ["First part.", "Second part.", "Third"]
    assert [item.index for item in paragraphs] == [0, 1, 2]


def test_split_uses_double_dot_only_for_long_text() -> None:
    """The `..` fallback applies only above the length threshold."""

    splitter = ParagraphSplitter(secondary_min_chars=20)

    assert [item.text for item in splitter.split("Alpha beta gamma.. Delta epsilon")] == [
        "Alpha beta gamma",
        "Delta epsilon",
    ]
    assert len(splitter.split("Short.. text")) == 1


def test_split_falls_back_to_blank_lines() -> None:
    """Triple blank lines win over double blank lines when present."""

    splitter = ParagraphSplitter()

    triple = splitter.split("One\n\nstill one\n\n\nTwo")
    double = splitter.split("One\n\nTwo\n  \nThree")

    assert [item.text for item in triple] == ["One\n\nstill one", "Two"]
    assert [item.text for item in double] == ["One", "Two", "Three"]


def test_split_keeps_undelimited_text_as_one_paragraph() -> None:
    """Text with no delimiter at all is a single paragraph."""

    paragraphs = ParagraphSplitter().split("Just one line of prose.")

    assert len(paragraphs) == 1
    assert paragraphs[0].text == "Just one line of prose."


def test_split_and_single_paragraph_reject_empty_text() -> None:
    """Whitespace-only text cannot be narrated."""

    with pytest.raises(ValidationError, match="empty"):
        ParagraphSplitter().split("  \n ")
    with pytest.raises(ValidationError, match="empty"):
        single_paragraph("   ")
    with pytest.raises(ValidationError, match="paragraphIndex"):
        single_paragraph("Text", index=-1)


def test_single_paragraph_keeps_requested_index() -> None:
    """Paragraph requests carry their book-level position."""

    paragraph = single_paragraph("  Keep $ this intact. ", index=7)

    assert paragraph.index == 7
    assert paragraph.text == "Keep $ this intact."


def test_episode_ranges_ignore_out_of_range_breaks() -> None:
    """Breaks at 0, at the end, or beyond it should not create empty episodes."""

    assert episode_ranges(5, [0, 2, 2, 4, 5, 9]) == [(0, 2), (2, 4), (4, 5)]
    assert episode_ranges(3, []) == [(0, 3)]


def test_summarize_episode_uses_dominant_labels_and_mean_intensity() -> None:
    """Most common labels win; ties keep the first label seen."""

    metadata = [
        ParagraphMetadata(mood="tense", genre="thriller", intensity=3),
        ParagraphMetadata(mood="calm", genre="drama", intensity=4),
        ParagraphMetadata(mood="calm", genre="thriller", intensity=8),
    ]

    summary = summarize_episode(2, ["The storm broke over the harbor at dawn."], metadata)

    assert summary.mood == "calm"
    assert summary.genre == "thriller"
    assert summary.intensity == pytest.approx(5.0)
    assert summary.title == "Episode 2: The storm broke over..."


def test_group_episodes_slices_urls_and_numbers_from_first_episode() -> None:
    """Grouping should preserve URL order and number episodes consecutively."""

    texts = ["a", "b", "c", "d"]
    metadata = [ParagraphMetadata() for _ in texts]
    urls = [f"https://cdn.example.com/{name}.mp3" for name in texts]

    episodes = group_episodes(texts, metadata, urls, breaks=[2], first_episode_number=5)

    assert [episode.episode_number for episode in episodes] == [5, 6]
    assert episodes[0].paragraph_urls == tuple(urls[:2])
    assert episodes[1].paragraph_urls == tuple(urls[2:])
    assert episodes[1].as_payload()["metadata"]["episodeNumber"] == 6


def test_group_episodes_requires_aligned_inputs() -> None:
    """Mismatched text, metadata, and URL counts are rejected."""

    with pytest.raises(ValueError, match="one text, metadata, and URL"):
        group_episodes(["a"], [], ["https://cdn.example.com/a.mp3"], breaks=[])
