"""Background music library layout.

Responsibilities:
- Map free-form moods onto the library's category folders.
- Map 1..10 intensities onto 1..7 track indices.
- Enumerate candidate object keys in lookup order, including fallbacks.

Library layout: `<prefix>/<Category>/<Category>_<index>.<ext>`. Category folder
names are fixed by the existing library, including the `Suspence` and `Clam`
spellings.
"""

from __future__ import annotations

import math

DEFAULT_MUSIC_PREFIX = "POCBackgroundMusic"
TRACKS_PER_CATEGORY = 7
TRACK_EXTENSIONS = ("MP3", "mp3", "wav")

HORROR = "Horror"
SUSPENSE = "Suspence"
HAPPY = "Happy"
CALM = "Clam"
HISTORIC = "Historic"
ROMANTIC = "Romantic"
MYSTERY = "Mystery"
SAD = "Sad"

CATEGORIES = (HORROR, SUSPENSE, HAPPY, CALM, HISTORIC, ROMANTIC, MYSTERY, SAD)
DEFAULT_CATEGORY = SUSPENSE
FALLBACK_CATEGORIES = (SUSPENSE, HAPPY, HORROR)

_CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (HORROR, ("horror", "scary", "terrifying", "fear", "dread")),
    (SUSPENSE, ("suspense", "tension", "tense", "anxious", "drama", "thrill")),
    (HAPPY, ("happy", "joyful", "joy", "cheerful", "upbeat", "playful")),
    (CALM, ("calm", "peaceful", "serene", "tranquil", "relaxed")),
    (HISTORIC, ("historic", "ancient", "old", "traditional", "epic")),
    (ROMANTIC, ("romantic", "love", "passionate", "tender")),
    (MYSTERY, ("mystery", "mysterious", "enigmatic", "puzzling", "curious", "eerie")),
    (SAD, ("sad", "melancholy", "melancholic", "sorrowful", "depressing", "despair", "grief")),
)


def category_for_mood(mood: str) -> str:
    """Return the library category whose keywords appear in `mood`."""

    lowered = mood.strip().lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def track_index_for_intensity(intensity: int) -> int:
    """Scale a 1..10 intensity onto a 1..7 track index."""

    scaled = math.ceil(intensity / 10.0 * TRACKS_PER_CATEGORY)
    return max(1, min(TRACKS_PER_CATEGORY, scaled))


def track_key(prefix: str, category: str, index: int, extension: str) -> str:
    """Return the object key of one library track."""

    return f"{prefix.strip('/')}/{category}/{category}_{index}.{extension}"


def candidate_tracks(category: str, index: int) -> list[tuple[str, int]]:
    """Return `(category, index)` pairs in lookup order.

    The preferred track comes first, then the rest of its category, then the
    first track of each fallback category.
    """

    ordered = [index] + [other for other in range(1, TRACKS_PER_CATEGORY + 1) if other != index]
    candidates = [(category, other) for other in ordered]
    candidates.extend(
        (fallback, 1) for fallback in FALLBACK_CATEGORIES if fallback != category
    )
    return candidates


def candidate_keys(prefix: str, mood: str, intensity: int) -> list[tuple[str, int, str]]:
    """Return `(category, index, key)` lookups for a mood/intensity pair."""

    category = category_for_mood(mood)
    index = track_index_for_intensity(intensity)
    return [
        (candidate_category, candidate_index, track_key(prefix, candidate_category, candidate_index, extension))
        for candidate_category, candidate_index in candidate_tracks(category, index)
        for extension in TRACK_EXTENSIONS
    ]
