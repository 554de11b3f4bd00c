"""Background music catalog and selection."""

from .catalog import category_for_mood, candidate_keys, track_index_for_intensity
from .selector import MusicSelector

__all__ = [
    "MusicSelector",
    "candidate_keys",
    "category_for_mood",
    "track_index_for_intensity",
]
