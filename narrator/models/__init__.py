"""Shared typed data models for the narration pipeline.

This package contains dataclasses used across pipeline modules to avoid
cross-module coupling and circular imports.
"""

from .datatypes import (
    AudioSegment,
    EpisodeAudio,
    EpisodeMetadata,
    MixConfig,
    MusicTrack,
    NarrationJob,
    NarrationOptions,
    NarrationResult,
    ParagraphMetadata,
    ParagraphUnit,
)

__all__ = [
    "AudioSegment",
    "EpisodeAudio",
    "EpisodeMetadata",
    "MixConfig",
    "MusicTrack",
    "NarrationJob",
    "NarrationOptions",
    "NarrationResult",
    "ParagraphMetadata",
    "ParagraphUnit",
]
