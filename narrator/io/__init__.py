"""Storage adapters for music reads and narration uploads."""

from .storage import (
    AudioStore,
    FilesystemAudioStore,
    S3AudioStore,
    StorageError,
    UrlValidation,
    build_narration_key,
    build_paragraph_key,
    validate_durable_url,
)

__all__ = [
    "AudioStore",
    "FilesystemAudioStore",
    "S3AudioStore",
    "StorageError",
    "UrlValidation",
    "build_narration_key",
    "build_paragraph_key",
    "validate_durable_url",
]
