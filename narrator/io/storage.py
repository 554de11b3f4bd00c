"""Durable audio storage collaborators.

Responsibilities:
- Define the `AudioStore` protocol used for music reads and narration uploads.
- Provide filesystem (CDN-served directory) and S3-compatible implementations.
- Build deterministic, collision-free object keys for narration outputs.
- Validate that URLs returned to callers are durable HTTPS URLs.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path, PurePosixPath
import re
from typing import Any, Protocol
from urllib.parse import urlsplit

import boto3
from botocore.exceptions import BotoCoreError, ClientError

NARRATION_KEY_ROOT = "audio-narrations"

_KEY_SEGMENT_RE = re.compile(r"[^A-Za-z0-9._-]+")
_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "0.0.0.0", "::1"})
_EPHEMERAL_SCHEMES = frozenset({"blob", "data", "file"})


class StorageError(RuntimeError):
    """Raised when a storage backend cannot read, write, or delete an object."""


class AudioStore(Protocol):
    """Protocol for object stores holding music tracks and narration outputs."""

    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store bytes under `key` and return the object's public URL."""

    def exists(self, key: str) -> bool:
        """Return whether an object exists under `key`."""

    def read_bytes(self, key: str) -> bytes:
        """Return the bytes stored under `key`."""

    def delete(self, key: str) -> None:
        """Delete the object under `key` if present."""


def _normalize_key(key: str) -> str:
    """Validate a relative object key and return it without leading slashes."""

    stripped = key.strip().lstrip("/")
    parts = PurePosixPath(stripped).parts
    if not parts or any(part in {".", ".."} for part in parts):
        raise StorageError(f"Invalid storage key `{key}`.")
    return "/".join(parts)


def _public_url(base_url: str, key: str) -> str:
    """Join a public base URL and an object key."""

    return f"{base_url.rstrip('/')}/{key}"


class FilesystemAudioStore:
    """Store objects under a directory that a CDN or static host publishes."""

    def __init__(self, root: Path, public_base_url: str) -> None:
        """Initialize the store with a root directory and its public base URL."""

        self.root = root
        self.public_base_url = public_base_url

    def _path(self, key: str) -> Path:
        return self.root / _normalize_key(key)

    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Write bytes atomically and return the public URL."""

        _ = content_type
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = path.with_name(f".{path.name}.partial")
            temp_path.write_bytes(data)
            os.replace(temp_path, path)
        except OSError as exc:
            raise StorageError(f"Failed to write `{key}`: {exc}") from exc
        return _public_url(self.public_base_url, _normalize_key(key))

    def exists(self, key: str) -> bool:
        """Return whether the given object exists."""

        return self._path(key).is_file()

    def read_bytes(self, key: str) -> bytes:
        """Read object bytes from disk."""

        try:
            return self._path(key).read_bytes()
        except OSError as exc:
            raise StorageError(f"Failed to read `{key}`: {exc}") from exc

    def delete(self, key: str) -> None:
        """Delete an object, ignoring missing files."""

        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to delete `{key}`: {exc}") from exc


class S3AudioStore:
    """Store objects in an S3-compatible bucket (AWS S3 or Cloudflare R2)."""

    def __init__(self, bucket: str, public_base_url: str, client: Any) -> None:
        """Initialize the store with a bucket, its public base URL, and a boto3 client."""

        self.bucket = bucket
        self.public_base_url = public_base_url
        self.client = client

    @classmethod
    def from_settings(
        cls,
        *,
        bucket: str,
        public_base_url: str,
        endpoint_url: str | None = None,
        region_name: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
    ) -> S3AudioStore:
        """Create a store with a boto3 S3 client; credentials fall back to the AWS chain."""

        client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region_name,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )
        return cls(bucket=bucket, public_base_url=public_base_url, client=client)

    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Upload bytes with `put_object` and return the public URL."""

        normalized = _normalize_key(key)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=normalized,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to upload `{normalized}`: {exc}") from exc
        return _public_url(self.public_base_url, normalized)

    def exists(self, key: str) -> bool:
        """Return whether the object exists, treating 404 responses as absent."""

        normalized = _normalize_key(key)
        try:
            self.client.head_object(Bucket=self.bucket, Key=normalized)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in {"404", "NoSuchKey", "NotFound"}:
                return False
            raise StorageError(f"Failed to look up `{normalized}`: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Failed to look up `{normalized}`: {exc}") from exc
        return True

    def read_bytes(self, key: str) -> bytes:
        """Download object bytes with `get_object`."""

        normalized = _normalize_key(key)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=normalized)
            return bytes(response["Body"].read())
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to download `{normalized}`: {exc}") from exc

    def delete(self, key: str) -> None:
        """Delete an object; S3 treats missing keys as success."""

        normalized = _normalize_key(key)
        try:
            self.client.delete_object(Bucket=self.bucket, Key=normalized)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to delete `{normalized}`: {exc}") from exc


def _key_segment(value: object, field_name: str) -> str:
    """Sanitize one identifier into a single safe key path segment."""

    cleaned = _KEY_SEGMENT_RE.sub("_", str(value).strip()).strip("._")
    if not cleaned:
        raise ValueError(f"`{field_name}` cannot be empty in a storage key.")
    return cleaned


def _book_prefix(book_id: str, chapter_id: str | None) -> str:
    prefix = f"{NARRATION_KEY_ROOT}/books/{_key_segment(book_id, 'book_id')}"
    if chapter_id is not None:
        prefix = f"{prefix}/chapters/{_key_segment(chapter_id, 'chapter_id')}"
    return prefix


def build_paragraph_key(
    *,
    book_id: str,
    paragraph_index: int,
    timestamp_ms: int,
    job_id: str,
    extension: str,
    chapter_id: str | None = None,
) -> str:
    """Return the object key for one paragraph's audio."""

    return (
        f"{_book_prefix(book_id, chapter_id)}/paragraphs/"
        f"{paragraph_index}_{timestamp_ms}_{_key_segment(job_id, 'job_id')}.{extension}"
    )


def build_narration_key(
    *,
    book_id: str,
    timestamp_ms: int,
    job_id: str,
    extension: str,
    chapter_id: str | None = None,
) -> str:
    """Return the object key for a concatenated narration track."""

    return (
        f"{_book_prefix(book_id, chapter_id)}/narrations/"
        f"{timestamp_ms}_{_key_segment(job_id, 'job_id')}.{extension}"
    )


@dataclass(frozen=True, slots=True)
class UrlValidation:
    """Outcome of durable-URL validation."""

    url: str
    valid: bool
    reason: str | None = None


def validate_durable_url(url: object) -> UrlValidation:
    """Check that `url` is a durable, publicly fetchable HTTPS URL.

    Rejects empty values, in-process references (`blob:`, `data:`, `file:`),
    non-HTTPS schemes, and URLs without a public host.
    """

    text = str(url).strip() if isinstance(url, str) else ""
    if not text:
        return UrlValidation(url="", valid=False, reason="URL is empty.")

    parts = urlsplit(text)
    scheme = parts.scheme.lower()
    if scheme in _EPHEMERAL_SCHEMES:
        return UrlValidation(url=text, valid=False, reason=f"`{scheme}:` URLs are process-local.")
    if scheme != "https":
        return UrlValidation(url=text, valid=False, reason="URL must use HTTPS.")
    host = (parts.hostname or "").lower()
    if not host:
        return UrlValidation(url=text, valid=False, reason="URL has no host.")
    if host in _LOCAL_HOSTS:
        return UrlValidation(url=text, valid=False, reason=f"Host `{host}` is not public.")
    return UrlValidation(url=text, valid=True)
