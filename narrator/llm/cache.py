"""Response cache for classifier calls.

Responsibilities:
- Build stable cache keys from provider/model/operation and normalized input.
- Reuse classifier responses for repeated identical batches.
- Track hit/miss counters for run logs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from hashlib import sha256
import json
from threading import Lock
from typing import Any


def _normalize_identity_value(value: Any) -> Any:
    """Normalize identity payload values for stable hashing."""

    if isinstance(value, str):
        return " ".join(value.split())
    if isinstance(value, list | tuple):
        return [_normalize_identity_value(item) for item in value]
    if isinstance(value, dict):
        return {
            str(key): _normalize_identity_value(value[key])
            for key in sorted(value.keys(), key=str)
        }
    return value


@dataclass(slots=True)
class ResponseCache:
    """In-memory cache keyed by provider/model/operation/input identity."""

    entries: dict[str, str] = field(default_factory=dict)
    hits: int = 0
    misses: int = 0
    _lock: Lock = field(default_factory=Lock)

    @staticmethod
    def make_key(
        *,
        provider: str,
        model: str,
        operation: str,
        input_identity: Any,
    ) -> str:
        """Build a cache key with a hash of the normalized identity."""

        canonical_identity = json.dumps(
            _normalize_identity_value(input_identity),
            sort_keys=True,
            ensure_ascii=True,
            separators=(",", ":"),
        )
        identity_hash = sha256(canonical_identity.encode("utf-8")).hexdigest()
        return (
            f"response:{provider.strip().lower()}:{model.strip()}:"
            f"{operation.strip().lower()}:{identity_hash}"
        )

    def get(self, cache_key: str) -> str | None:
        """Return the cached response for a key and update counters."""

        with self._lock:
            if cache_key in self.entries:
                self.hits += 1
                return self.entries[cache_key]
            self.misses += 1
            return None

    def set(self, cache_key: str, value: str) -> None:
        with self._lock:
            self.entries[cache_key] = value

    def hit_rate(self) -> float:
        """Return the hit rate for this cache's lifetime."""

        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / float(total)
