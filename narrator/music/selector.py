"""Background music selection.

Responsibilities:
- Resolve a mood/intensity pair to the first available library track.
- Fetch and decode the track into a PCM16 segment.
- Raise `MusicUnavailableError` when nothing matches or the fetch fails.
"""

from __future__ import annotations

from ..audio.transcode import TranscodeError, decode_to_pcm16
from ..audio.wav import decode_wav
from ..errors import MusicUnavailableError
from ..io.storage import AudioStore, StorageError
from ..models.datatypes import AudioSegment, MusicTrack
from .catalog import DEFAULT_MUSIC_PREFIX, candidate_keys, category_for_mood


class MusicSelector:
    """Select background tracks from an `AudioStore`-backed library."""

    def __init__(
        self,
        store: AudioStore,
        prefix: str = DEFAULT_MUSIC_PREFIX,
        decode_timeout_seconds: float | None = 120.0,
    ) -> None:
        self.store = store
        self.prefix = prefix
        self.decode_timeout_seconds = decode_timeout_seconds

    def select(self, mood: str, intensity: int) -> MusicTrack:
        """Return the first available track for `mood` and `intensity`.

        Raises:
            MusicUnavailableError: If no candidate exists, or a fetch/decode fails.
        """

        for category, index, key in candidate_keys(self.prefix, mood, intensity):
            try:
                if not self.store.exists(key):
                    continue
                payload = self.store.read_bytes(key)
            except StorageError as exc:
                raise MusicUnavailableError(
                    detail=f"Failed to fetch background track `{key}`: {exc}",
                    hint="Check music library storage credentials and connectivity.",
                ) from exc
            return MusicTrack(
                category=category,
                index=index,
                key=key,
                segment=self._decode(key, payload),
            )

        raise MusicUnavailableError(
            detail=(
                f"No background track found for mood `{mood}` "
                f"(category `{category_for_mood(mood)}`) or any fallback category."
            ),
            hint=f"Upload tracks under `{self.prefix}/<Category>/<Category>_<n>.mp3`.",
        )

    def _decode(self, key: str, payload: bytes) -> AudioSegment:
        """Decode a fetched track by file extension."""

        try:
            if key.lower().endswith(".wav"):
                return decode_wav(payload)
            return decode_to_pcm16(payload, timeout_seconds=self.decode_timeout_seconds)
        except (TranscodeError, ValueError) as exc:
            raise MusicUnavailableError(
                detail=f"Background track `{key}` could not be decoded: {exc}",
                hint="Replace the corrupt track or verify ffmpeg is installed.",
            ) from exc
