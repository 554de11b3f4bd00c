"""Narration and background-music mixing.

Responsibilities:
- Align background music to narration sample rate, channel layout, and length.
- Apply linear fade envelopes and gain to the background only.
- Sum both streams and hard-clip into a new PCM16 segment.
"""

from __future__ import annotations

import numpy as np

from ..errors import MixError
from ..models.datatypes import AudioSegment, MixConfig
from .pcm import match_channels, resample_linear, segment_from_float, segment_to_float


class AudioMixer:
    """Mix a narration segment over a looped or trimmed background track."""

    def mix(
        self,
        narration: AudioSegment,
        background: AudioSegment,
        config: MixConfig,
        narration_delay_seconds: float = 0.0,
    ) -> AudioSegment:
        """Return narration mixed over background.

        The result lasts exactly as long as the narration plus the optional
        background-only lead-in; the background is looped or trimmed to fit.

        Raises:
            MixError: If either segment is not decodable PCM16 audio.
        """

        narration_frames = self._decode(narration, "narration")
        background_frames = self._decode(background, "background")
        if narration_delay_seconds < 0.0:
            raise MixError(detail="Narration delay must be zero or greater.")

        sample_rate = narration.sample_rate
        background_frames = resample_linear(
            background_frames, background.sample_rate, sample_rate
        )
        channels = max(narration_frames.shape[1], background_frames.shape[1])
        narration_frames = match_channels(narration_frames, channels)
        background_frames = match_channels(background_frames, channels)

        delay_frames = int(round(narration_delay_seconds * sample_rate))
        target_frames = delay_frames + narration_frames.shape[0]

        bed = fit_length(background_frames, target_frames)
        envelope = fade_envelope(
            target_frames,
            int(round(config.fade_in_seconds * sample_rate)),
            int(round(config.fade_out_seconds * sample_rate)),
        )
        bed = bed * (envelope * config.background_volume)[:, np.newaxis]

        voice = np.zeros((target_frames, channels), dtype=np.float64)
        voice[delay_frames:] = narration_frames
        return segment_from_float(voice + bed, sample_rate)

    @staticmethod
    def _decode(segment: AudioSegment, label: str) -> np.ndarray:
        """Decode one input segment into float frames or raise `MixError`."""

        try:
            frames = segment_to_float(segment)
        except ValueError as exc:
            raise MixError(
                detail=f"Unreadable {label} segment: {exc}",
                hint="Decode MP3 inputs to PCM16 before mixing.",
            ) from exc
        if frames.shape[0] == 0:
            raise MixError(detail=f"The {label} segment contains no audio frames.")
        return frames


def fit_length(frames: np.ndarray, target_frames: int) -> np.ndarray:
    """Loop or trim frames to exactly `target_frames` rows."""

    source_frames = frames.shape[0]
    if source_frames == target_frames:
        return frames
    if source_frames > target_frames:
        return frames[:target_frames]
    repeats = -(-target_frames // source_frames)
    return np.tile(frames, (repeats, 1))[:target_frames]


def fade_envelope(frame_count: int, fade_in_frames: int, fade_out_frames: int) -> np.ndarray:
    """Return a linear gain envelope with fades capped at `frame_count`."""

    envelope = np.ones(frame_count, dtype=np.float64)
    fade_in = min(max(fade_in_frames, 0), frame_count)
    fade_out = min(max(fade_out_frames, 0), frame_count)
    if fade_in > 0:
        envelope[:fade_in] *= np.linspace(0.0, 1.0, num=fade_in, endpoint=False)
    if fade_out > 0:
        envelope[frame_count - fade_out :] *= np.linspace(1.0, 0.0, num=fade_out)
    return envelope
