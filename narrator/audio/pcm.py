"""Float/PCM16 sample conversion helpers.

Responsibilities:
- Convert interleaved PCM16 bytes to float frames shaped `(frames, channels)`.
- Encode float frames back to PCM16 with clamping and asymmetric scaling.
- Build PCM16 `AudioSegment` values from float frames.

Positive samples scale by 32767 and negative samples by 32768, so both ends of
[-1, 1] reach the full signed 16-bit range without a one-unit bias.
"""

from __future__ import annotations

import numpy as np

from ..models.datatypes import AudioSegment

PCM16_POSITIVE_SCALE = 32767.0
PCM16_NEGATIVE_SCALE = 32768.0
PCM16_MAX = 32767
PCM16_MIN = -32768


def pcm16_to_float(data: bytes, channels: int) -> np.ndarray:
    """Decode little-endian PCM16 bytes into float64 frames in [-1, 1]."""

    if channels <= 0:
        raise ValueError("Channel count must be positive.")
    samples = np.frombuffer(data, dtype="<i2").astype(np.float64)
    if samples.size % channels != 0:
        raise ValueError("PCM16 payload length is not a whole number of frames.")
    scaled = np.where(
        samples < 0.0,
        samples / PCM16_NEGATIVE_SCALE,
        samples / PCM16_POSITIVE_SCALE,
    )
    return scaled.reshape(-1, channels)


def float_to_pcm16(frames: np.ndarray) -> bytes:
    """Encode float frames to interleaved little-endian PCM16 bytes.

    Samples are clamped to [-1, 1] before scaling, so out-of-range input is
    hard-clipped to the 16-bit limits instead of wrapping.
    """

    clipped = np.clip(np.nan_to_num(np.asarray(frames, dtype=np.float64)), -1.0, 1.0)
    scaled = np.where(
        clipped < 0.0,
        clipped * PCM16_NEGATIVE_SCALE,
        clipped * PCM16_POSITIVE_SCALE,
    )
    rounded = np.clip(np.rint(scaled), PCM16_MIN, PCM16_MAX)
    return rounded.astype("<i2").tobytes()


def segment_to_float(segment: AudioSegment) -> np.ndarray:
    """Decode a PCM16 segment into float frames shaped `(frames, channels)`."""

    if segment.encoding != "pcm16":
        raise ValueError(f"Expected a PCM16 segment, got `{segment.encoding}`.")
    return pcm16_to_float(segment.data, segment.channels)


def segment_from_float(frames: np.ndarray, sample_rate: int) -> AudioSegment:
    """Build a PCM16 segment from float frames shaped `(frames, channels)`."""

    shaped = np.asarray(frames, dtype=np.float64)
    if shaped.ndim == 1:
        shaped = shaped.reshape(-1, 1)
    frame_count, channels = shaped.shape
    return AudioSegment(
        data=float_to_pcm16(shaped),
        sample_rate=sample_rate,
        channels=channels,
        duration_seconds=frame_count / float(sample_rate),
        encoding="pcm16",
    )


def match_channels(frames: np.ndarray, channels: int) -> np.ndarray:
    """Return frames with `channels` columns.

    Mono input is duplicated across channels; multi-channel input is
    downmixed by averaging when fewer channels are requested.
    """

    current = frames.shape[1]
    if current == channels:
        return frames
    if current == 1:
        return np.repeat(frames, channels, axis=1)
    if channels == 1:
        return frames.mean(axis=1, keepdims=True)
    if current > channels:
        return frames[:, :channels]
    padding = np.repeat(frames[:, -1:], channels - current, axis=1)
    return np.concatenate([frames, padding], axis=1)


def resample_linear(frames: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """Resample float frames with per-channel linear interpolation."""

    if source_rate == target_rate or frames.shape[0] == 0:
        return frames
    source_count = frames.shape[0]
    target_count = max(1, int(round(source_count * target_rate / float(source_rate))))
    source_positions = np.arange(source_count, dtype=np.float64)
    target_positions = np.linspace(0.0, source_count - 1, num=target_count)
    return np.column_stack(
        [
            np.interp(target_positions, source_positions, frames[:, channel])
            for channel in range(frames.shape[1])
        ]
    )
