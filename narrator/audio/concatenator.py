"""Segment concatenation and output encoding.

Responsibilities:
- Join ordered PCM16 segments with a fixed silence gap or an optional crossfade.
- Report the start offset of every segment in the combined track.
- Encode the combined track as WAV or MP3 for upload.

Segment `i` starts at `sum(frames[0..i-1]) + round(i * gap * rate)` frames, so
gap rounding never accumulates beyond one frame across the whole track.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

import numpy as np

from ..errors import EncodingError
from ..models.datatypes import AudioSegment
from .pcm import match_channels, segment_from_float, segment_to_float
from .transcode import TranscodeError, encode_mp3
from .wav import encode_wav

OutputFormat = Literal["mp3", "wav"]

_CONTENT_TYPES = {"mp3": "audio/mpeg", "wav": "audio/wav"}


@dataclass(frozen=True, slots=True)
class ConcatenationResult:
    """Combined segment plus the start offset of each input segment."""

    segment: AudioSegment
    start_seconds: tuple[float, ...]


@dataclass(frozen=True, slots=True)
class EncodedAudio:
    """Upload-ready audio bytes and their container metadata."""

    data: bytes
    content_type: str
    extension: str
    duration_seconds: float


class AudioConcatenator:
    """Join ordered segments into one continuous PCM16 segment."""

    def concatenate(
        self,
        segments: Sequence[AudioSegment],
        gap_seconds: float = 0.0,
        crossfade_seconds: float = 0.0,
    ) -> ConcatenationResult:
        """Concatenate `segments` in order.

        A crossfade is applied only when `gap_seconds` is zero; the overlap is
        capped at the shorter of the two neighbouring segments.

        Raises:
            EncodingError: On empty input, non-PCM16 input, or mismatched sample rates.
        """

        if not segments:
            raise EncodingError(detail="No segments to concatenate.")
        if gap_seconds < 0.0 or crossfade_seconds < 0.0:
            raise EncodingError(detail="Gap and crossfade durations must be zero or greater.")

        sample_rate = segments[0].sample_rate
        mismatched = sorted({item.sample_rate for item in segments if item.sample_rate != sample_rate})
        if mismatched:
            raise EncodingError(
                detail=(
                    f"Segments use mismatched sample rates ({sample_rate} Hz vs "
                    f"{', '.join(str(rate) for rate in mismatched)} Hz)."
                ),
                hint="Resample segments to one rate before concatenation.",
            )

        decoded = [self._decode(index, item) for index, item in enumerate(segments)]
        channels = max(frames.shape[1] for frames in decoded)
        decoded = [match_channels(frames, channels) for frames in decoded]

        if gap_seconds == 0.0 and crossfade_seconds > 0.0 and len(decoded) > 1:
            combined, starts = self._crossfade(decoded, int(round(crossfade_seconds * sample_rate)))
        else:
            combined, starts = self._with_gaps(decoded, gap_seconds, sample_rate)

        return ConcatenationResult(
            segment=segment_from_float(combined, sample_rate),
            start_seconds=tuple(start / float(sample_rate) for start in starts),
        )

    @staticmethod
    def _decode(index: int, segment: AudioSegment) -> np.ndarray:
        """Decode one input segment or raise `EncodingError` with its position."""

        try:
            frames = segment_to_float(segment)
        except ValueError as exc:
            raise EncodingError(detail=f"Segment {index} is not decodable PCM16: {exc}") from exc
        if frames.shape[0] == 0:
            raise EncodingError(detail=f"Segment {index} has zero length.")
        return frames

    @staticmethod
    def _with_gaps(
        decoded: list[np.ndarray], gap_seconds: float, sample_rate: int
    ) -> tuple[np.ndarray, list[int]]:
        """Place segments on a timeline separated by silence."""

        starts: list[int] = []
        elapsed = 0
        for index, frames in enumerate(decoded):
            starts.append(elapsed + int(round(index * gap_seconds * sample_rate)))
            elapsed += frames.shape[0]
        total = starts[-1] + decoded[-1].shape[0]
        combined = np.zeros((total, decoded[0].shape[1]), dtype=np.float64)
        for start, frames in zip(starts, decoded):
            combined[start : start + frames.shape[0]] = frames
        return combined, starts

    @staticmethod
    def _crossfade(
        decoded: list[np.ndarray], overlap_frames: int
    ) -> tuple[np.ndarray, list[int]]:
        """Overlap consecutive segments with complementary linear ramps."""

        combined = decoded[0]
        starts = [0]
        for frames in decoded[1:]:
            overlap = min(overlap_frames, combined.shape[0], frames.shape[0])
            start = combined.shape[0] - overlap
            starts.append(start)
            if overlap == 0:
                combined = np.concatenate([combined, frames])
                continue
            fade_out = np.linspace(1.0, 0.0, num=overlap)[:, np.newaxis]
            blended = combined[start:] * fade_out + frames[:overlap] * (1.0 - fade_out)
            combined = np.concatenate([combined[:start], blended, frames[overlap:]])
        return combined, starts


def encode_output(
    segment: AudioSegment,
    output_format: OutputFormat,
    timeout_seconds: float | None = 300.0,
) -> EncodedAudio:
    """Encode a PCM16 segment into an upload-ready container.

    Raises:
        EncodingError: If the format is unknown or the encoder fails.
    """

    if output_format not in _CONTENT_TYPES:
        raise EncodingError(
            detail=f"Unsupported output format `{output_format}`.",
            hint="Use `mp3` or `wav`.",
        )
    try:
        if output_format == "wav":
            data = encode_wav(segment)
        else:
            data = encode_mp3(segment, timeout_seconds=timeout_seconds).data
    except (TranscodeError, ValueError) as exc:
        raise EncodingError(
            detail=f"Failed to encode {output_format.upper()} output: {exc}",
            hint="Verify ffmpeg with `libmp3lame` is installed, or use `wav` output.",
        ) from exc
    return EncodedAudio(
        data=data,
        content_type=_CONTENT_TYPES[output_format],
        extension=output_format,
        duration_seconds=segment.duration_seconds,
    )
