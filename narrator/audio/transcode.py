"""ffmpeg-backed MP3 transcoding.

Responsibilities:
- Decode MP3 library tracks into PCM16 segments at an explicit rate/layout.
- Encode final PCM16 segments into MP3 with a deterministic codec profile.
"""

from __future__ import annotations

import subprocess

from ..models.datatypes import PCM16_SAMPLE_WIDTH, AudioSegment
from ..parsing import normalize_optional_string
from ..runtime_tools import resolve_executable

DECODE_SAMPLE_RATE = 44100
DECODE_CHANNELS = 2
MP3_BITRATE = "128k"


class TranscodeError(RuntimeError):
    """Raised when ffmpeg is missing, fails, or produces no audio."""


def decode_to_pcm16(
    payload: bytes,
    *,
    sample_rate: int = DECODE_SAMPLE_RATE,
    channels: int = DECODE_CHANNELS,
    timeout_seconds: float | None = 120.0,
) -> AudioSegment:
    """Decode any ffmpeg-readable payload into a PCM16 segment."""

    command = [
        resolve_executable("ffmpeg"),
        "-hide_banner",
        "-loglevel",
        "error",
        "-i",
        "pipe:0",
        "-vn",
        "-f",
        "s16le",
        "-acodec",
        "pcm_s16le",
        "-ac",
        str(channels),
        "-ar",
        str(sample_rate),
        "pipe:1",
    ]
    pcm = _run_ffmpeg(command, payload, timeout_seconds)
    block_align = channels * PCM16_SAMPLE_WIDTH
    usable = len(pcm) - (len(pcm) % block_align)
    if usable <= 0:
        raise TranscodeError("ffmpeg decoded no audio frames.")
    return AudioSegment(
        data=pcm[:usable],
        sample_rate=sample_rate,
        channels=channels,
        duration_seconds=(usable // block_align) / float(sample_rate),
        encoding="pcm16",
    )


def encode_mp3(
    segment: AudioSegment,
    *,
    bitrate: str = MP3_BITRATE,
    timeout_seconds: float | None = 300.0,
) -> AudioSegment:
    """Encode a PCM16 segment to MP3, keeping its rate, layout, and duration."""

    if segment.encoding != "pcm16":
        raise TranscodeError(f"Expected a PCM16 segment, got `{segment.encoding}`.")
    command = [
        resolve_executable("ffmpeg"),
        "-hide_banner",
        "-loglevel",
        "error",
        "-f",
        "s16le",
        "-ar",
        str(segment.sample_rate),
        "-ac",
        str(segment.channels),
        "-i",
        "pipe:0",
        "-map_metadata",
        "-1",
        "-fflags",
        "+bitexact",
        "-c:a",
        "libmp3lame",
        "-b:a",
        bitrate,
        "-f",
        "mp3",
        "pipe:1",
    ]
    encoded = _run_ffmpeg(command, segment.data, timeout_seconds)
    if not encoded:
        raise TranscodeError("ffmpeg produced an empty MP3 stream.")
    return AudioSegment(
        data=encoded,
        sample_rate=segment.sample_rate,
        channels=segment.channels,
        duration_seconds=segment.duration_seconds,
        encoding="mp3",
    )


def _run_ffmpeg(command: list[str], payload: bytes, timeout_seconds: float | None) -> bytes:
    """Run one ffmpeg pipe command and return stdout bytes."""

    try:
        completed = subprocess.run(
            command,
            input=payload,
            check=True,
            capture_output=True,
            timeout=timeout_seconds,
        )
    except FileNotFoundError as exc:
        raise TranscodeError("Audio tool `ffmpeg` is not available on PATH.") from exc
    except subprocess.TimeoutExpired as exc:
        raise TranscodeError(f"ffmpeg timed out after {timeout_seconds} seconds.") from exc
    except subprocess.CalledProcessError as exc:
        stderr = normalize_optional_string(
            exc.stderr.decode("utf-8", errors="replace") if exc.stderr else None
        )
        raise TranscodeError(f"ffmpeg failed: {stderr or 'no stderr output'}") from exc
    return bytes(completed.stdout)
