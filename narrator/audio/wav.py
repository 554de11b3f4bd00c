"""WAV container framing for PCM16 segments.

Responsibilities:
- Encode PCM16 `AudioSegment` values as RIFF/WAVE bytes with exact chunk sizes.
- Decode WAV payloads into PCM16 segments.
- Parse canonical WAV headers for validation in tests and diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass
import io
import struct
import wave

from ..models.datatypes import PCM16_SAMPLE_WIDTH, AudioSegment

WAV_HEADER_BYTES = 44
_PCM_FORMAT_TAG = 1


@dataclass(frozen=True, slots=True)
class WavHeader:
    """Fields of a canonical 44-byte PCM WAV header."""

    riff_size: int
    format_tag: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int


def encode_wav(segment: AudioSegment) -> bytes:
    """Return a RIFF/WAVE container for a PCM16 segment.

    The `data` chunk size equals the payload byte count and the RIFF size
    equals the file length minus 8 bytes.
    """

    if segment.encoding != "pcm16":
        raise ValueError(f"Only PCM16 segments can be framed as WAV, got `{segment.encoding}`.")
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(segment.channels)
        wav_file.setsampwidth(PCM16_SAMPLE_WIDTH)
        wav_file.setframerate(segment.sample_rate)
        wav_file.writeframes(segment.data)
    return buffer.getvalue()


def decode_wav(payload: bytes) -> AudioSegment:
    """Decode a 16-bit PCM WAV payload into a PCM16 segment.

    Frames are counted from the bytes actually present, so streamed WAVs with
    placeholder size fields still decode to the right duration.

    Raises:
        ValueError: If the payload is not a readable 16-bit PCM WAV or is empty.
    """

    try:
        with wave.open(io.BytesIO(payload), "rb") as wav_file:
            channels = wav_file.getnchannels()
            sample_width = wav_file.getsampwidth()
            sample_rate = wav_file.getframerate()
            frames = wav_file.readframes(wav_file.getnframes())
    except (wave.Error, EOFError, struct.error) as exc:
        raise ValueError(f"Payload is not a readable WAV file: {exc}") from exc

    if sample_width != PCM16_SAMPLE_WIDTH:
        raise ValueError(f"Unsupported WAV sample width {sample_width * 8} bits; expected 16.")
    if sample_rate <= 0 or channels <= 0:
        raise ValueError("WAV header declares an invalid sample rate or channel count.")
    block_align = channels * PCM16_SAMPLE_WIDTH
    usable = len(frames) - (len(frames) % block_align)
    if usable <= 0:
        raise ValueError("WAV payload contains no audio frames.")
    return AudioSegment(
        data=frames[:usable],
        sample_rate=sample_rate,
        channels=channels,
        duration_seconds=(usable // block_align) / float(sample_rate),
        encoding="pcm16",
    )


def parse_wav_header(payload: bytes) -> WavHeader:
    """Parse a canonical 44-byte PCM WAV header.

    Raises:
        ValueError: If the payload does not start with a canonical PCM header.
    """

    if len(payload) < WAV_HEADER_BYTES:
        raise ValueError("WAV payload is shorter than a canonical header.")
    riff, riff_size, wave_id = struct.unpack_from("<4sI4s", payload, 0)
    if riff != b"RIFF" or wave_id != b"WAVE":
        raise ValueError("Missing RIFF/WAVE identifiers.")
    (
        fmt_id,
        fmt_size,
        format_tag,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
    ) = struct.unpack_from("<4sIHHIIHH", payload, 12)
    if fmt_id != b"fmt " or fmt_size != 16:
        raise ValueError("Missing canonical 16-byte `fmt ` chunk.")
    data_id, data_size = struct.unpack_from("<4sI", payload, 36)
    if data_id != b"data":
        raise ValueError("Missing `data` chunk after `fmt ` chunk.")
    if format_tag != _PCM_FORMAT_TAG:
        raise ValueError(f"Unsupported WAV format tag {format_tag}; expected PCM.")
    return WavHeader(
        riff_size=riff_size,
        format_tag=format_tag,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits_per_sample,
        data_size=data_size,
    )
