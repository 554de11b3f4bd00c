"""Audio codec, mixing, and concatenation modules."""

from .concatenator import AudioConcatenator, ConcatenationResult, EncodedAudio, encode_output
from .mixer import AudioMixer
from .wav import decode_wav, encode_wav, parse_wav_header

__all__ = [
    "AudioConcatenator",
    "AudioMixer",
    "ConcatenationResult",
    "EncodedAudio",
    "decode_wav",
    "encode_output",
    "encode_wav",
    "parse_wav_header",
]
