"""Speech synthesis modules."""

from .synthesizer import OpenAITTSSynthesizer, ToneSynthesizer, TTSSynthesizer
from .voices import STORYTELLER_INSTRUCTIONS, VoiceProfile

__all__ = [
    "OpenAITTSSynthesizer",
    "STORYTELLER_INSTRUCTIONS",
    "TTSSynthesizer",
    "ToneSynthesizer",
    "VoiceProfile",
]
