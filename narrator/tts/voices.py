"""Voice profile and narration style settings for synthesis.

Responsibilities:
- Represent provider voice identities and speaking rate.
- Hold the fixed storyteller instruction string shared by every paragraph of a job.
"""

from __future__ import annotations

from dataclasses import dataclass

STORYTELLER_INSTRUCTIONS = (
    "You are a professional storyteller reading aloud to children and students. "
    "Narrate in a calm, warm, and engaging voice. Speak slowly and clearly, pausing "
    "briefly after commas, longer after full stops, and longest at paragraph breaks. "
    "Breathe where a human narrator would breathe and stress the words that carry "
    "the story. Vary your intonation so the reading never sounds monotone, keep the "
    "pace steady and comfortable, and avoid robotic or overly formal delivery."
)


@dataclass(frozen=True, slots=True)
class VoiceProfile:
    """Declarative voice profile used by TTS providers.

    Attributes:
        provider_voice_id: Provider-native voice identifier.
        instructions: Narration style instructions sent with every request.
        speaking_rate: Relative speaking rate multiplier.
    """

    provider_voice_id: str
    instructions: str = STORYTELLER_INSTRUCTIONS
    speaking_rate: float = 1.0

    @property
    def clamped_speaking_rate(self) -> float:
        """Return the speaking rate limited to the provider's accepted range."""

        return max(0.25, min(4.0, self.speaking_rate))
