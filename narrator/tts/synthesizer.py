"""TTS synthesizer interfaces and implementations.

Responsibilities:
- Define the protocol for paragraph-level speech synthesis.
- Provide an OpenAI-backed synthesizer returning decoded PCM16 segments.
- Provide an offline tone synthesizer for local runs without provider access.
"""

from __future__ import annotations

from typing import Protocol

import numpy as np

from ..audio.pcm import segment_from_float
from ..audio.wav import decode_wav
from ..errors import SynthesisError
from ..llm.openai_client import OpenAIProviderError, OpenAISpeechClient
from ..llm.rate_limiter import RateLimiter
from ..models.datatypes import AudioSegment
from .voices import VoiceProfile


class TTSSynthesizer(Protocol):
    """Protocol for TTS provider implementations."""

    def synthesize(self, text: str, voice: VoiceProfile) -> AudioSegment:
        """Synthesize one paragraph into a PCM16 segment."""


class OpenAITTSSynthesizer:
    """OpenAI-backed synthesizer requesting WAV so output decodes without ffmpeg."""

    def __init__(
        self,
        model: str = "gpt-4o-mini-tts",
        provider_id: str = "openai",
        api_key: str | None = None,
        timeout_seconds: float = 60.0,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.model = model
        self.provider_id = provider_id
        self.client = OpenAISpeechClient(
            api_key=api_key,
            timeout_seconds=timeout_seconds,
            rate_limiter=rate_limiter,
        )

    def synthesize(self, text: str, voice: VoiceProfile) -> AudioSegment:
        """Synthesize one paragraph and decode the WAV response."""

        try:
            audio_bytes = self.client.synthesize_speech(
                model=self.model,
                voice=voice.provider_voice_id,
                text=text,
                instructions=voice.instructions,
                response_format="wav",
                speed=voice.clamped_speaking_rate,
            )
        except OpenAIProviderError as exc:
            raise SynthesisError(
                detail=str(exc),
                hint="Verify `OPENAI_API_KEY` and the TTS model/voice configuration.",
            ) from exc

        try:
            return decode_wav(audio_bytes)
        except ValueError as exc:
            raise SynthesisError(
                detail=f"Speech response is not a readable WAV payload: {exc}",
                hint="Confirm the TTS model supports `wav` output.",
            ) from exc


class ToneSynthesizer:
    """Offline synthesizer producing a soft tone whose length tracks the text.

    Used for dry runs of the pipeline where no speech provider is available.
    """

    def __init__(
        self,
        sample_rate: int = 24000,
        seconds_per_word: float = 0.35,
        frequency_hz: float = 220.0,
    ) -> None:
        self.sample_rate = sample_rate
        self.seconds_per_word = seconds_per_word
        self.frequency_hz = frequency_hz

    def synthesize(self, text: str, voice: VoiceProfile) -> AudioSegment:
        """Return a mono tone lasting roughly as long as reading `text` aloud."""

        words = max(1, len(text.split()))
        duration = words * self.seconds_per_word / voice.clamped_speaking_rate
        frame_count = max(1, int(round(duration * self.sample_rate)))
        timeline = np.arange(frame_count, dtype=np.float64) / self.sample_rate
        tone = 0.1 * np.sin(2.0 * np.pi * self.frequency_hz * timeline)
        return segment_from_float(tone, self.sample_rate)
