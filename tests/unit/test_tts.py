"""Unit tests for speech synthesizers."""

from __future__ import annotations

import pytest

from narrator.audio.wav import encode_wav
from narrator.errors import SynthesisError
from narrator.llm.openai_client import OpenAIProviderError, OpenAISpeechClient
from narrator.tts.synthesizer import OpenAITTSSynthesizer, ToneSynthesizer
from narrator.tts.voices import STORYTELLER_INSTRUCTIONS, VoiceProfile
from tests.audio_fixtures import tone_segment


def test_openai_synthesizer_requests_wav_with_storyteller_style(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Every request should carry the fixed instructions and decode to PCM16."""

    captured: dict[str, object] = {}
    speech = tone_segment(0.4, sample_rate=24000)

    def _fake_speech(self: OpenAISpeechClient, **kwargs: object) -> bytes:
        captured.update(kwargs)
        return encode_wav(speech)

    monkeypatch.setattr(OpenAISpeechClient, "synthesize_speech", _fake_speech)
    synthesizer = OpenAITTSSynthesizer(model="gpt-4o-mini-tts", api_key="key")

    segment = synthesizer.synthesize("Once upon a time.", VoiceProfile("coral", speaking_rate=9.0))

    assert captured["voice"] == "coral"
    assert captured["text"] == "Once upon a time."
    assert captured["instructions"] == STORYTELLER_INSTRUCTIONS
    assert captured["response_format"] == "wav"
    assert captured["speed"] == 4.0
    assert segment.encoding == "pcm16"
    assert segment.data == speech.data
    assert segment.duration_seconds == pytest.approx(0.4)


def test_openai_synthesizer_maps_provider_and_decode_failures(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Provider errors and unreadable audio both raise `SynthesisError`."""

    def _provider_failure(self: OpenAISpeechClient, **kwargs: object) -> bytes:
        raise OpenAIProviderError("OpenAI request timed out.", failure_kind="timeout")

    monkeypatch.setattr(OpenAISpeechClient, "synthesize_speech", _provider_failure)
    with pytest.raises(SynthesisError, match="timed out") as exc_info:
        OpenAITTSSynthesizer(api_key="key").synthesize("Hi.", VoiceProfile("coral"))
    assert exc_info.value.stage == "synthesis"

    monkeypatch.setattr(OpenAISpeechClient, "synthesize_speech", lambda self, **kwargs: b"ID3mp3")
    with pytest.raises(SynthesisError, match="not a readable WAV"):
        OpenAITTSSynthesizer(api_key="key").synthesize("Hi.", VoiceProfile("coral"))


def test_tone_synthesizer_length_tracks_word_count_and_rate() -> None:
    """Offline tones should last `words * seconds_per_word / rate`."""

    synthesizer = ToneSynthesizer(sample_rate=24000, seconds_per_word=0.35)

    normal = synthesizer.synthesize("one two three four", VoiceProfile("coral"))
    fast = synthesizer.synthesize("one two three four", VoiceProfile("coral", speaking_rate=2.0))

    assert normal.duration_seconds == pytest.approx(1.4)
    assert fast.duration_seconds == pytest.approx(0.7)
    assert normal.sample_rate == 24000
    assert normal.channels == 1


def test_voice_profile_clamps_speaking_rate() -> None:
    """Speaking rate should stay inside the provider range."""

    assert VoiceProfile("coral", speaking_rate=0.1).clamped_speaking_rate == 0.25
    assert VoiceProfile("coral", speaking_rate=1.5).clamped_speaking_rate == 1.5
