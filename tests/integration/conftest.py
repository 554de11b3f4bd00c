"""Integration-test fixtures for deterministic provider behavior."""

from __future__ import annotations

import json

import pytest

from narrator.audio.wav import encode_wav
from narrator.llm.openai_client import OpenAIChatClient, OpenAISpeechClient
from tests.audio_fixtures import tone_segment


@pytest.fixture(autouse=True)
def _mock_openai_calls(monkeypatch: pytest.MonkeyPatch) -> None:
    """Mock OpenAI calls in integration tests to avoid network/key requirements."""

    def _mock_chat_completion(self, **kwargs: object) -> str:
        """Return one `calm` record per paragraph listed in the user prompt."""

        _ = self
        prompt = str(kwargs["user_prompt"])
        listed = json.loads(prompt[prompt.index("{") :])["paragraphs"]
        return json.dumps(
            {
                "paragraphs": [
                    {
                        "index": item["index"],
                        "mood": "calm",
                        "genre": "fiction",
                        "intensity": 3,
                        "tempo": "slow",
                    }
                    for item in listed
                ]
            }
        )

    def _mock_synthesize_speech(self, **kwargs: object) -> bytes:
        """Return a deterministic 0.1 s WAV payload for the TTS stage."""

        _ = self
        _ = kwargs
        return encode_wav(tone_segment(0.1, sample_rate=24000))

    monkeypatch.setattr(OpenAIChatClient, "chat_completion_text", _mock_chat_completion)
    monkeypatch.setattr(OpenAISpeechClient, "synthesize_speech", _mock_synthesize_speech)
