"""Unit tests for request option parsing and per-mode defaults."""

from __future__ import annotations

import pytest

from narrator.errors import ValidationError
from narrator.options import DEFAULT_VOICE, default_options, parse_narration_options


def test_single_narration_defaults_use_fades_and_paragraph_gap() -> None:
    """Narration and paragraph modes should default to musical fades and a gap."""

    options = default_options("narration")

    assert options.voice == DEFAULT_VOICE == "coral"
    assert options.mix.background_volume == pytest.approx(0.2)
    assert options.mix.fade_in_seconds == pytest.approx(2.0)
    assert options.mix.fade_out_seconds == pytest.approx(3.0)
    assert options.paragraph_silence_seconds == pytest.approx(1.5)
    assert default_options("paragraph") == options


def test_episode_defaults_zero_every_timing_value() -> None:
    """Episode paragraphs should play back-to-back by default."""

    options = default_options("episode", voice="nova")

    assert options.voice == "nova"
    assert options.mix.fade_in_seconds == 0.0
    assert options.mix.fade_out_seconds == 0.0
    assert options.mix.crossfade_seconds == 0.0
    assert options.narration_delay_seconds == 0.0
    assert options.paragraph_silence_seconds == 0.0


def test_parse_options_merges_camel_case_payload_over_defaults() -> None:
    """Recognized keys override defaults; unknown keys and nulls are ignored."""

    options = parse_narration_options(
        {
            "voice": " alloy ",
            "backgroundMusicVolume": "0.5",
            "fadeInDuration": 1,
            "narrationDelay": 0.75,
            "paragraphSilence": None,
            "episodeBreaks": [4, 2, 4],
            "speed": 2.0,
        },
        "narration",
    )

    assert options.voice == "alloy"
    assert options.mix.background_volume == pytest.approx(0.5)
    assert options.mix.fade_in_seconds == pytest.approx(1.0)
    assert options.mix.fade_out_seconds == pytest.approx(3.0)
    assert options.narration_delay_seconds == pytest.approx(0.75)
    assert options.paragraph_silence_seconds == pytest.approx(1.5)
    assert options.episode_breaks == (2, 4)


def test_parse_options_without_payload_uses_configured_voice() -> None:
    """A missing payload should return mode defaults with the configured voice."""

    options = parse_narration_options(None, "episode", default_voice="shimmer")

    assert options == default_options("episode", voice="shimmer")


@pytest.mark.parametrize(
    "payload",
    [
        {"backgroundMusicVolume": 1.5},
        {"fadeInDuration": -1},
        {"crossfadeDuration": "soon"},
        {"narrationDelay": True},
        {"episodeBreaks": "3"},
        {"episodeBreaks": [-1]},
    ],
)
def test_parse_options_rejects_invalid_values(payload: dict[str, object]) -> None:
    """Out-of-range or mistyped options should raise `ValidationError`."""

    with pytest.raises(ValidationError, match="Invalid narration options") as exc_info:
        parse_narration_options(payload, "narration")
    assert exc_info.value.stage == "request"


def test_parse_options_rejects_non_object_payload() -> None:
    """The `options` field must be a JSON object."""

    with pytest.raises(ValidationError, match="must be a JSON object"):
        parse_narration_options(["voice"], "narration")  # type: ignore[arg-type]
