"""Request option parsing and per-mode defaults.

Responsibilities:
- Define default narration options for single-narration and episode modes.
- Convert camelCase request option payloads into validated `NarrationOptions`.

Single narration and per-paragraph requests default to musical fades and a
paragraph gap; episode requests default every timing value to zero so that
consecutive episode paragraphs play back-to-back.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace

from .errors import ValidationError
from .models.datatypes import MixConfig, NarrationMode, NarrationOptions
from .parsing import normalize_optional_string, parse_int, parse_non_negative_float

DEFAULT_VOICE = "coral"
DEFAULT_BACKGROUND_VOLUME = 0.2

_SINGLE_DEFAULTS = NarrationOptions(
    voice=DEFAULT_VOICE,
    mix=MixConfig(
        background_volume=DEFAULT_BACKGROUND_VOLUME,
        fade_in_seconds=2.0,
        fade_out_seconds=3.0,
        crossfade_seconds=0.0,
    ),
    narration_delay_seconds=0.0,
    paragraph_silence_seconds=1.5,
)

_EPISODE_DEFAULTS = NarrationOptions(
    voice=DEFAULT_VOICE,
    mix=MixConfig(background_volume=DEFAULT_BACKGROUND_VOLUME),
    narration_delay_seconds=0.0,
    paragraph_silence_seconds=0.0,
)

_RECOGNIZED_OPTION_KEYS = frozenset(
    {
        "voice",
        "backgroundMusicVolume",
        "crossfadeDuration",
        "fadeInDuration",
        "fadeOutDuration",
        "narrationDelay",
        "paragraphSilence",
        "episodeBreaks",
    }
)


def default_options(mode: NarrationMode, voice: str | None = None) -> NarrationOptions:
    """Return default options for a request mode, optionally overriding the voice."""

    base = _EPISODE_DEFAULTS if mode == "episode" else _SINGLE_DEFAULTS
    if voice is None:
        return base
    return replace(base, voice=voice)


def parse_narration_options(
    payload: Mapping[str, object] | None,
    mode: NarrationMode,
    default_voice: str | None = None,
) -> NarrationOptions:
    """Merge a request `options` payload over the defaults for `mode`.

    Unknown keys are ignored. `None` values keep the default.

    Raises:
        ValidationError: If a recognized option has an invalid type or range.
    """

    base = default_options(mode, voice=default_voice)
    if payload is None:
        return base
    if not isinstance(payload, Mapping):
        raise ValidationError(
            detail="`options` must be a JSON object.",
            hint="Send options as an object, for example {\"voice\": \"coral\"}.",
        )

    values = {
        key: value
        for key, value in payload.items()
        if key in _RECOGNIZED_OPTION_KEYS and value is not None
    }
    try:
        voice = base.voice
        if "voice" in values:
            voice = normalize_optional_string(values["voice"]) or base.voice
        mix = MixConfig(
            background_volume=_float_option(
                values, "backgroundMusicVolume", base.mix.background_volume
            ),
            fade_in_seconds=_float_option(values, "fadeInDuration", base.mix.fade_in_seconds),
            fade_out_seconds=_float_option(values, "fadeOutDuration", base.mix.fade_out_seconds),
            crossfade_seconds=_float_option(
                values, "crossfadeDuration", base.mix.crossfade_seconds
            ),
        )
        return NarrationOptions(
            voice=voice,
            mix=mix,
            narration_delay_seconds=_float_option(
                values, "narrationDelay", base.narration_delay_seconds
            ),
            paragraph_silence_seconds=_float_option(
                values, "paragraphSilence", base.paragraph_silence_seconds
            ),
            episode_breaks=_episode_breaks_option(values, base.episode_breaks),
        )
    except ValueError as exc:
        raise ValidationError(
            detail=f"Invalid narration options: {exc}",
            hint="Check option types: durations are seconds, volume is 0..1.",
        ) from exc


def _float_option(values: Mapping[str, object], key: str, default: float) -> float:
    """Read one non-negative float option or return its default."""

    if key not in values:
        return default
    return parse_non_negative_float(values[key], key)


def _episode_breaks_option(
    values: Mapping[str, object], default: tuple[int, ...]
) -> tuple[int, ...]:
    """Read episode break indices as a sorted, de-duplicated tuple."""

    if "episodeBreaks" not in values:
        return default
    raw = values["episodeBreaks"]
    if isinstance(raw, str | bytes) or not isinstance(raw, list | tuple):
        raise ValueError("`episodeBreaks` must be a list of paragraph indices.")
    parsed = {parse_int(item, "episodeBreaks") for item in raw}
    if any(index < 0 for index in parsed):
        raise ValueError("`episodeBreaks` indices must be zero or greater.")
    return tuple(sorted(parsed))
