"""Configuration model and loaders for the narration service.

Responsibilities:
- Define runtime configuration as a typed, validated dataclass.
- Resolve provider/model settings with CLI > env > config-default precedence.
- Load configuration from YAML files and environment variables.

Key types:
- `NarratorConfig`: normalized runtime settings for the pipeline and HTTP surface.
- `ProviderRuntimeConfig`: resolved provider/model runtime values.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `NarratorConfig`.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlsplit

import yaml

from .parsing import (
    normalize_optional_string,
    parse_finite_float,
    parse_positive_int,
    parse_required_boolean,
)

_DEFAULT_METADATA_MODEL = "gpt-4o-mini"
_DEFAULT_TTS_MODEL = "gpt-4o-mini-tts"
_DEFAULT_TTS_VOICE = "coral"
_SUPPORTED_PROVIDER_IDS = frozenset({"openai", "offline"})
_SUPPORTED_STORAGE_BACKENDS = frozenset({"filesystem", "s3"})
_SUPPORTED_OUTPUT_FORMATS = frozenset({"mp3", "wav"})


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments, keyed by config field.
        env: Values loaded from environment variables, keyed by variable name.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ProviderRuntimeConfig:
    """Resolved provider and model identifiers for one process.

    Attributes:
        metadata_provider: Provider identifier for the metadata analyzer.
        tts_provider: Provider identifier for speech synthesis.
        metadata_model: Classifier model identifier.
        tts_model: Speech model identifier.
        tts_voice: Default voice when a request does not choose one.
        api_key: Optional provider API key (never logged).
    """

    metadata_provider: str
    tts_provider: str
    metadata_model: str
    tts_model: str
    tts_voice: str
    api_key: str | None = None


@dataclass(slots=True)
class NarratorConfig:
    """Runtime configuration for the narration service.

    Attributes:
        api_key: Optional OpenAI API key.
        provider_metadata: Metadata analyzer provider (`openai` or `offline`).
        provider_tts: Speech provider (`openai` or `offline`).
        model_metadata: Classifier model identifier.
        model_tts: Speech model identifier.
        tts_voice: Default synthesis voice.
        storage_backend: Upload target (`filesystem` or `s3`).
        storage_root: Root directory for the filesystem backend.
        public_base_url: HTTPS base URL under which stored objects are served.
        music_root: Filesystem music library root; defaults to `storage_root`.
        music_prefix: Key prefix of the background music library.
        s3_bucket: Bucket for the `s3` backend.
        s3_endpoint_url: Optional S3-compatible endpoint (for example Cloudflare R2).
        s3_region: Region name passed to the S3 client.
        output_format: Encoding of uploaded objects (`mp3` or `wav`).
        max_workers: Paragraphs in flight at once.
        mix_workers: Worker threads for CPU-bound mixing.
        request_timeout_seconds: Timeout for each provider HTTP call.
        stage_timeout_seconds: Upper bound for waiting on one paragraph stage.
        upload_retry_attempts: Total upload attempts per object.
        upload_retry_base_delay_seconds: First upload retry delay; doubles afterwards.
        rate_limit_interval_seconds: Minimum spacing between provider requests.
        scratch_root: Optional parent directory for per-job scratch space.
        trusted_errors: Expose typed stage errors to HTTP callers.
        runtime_sources: Optional runtime source overrides injected by CLI or env.
    """

    api_key: str | None = None
    provider_metadata: str = "openai"
    provider_tts: str = "openai"
    model_metadata: str = _DEFAULT_METADATA_MODEL
    model_tts: str = _DEFAULT_TTS_MODEL
    tts_voice: str = _DEFAULT_TTS_VOICE
    storage_backend: str = "filesystem"
    storage_root: Path = Path("narration-store")
    public_base_url: str = "https://cdn.tunetalez.com"
    music_root: Path | None = None
    music_prefix: str = "POCBackgroundMusic"
    s3_bucket: str | None = None
    s3_endpoint_url: str | None = None
    s3_region: str | None = "auto"
    output_format: str = "mp3"
    max_workers: int = 4
    mix_workers: int = 2
    request_timeout_seconds: float = 60.0
    stage_timeout_seconds: float = 300.0
    upload_retry_attempts: int = 3
    upload_retry_base_delay_seconds: float = 0.5
    rate_limit_interval_seconds: float = 0.05
    scratch_root: Path | None = None
    trusted_errors: bool = False
    runtime_sources: RuntimeConfigSources = field(default_factory=RuntimeConfigSources)

    def validate(self) -> None:
        """Validate configuration values before the pipeline is built."""

        self._validate_choice(self.provider_metadata, "provider_metadata", _SUPPORTED_PROVIDER_IDS)
        self._validate_choice(self.provider_tts, "provider_tts", _SUPPORTED_PROVIDER_IDS)
        self._validate_choice(self.storage_backend, "storage_backend", _SUPPORTED_STORAGE_BACKENDS)
        self._validate_choice(self.output_format, "output_format", _SUPPORTED_OUTPUT_FORMATS)
        for name in ("model_metadata", "model_tts", "tts_voice", "music_prefix"):
            self._require_non_empty(getattr(self, name), name)
        if urlsplit(self.public_base_url).scheme != "https":
            raise ValueError("`public_base_url` must be an HTTPS URL.")
        if self.storage_backend == "s3" and not normalize_optional_string(self.s3_bucket):
            raise ValueError("`s3_bucket` is required when `storage_backend` is `s3`.")
        for name in ("max_workers", "mix_workers", "upload_retry_attempts"):
            if getattr(self, name) <= 0:
                raise ValueError(f"`{name}` must be a positive integer.")
        for name in ("request_timeout_seconds", "stage_timeout_seconds"):
            if getattr(self, name) <= 0.0:
                raise ValueError(f"`{name}` must be positive.")
        for name in ("upload_retry_base_delay_seconds", "rate_limit_interval_seconds"):
            if getattr(self, name) < 0.0:
                raise ValueError(f"`{name}` must be zero or greater.")

    def resolved_provider_runtime(
        self, sources: RuntimeConfigSources | None = None
    ) -> ProviderRuntimeConfig:
        """Resolve provider and model settings.

        Precedence for each key is `cli` > `env` > config field value. When
        `sources` is omitted, the config's own `runtime_sources` are used.
        """

        resolved_sources = sources if sources is not None else self.runtime_sources

        def _value(key: str, env_key: str, default: str | None) -> str | None:
            cli_value = normalize_optional_string(resolved_sources.cli.get(key))
            if cli_value is not None:
                return cli_value
            env_value = normalize_optional_string(resolved_sources.env.get(env_key))
            if env_value is not None:
                return env_value
            return normalize_optional_string(default)

        resolved = ProviderRuntimeConfig(
            metadata_provider=_value(
                "provider_metadata", "NARRATOR_PROVIDER_METADATA", self.provider_metadata
            )
            or "",
            tts_provider=_value("provider_tts", "NARRATOR_PROVIDER_TTS", self.provider_tts) or "",
            metadata_model=_value(
                "model_metadata", "NARRATOR_MODEL_METADATA", self.model_metadata
            )
            or "",
            tts_model=_value("model_tts", "NARRATOR_MODEL_TTS", self.model_tts) or "",
            tts_voice=_value("tts_voice", "NARRATOR_TTS_VOICE", self.tts_voice) or "",
            api_key=_value("api_key", "OPENAI_API_KEY", self.api_key),
        )
        self._validate_choice(resolved.metadata_provider, "provider_metadata", _SUPPORTED_PROVIDER_IDS)
        self._validate_choice(resolved.tts_provider, "provider_tts", _SUPPORTED_PROVIDER_IDS)
        self._require_non_empty(resolved.metadata_model, "model_metadata")
        self._require_non_empty(resolved.tts_model, "model_tts")
        self._require_non_empty(resolved.tts_voice, "tts_voice")
        return resolved

    @staticmethod
    def _validate_choice(value: str, field_name: str, supported: frozenset[str]) -> None:
        if value not in supported:
            options = ", ".join(sorted(supported))
            raise ValueError(f"Unsupported `{field_name}` value `{value}`; supported: {options}.")

    @staticmethod
    def _require_non_empty(value: object, field_name: str) -> None:
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"`{field_name}` must be a non-empty string.")


def _parse_string(value: object, key: str) -> str | None:
    _ = key
    return normalize_optional_string(value)


def _parse_path(value: object, key: str) -> Path | None:
    normalized = normalize_optional_string(value)
    return Path(normalized) if normalized is not None else None


def _parse_positive_float(value: object, key: str) -> float:
    parsed = parse_finite_float(value, key)
    if parsed <= 0.0:
        raise ValueError(f"`{key}` must be positive.")
    return parsed


def _parse_non_negative_float(value: object, key: str) -> float:
    parsed = parse_finite_float(value, key)
    if parsed < 0.0:
        raise ValueError(f"`{key}` must be zero or greater.")
    return parsed


_FIELD_PARSERS: dict[str, Callable[[object, str], Any]] = {
    "api_key": _parse_string,
    "provider_metadata": _parse_string,
    "provider_tts": _parse_string,
    "model_metadata": _parse_string,
    "model_tts": _parse_string,
    "tts_voice": _parse_string,
    "storage_backend": _parse_string,
    "storage_root": _parse_path,
    "public_base_url": _parse_string,
    "music_root": _parse_path,
    "music_prefix": _parse_string,
    "s3_bucket": _parse_string,
    "s3_endpoint_url": _parse_string,
    "s3_region": _parse_string,
    "output_format": _parse_string,
    "max_workers": parse_positive_int,
    "mix_workers": parse_positive_int,
    "request_timeout_seconds": _parse_positive_float,
    "stage_timeout_seconds": _parse_positive_float,
    "upload_retry_attempts": parse_positive_int,
    "upload_retry_base_delay_seconds": _parse_non_negative_float,
    "rate_limit_interval_seconds": _parse_non_negative_float,
    "scratch_root": _parse_path,
    "trusted_errors": parse_required_boolean,
}


class ConfigLoader:
    """Factory methods for creating `NarratorConfig` from external sources."""

    _SUPPORTED_YAML_KEYS = frozenset(_FIELD_PARSERS)
    _ENV_FIELD_KEYS = {
        "OPENAI_API_KEY": "api_key",
        **{f"NARRATOR_{name.upper()}": name for name in _FIELD_PARSERS if name != "api_key"},
    }
    _RUNTIME_ENV_KEYS = frozenset(
        {
            "NARRATOR_PROVIDER_METADATA",
            "NARRATOR_PROVIDER_TTS",
            "NARRATOR_MODEL_METADATA",
            "NARRATOR_MODEL_TTS",
            "NARRATOR_TTS_VOICE",
            "OPENAI_API_KEY",
        }
    )

    @staticmethod
    def from_yaml(path: Path, env: Mapping[str, str] | None = None) -> NarratorConfig:
        """Create a validated config from a YAML file.

        Provider runtime env variables still take precedence over file values
        when `resolved_provider_runtime` is called.
        """

        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")

        unknown = sorted(set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            raise ValueError(
                f"YAML `{path}` includes unsupported key(s): {', '.join(map(str, unknown))}."
            )
        config = ConfigLoader._build(payload, f"YAML `{path}`")
        config.runtime_sources = RuntimeConfigSources(env=ConfigLoader._runtime_env(env))
        return config

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> NarratorConfig:
        """Create a validated config from `NARRATOR_*` and `OPENAI_API_KEY` variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        payload = {
            field_name: env_map[env_key]
            for env_key, field_name in ConfigLoader._ENV_FIELD_KEYS.items()
            if normalize_optional_string(env_map.get(env_key)) is not None
        }
        config = ConfigLoader._build(payload, "environment")
        config.runtime_sources = RuntimeConfigSources(env=ConfigLoader._runtime_env(env_map))
        return config

    @staticmethod
    def _runtime_env(env: Mapping[str, str] | None) -> dict[str, str]:
        env_map: Mapping[str, str] = os.environ if env is None else env
        return {
            key: value
            for key, value in env_map.items()
            if key in ConfigLoader._RUNTIME_ENV_KEYS
            and normalize_optional_string(value) is not None
        }

    @staticmethod
    def _build(payload: Mapping[str, Any], source_label: str) -> NarratorConfig:
        """Parse known fields from a mapping and return a validated config."""

        values: dict[str, Any] = {}
        for key, raw_value in payload.items():
            if raw_value is None:
                continue
            try:
                parsed = _FIELD_PARSERS[key](raw_value, key)
            except ValueError as exc:
                raise ValueError(f"{source_label} field `{key}` is invalid: {exc}") from exc
            if parsed is not None:
                values[key] = parsed

        config = NarratorConfig(**values)
        try:
            config.validate()
        except ValueError as exc:
            raise ValueError(f"{source_label}: {exc}") from exc
        return config
