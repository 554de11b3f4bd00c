"""Unit tests for YAML/environment configuration loader behavior."""

from __future__ import annotations

from pathlib import Path

import pytest

from narrator.config import ConfigLoader, NarratorConfig, RuntimeConfigSources


def test_config_loader_from_yaml_loads_valid_config_and_normalizes_values(
    tmp_path: Path,
) -> None:
    """YAML loader should parse valid payloads and normalize typed/blank values."""

    config_path = tmp_path / "narrator.yml"
    config_path.write_text(
        """
provider_metadata: " offline "
provider_tts: " openai "
model_tts: " gpt-4o-mini-tts "
tts_voice: " nova "
storage_root: " store "
public_base_url: " https://media.example.com "
music_root: " music "
output_format: " wav "
max_workers: " 6 "
stage_timeout_seconds: 45
upload_retry_attempts: 5
upload_retry_base_delay_seconds: "0"
trusted_errors: " yes "
s3_bucket: "   "
""".strip(),
        encoding="utf-8",
    )

    config = ConfigLoader.from_yaml(config_path, env={})

    assert config.provider_metadata == "offline"
    assert config.provider_tts == "openai"
    assert config.model_tts == "gpt-4o-mini-tts"
    assert config.tts_voice == "nova"
    assert config.storage_root == Path("store")
    assert config.public_base_url == "https://media.example.com"
    assert config.music_root == Path("music")
    assert config.output_format == "wav"
    assert config.max_workers == 6
    assert config.stage_timeout_seconds == pytest.approx(45.0)
    assert config.upload_retry_attempts == 5
    assert config.upload_retry_base_delay_seconds == 0.0
    assert config.trusted_errors is True
    assert config.s3_bucket is None


def test_config_loader_from_yaml_empty_file_uses_defaults(tmp_path: Path) -> None:
    """An empty YAML document should produce the default configuration."""

    config_path = tmp_path / "empty.yml"
    config_path.write_text("", encoding="utf-8")

    config = ConfigLoader.from_yaml(config_path, env={})

    assert config.output_format == "mp3"
    assert config.max_workers == 4
    assert config.tts_voice == "coral"


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ("- not\n- a mapping\n", "top-level mapping"),
        ("chunk_size_chars: 10\n", "unsupported key(s): chunk_size_chars"),
        ("max_workers: 0\n", "field `max_workers` is invalid"),
        ("output_format: ogg\n", "Unsupported `output_format` value `ogg`"),
        ("public_base_url: http://cdn.example.com\n", "must be an HTTPS URL"),
        ("storage_backend: s3\n", "`s3_bucket` is required"),
        ("trusted_errors: maybe\n", "field `trusted_errors` is invalid"),
    ],
)
def test_config_loader_from_yaml_rejects_invalid_payloads(
    tmp_path: Path, body: str, message: str
) -> None:
    """Invalid YAML payloads should fail with a field-specific message."""

    config_path = tmp_path / "invalid.yml"
    config_path.write_text(body, encoding="utf-8")

    with pytest.raises(ValueError) as exc_info:
        ConfigLoader.from_yaml(config_path, env={})
    assert message in str(exc_info.value)


def test_config_loader_from_env_reads_prefixed_variables() -> None:
    """Environment loader should map `NARRATOR_*` variables onto fields."""

    config = ConfigLoader.from_env(
        {
            "OPENAI_API_KEY": " sk-env ",
            "NARRATOR_STORAGE_BACKEND": "s3",
            "NARRATOR_S3_BUCKET": "narrations",
            "NARRATOR_S3_ENDPOINT_URL": "https://account.r2.cloudflarestorage.com",
            "NARRATOR_MIX_WORKERS": "3",
            "NARRATOR_SCRATCH_ROOT": "/tmp/narrator",
            "NARRATOR_MODEL_TTS": "",
            "UNRELATED": "value",
        }
    )

    assert config.api_key == "sk-env"
    assert config.storage_backend == "s3"
    assert config.s3_bucket == "narrations"
    assert config.s3_endpoint_url == "https://account.r2.cloudflarestorage.com"
    assert config.mix_workers == 3
    assert config.scratch_root == Path("/tmp/narrator")
    assert config.model_tts == "gpt-4o-mini-tts"
    assert dict(config.runtime_sources.env) == {"OPENAI_API_KEY": " sk-env "}


def test_resolved_provider_runtime_prefers_cli_then_env_then_config() -> None:
    """Runtime values follow cli > env > config precedence per key."""

    config = NarratorConfig(model_metadata="config-model", tts_voice="config-voice")
    sources = RuntimeConfigSources(
        cli={"tts_voice": "cli-voice", "provider_tts": " "},
        env={
            "NARRATOR_TTS_VOICE": "env-voice",
            "NARRATOR_MODEL_METADATA": "env-model",
            "NARRATOR_PROVIDER_TTS": "offline",
        },
    )

    runtime = config.resolved_provider_runtime(sources)

    assert runtime.tts_voice == "cli-voice"
    assert runtime.metadata_model == "env-model"
    assert runtime.tts_provider == "offline"
    assert runtime.metadata_provider == "openai"
    assert runtime.api_key is None


def test_resolved_provider_runtime_rejects_unknown_provider() -> None:
    """Unsupported provider identifiers fail before any client is built."""

    config = NarratorConfig()

    with pytest.raises(ValueError, match="Unsupported `provider_metadata` value `anthropic`"):
        config.resolved_provider_runtime(
            RuntimeConfigSources(cli={"provider_metadata": "anthropic"})
        )
