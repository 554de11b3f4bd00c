"""Provider factory helpers for analyzer, synthesizer, and storage collaborators.

Responsibilities:
- Resolve provider identifiers to concrete stage implementations.
- Build storage backends from configuration.
- Keep orchestration independent from concrete class construction.
"""

from __future__ import annotations

from .analysis.metadata import KeywordMetadataAnalyzer, MetadataAnalyzer, OpenAIMetadataAnalyzer
from .config import NarratorConfig
from .io.storage import AudioStore, FilesystemAudioStore, S3AudioStore
from .llm.rate_limiter import RateLimiter
from .tts.synthesizer import OpenAITTSSynthesizer, ToneSynthesizer, TTSSynthesizer


class ProviderFactory:
    """Factory for provider-backed stage clients used by the pipeline."""

    @staticmethod
    def create_metadata_analyzer(
        provider_id: str,
        model: str,
        api_key: str | None = None,
        timeout_seconds: float = 60.0,
        rate_limiter: RateLimiter | None = None,
    ) -> MetadataAnalyzer:
        """Create a metadata analyzer for a configured provider identifier."""

        if provider_id == "openai":
            return OpenAIMetadataAnalyzer(
                model=model,
                provider_id=provider_id,
                api_key=api_key,
                timeout_seconds=timeout_seconds,
                rate_limiter=rate_limiter,
            )
        if provider_id == "offline":
            return KeywordMetadataAnalyzer()
        raise ValueError(f"Unsupported metadata provider `{provider_id}`.")

    @staticmethod
    def create_tts_synthesizer(
        provider_id: str,
        model: str,
        api_key: str | None = None,
        timeout_seconds: float = 60.0,
        rate_limiter: RateLimiter | None = None,
    ) -> TTSSynthesizer:
        """Create a TTS synthesizer for a configured provider identifier."""

        if provider_id == "openai":
            return OpenAITTSSynthesizer(
                model=model,
                provider_id=provider_id,
                api_key=api_key,
                timeout_seconds=timeout_seconds,
                rate_limiter=rate_limiter,
            )
        if provider_id == "offline":
            return ToneSynthesizer()
        raise ValueError(f"Unsupported TTS provider `{provider_id}`.")

    @staticmethod
    def create_output_store(config: NarratorConfig) -> AudioStore:
        """Create the store that receives narration uploads."""

        if config.storage_backend == "filesystem":
            return FilesystemAudioStore(config.storage_root, config.public_base_url)
        if config.storage_backend == "s3":
            return S3AudioStore.from_settings(
                bucket=config.s3_bucket or "",
                public_base_url=config.public_base_url,
                endpoint_url=config.s3_endpoint_url,
                region_name=config.s3_region,
            )
        raise ValueError(f"Unsupported storage backend `{config.storage_backend}`.")

    @staticmethod
    def create_music_store(config: NarratorConfig, output_store: AudioStore) -> AudioStore:
        """Return the store holding the music library.

        S3 deployments keep music in the same bucket; filesystem deployments may
        point `music_root` at a separate directory.
        """

        if config.storage_backend == "filesystem" and config.music_root is not None:
            return FilesystemAudioStore(config.music_root, config.public_base_url)
        return output_store
