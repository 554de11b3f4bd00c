"""Narration pipeline orchestrator.

Responsibilities:
- Build narration jobs for the three request modes.
- Sequence metadata, production, concatenation, and upload stages.
- Drive the job state machine and emit stage telemetry.
- Guarantee scratch cleanup and upload rollback on every failure path.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
import time
from typing import TypeVar
from uuid import uuid4

from ..analysis.metadata import MetadataAnalyzer
from ..audio.concatenator import AudioConcatenator, EncodedAudio, encode_output
from ..audio.mixer import AudioMixer
from ..config import NarratorConfig, RuntimeConfigSources
from ..errors import (
    ClassificationError,
    ConfigError,
    EncodingError,
    PipelineStageError,
    UploadError,
    ValidationError,
)
from ..io.storage import (
    AudioStore,
    StorageError,
    build_narration_key,
    build_paragraph_key,
    validate_durable_url,
)
from ..llm.rate_limiter import RateLimiter
from ..models.datatypes import (
    NarrationJob,
    NarrationMode,
    NarrationOptions,
    NarrationResult,
    ParagraphMetadata,
    ParagraphUnit,
)
from ..music.selector import MusicSelector
from ..options import parse_narration_options
from ..provider_factory import ProviderFactory
from ..retry import RetryPolicy
from ..telemetry.logger import RunLogger
from ..text.episodes import group_episodes
from ..text.paragraphs import ParagraphSplitter, single_paragraph
from ..tts.synthesizer import TTSSynthesizer
from .cancellation import CancellationToken
from .production import ParagraphProducer
from .scratch import ScratchSpace, StoredSegment
from .state import JobState, JobStateMachine

_StageResult = TypeVar("_StageResult")

OptionsInput = NarrationOptions | Mapping[str, object] | None


def _default_job_id() -> str:
    return uuid4().hex[:12]


class NarrationPipeline:
    """Coordinate all stages for narration jobs.

    One pipeline instance may serve many jobs concurrently; all per-job state
    lives in locals, the job's scratch space, and its state machine.
    """

    _PHASE_SEQUENCE = ("metadata", "produce", "concatenate", "upload")

    def __init__(
        self,
        analyzer: MetadataAnalyzer,
        synthesizer: TTSSynthesizer,
        music_selector: MusicSelector,
        output_store: AudioStore,
        *,
        mixer: AudioMixer | None = None,
        concatenator: AudioConcatenator | None = None,
        splitter: ParagraphSplitter | None = None,
        output_format: str = "mp3",
        max_workers: int = 4,
        mix_workers: int = 2,
        stage_timeout_seconds: float | None = 300.0,
        upload_retry: RetryPolicy | None = None,
        scratch_root: Path | None = None,
        default_voice: str | None = None,
        run_logger: RunLogger | None = None,
        stage_progress_callback: Callable[[str, int, int], None] | None = None,
        clock: Callable[[], float] = time.time,
        job_id_factory: Callable[[], str] = _default_job_id,
    ) -> None:
        self.analyzer = analyzer
        self.output_store = output_store
        self.concatenator = concatenator or AudioConcatenator()
        self.splitter = splitter or ParagraphSplitter()
        self.output_format = output_format
        self.stage_timeout_seconds = stage_timeout_seconds
        self.upload_retry = upload_retry or RetryPolicy()
        self.scratch_root = scratch_root
        self.default_voice = default_voice
        self.producer = ParagraphProducer(
            synthesizer=synthesizer,
            music_selector=music_selector,
            mixer=mixer or AudioMixer(),
            max_workers=max_workers,
            mix_workers=mix_workers,
            stage_timeout_seconds=stage_timeout_seconds,
            run_logger=run_logger,
        )
        self._run_logger = run_logger
        self._stage_progress_callback = stage_progress_callback
        self._clock = clock
        self._job_id_factory = job_id_factory

    @classmethod
    def from_config(
        cls,
        config: NarratorConfig,
        run_logger: RunLogger | None = None,
        sources: RuntimeConfigSources | None = None,
        stage_progress_callback: Callable[[str, int, int], None] | None = None,
    ) -> NarrationPipeline:
        """Build a pipeline with provider and storage collaborators resolved from config."""

        try:
            config.validate()
            runtime = config.resolved_provider_runtime(sources)
            rate_limiter = RateLimiter(min_interval_seconds=config.rate_limit_interval_seconds)
            analyzer = ProviderFactory.create_metadata_analyzer(
                provider_id=runtime.metadata_provider,
                model=runtime.metadata_model,
                api_key=runtime.api_key,
                timeout_seconds=config.request_timeout_seconds,
                rate_limiter=rate_limiter,
            )
            synthesizer = ProviderFactory.create_tts_synthesizer(
                provider_id=runtime.tts_provider,
                model=runtime.tts_model,
                api_key=runtime.api_key,
                timeout_seconds=config.request_timeout_seconds,
                rate_limiter=rate_limiter,
            )
            output_store = ProviderFactory.create_output_store(config)
            music_store = ProviderFactory.create_music_store(config, output_store)
        except ValueError as exc:
            raise ConfigError(
                detail=str(exc),
                hint="Fix the configuration file or `NARRATOR_*` environment variables.",
            ) from exc
        return cls(
            analyzer=analyzer,
            synthesizer=synthesizer,
            music_selector=MusicSelector(
                music_store,
                prefix=config.music_prefix,
                decode_timeout_seconds=config.stage_timeout_seconds,
            ),
            output_store=output_store,
            output_format=config.output_format,
            max_workers=config.max_workers,
            mix_workers=config.mix_workers,
            stage_timeout_seconds=config.stage_timeout_seconds,
            upload_retry=RetryPolicy(
                attempts=config.upload_retry_attempts,
                base_delay_seconds=config.upload_retry_base_delay_seconds,
            ),
            scratch_root=config.scratch_root,
            default_voice=runtime.tts_voice,
            run_logger=run_logger,
            stage_progress_callback=stage_progress_callback,
        )

    def narrate(
        self,
        text: str,
        book_id: str,
        options: OptionsInput = None,
        chapter_id: str | None = None,
    ) -> NarrationResult:
        """Narrate a whole text as one concatenated track."""

        job = self.build_job(
            mode="narration",
            paragraphs=self._split(text),
            book_id=book_id,
            options=options,
            chapter_id=chapter_id,
        )
        return self.run(job)

    def narrate_paragraph(
        self,
        text: str,
        book_id: str,
        paragraph_index: int = 0,
        options: OptionsInput = None,
        chapter_id: str | None = None,
    ) -> NarrationResult:
        """Narrate one already-isolated paragraph and upload it on its own."""

        job = self.build_job(
            mode="paragraph",
            paragraphs=[single_paragraph(text, paragraph_index)],
            book_id=book_id,
            options=options,
            chapter_id=chapter_id,
        )
        return self.run(job)

    def narrate_episode(
        self,
        text: str,
        book_id: str,
        options: OptionsInput = None,
        chapter_id: str | None = None,
        episode_number: int | None = None,
    ) -> NarrationResult:
        """Narrate a text paragraph by paragraph and group the uploads into episodes."""

        job = self.build_job(
            mode="episode",
            paragraphs=self._split(text),
            book_id=book_id,
            options=options,
            chapter_id=chapter_id,
            episode_number=episode_number,
        )
        return self.run(job)

    def build_job(
        self,
        mode: NarrationMode,
        paragraphs: list[ParagraphUnit],
        book_id: str,
        options: OptionsInput = None,
        chapter_id: str | None = None,
        episode_number: int | None = None,
    ) -> NarrationJob:
        """Create a job with mode-specific defaults and output targets."""

        normalized_book_id = book_id.strip() if isinstance(book_id, str) else ""
        if not normalized_book_id:
            raise ValidationError(detail="`bookId` is required.")
        if episode_number is not None and episode_number < 1:
            raise ValidationError(detail="`episodeNumber` must be 1 or greater.")
        if isinstance(options, NarrationOptions):
            resolved_options = options
        else:
            resolved_options = parse_narration_options(
                options, mode, default_voice=self.default_voice
            )
        job_id = self._job_id_factory()
        try:
            build_narration_key(
                book_id=normalized_book_id,
                timestamp_ms=0,
                job_id=job_id,
                extension=self.output_format,
                chapter_id=chapter_id,
            )
        except ValueError as exc:
            raise ValidationError(detail=str(exc)) from exc
        return NarrationJob(
            job_id=job_id,
            book_id=normalized_book_id,
            paragraphs=tuple(paragraphs),
            options=resolved_options,
            mode=mode,
            chapter_id=chapter_id,
            episode_number=episode_number,
            per_paragraph_output=mode != "narration",
            final_output=mode == "narration",
        )

    def run(self, job: NarrationJob) -> NarrationResult:
        """Execute one job end to end.

        Raises:
            PipelineStageError: Typed failure of the first stage that failed.
        """

        if not job.paragraphs:
            raise ValidationError(detail="A narration job needs at least one paragraph.")
        if not (job.per_paragraph_output or job.final_output):
            raise ValidationError(detail="A narration job must request at least one output.")

        state = JobStateMachine(
            job.job_id,
            on_transition=lambda previous, target: self._on_transition(job, previous, target),
        )
        token = CancellationToken()
        try:
            with ScratchSpace(job.job_id, self.scratch_root) as scratch:
                metadata = self._run_stage(job, "metadata", lambda: self._extract_metadata(job))
                state.advance(JobState.METADATA_EXTRACTED)

                state.advance(JobState.PRODUCING)
                stored = self._run_stage(
                    job,
                    "produce",
                    lambda: self.producer.produce(
                        job.job_id,
                        job.paragraphs,
                        metadata,
                        job.options,
                        scratch,
                        token,
                    ),
                )

                final_audio: EncodedAudio | None = None
                if job.final_output:
                    state.advance(JobState.CONCATENATING)
                    final_audio = self._run_stage(
                        job, "concatenate", lambda: self._concatenate(job, stored)
                    )

                state.advance(JobState.UPLOADING)
                paragraph_urls, final_url = self._run_stage(
                    job, "upload", lambda: self._upload(job, stored, final_audio, token)
                )
        except Exception as exc:
            token.cancel(f"job failed with {type(exc).__name__}", exc)
            state.fail()
            raise

        episodes = ()
        if job.mode == "episode":
            episodes = tuple(
                group_episodes(
                    [paragraph.text for paragraph in job.paragraphs],
                    metadata,
                    paragraph_urls,
                    job.options.episode_breaks,
                    first_episode_number=job.episode_number or 1,
                )
            )
        if final_audio is not None:
            duration = final_audio.duration_seconds
        else:
            duration = sum(item.duration_seconds for item in stored)
        state.advance(JobState.COMPLETED)
        return NarrationResult(
            job_id=job.job_id,
            paragraph_urls=tuple(paragraph_urls),
            final_url=final_url,
            metadata=tuple(metadata),
            episodes=episodes,
            duration_seconds=round(duration, 3),
        )

    def _split(self, text: str) -> list[ParagraphUnit]:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError(detail="`text` is required.")
        return self.splitter.split(text)

    def _extract_metadata(self, job: NarrationJob) -> list[ParagraphMetadata]:
        """Classify all paragraphs of a job in one analyzer call."""

        texts = [paragraph.text for paragraph in job.paragraphs]
        try:
            metadata = list(self.analyzer.analyze(texts))
        except PipelineStageError:
            raise
        except Exception as exc:
            raise ClassificationError(
                detail=f"Failed to classify paragraphs: {exc}",
                hint="Check the metadata provider configuration and API key.",
            ) from exc
        if len(metadata) != len(texts):
            raise ClassificationError(
                detail=(
                    f"Classifier returned {len(metadata)} records for {len(texts)} paragraphs."
                ),
            )
        return metadata

    def _concatenate(self, job: NarrationJob, stored: list[StoredSegment]) -> EncodedAudio:
        """Join mixed paragraphs and encode the final track."""

        try:
            segments = [ScratchSpace.load_segment(item) for item in stored]
        except (OSError, ValueError) as exc:
            raise EncodingError(detail=f"Failed to reload mixed paragraphs: {exc}") from exc
        result = self.concatenator.concatenate(
            segments,
            gap_seconds=job.options.paragraph_silence_seconds,
            crossfade_seconds=job.options.mix.crossfade_seconds,
        )
        return encode_output(
            result.segment, self.output_format, timeout_seconds=self.stage_timeout_seconds
        )

    def _upload(
        self,
        job: NarrationJob,
        stored: list[StoredSegment],
        final_audio: EncodedAudio | None,
        token: CancellationToken,
    ) -> tuple[list[str], str | None]:
        """Upload requested outputs; remove everything already uploaded on failure."""

        timestamp_ms = int(self._clock() * 1000)
        uploaded_keys: list[str] = []
        paragraph_urls: list[str] = []
        final_url: str | None = None
        try:
            if job.per_paragraph_output:
                for paragraph, item in zip(job.paragraphs, stored):
                    token.raise_if_cancelled("upload")
                    try:
                        segment = ScratchSpace.load_segment(item)
                    except (OSError, ValueError) as exc:
                        raise EncodingError(
                            detail=f"Failed to reload paragraph {paragraph.index}: {exc}"
                        ) from exc
                    encoded = encode_output(
                        segment, self.output_format, timeout_seconds=self.stage_timeout_seconds
                    )
                    key = build_paragraph_key(
                        book_id=job.book_id,
                        paragraph_index=paragraph.index,
                        timestamp_ms=timestamp_ms,
                        job_id=job.job_id,
                        extension=encoded.extension,
                        chapter_id=job.chapter_id,
                    )
                    paragraph_urls.append(self._put(job, key, encoded, uploaded_keys))
            if final_audio is not None:
                token.raise_if_cancelled("upload")
                key = build_narration_key(
                    book_id=job.book_id,
                    timestamp_ms=timestamp_ms,
                    job_id=job.job_id,
                    extension=final_audio.extension,
                    chapter_id=job.chapter_id,
                )
                final_url = self._put(job, key, final_audio, uploaded_keys)
        except Exception:
            self._rollback(job, uploaded_keys)
            raise
        return paragraph_urls, final_url

    def _put(
        self,
        job: NarrationJob,
        key: str,
        encoded: EncodedAudio,
        uploaded_keys: list[str],
    ) -> str:
        """Upload one object with retries and return its validated durable URL."""

        def _on_retry(attempt: int, exc: BaseException) -> None:
            self._log_event(
                "upload",
                "retry",
                level="WARNING",
                job_id=job.job_id,
                attempt=attempt,
                error_type=type(exc).__name__,
            )

        try:
            url = self.upload_retry.run(
                lambda: self.output_store.put(key, encoded.data, encoded.content_type),
                retry_on=(StorageError,),
                on_retry=_on_retry,
            )
        except StorageError as exc:
            raise UploadError(
                detail=f"Failed to upload `{key}`: {exc}",
                hint="Check storage credentials, bucket name, and network connectivity.",
            ) from exc
        uploaded_keys.append(key)

        validation = validate_durable_url(url)
        if not validation.valid:
            raise UploadError(
                detail=f"Storage returned a non-durable URL for `{key}`: {validation.reason}",
                hint="Set `public_base_url` to a public HTTPS origin.",
            )
        return validation.url

    def _rollback(self, job: NarrationJob, uploaded_keys: list[str]) -> None:
        for key in reversed(uploaded_keys):
            try:
                self.output_store.delete(key)
            except StorageError as exc:
                self._log_event(
                    "upload",
                    "rollback_failed",
                    level="WARNING",
                    job_id=job.job_id,
                    error_type=type(exc).__name__,
                )
            else:
                self._log_event("upload", "rolled_back", job_id=job.job_id, key=key)

    def _stage_position(self, stage_name: str) -> tuple[int, int] | None:
        """Return 1-based stage index and total stage count for known stages."""

        try:
            index = self._PHASE_SEQUENCE.index(stage_name) + 1
        except ValueError:
            return None
        return index, len(self._PHASE_SEQUENCE)

    def _on_transition(self, job: NarrationJob, previous: JobState, target: JobState) -> None:
        self._log_event(
            "job",
            "transition",
            level="WARNING" if target == JobState.FAILED else "INFO",
            job_id=job.job_id,
            source=previous.value,
            target=target.value,
        )

    def _on_stage_start(self, job: NarrationJob, stage_name: str) -> None:
        """Emit start events to stage progress callback and structured logger."""

        stage_position = self._stage_position(stage_name)
        if stage_position and self._stage_progress_callback is not None:
            self._stage_progress_callback(stage_name, stage_position[0], stage_position[1])
        if self._run_logger is not None:
            self._run_logger.log_stage_start(
                stage_name, job_id=job.job_id, paragraphs=len(job.paragraphs)
            )

    def _on_stage_complete(self, job: NarrationJob, stage_name: str) -> None:
        if self._run_logger is not None:
            self._run_logger.log_stage_complete(stage_name, job_id=job.job_id)

    def _on_stage_failure(self, job: NarrationJob, stage_name: str, exc: BaseException) -> None:
        """Emit stage-failure event with sanitized exception metadata."""

        if self._run_logger is not None:
            failed_stage = exc.stage if isinstance(exc, PipelineStageError) else stage_name
            self._run_logger.log_stage_failure(
                stage_name, type(exc).__name__, job_id=job.job_id, failed_stage=failed_stage
            )

    def _log_event(self, stage: str, event: str, level: str = "INFO", **context: object) -> None:
        if self._run_logger is not None:
            self._run_logger.log_event(stage, event, level=level, **context)

    def _run_stage(
        self,
        job: NarrationJob,
        stage_name: str,
        action: Callable[[], _StageResult],
    ) -> _StageResult:
        """Run one named stage and emit start/complete/failure telemetry events."""

        self._on_stage_start(job, stage_name)
        try:
            result = action()
        except Exception as exc:
            self._on_stage_failure(job, stage_name, exc)
            raise
        self._on_stage_complete(job, stage_name)
        return result
