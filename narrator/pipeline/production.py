"""Concurrent per-paragraph audio production.

Responsibilities:
- Run synthesis and music fetch for each paragraph concurrently.
- Mix each paragraph on a bounded CPU pool once both inputs exist.
- Keep results index-addressed so output order never depends on completion order.
- Cancel outstanding work as soon as any paragraph fails.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import TypeVar

from ..audio.mixer import AudioMixer
from ..errors import (
    MixError,
    MusicUnavailableError,
    PipelineStageError,
    SynthesisError,
)
from ..models.datatypes import (
    AudioSegment,
    MusicTrack,
    NarrationOptions,
    ParagraphMetadata,
    ParagraphUnit,
)
from ..music.selector import MusicSelector
from ..telemetry.logger import RunLogger
from ..tts.synthesizer import TTSSynthesizer
from ..tts.voices import VoiceProfile
from .cancellation import CancellationToken
from .scratch import ScratchSpace, StoredSegment
from .state import ParagraphTracker

_Value = TypeVar("_Value")


class ParagraphProducer:
    """Produce mixed paragraph segments with three bounded worker pools.

    The paragraph pool limits how many paragraphs are in flight; the I/O pool
    runs provider and storage calls; the mix pool runs numpy mixing.
    """

    def __init__(
        self,
        synthesizer: TTSSynthesizer,
        music_selector: MusicSelector,
        mixer: AudioMixer,
        max_workers: int = 4,
        mix_workers: int = 2,
        stage_timeout_seconds: float | None = 300.0,
        run_logger: RunLogger | None = None,
    ) -> None:
        if max_workers < 1 or mix_workers < 1:
            raise ValueError("Worker pool sizes must be at least 1.")
        self.synthesizer = synthesizer
        self.music_selector = music_selector
        self.mixer = mixer
        self.max_workers = max_workers
        self.mix_workers = mix_workers
        self.stage_timeout_seconds = stage_timeout_seconds
        self._run_logger = run_logger

    def produce(
        self,
        job_id: str,
        paragraphs: Sequence[ParagraphUnit],
        metadata: Sequence[ParagraphMetadata],
        options: NarrationOptions,
        scratch: ScratchSpace,
        token: CancellationToken,
    ) -> list[StoredSegment]:
        """Return one stored mixed segment per paragraph, in paragraph order.

        Raises:
            PipelineStageError: The first paragraph failure; remaining work is cancelled.
        """

        if len(paragraphs) != len(metadata):
            raise PipelineStageError(
                stage="produce",
                detail=(
                    f"Expected metadata for {len(paragraphs)} paragraphs, "
                    f"received {len(metadata)}."
                ),
            )
        voice = VoiceProfile(provider_voice_id=options.voice)
        slots: list[StoredSegment | None] = [None] * len(paragraphs)

        paragraph_pool = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix=f"narration-{job_id}-paragraph"
        )
        io_pool = ThreadPoolExecutor(
            max_workers=self.max_workers * 2, thread_name_prefix=f"narration-{job_id}-io"
        )
        mix_pool = ThreadPoolExecutor(
            max_workers=self.mix_workers, thread_name_prefix=f"narration-{job_id}-mix"
        )
        futures: dict[Future[StoredSegment], int] = {}
        finished = False
        try:
            for position, (paragraph, record) in enumerate(zip(paragraphs, metadata)):
                future = paragraph_pool.submit(
                    self._produce_one,
                    job_id,
                    paragraph,
                    record,
                    options,
                    voice,
                    scratch,
                    token,
                    io_pool,
                    mix_pool,
                )
                futures[future] = position
            for future in as_completed(futures):
                slots[futures[future]] = future.result()
            finished = True
        except Exception as exc:
            token.cancel(f"{type(exc).__name__} during paragraph production", exc)
            for pending in futures:
                pending.cancel()
            root_cause = token.error if token.error is not None else exc
            if root_cause is exc:
                raise
            raise root_cause from None
        finally:
            # A hung provider call keeps its thread; the job does not wait for it.
            for pool in (paragraph_pool, io_pool, mix_pool):
                pool.shutdown(wait=finished, cancel_futures=True)

        missing = [position for position, slot in enumerate(slots) if slot is None]
        if missing:
            raise PipelineStageError(
                stage="produce",
                detail=f"Paragraph slots {missing} were never filled.",
            )
        return [slot for slot in slots if slot is not None]

    def _produce_one(
        self,
        job_id: str,
        paragraph: ParagraphUnit,
        record: ParagraphMetadata,
        options: NarrationOptions,
        voice: VoiceProfile,
        scratch: ScratchSpace,
        token: CancellationToken,
        io_pool: ThreadPoolExecutor,
        mix_pool: ThreadPoolExecutor,
    ) -> StoredSegment:
        tracker = ParagraphTracker(paragraph.index)
        speech_future: Future[AudioSegment] | None = None
        music_future: Future[MusicTrack] | None = None
        try:
            token.raise_if_cancelled("synthesis")
            tracker.start()
            speech_future = io_pool.submit(self._synthesize, paragraph, voice, token)
            music_future = io_pool.submit(self._select_music, record, token)

            narration = self._await(speech_future, "synthesis", SynthesisError, paragraph.index)
            tracker.mark_synthesized()
            track = self._await(music_future, "music", MusicUnavailableError, paragraph.index)
            tracker.mark_music_fetched()

            token.raise_if_cancelled("mix")
            tracker.begin_mixing()
            mix_future = mix_pool.submit(
                self.mixer.mix,
                narration,
                track.segment,
                options.mix,
                options.narration_delay_seconds,
            )
            mixed = self._await(mix_future, "mix", MixError, paragraph.index)
            stored = scratch.save_segment(f"paragraph_{paragraph.index:05d}", mixed)
            tracker.finish()
        except Exception as exc:
            tracker.fail()
            for pending in (speech_future, music_future):
                if pending is not None:
                    pending.cancel()
            if isinstance(exc, PipelineStageError):
                token.cancel(f"paragraph {paragraph.index} failed", exc)
                raise
            wrapped = PipelineStageError(
                stage="produce",
                detail=f"Paragraph {paragraph.index} failed: {exc}",
            )
            token.cancel(f"paragraph {paragraph.index} failed", wrapped)
            raise wrapped from exc
        self._log(
            "paragraph_mixed",
            job_id=job_id,
            paragraph=paragraph.index,
            music=track.key,
            seconds=f"{stored.duration_seconds:.3f}",
        )
        return stored

    def _synthesize(
        self, paragraph: ParagraphUnit, voice: VoiceProfile, token: CancellationToken
    ) -> AudioSegment:
        token.raise_if_cancelled("synthesis")
        return self.synthesizer.synthesize(paragraph.text, voice)

    def _select_music(self, record: ParagraphMetadata, token: CancellationToken) -> MusicTrack:
        token.raise_if_cancelled("music")
        return self.music_selector.select(record.mood, record.intensity)

    def _await(
        self,
        future: Future[_Value],
        stage: str,
        error_type: Callable[..., PipelineStageError],
        paragraph_index: int,
    ) -> _Value:
        """Wait for one stage future, converting timeouts and stray errors to `error_type`."""

        try:
            return future.result(timeout=self.stage_timeout_seconds)
        except FuturesTimeoutError as exc:
            future.cancel()
            raise error_type(
                detail=(
                    f"Paragraph {paragraph_index} {stage} timed out after "
                    f"{self.stage_timeout_seconds}s."
                ),
            ) from exc
        except PipelineStageError:
            raise
        except Exception as exc:
            raise error_type(detail=f"Paragraph {paragraph_index} {stage} failed: {exc}") from exc

    def _log(self, event: str, **context: object) -> None:
        if self._run_logger is not None:
            self._run_logger.log_event("produce", event, **context)
