"""Integration tests for pipeline failure paths, cancellation, and upload rollback."""

from __future__ import annotations

from collections.abc import Callable
import io
from pathlib import Path
import time

import pytest

from narrator.errors import (
    ClassificationError,
    MusicUnavailableError,
    SynthesisError,
    UploadError,
    ValidationError,
)
from narrator.io.storage import FilesystemAudioStore
from narrator.pipeline import NarrationPipeline
from narrator.retry import RetryPolicy
from narrator.telemetry.logger import RunLogger
from tests.audio_fixtures import (
    FailingMoodSelector,
    FakeAnalyzer,
    FakeSynthesizer,
    RecordingStore,
    failing_classifier,
)

PipelineBuilder = Callable[..., NarrationPipeline]


def test_music_failure_aborts_job_without_uploads_or_scratch(
    build_pipeline: PipelineBuilder,
    music_store: FilesystemAudioStore,
    output_store: RecordingStore,
    scratch_root: Path,
) -> None:
    """One failing paragraph fails the job with its own typed error and no residue."""

    sink = io.StringIO()
    pipeline = build_pipeline(
        analyzer=FakeAnalyzer(["tense", "sad", "tense"]),
        music_selector=FailingMoodSelector(music_store, failing_mood="sad"),
        run_logger=RunLogger(sink=sink),
        job_id_factory=lambda: "job5",
    )

    with pytest.raises(MusicUnavailableError, match="mood `sad`") as exc_info:
        pipeline.narrate("One.$Two.$Three.", "book-1")

    assert exc_info.value.stage == "music"
    assert output_store.stored_files() == []
    assert output_store.put_attempts == 0
    assert list(scratch_root.iterdir()) == []
    log_text = sink.getvalue()
    assert (
        "[phase] level=ERROR stage=produce event=failure "
        "error_type=MusicUnavailableError failed_stage=music job_id=job5"
    ) in log_text
    assert "source=producing target=failed" in log_text


def test_synthesis_failure_surfaces_as_synthesis_error(
    build_pipeline: PipelineBuilder,
    output_store: RecordingStore,
) -> None:
    """A provider rejection for one paragraph fails the whole episode job."""

    pipeline = build_pipeline(synthesizer=FakeSynthesizer(fail_on=("Bad.",)))

    with pytest.raises(SynthesisError, match="rejected `Bad.`"):
        pipeline.narrate_episode("Good.$Bad.$Fine.", "book-1")

    assert output_store.stored_files() == []


def test_synthesis_timeout_is_reported_as_synthesis_error(
    build_pipeline: PipelineBuilder,
    scratch_root: Path,
) -> None:
    """A hung provider call fails the job at the stage timeout without waiting for it."""

    pipeline = build_pipeline(
        synthesizer=FakeSynthesizer(delays={"Slow.": 3.0}),
        stage_timeout_seconds=0.2,
    )

    started = time.monotonic()
    with pytest.raises(SynthesisError, match="timed out after 0.2s"):
        pipeline.narrate("Slow.", "book-1")
    elapsed = time.monotonic() - started

    assert elapsed < 1.5
    assert list(scratch_root.iterdir()) == []


def test_metadata_count_mismatch_fails_before_synthesis(
    build_pipeline: PipelineBuilder,
) -> None:
    """Missing classifier records fail the job before any paragraph work starts."""

    synthesizer = FakeSynthesizer()
    pipeline = build_pipeline(analyzer=FakeAnalyzer(drop_records=1), synthesizer=synthesizer)

    with pytest.raises(ClassificationError, match="1 records for 2 paragraphs"):
        pipeline.narrate("One.$Two.", "book-1")

    assert synthesizer.calls == []


def test_classifier_errors_are_typed(build_pipeline: PipelineBuilder) -> None:
    """Typed classifier errors pass through; unexpected ones are wrapped."""

    with pytest.raises(ClassificationError, match="Classifier unavailable"):
        build_pipeline(analyzer=failing_classifier()).narrate("One.", "book-1")

    with pytest.raises(ClassificationError, match="Failed to classify paragraphs: boom"):
        build_pipeline(analyzer=FakeAnalyzer(error=RuntimeError("boom"))).narrate("One.", "book-1")


def test_transient_upload_failures_are_retried(
    build_pipeline: PipelineBuilder,
    tmp_path: Path,
) -> None:
    """Uploads retry storage errors with backoff before succeeding."""

    sleeps: list[float] = []
    flaky_store = RecordingStore(tmp_path / "flaky", transient_failures=2)
    pipeline = build_pipeline(
        output_store=flaky_store,
        upload_retry=RetryPolicy(attempts=3, base_delay_seconds=0.5, sleeper=sleeps.append),
    )

    result = pipeline.narrate("One.$Two.", "book-1")

    assert result.final_url is not None
    assert flaky_store.put_attempts == 3
    assert sleeps == [0.5, 1.0]
    assert len(flaky_store.stored_files()) == 1


def test_permanent_upload_failure_rolls_back_earlier_uploads(
    build_pipeline: PipelineBuilder,
    tmp_path: Path,
) -> None:
    """A failed upload deletes every object the job already stored."""

    failing_store = RecordingStore(tmp_path / "failing", fail_from_put=3)
    pipeline = build_pipeline(output_store=failing_store)

    with pytest.raises(UploadError, match="Permanent failure") as exc_info:
        pipeline.narrate_episode("One.$Two.$Three.", "book-1")

    assert exc_info.value.stage == "upload"
    assert len(failing_store.put_keys) == 2
    assert failing_store.deleted_keys == list(reversed(failing_store.put_keys))
    assert failing_store.stored_files() == []


def test_non_durable_storage_url_is_rejected_and_rolled_back(
    build_pipeline: PipelineBuilder,
    tmp_path: Path,
) -> None:
    """A store serving from localhost cannot satisfy the durable URL contract."""

    local_store = RecordingStore(tmp_path / "local", public_base_url="https://localhost:8443")
    pipeline = build_pipeline(output_store=local_store)

    with pytest.raises(UploadError, match="non-durable URL"):
        pipeline.narrate_paragraph("One.", "book-1")

    assert local_store.stored_files() == []


@pytest.mark.parametrize(
    ("call", "message"),
    [
        (lambda pipeline: pipeline.narrate("   ", "book-1"), "`text` is required"),
        (lambda pipeline: pipeline.narrate("One.", "  "), "`bookId` is required"),
        (
            lambda pipeline: pipeline.narrate_episode("One.", "book-1", episode_number=0),
            "`episodeNumber` must be 1 or greater",
        ),
        (
            lambda pipeline: pipeline.narrate("One.", "book-1", options={"backgroundMusicVolume": 2}),
            "Invalid narration options",
        ),
        (
            lambda pipeline: pipeline.narrate_paragraph("One.", "book-1", paragraph_index=-2),
            "`paragraphIndex` must be zero or greater",
        ),
    ],
)
def test_invalid_requests_fail_validation_before_any_stage(
    build_pipeline: PipelineBuilder,
    call: Callable[[NarrationPipeline], object],
    message: str,
) -> None:
    """Request validation errors are raised before metadata extraction."""

    analyzer = FakeAnalyzer()
    pipeline = build_pipeline(analyzer=analyzer)

    with pytest.raises(ValidationError, match=message):
        call(pipeline)

    assert analyzer.calls == []
