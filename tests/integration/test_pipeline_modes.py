"""Integration tests for narration, paragraph, and episode pipeline runs."""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
import io
from pathlib import Path

import pytest

from narrator.audio.wav import decode_wav, parse_wav_header
from narrator.pipeline import NarrationPipeline
from narrator.telemetry.logger import RunLogger
from tests.audio_fixtures import PUBLIC_BASE_URL, FakeAnalyzer, FakeSynthesizer, RecordingStore

PipelineBuilder = Callable[..., NarrationPipeline]


def _stored_path(store: RecordingStore, url: str) -> Path:
    return store.root / url.removeprefix(f"{PUBLIC_BASE_URL}/")


def test_narration_mode_uploads_one_concatenated_track(
    build_pipeline: PipelineBuilder,
    output_store: RecordingStore,
    scratch_root: Path,
) -> None:
    """Two paragraphs of 2.0 s and 1.0 s with the default gap make a 4.5 s track."""

    synthesizer = FakeSynthesizer({"First paragraph.": 2.0, "Second paragraph.": 1.0})
    pipeline = build_pipeline(synthesizer=synthesizer, job_id_factory=lambda: "job1")

    result = pipeline.narrate("First paragraph.$Second paragraph.", "book-1")

    assert result.job_id == "job1"
    assert result.final_url == (
        f"{PUBLIC_BASE_URL}/audio-narrations/books/book-1/narrations/1700000000000_job1.wav"
    )
    assert result.paragraph_urls == ()
    assert result.duration_seconds == pytest.approx(4.5)
    assert [record.mood for record in result.metadata] == ["tense", "tense"]
    assert result.episodes == ()

    payload = _stored_path(output_store, result.final_url).read_bytes()
    header = parse_wav_header(payload)
    assert header.data_size == int(4.5 * 8000) * 2
    assert decode_wav(payload).duration_seconds == pytest.approx(4.5)
    assert output_store.put_keys == [result.final_url.removeprefix(f"{PUBLIC_BASE_URL}/")]
    assert list(scratch_root.iterdir()) == []


def test_narration_mode_applies_request_options(build_pipeline: PipelineBuilder) -> None:
    """Request options override the gap and add a background-only lead-in."""

    synthesizer = FakeSynthesizer(default_seconds=1.0)
    pipeline = build_pipeline(synthesizer=synthesizer)

    result = pipeline.narrate(
        "One.$Two.$Three.",
        "book-1",
        options={"paragraphSilence": 0.5, "narrationDelay": 0.25, "voice": "nova"},
    )

    assert result.duration_seconds == pytest.approx(3 * 1.25 + 2 * 0.5)
    assert {voice for _, voice in synthesizer.calls} == {"nova"}


def test_paragraph_mode_uploads_single_keyed_paragraph(
    build_pipeline: PipelineBuilder,
    output_store: RecordingStore,
) -> None:
    """Paragraph requests keep their book index and chapter in the storage key."""

    pipeline = build_pipeline(job_id_factory=lambda: "job2")

    result = pipeline.narrate_paragraph(
        "  A single paragraph. $ with a dollar sign. ",
        "book-1",
        paragraph_index=3,
        chapter_id="ch-2",
    )

    assert result.final_url is None
    assert result.paragraph_urls == (
        f"{PUBLIC_BASE_URL}/audio-narrations/books/book-1/chapters/ch-2/paragraphs/"
        "3_1700000000000_job2.wav",
    )
    assert len(result.metadata) == 1
    assert len(output_store.stored_files()) == 1
    stored = decode_wav(_stored_path(output_store, result.paragraph_urls[0]).read_bytes())
    assert stored.duration_seconds == pytest.approx(0.5)


def test_episode_mode_groups_paragraph_uploads(
    build_pipeline: PipelineBuilder,
    output_store: RecordingStore,
) -> None:
    """Episode requests upload every paragraph and group them at the breaks."""

    analyzer = FakeAnalyzer(["tense", "tense", "calm", "joyful"], intensity=4)
    pipeline = build_pipeline(analyzer=analyzer, job_id_factory=lambda: "job3")

    result = pipeline.narrate_episode(
        "Alpha.$Beta.$Gamma.$Delta.",
        "book-1",
        options={"episodeBreaks": [2]},
        episode_number=3,
    )

    assert result.final_url is None
    assert [url.rsplit("/", 1)[1] for url in result.paragraph_urls] == [
        f"{index}_1700000000000_job3.wav" for index in range(4)
    ]
    assert [episode.episode_number for episode in result.episodes] == [3, 4]
    assert result.episodes[0].paragraph_urls == result.paragraph_urls[:2]
    assert result.episodes[1].paragraph_urls == result.paragraph_urls[2:]
    assert result.episodes[0].metadata.mood == "tense"
    assert result.episodes[0].metadata.title == "Episode 3: Alpha...."
    assert result.duration_seconds == pytest.approx(2.0)
    assert len(output_store.stored_files()) == 4


def test_episode_output_order_ignores_completion_order(
    build_pipeline: PipelineBuilder,
    output_store: RecordingStore,
) -> None:
    """Paragraph outputs stay in input order even when later paragraphs finish first."""

    texts = ["p0", "p1", "p2", "p3"]
    synthesizer = FakeSynthesizer(
        {"p0": 0.25, "p1": 0.5, "p2": 0.75, "p3": 1.0},
        delays={"p0": 0.6, "p1": 0.4, "p2": 0.2},
    )
    pipeline = build_pipeline(synthesizer=synthesizer)

    result = pipeline.narrate_episode("$".join(texts), "book-1")

    assert synthesizer.completed[-1] == "p0"
    durations = [
        decode_wav(_stored_path(output_store, url).read_bytes()).duration_seconds
        for url in result.paragraph_urls
    ]
    assert durations == pytest.approx([0.25, 0.5, 0.75, 1.0])
    assert [episode.episode_number for episode in result.episodes] == [1]


def test_concurrent_jobs_on_one_pipeline_are_isolated(
    build_pipeline: PipelineBuilder,
    output_store: RecordingStore,
    scratch_root: Path,
) -> None:
    """Two jobs sharing a pipeline get distinct ids, keys, and scratch directories."""

    pipeline = build_pipeline()

    with ThreadPoolExecutor(max_workers=2) as executor:
        first = executor.submit(pipeline.narrate, "One.$Two.", "book-a")
        second = executor.submit(pipeline.narrate, "Three.$Four.", "book-b")
        results = [first.result(timeout=30), second.result(timeout=30)]

    assert results[0].job_id != results[1].job_id
    assert "/books/book-a/" in (results[0].final_url or "")
    assert "/books/book-b/" in (results[1].final_url or "")
    assert len(output_store.stored_files()) == 2
    assert list(scratch_root.iterdir()) == []


def test_pipeline_reports_stage_progress_and_telemetry(
    build_pipeline: PipelineBuilder,
) -> None:
    """Stage callbacks fire in phase order and log lines carry no paragraph text."""

    sink = io.StringIO()
    progress: list[tuple[str, int, int]] = []
    pipeline = build_pipeline(
        run_logger=RunLogger(sink=sink),
        stage_progress_callback=lambda stage, index, total: progress.append((stage, index, total)),
        job_id_factory=lambda: "job4",
    )

    pipeline.narrate("Secret opening line.$Second line.", "book-1")

    assert progress == [
        ("metadata", 1, 4),
        ("produce", 2, 4),
        ("concatenate", 3, 4),
        ("upload", 4, 4),
    ]
    log_text = sink.getvalue()
    assert "[phase] level=INFO stage=metadata event=start job_id=job4 paragraphs=2" in log_text
    assert "stage=produce event=paragraph_mixed" in log_text
    assert "stage=job event=transition job_id=job4 source=uploading target=completed" in log_text
    assert "Secret" not in log_text
