"""Unit tests for CLI output and error rendering helpers."""

from __future__ import annotations

import pytest
import typer

from narrator.cli_rendering import (
    echo_narration_result,
    echo_paragraph_list,
    exit_with_command_error,
)
from narrator.errors import MusicUnavailableError, PipelineStageError
from narrator.models.datatypes import (
    EpisodeAudio,
    EpisodeMetadata,
    NarrationResult,
    ParagraphMetadata,
    ParagraphUnit,
)


def test_exit_with_command_error_renders_stage_error_with_hint(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Renderer should print stage diagnostics and hint before exiting with code 1."""

    error = MusicUnavailableError(
        detail="No background track found for mood `tense`.",
        hint="Upload tracks under `POCBackgroundMusic/<Category>/<Category>_<n>.mp3`.",
    )

    with pytest.raises(typer.Exit) as exc_info:
        exit_with_command_error("narrate", error)

    captured = capsys.readouterr()
    assert exc_info.value.exit_code == 1
    assert "narrate failed at stage `music`" in captured.err
    assert "Hint: Upload tracks under" in captured.err


def test_exit_with_command_error_omits_missing_hint(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Stage errors without a hint should print only the diagnostic line."""

    with pytest.raises(typer.Exit):
        exit_with_command_error("split", PipelineStageError(stage="request", detail="Empty."))

    captured = capsys.readouterr()
    assert "split failed at stage `request`: Empty." in captured.err
    assert "Hint:" not in captured.err


def test_exit_with_command_error_renders_non_stage_fallback(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Renderer should print fallback exception text for non-stage failures."""

    error = RuntimeError("unexpected scratch error")

    with pytest.raises(typer.Exit) as exc_info:
        exit_with_command_error("serve", error)

    captured = capsys.readouterr()
    assert exc_info.value.exit_code == 1
    assert "serve failed: unexpected scratch error" in captured.err


def test_echo_narration_result_prints_urls_and_episodes(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Result rendering should list paragraph URLs with labels and episode rows."""

    metadata = (ParagraphMetadata(mood="tense", genre="thriller", intensity=7),)
    result = NarrationResult(
        job_id="job123",
        paragraph_urls=("https://cdn.example.com/p0.mp3",),
        final_url=None,
        metadata=metadata,
        episodes=(
            EpisodeAudio(
                episode_number=1,
                paragraph_urls=("https://cdn.example.com/p0.mp3",),
                metadata=EpisodeMetadata(
                    episode_number=1,
                    title="Episode 1: Night fell...",
                    mood="tense",
                    genre="thriller",
                    intensity=7.0,
                ),
            ),
        ),
        duration_seconds=2.5,
    )

    echo_narration_result(result)

    output = capsys.readouterr().out
    assert "Job id: job123" in output
    assert "Duration (s): 2.500" in output
    assert "Narration:" not in output
    assert (
        "Paragraph 0: https://cdn.example.com/p0.mp3 (mood=tense, genre=thriller, intensity=7)"
        in output
    )
    assert "Episode 1: Episode 1: Night fell... [1 paragraph(s), mood=tense]" in output


def test_echo_paragraph_list_truncates_long_previews(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Long paragraphs should be previewed on one line with an ellipsis."""

    paragraphs = [
        ParagraphUnit(index=0, text="Short\nline."),
        ParagraphUnit(index=1, text="word " * 40),
    ]

    echo_paragraph_list(paragraphs)

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "0. Short line."
    assert lines[1].startswith("1. word word")
    assert lines[1].endswith("...")
    assert len(lines[1]) == len("1. ") + 72
    assert lines[-1] == "Paragraphs: 2"
