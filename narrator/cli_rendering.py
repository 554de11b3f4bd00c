"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
narration results, and paragraph previews.
"""

from __future__ import annotations

from typing import NoReturn

import typer

from .errors import PipelineStageError
from .models.datatypes import NarrationResult, ParagraphUnit

_PREVIEW_CHARS = 72


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, PipelineStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def echo_narration_result(result: NarrationResult) -> None:
    """Print job id, uploaded URLs, and episode grouping."""

    typer.echo(f"Job id: {result.job_id}")
    typer.echo(f"Duration (s): {result.duration_seconds:.3f}")
    if result.final_url is not None:
        typer.echo(f"Narration: {result.final_url}")
    for position, url in enumerate(result.paragraph_urls):
        record = result.metadata[position]
        typer.echo(
            f"Paragraph {position}: {url} "
            f"(mood={record.mood}, genre={record.genre}, intensity={record.intensity})"
        )
    for episode in result.episodes:
        typer.echo(
            f"Episode {episode.episode_number}: {episode.metadata.title} "
            f"[{len(episode.paragraph_urls)} paragraph(s), mood={episode.metadata.mood}]"
        )


def echo_paragraph_list(paragraphs: list[ParagraphUnit]) -> None:
    """Print compact paragraph index/preview rows."""

    for paragraph in paragraphs:
        preview = " ".join(paragraph.text.split())
        if len(preview) > _PREVIEW_CHARS:
            preview = f"{preview[:_PREVIEW_CHARS - 3]}..."
        typer.echo(f"{paragraph.index}. {preview}")
    typer.echo(f"Paragraphs: {len(paragraphs)}")
