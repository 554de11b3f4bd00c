"""Command-line interface for Narrator.

Responsibilities:
- Expose user-facing commands for narration runs, paragraph previews, and serving.
- Convert CLI arguments into `NarratorConfig` and runtime source overrides.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer

from .cli_rendering import echo_narration_result, echo_paragraph_list, exit_with_command_error
from .config import ConfigLoader, NarratorConfig, RuntimeConfigSources
from .errors import ConfigError, ValidationError
from .parsing import normalize_optional_string
from .pipeline import NarrationPipeline
from .telemetry.logger import RunLogger
from .text.paragraphs import ParagraphSplitter

app = typer.Typer(
    name="narrator",
    no_args_is_help=True,
    help="Narrator CLI.",
)

_MODES = ("narration", "paragraph", "episode")


class StageProgressIndicator:
    """Render deterministic per-stage progress lines for long-running commands."""

    _SPINNER_FRAMES = "|/-\\"

    def __init__(self, command_name: str) -> None:
        self._command_name = command_name

    def on_stage_start(self, stage_name: str, stage_index: int, stage_total: int) -> None:
        """Print one progress line for a stage start transition."""

        spinner = self._SPINNER_FRAMES[(stage_index - 1) % len(self._SPINNER_FRAMES)]
        typer.echo(
            f"[progress] command={self._command_name} "
            f"{spinner} {stage_index}/{stage_total} stage={stage_name}"
        )


def _load_config(config_path: Path | None) -> NarratorConfig:
    """Load YAML or environment config and map failures to stage errors."""

    if config_path is None:
        try:
            return ConfigLoader.from_env()
        except ValueError as exc:
            raise ConfigError(
                detail=f"Invalid environment configuration: {exc}",
                hint="Check `NARRATOR_*` environment variables.",
            ) from exc

    try:
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise ConfigError(
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise ConfigError(
            detail=f"Invalid config file `{config_path}`: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc
    except Exception as exc:
        raise ConfigError(
            detail=f"Failed to load config file `{config_path}`: {exc}",
            hint="Verify YAML syntax and file permissions.",
        ) from exc


def _runtime_cli_values(
    offline: bool,
    provider_metadata: str | None,
    provider_tts: str | None,
    model_metadata: str | None,
    model_tts: str | None,
    tts_voice: str | None,
    api_key: str | None,
) -> dict[str, str]:
    """Collect explicitly provided runtime overrides."""

    values: dict[str, str] = {}
    if offline:
        values["provider_metadata"] = "offline"
        values["provider_tts"] = "offline"
    for key, value in (
        ("provider_metadata", provider_metadata),
        ("provider_tts", provider_tts),
        ("model_metadata", model_metadata),
        ("model_tts", model_tts),
        ("tts_voice", tts_voice),
        ("api_key", api_key),
    ):
        normalized = normalize_optional_string(value)
        if normalized is not None:
            values[key] = normalized
    return values


def _apply_overrides(
    config: NarratorConfig,
    runtime_cli_values: dict[str, str],
    out: Path | None = None,
    output_format: str | None = None,
) -> NarratorConfig:
    """Attach runtime source mappings and explicit file overrides to a loaded config."""

    if out is not None:
        config.storage_root = out
    if output_format is not None:
        config.output_format = output_format
    config.runtime_sources = RuntimeConfigSources(
        cli=runtime_cli_values,
        env=config.runtime_sources.env,
    )
    return config


def _read_text(text_file: Path) -> str:
    try:
        return text_file.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValidationError(
            detail=f"Cannot read text file `{text_file}`: {exc}",
            hint="Pass a readable UTF-8 text file.",
        ) from exc


def _parse_options_json(options_json: str | None) -> dict[str, object] | None:
    if options_json is None:
        return None
    try:
        payload = json.loads(options_json)
    except json.JSONDecodeError as exc:
        raise ValidationError(
            detail=f"`--options` is not valid JSON: {exc}",
            hint='Example: --options \'{"backgroundMusicVolume": 0.3}\'',
        ) from exc
    if not isinstance(payload, dict):
        raise ValidationError(detail="`--options` must be a JSON object.")
    return payload


@app.command("narrate")
def narrate_command(
    text_file: Annotated[Path, typer.Argument(help="UTF-8 text file to narrate.")],
    book_id: Annotated[str, typer.Option("--book-id", help="Owning book identifier.")],
    mode: Annotated[
        str,
        typer.Option("--mode", help="Request mode: `narration`, `paragraph`, or `episode`."),
    ] = "narration",
    chapter_id: Annotated[
        str | None, typer.Option("--chapter-id", help="Chapter identifier used in storage keys.")
    ] = None,
    paragraph_index: Annotated[
        int, typer.Option("--paragraph-index", min=0, help="Paragraph index for `paragraph` mode.")
    ] = 0,
    episode_number: Annotated[
        int | None,
        typer.Option("--episode-number", min=1, help="First episode number for `episode` mode."),
    ] = None,
    options_json: Annotated[
        str | None,
        typer.Option("--options", help="JSON object with narration options."),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to YAML config file."),
    ] = None,
    out: Annotated[
        Path | None,
        typer.Option("--out", help="Filesystem storage root (overrides config file value)."),
    ] = None,
    output_format: Annotated[
        str | None, typer.Option("--output-format", help="Uploaded audio format: `mp3` or `wav`.")
    ] = None,
    offline: Annotated[
        bool,
        typer.Option(
            "--offline",
            help="Use keyword metadata and tone synthesis instead of provider calls.",
        ),
    ] = False,
    provider_metadata: Annotated[
        str | None, typer.Option("--provider-metadata", help="Metadata provider id.")
    ] = None,
    provider_tts: Annotated[
        str | None, typer.Option("--provider-tts", help="TTS provider id.")
    ] = None,
    model_metadata: Annotated[
        str | None, typer.Option("--model-metadata", help="Metadata model id override.")
    ] = None,
    model_tts: Annotated[
        str | None, typer.Option("--model-tts", help="TTS model id override.")
    ] = None,
    tts_voice: Annotated[
        str | None, typer.Option("--tts-voice", help="Default TTS voice override.")
    ] = None,
    api_key: Annotated[
        str | None, typer.Option("--api-key", help="Provider API key override.")
    ] = None,
) -> None:
    """Narrate a text file and print the uploaded URLs."""

    try:
        if mode not in _MODES:
            raise ValidationError(
                detail=f"Unsupported mode `{mode}`.",
                hint="Use `narration`, `paragraph`, or `episode`.",
            )
        text = _read_text(text_file)
        options = _parse_options_json(options_json)
        config = _apply_overrides(
            _load_config(config_file),
            _runtime_cli_values(
                offline,
                provider_metadata,
                provider_tts,
                model_metadata,
                model_tts,
                tts_voice,
                api_key,
            ),
            out=out,
            output_format=output_format,
        )
        progress = StageProgressIndicator(command_name="narrate")
        pipeline = NarrationPipeline.from_config(
            config,
            run_logger=RunLogger(),
            stage_progress_callback=progress.on_stage_start,
        )
        if mode == "paragraph":
            result = pipeline.narrate_paragraph(
                text,
                book_id,
                paragraph_index=paragraph_index,
                options=options,
                chapter_id=chapter_id,
            )
        elif mode == "episode":
            result = pipeline.narrate_episode(
                text,
                book_id,
                options=options,
                chapter_id=chapter_id,
                episode_number=episode_number,
            )
        else:
            result = pipeline.narrate(text, book_id, options=options, chapter_id=chapter_id)
    except Exception as exc:
        exit_with_command_error("narrate", exc)

    echo_narration_result(result)


@app.command("split")
def split_command(
    text_file: Annotated[Path, typer.Argument(help="UTF-8 text file to split.")],
) -> None:
    """Print the paragraphs detected in a text file."""

    try:
        paragraphs = ParagraphSplitter().split(_read_text(text_file))
    except Exception as exc:
        exit_with_command_error("split", exc)

    echo_paragraph_list(paragraphs)


@app.command("serve")
def serve_command(
    host: Annotated[str, typer.Option("--host", help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", min=1, max=65535, help="Bind port.")] = 8000,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to YAML config file."),
    ] = None,
    offline: Annotated[
        bool,
        typer.Option(
            "--offline",
            help="Use keyword metadata and tone synthesis instead of provider calls.",
        ),
    ] = False,
) -> None:
    """Serve the narration HTTP API with uvicorn."""

    from .api import run

    try:
        config = _apply_overrides(
            _load_config(config_file),
            _runtime_cli_values(offline, None, None, None, None, None, None),
        )
        run(config, host=host, port=port, run_logger=RunLogger())
    except Exception as exc:
        exit_with_command_error("serve", exc)


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
