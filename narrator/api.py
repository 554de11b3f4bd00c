"""FastAPI surface for narration requests.

Responsibilities:
- Parse JSON request bodies for the narration, paragraph, and episode routes.
- Run pipeline jobs off the event loop.
- Map typed pipeline errors to HTTP responses without leaking internals.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import json

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .config import NarratorConfig
from .errors import PipelineStageError, ValidationError
from .parsing import normalize_optional_string, parse_int, parse_positive_int
from .pipeline import NarrationPipeline
from .telemetry.logger import RunLogger

GENERIC_FAILURE_MESSAGE = "Narration failed. Please try again later."


async def _read_payload(request: Request) -> dict[str, object]:
    """Return the JSON object body of a request."""

    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError(detail="Request body must be valid JSON.") from exc
    if not isinstance(payload, dict):
        raise ValidationError(detail="Request body must be a JSON object.")
    return payload


def _require_string(payload: Mapping[str, object], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str | int) or isinstance(value, bool):
        raise ValidationError(detail=f"`{key}` is required.")
    normalized = normalize_optional_string(value)
    if normalized is None:
        raise ValidationError(detail=f"`{key}` is required.")
    return normalized


def _options(payload: Mapping[str, object]) -> Mapping[str, object] | None:
    options = payload.get("options")
    if options is not None and not isinstance(options, Mapping):
        raise ValidationError(detail="`options` must be a JSON object.")
    return options


def _optional(
    payload: Mapping[str, object], key: str, parser: Callable[[object, str], int]
) -> int | None:
    value = payload.get(key)
    if value is None:
        return None
    try:
        return parser(value, key)
    except ValueError as exc:
        raise ValidationError(detail=str(exc)) from exc


def create_app(
    pipeline: NarrationPipeline,
    trusted_errors: bool = False,
    run_logger: RunLogger | None = None,
) -> FastAPI:
    """Create the narration HTTP app around one shared pipeline."""

    app = FastAPI(title="narrator")

    @app.exception_handler(PipelineStageError)
    async def _stage_error_handler(request: Request, exc: PipelineStageError) -> JSONResponse:
        if isinstance(exc, ValidationError):
            return JSONResponse({"error": exc.detail}, status_code=400)
        if run_logger is not None:
            run_logger.log_event(
                "api",
                "request_failed",
                level="ERROR",
                path=request.url.path,
                failed_stage=exc.stage,
                error_type=type(exc).__name__,
            )
        if trusted_errors:
            return JSONResponse(
                {"error": exc.detail, "stage": exc.stage, "type": type(exc).__name__},
                status_code=500,
            )
        return JSONResponse({"error": GENERIC_FAILURE_MESSAGE}, status_code=500)

    @app.exception_handler(Exception)
    async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        if run_logger is not None:
            run_logger.log_event(
                "api",
                "request_failed",
                level="ERROR",
                path=request.url.path,
                error_type=type(exc).__name__,
            )
        return JSONResponse({"error": GENERIC_FAILURE_MESSAGE}, status_code=500)

    @app.get("/health")
    def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    @app.post("/narration")
    async def create_narration(request: Request) -> JSONResponse:
        payload = await _read_payload(request)
        text = _require_string(payload, "text")
        book_id = _require_string(payload, "bookId")
        result = await run_in_threadpool(
            pipeline.narrate,
            text,
            book_id,
            options=_options(payload),
            chapter_id=normalize_optional_string(payload.get("chapterId")),
        )
        return JSONResponse({"url": result.final_url})

    @app.post("/narration/paragraph")
    async def create_paragraph_narration(request: Request) -> JSONResponse:
        payload = await _read_payload(request)
        text = _require_string(payload, "text")
        book_id = _require_string(payload, "bookId")
        paragraph_index = _optional(payload, "paragraphIndex", parse_int)
        if paragraph_index is not None and paragraph_index < 0:
            raise ValidationError(detail="`paragraphIndex` must be zero or greater.")
        result = await run_in_threadpool(
            pipeline.narrate_paragraph,
            text,
            book_id,
            paragraph_index=paragraph_index or 0,
            options=_options(payload),
            chapter_id=normalize_optional_string(payload.get("chapterId")),
        )
        return JSONResponse(
            {"url": result.paragraph_urls[0], "metadata": result.metadata[0].as_payload()}
        )

    @app.post("/narration/episode")
    async def create_episode_narration(request: Request) -> JSONResponse:
        payload = await _read_payload(request)
        text = _require_string(payload, "text")
        book_id = _require_string(payload, "bookId")
        result = await run_in_threadpool(
            pipeline.narrate_episode,
            text,
            book_id,
            options=_options(payload),
            chapter_id=normalize_optional_string(payload.get("chapterId")),
            episode_number=_optional(payload, "episodeNumber", parse_positive_int),
        )
        return JSONResponse(
            {
                "paragraphUrls": list(result.paragraph_urls),
                "episodes": [episode.as_payload() for episode in result.episodes],
            }
        )

    return app


def run(config: NarratorConfig, host: str, port: int, run_logger: RunLogger | None = None) -> None:
    import uvicorn

    pipeline = NarrationPipeline.from_config(config, run_logger=run_logger)
    app = create_app(pipeline, trusted_errors=config.trusted_errors, run_logger=run_logger)
    uvicorn.run(app, host=host, port=port)
