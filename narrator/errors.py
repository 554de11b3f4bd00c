"""Domain exceptions for narration pipeline, HTTP, and CLI diagnostics.

Every failure raised by a pipeline stage is a `PipelineStageError` carrying the
stage name, a human-readable detail, and an optional remediation hint. Stage
subclasses fix the default stage name so callers can match on type.
"""

from __future__ import annotations


class PipelineStageError(RuntimeError):
    """Raised when a specific pipeline stage fails."""

    default_stage = "pipeline"

    def __init__(
        self,
        *,
        detail: str,
        stage: str | None = None,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped pipeline error."""

        super().__init__(detail)
        self.stage = stage or self.default_stage
        self.detail = detail
        self.hint = hint


class ValidationError(PipelineStageError):
    """Raised when a request is missing required fields or carries invalid options."""

    default_stage = "request"


class ConfigError(PipelineStageError):
    """Raised when runtime configuration cannot be loaded or validated."""

    default_stage = "config"


class ClassificationError(PipelineStageError):
    """Raised when the metadata classifier call fails or returns unparsable output."""

    default_stage = "metadata"


class SynthesisError(PipelineStageError):
    """Raised when the speech provider fails or returns unreadable audio."""

    default_stage = "synthesis"


class MusicUnavailableError(PipelineStageError):
    """Raised when no background track matches or a track cannot be fetched."""

    default_stage = "music"


class MixError(PipelineStageError):
    """Raised when narration and background audio cannot be mixed."""

    default_stage = "mix"


class EncodingError(PipelineStageError):
    """Raised when segments cannot be concatenated or encoded."""

    default_stage = "concatenate"


class UploadError(PipelineStageError):
    """Raised when the storage collaborator rejects an upload or returns a bad URL."""

    default_stage = "upload"


class JobCancelledError(PipelineStageError):
    """Raised inside paragraph work once a sibling failure cancelled the job."""

    default_stage = "cancelled"
