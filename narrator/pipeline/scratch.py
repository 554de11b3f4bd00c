"""Per-job scratch storage for intermediate audio segments."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import shutil
import tempfile
from types import TracebackType

from ..errors import PipelineStageError
from ..models.datatypes import AudioEncoding, AudioSegment


@dataclass(frozen=True, slots=True)
class StoredSegment:
    """A segment written to scratch storage, described without its payload."""

    path: Path
    sample_rate: int
    channels: int
    duration_seconds: float
    encoding: AudioEncoding


class ScratchSpace:
    """A private temporary directory owned by exactly one job.

    Use as a context manager; the directory is removed on every exit path.
    """

    def __init__(self, job_id: str, root: Path | None = None) -> None:
        self.job_id = job_id
        self.root = root
        self.path: Path | None = None

    def __enter__(self) -> ScratchSpace:
        """Allocate the job directory.

        Raises:
            PipelineStageError: If the scratch root cannot hold a new directory.
        """

        try:
            if self.root is not None:
                self.root.mkdir(parents=True, exist_ok=True)
            self.path = Path(
                tempfile.mkdtemp(
                    prefix=f"narration_{self.job_id}_",
                    dir=str(self.root) if self.root is not None else None,
                )
            )
        except OSError as exc:
            raise PipelineStageError(
                stage="scratch",
                detail=f"Cannot allocate scratch space: {exc}",
                hint="Point `scratch_root` at a writable directory.",
            ) from exc
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        if self.path is not None:
            shutil.rmtree(self.path, ignore_errors=True)
            self.path = None

    def save_segment(self, name: str, segment: AudioSegment) -> StoredSegment:
        """Write segment bytes to scratch and return a handle for reloading."""

        if self.path is None:
            raise RuntimeError("Scratch space is not open.")
        target = self.path / f"{name}.{segment.encoding}"
        target.write_bytes(segment.data)
        return StoredSegment(
            path=target,
            sample_rate=segment.sample_rate,
            channels=segment.channels,
            duration_seconds=segment.duration_seconds,
            encoding=segment.encoding,
        )

    @staticmethod
    def load_segment(stored: StoredSegment) -> AudioSegment:
        """Reload a segment previously written with `save_segment`."""

        return AudioSegment(
            data=stored.path.read_bytes(),
            sample_rate=stored.sample_rate,
            channels=stored.channels,
            duration_seconds=stored.duration_seconds,
            encoding=stored.encoding,
        )
