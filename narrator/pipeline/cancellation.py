"""Cooperative cancellation for in-flight paragraph work."""

from __future__ import annotations

from threading import Event, Lock

from ..errors import JobCancelledError


class CancellationToken:
    """Flag shared by one job's workers; set once any paragraph fails.

    The first cancellation records its reason and originating error, so the
    orchestrator can surface the root cause rather than a sibling's
    `JobCancelledError`.
    """

    def __init__(self) -> None:
        self._event = Event()
        self._lock = Lock()
        self.reason: str | None = None
        self.error: BaseException | None = None

    def cancel(self, reason: str, error: BaseException | None = None) -> bool:
        """Request cancellation; return whether this call was the first."""

        with self._lock:
            if self._event.is_set():
                return False
            self.reason = reason
            self.error = error
            self._event.set()
            return True

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        """Raise `JobCancelledError` instead of starting work for `stage`."""

        if self._event.is_set():
            raise JobCancelledError(
                detail=f"Skipped `{stage}` because the job was cancelled: {self.reason}",
            )
