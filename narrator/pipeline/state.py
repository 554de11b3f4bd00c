"""Job and paragraph state machines.

Responsibilities:
- Define job states and the legal transitions between them.
- Track per-paragraph progress so mixing only starts once both synthesis and
  music fetch have completed.
- Record transition history for logging and tests.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from threading import Lock


class JobState(str, Enum):
    """Lifecycle states of one narration job."""

    CREATED = "created"
    METADATA_EXTRACTED = "metadata_extracted"
    PRODUCING = "producing"
    CONCATENATING = "concatenating"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED})

_JOB_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.CREATED: frozenset({JobState.METADATA_EXTRACTED}),
    JobState.METADATA_EXTRACTED: frozenset({JobState.PRODUCING}),
    JobState.PRODUCING: frozenset({JobState.CONCATENATING, JobState.UPLOADING}),
    JobState.CONCATENATING: frozenset({JobState.UPLOADING}),
    JobState.UPLOADING: frozenset({JobState.COMPLETED}),
    JobState.COMPLETED: frozenset(),
    JobState.FAILED: frozenset(),
}


class ParagraphState(str, Enum):
    """Production states of one paragraph within a job."""

    PENDING = "pending"
    PRODUCING = "producing"
    MIXING = "mixing"
    MIXED = "mixed"
    FAILED = "failed"


class InvalidTransitionError(RuntimeError):
    """Raised when a state machine is asked to make an illegal transition."""


class JobStateMachine:
    """Thread-safe job state holder with transition history."""

    def __init__(
        self,
        job_id: str,
        on_transition: Callable[[JobState, JobState], None] | None = None,
    ) -> None:
        self.job_id = job_id
        self._state = JobState.CREATED
        self._history: list[JobState] = [JobState.CREATED]
        self._on_transition = on_transition
        self._lock = Lock()

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def history(self) -> tuple[JobState, ...]:
        with self._lock:
            return tuple(self._history)

    def advance(self, target: JobState) -> None:
        """Move to `target`, which must be a legal successor of the current state."""

        with self._lock:
            previous = self._state
            if target == JobState.FAILED:
                if previous in TERMINAL_STATES:
                    raise InvalidTransitionError(
                        f"Job `{self.job_id}` cannot fail from terminal state `{previous.value}`."
                    )
            elif target not in _JOB_TRANSITIONS[previous]:
                raise InvalidTransitionError(
                    f"Job `{self.job_id}` cannot move from `{previous.value}` to `{target.value}`."
                )
            self._state = target
            self._history.append(target)
        if self._on_transition is not None:
            self._on_transition(previous, target)

    def fail(self) -> bool:
        """Move to FAILED unless already terminal; return whether a transition happened."""

        with self._lock:
            previous = self._state
            if previous in TERMINAL_STATES:
                return False
            self._state = JobState.FAILED
            self._history.append(JobState.FAILED)
        if self._on_transition is not None:
            self._on_transition(previous, JobState.FAILED)
        return True


class ParagraphTracker:
    """Track one paragraph's concurrent synthesis and music-fetch branches."""

    def __init__(self, index: int) -> None:
        self.index = index
        self.state = ParagraphState.PENDING
        self.synthesized = False
        self.music_fetched = False
        self._lock = Lock()

    def start(self) -> None:
        with self._lock:
            self._require(ParagraphState.PENDING, ParagraphState.PRODUCING)
            self.state = ParagraphState.PRODUCING

    def mark_synthesized(self) -> None:
        with self._lock:
            self._require(ParagraphState.PRODUCING, ParagraphState.PRODUCING)
            self.synthesized = True

    def mark_music_fetched(self) -> None:
        with self._lock:
            self._require(ParagraphState.PRODUCING, ParagraphState.PRODUCING)
            self.music_fetched = True

    def begin_mixing(self) -> None:
        """Enter MIXING; both producing branches must have completed."""

        with self._lock:
            self._require(ParagraphState.PRODUCING, ParagraphState.MIXING)
            if not (self.synthesized and self.music_fetched):
                raise InvalidTransitionError(
                    f"Paragraph {self.index} cannot mix before synthesis and music both complete."
                )
            self.state = ParagraphState.MIXING

    def finish(self) -> None:
        with self._lock:
            self._require(ParagraphState.MIXING, ParagraphState.MIXED)
            self.state = ParagraphState.MIXED

    def fail(self) -> None:
        with self._lock:
            if self.state != ParagraphState.MIXED:
                self.state = ParagraphState.FAILED

    def _require(self, expected: ParagraphState, target: ParagraphState) -> None:
        if self.state != expected:
            raise InvalidTransitionError(
                f"Paragraph {self.index} cannot move from `{self.state.value}` to `{target.value}`."
            )
