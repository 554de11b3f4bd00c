"""Exponential-backoff retry helper for storage uploads and provider calls."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from time import sleep
from typing import TypeVar

_Result = TypeVar("_Result")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry an action with exponentially growing delays.

    Attributes:
        attempts: Total attempts including the first call.
        base_delay_seconds: Delay before the second attempt; doubles afterwards.
        max_delay_seconds: Upper bound for a single delay.
        sleeper: Injectable sleep function.
    """

    attempts: int = 3
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 8.0
    sleeper: Callable[[float], None] = sleep

    def delay_for(self, attempt: int) -> float:
        """Return the delay after failed 0-based `attempt`."""

        return min(self.max_delay_seconds, self.base_delay_seconds * (2**attempt))

    def run(
        self,
        action: Callable[[], _Result],
        retry_on: tuple[type[BaseException], ...],
        should_retry: Callable[[BaseException], bool] | None = None,
        on_retry: Callable[[int, BaseException], None] | None = None,
    ) -> _Result:
        """Call `action`, retrying on `retry_on` exceptions until attempts run out.

        The last exception propagates unchanged.
        """

        attempts = max(1, self.attempts)
        for attempt in range(attempts):
            try:
                return action()
            except retry_on as exc:
                last_attempt = attempt == attempts - 1
                if last_attempt or (should_retry is not None and not should_retry(exc)):
                    raise
                if on_retry is not None:
                    on_retry(attempt + 1, exc)
                self.sleeper(self.delay_for(attempt))
        raise AssertionError("unreachable")
