"""Runtime telemetry helpers."""

from .logger import RunLogger

__all__ = ["RunLogger"]
