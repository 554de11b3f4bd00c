"""Narrator pipeline package.

This package contains orchestration, concurrent paragraph production, job
state tracking, cancellation, and per-job scratch storage.
"""

from .cancellation import CancellationToken
from .orchestrator import NarrationPipeline
from .production import ParagraphProducer
from .scratch import ScratchSpace, StoredSegment
from .state import JobState, JobStateMachine, ParagraphState, ParagraphTracker

__all__ = [
    "CancellationToken",
    "JobState",
    "JobStateMachine",
    "NarrationPipeline",
    "ParagraphProducer",
    "ParagraphState",
    "ParagraphTracker",
    "ScratchSpace",
    "StoredSegment",
]
