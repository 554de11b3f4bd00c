"""Top-level package for Narrator.

This package turns book text into narrated audio: paragraphs are classified,
synthesized, mixed over mood-matched background music, concatenated, and
uploaded to durable storage. The main orchestration entry point is
`NarrationPipeline`.
"""

from .pipeline import NarrationPipeline

__all__ = ["NarrationPipeline", "__version__"]

__version__ = "0.1.0"
