"""Delimiter-based paragraph splitting for narration input text.

Responsibilities:
- Split raw text into ordered `ParagraphUnit` records.
- Fall back from the `$` author delimiter to `..` and blank-line heuristics.
"""

from __future__ import annotations

import re

from ..errors import ValidationError
from ..models.datatypes import ParagraphUnit

PRIMARY_DELIMITER = "$"
SECONDARY_DELIMITER = ".."
SECONDARY_MIN_TEXT_CHARS = 500

_TRIPLE_BLANK_LINE_RE = re.compile(r"\n\s*\n\s*\n")
_BLANK_LINE_RE = re.compile(r"\n\s*\n")


class ParagraphSplitter:
    """Split narration text into paragraphs using ordered delimiter fallbacks."""

    def __init__(
        self,
        primary_delimiter: str = PRIMARY_DELIMITER,
        secondary_delimiter: str = SECONDARY_DELIMITER,
        secondary_min_chars: int = SECONDARY_MIN_TEXT_CHARS,
    ) -> None:
        self.primary_delimiter = primary_delimiter
        self.secondary_delimiter = secondary_delimiter
        self.secondary_min_chars = secondary_min_chars

    def split(self, text: str) -> list[ParagraphUnit]:
        """Return ordered paragraphs for `text`.

        Raises:
            ValidationError: If `text` has no narratable content.
        """

        if not isinstance(text, str) or not text.strip():
            raise ValidationError(
                detail="Narration text is empty.",
                hint="Provide non-empty `text` in the request body.",
            )

        pieces = _non_empty(text.split(self.primary_delimiter))
        if len(pieces) <= 1 and len(text) > self.secondary_min_chars:
            secondary = _non_empty(text.split(self.secondary_delimiter))
            if len(secondary) > 1:
                pieces = secondary
        if len(pieces) <= 1:
            pieces = self._blank_line_pieces(text) or pieces

        return [ParagraphUnit(index=index, text=piece) for index, piece in enumerate(pieces)]

    @staticmethod
    def _blank_line_pieces(text: str) -> list[str]:
        """Split on triple, then double, blank lines; return [] when neither splits."""

        for pattern in (_TRIPLE_BLANK_LINE_RE, _BLANK_LINE_RE):
            pieces = _non_empty(pattern.split(text))
            if len(pieces) > 1:
                return pieces
        return []


def _non_empty(pieces: list[str]) -> list[str]:
    """Strip pieces and drop blanks while preserving order."""

    return [stripped for stripped in (piece.strip() for piece in pieces) if stripped]


def single_paragraph(text: str, index: int = 0) -> ParagraphUnit:
    """Wrap already-isolated paragraph text without splitting it further."""

    normalized = text.strip() if isinstance(text, str) else ""
    if not normalized:
        raise ValidationError(
            detail="Paragraph text is empty.",
            hint="Provide non-empty `text` in the request body.",
        )
    if index < 0:
        raise ValidationError(
            detail="`paragraphIndex` must be zero or greater.",
            hint="Pass the 0-based paragraph position within the book.",
        )
    return ParagraphUnit(index=index, text=normalized)
