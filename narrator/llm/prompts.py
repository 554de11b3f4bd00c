"""Prompt template library for the metadata classifier.

Responsibilities:
- Centralize prompt construction for batch paragraph classification.
- Keep the expected JSON response shape next to the prompt that requests it.
"""

from __future__ import annotations

import json
from collections.abc import Sequence


class PromptLibrary:
    """Build prompt strings for metadata classification."""

    def metadata_system_prompt(self) -> str:
        """Return the system prompt describing the classification JSON contract."""

        return (
            "You are a literary analyst who labels story paragraphs for audiobook "
            "production. For every paragraph, identify the dominant mood (for example "
            "happy, sad, tense, calm, mysterious, romantic, scary, historic), the genre, "
            "an emotional intensity from 1 (very mild) to 10 (extremely intense), and "
            "the tempo (slow, medium, or fast).\n"
            "Respond with a single JSON object of the form "
            '{"paragraphs": [{"index": 0, "mood": "...", "genre": "...", '
            '"intensity": 5, "tempo": "medium"}]} '
            "containing exactly one entry per input paragraph, in input order. "
            "Return JSON only."
        )

    def metadata_prompt(self, paragraphs: Sequence[str]) -> str:
        """Return the user prompt listing paragraphs with their batch indices."""

        numbered = [{"index": index, "text": text} for index, text in enumerate(paragraphs)]
        return (
            f"Classify these {len(numbered)} paragraphs.\n\n"
            f"{json.dumps({'paragraphs': numbered}, ensure_ascii=False)}"
        )
