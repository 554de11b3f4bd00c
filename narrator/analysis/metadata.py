"""Paragraph metadata classification.

Responsibilities:
- Define the `MetadataAnalyzer` protocol: one record per input paragraph, same order.
- Provide an OpenAI-backed analyzer that classifies a whole batch in one call.
- Provide an offline keyword analyzer for local runs without provider access.

Missing or malformed fields fall back to `neutral`/`general`/`5`; only a failed
call or unparsable output fails the batch with `ClassificationError`.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import json
import math
import re
from typing import Protocol

from ..errors import ClassificationError
from ..llm.cache import ResponseCache
from ..llm.openai_client import OpenAIChatClient, OpenAIProviderError
from ..llm.prompts import PromptLibrary
from ..llm.rate_limiter import RateLimiter
from ..models.datatypes import ParagraphMetadata

DEFAULT_METADATA = ParagraphMetadata()
_KNOWN_TEMPOS = frozenset({"slow", "medium", "fast"})
_MIN_INTENSITY = 1
_MAX_INTENSITY = 10


class MetadataAnalyzer(Protocol):
    """Protocol for batch paragraph classifiers."""

    def analyze(self, paragraphs: Sequence[str]) -> list[ParagraphMetadata]:
        """Return exactly one metadata record per paragraph, in input order."""


def clamp_intensity(value: object) -> int:
    """Coerce a classifier intensity onto the integer 1..10 scale.

    Fractions in (0, 1) are treated as a 0..1 scale and multiplied by 10.
    Unparsable values return the default intensity.
    """

    if isinstance(value, bool):
        return DEFAULT_METADATA.intensity
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return DEFAULT_METADATA.intensity
    if not math.isfinite(number):
        return DEFAULT_METADATA.intensity
    if 0.0 < number < 1.0:
        number *= 10.0
    return max(_MIN_INTENSITY, min(_MAX_INTENSITY, int(round(number))))


def metadata_from_record(record: object) -> ParagraphMetadata:
    """Build metadata from one classifier record, substituting defaults per field."""

    if not isinstance(record, Mapping):
        return DEFAULT_METADATA

    def _label(key: str, default: str) -> str:
        value = record.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return default

    tempo_value = record.get("tempo")
    tempo = tempo_value.strip().lower() if isinstance(tempo_value, str) else None
    return ParagraphMetadata(
        mood=_label("mood", DEFAULT_METADATA.mood),
        genre=_label("genre", DEFAULT_METADATA.genre),
        intensity=clamp_intensity(record.get("intensity", DEFAULT_METADATA.intensity)),
        tempo=tempo if tempo in _KNOWN_TEMPOS else None,
    )


def align_records(payload: object, expected: int) -> list[ParagraphMetadata]:
    """Map a parsed classifier payload onto `expected` ordered metadata slots.

    Records carrying a valid `index` fill that slot; others fill the next free
    slot in order. Slots left empty receive default metadata.

    Raises:
        ClassificationError: If the payload has no recognizable record container.
    """

    if isinstance(payload, Mapping) and isinstance(payload.get("paragraphs"), list):
        records = payload["paragraphs"]
    elif isinstance(payload, list):
        records = payload
    elif isinstance(payload, Mapping) and expected == 1 and "mood" in payload:
        records = [payload]
    else:
        raise ClassificationError(
            detail="Classifier response does not contain a `paragraphs` list.",
            hint="Verify the metadata model supports JSON response mode.",
        )

    slots: list[ParagraphMetadata | None] = [None] * expected
    unindexed: list[object] = []
    for record in records:
        index = record.get("index") if isinstance(record, Mapping) else None
        if (
            isinstance(index, int)
            and not isinstance(index, bool)
            and 0 <= index < expected
            and slots[index] is None
        ):
            slots[index] = metadata_from_record(record)
        else:
            unindexed.append(record)

    pending = iter(unindexed)
    for position, slot in enumerate(slots):
        if slot is None:
            slots[position] = metadata_from_record(next(pending, None))
    return [slot if slot is not None else DEFAULT_METADATA for slot in slots]


class OpenAIMetadataAnalyzer:
    """OpenAI-backed analyzer that classifies every paragraph in one request."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        provider_id: str = "openai",
        api_key: str | None = None,
        timeout_seconds: float = 60.0,
        response_cache: ResponseCache | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.model = model
        self.provider_id = provider_id
        self.cache = response_cache if response_cache is not None else ResponseCache()
        self.client = OpenAIChatClient(
            api_key=api_key,
            timeout_seconds=timeout_seconds,
            rate_limiter=rate_limiter,
        )
        self.prompts = PromptLibrary()

    def analyze(self, paragraphs: Sequence[str]) -> list[ParagraphMetadata]:
        """Classify a paragraph batch with one chat-completions call."""

        if not paragraphs:
            return []
        texts = list(paragraphs)
        cache_key = self.cache.make_key(
            provider=self.provider_id,
            model=self.model,
            operation="classify-paragraphs",
            input_identity=texts,
        )
        raw = self.cache.get(cache_key)
        fresh = raw is None
        if raw is None:
            try:
                raw = self.client.chat_completion_text(
                    model=self.model,
                    system_prompt=self.prompts.metadata_system_prompt(),
                    user_prompt=self.prompts.metadata_prompt(texts),
                    temperature=0.3,
                    json_mode=True,
                    max_tokens=max(500, 60 * len(texts)),
                )
            except OpenAIProviderError as exc:
                raise ClassificationError(
                    detail=str(exc),
                    hint="Verify `OPENAI_API_KEY` and the metadata model configuration.",
                ) from exc

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ClassificationError(
                detail="Classifier returned output that is not valid JSON.",
                hint="Retry the request; persistent failures suggest a model change.",
            ) from exc

        records = align_records(payload, len(texts))
        if fresh:
            self.cache.set(cache_key, raw)
        return records


_MOOD_LEXICON: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("scary", ("fear", "scream", "blood", "ghost", "terror", "horror", "dread", "monster")),
    ("tense", ("danger", "chase", "suddenly", "tension", "trap", "escape", "threat")),
    ("happy", ("laugh", "smile", "joy", "happy", "celebrate", "delight", "cheer")),
    ("calm", ("quiet", "gentle", "peace", "calm", "soft", "breeze", "still")),
    ("sad", ("tears", "cry", "grief", "lonely", "sorrow", "loss", "mourn")),
    ("romantic", ("love", "kiss", "embrace", "beloved", "darling")),
    ("mysterious", ("secret", "mystery", "strange", "hidden", "puzzle", "clue")),
    ("historic", ("king", "queen", "empire", "ancient", "century", "castle", "kingdom")),
)
_WORD_RE = re.compile(r"[a-z']+")


class KeywordMetadataAnalyzer:
    """Offline analyzer that labels paragraphs by counting mood keywords."""

    def analyze(self, paragraphs: Sequence[str]) -> list[ParagraphMetadata]:
        """Return keyword-derived metadata for each paragraph."""

        return [self._classify(text) for text in paragraphs]

    @staticmethod
    def _classify(text: str) -> ParagraphMetadata:
        words = _WORD_RE.findall(text.lower())
        best_mood = DEFAULT_METADATA.mood
        best_hits = 0
        for mood, keywords in _MOOD_LEXICON:
            hits = sum(1 for word in words if word.startswith(keywords))
            if hits > best_hits:
                best_mood, best_hits = mood, hits

        intensity = clamp_intensity(3 + 2 * best_hits + text.count("!")) if best_hits else 5
        if intensity >= 7:
            tempo = "fast"
        elif intensity <= 3:
            tempo = "slow"
        else:
            tempo = "medium"
        return ParagraphMetadata(
            mood=best_mood,
            genre=DEFAULT_METADATA.genre,
            intensity=intensity,
            tempo=tempo,
        )
