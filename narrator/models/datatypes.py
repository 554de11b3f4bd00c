"""Core datatypes shared across narration pipeline modules.

Responsibilities:
- Represent immutable records exchanged between pipeline stages.
- Reject structurally invalid audio and mix settings at construction time.

Key types:
- `ParagraphUnit`, `ParagraphMetadata`, `AudioSegment`, `MixConfig`,
  `NarrationOptions`, `NarrationJob`, `MusicTrack`, `EpisodeMetadata`,
  `EpisodeAudio`, and `NarrationResult`.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Literal


AudioEncoding = Literal["pcm16", "mp3"]
NarrationMode = Literal["narration", "paragraph", "episode"]

PCM16_SAMPLE_WIDTH = 2
_SUPPORTED_ENCODINGS = frozenset({"pcm16", "mp3"})


@dataclass(frozen=True, slots=True)
class ParagraphUnit:
    """One paragraph of source text.

    Attributes:
        index: 0-based position in the source text.
        text: Stripped paragraph text.
    """

    index: int
    text: str


@dataclass(frozen=True, slots=True)
class ParagraphMetadata:
    """Classifier-derived labels for one paragraph.

    Attributes:
        mood: Free-form mood label (for example `tense`, `joyful`).
        genre: Free-form genre label.
        intensity: Emotional intensity on a 1..10 scale.
        tempo: Optional pacing label (`slow`, `medium`, `fast`).
    """

    mood: str = "neutral"
    genre: str = "general"
    intensity: int = 5
    tempo: str | None = None

    def as_payload(self) -> dict[str, object]:
        """Return JSON-friendly metadata used by the HTTP surface."""

        payload: dict[str, object] = {
            "mood": self.mood,
            "genre": self.genre,
            "intensity": self.intensity,
        }
        if self.tempo is not None:
            payload["tempo"] = self.tempo
        return payload


@dataclass(frozen=True, slots=True)
class AudioSegment:
    """A discrete span of audio with known format.

    For `pcm16` segments `data` holds raw interleaved little-endian 16-bit
    frames without a container header. For `mp3` segments `data` holds the
    encoded bitstream.

    Attributes:
        data: Audio payload bytes.
        sample_rate: Frames per second.
        channels: Interleaved channel count.
        duration_seconds: Positive, finite playback duration.
        encoding: Payload encoding (`pcm16` or `mp3`).
    """

    data: bytes
    sample_rate: int
    channels: int
    duration_seconds: float
    encoding: AudioEncoding = "pcm16"

    def __post_init__(self) -> None:
        """Validate segment shape; a zero-length segment is never a valid state."""

        if self.encoding not in _SUPPORTED_ENCODINGS:
            raise ValueError(f"Unsupported audio encoding `{self.encoding}`.")
        if self.sample_rate <= 0:
            raise ValueError("Audio segment sample rate must be positive.")
        if self.channels <= 0:
            raise ValueError("Audio segment channel count must be positive.")
        if not self.data:
            raise ValueError("Audio segment payload is empty.")
        if not math.isfinite(self.duration_seconds) or self.duration_seconds <= 0.0:
            raise ValueError(
                f"Audio segment duration must be positive and finite, got {self.duration_seconds!r}."
            )
        if self.encoding == "pcm16" and len(self.data) % self.block_align != 0:
            raise ValueError("PCM16 payload length is not a whole number of frames.")

    @property
    def block_align(self) -> int:
        """Return bytes per interleaved frame for PCM16 payloads."""

        return self.channels * PCM16_SAMPLE_WIDTH

    @property
    def frame_count(self) -> int:
        """Return the number of PCM16 frames in the payload."""

        if self.encoding != "pcm16":
            raise ValueError("Frame count is only defined for PCM16 segments.")
        return len(self.data) // self.block_align


@dataclass(frozen=True, slots=True)
class MixConfig:
    """Gain and envelope settings for narration/background mixing.

    Attributes:
        background_volume: Background gain in [0, 1]; 0 silences the music.
        fade_in_seconds: Linear fade-in length applied to the background.
        fade_out_seconds: Linear fade-out length applied to the background.
        crossfade_seconds: Overlap between consecutive segments when no gap is used.
    """

    background_volume: float = 0.2
    fade_in_seconds: float = 0.0
    fade_out_seconds: float = 0.0
    crossfade_seconds: float = 0.0

    def __post_init__(self) -> None:
        """Reject out-of-range gain and negative envelope timings."""

        if not math.isfinite(self.background_volume) or not 0.0 <= self.background_volume <= 1.0:
            raise ValueError("`background_volume` must be between 0 and 1.")
        for name in ("fade_in_seconds", "fade_out_seconds", "crossfade_seconds"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0.0:
                raise ValueError(f"`{name}` must be zero or greater.")


@dataclass(frozen=True, slots=True)
class NarrationOptions:
    """Recognized per-request narration options after defaults are applied.

    Attributes:
        voice: Speech provider voice identifier.
        mix: Background gain and envelope settings.
        narration_delay_seconds: Background-only lead-in before narration starts.
        paragraph_silence_seconds: Gap inserted between concatenated paragraphs.
        episode_breaks: Paragraph indices where a new episode starts.
    """

    voice: str
    mix: MixConfig
    narration_delay_seconds: float = 0.0
    paragraph_silence_seconds: float = 0.0
    episode_breaks: tuple[int, ...] = ()


@dataclass(frozen=True, slots=True)
class NarrationJob:
    """One request to convert text into finished audio.

    Jobs live only for one pipeline execution; nothing about them is persisted.

    Attributes:
        job_id: Unique identifier used for scratch paths and upload keys.
        book_id: Owning book identifier.
        paragraphs: Ordered paragraphs to narrate.
        options: Resolved narration options.
        mode: Request mode (`narration`, `paragraph`, `episode`).
        chapter_id: Optional chapter identifier used in storage keys.
        episode_number: Optional first episode number.
        per_paragraph_output: Upload one object per paragraph.
        final_output: Concatenate and upload one combined track.
    """

    job_id: str
    book_id: str
    paragraphs: tuple[ParagraphUnit, ...]
    options: NarrationOptions
    mode: NarrationMode = "narration"
    chapter_id: str | None = None
    episode_number: int | None = None
    per_paragraph_output: bool = False
    final_output: bool = True


@dataclass(frozen=True, slots=True)
class MusicTrack:
    """A background track selected from the music library.

    Attributes:
        category: Library category folder (for example `Horror`).
        index: 1-based track index within the category.
        key: Storage key the track was read from.
        segment: Decoded track audio.
    """

    category: str
    index: int
    key: str
    segment: AudioSegment


@dataclass(frozen=True, slots=True)
class EpisodeMetadata:
    """Aggregated labels for a group of paragraphs.

    Attributes:
        episode_number: 1-based episode number.
        title: Display title derived from the first paragraph.
        mood: Most common paragraph mood.
        genre: Most common paragraph genre.
        intensity: Mean paragraph intensity.
    """

    episode_number: int
    title: str
    mood: str
    genre: str
    intensity: float

    def as_payload(self) -> dict[str, object]:
        """Return JSON-friendly metadata used by the HTTP surface."""

        return {
            "episodeNumber": self.episode_number,
            "title": self.title,
            "mood": self.mood,
            "genre": self.genre,
            "intensity": self.intensity,
        }


@dataclass(frozen=True, slots=True)
class EpisodeAudio:
    """Paragraph URLs grouped into one episode."""

    episode_number: int
    paragraph_urls: tuple[str, ...]
    metadata: EpisodeMetadata

    def as_payload(self) -> dict[str, object]:
        """Return JSON-friendly episode record used by the HTTP surface."""

        return {
            "episodeNumber": self.episode_number,
            "paragraphUrls": list(self.paragraph_urls),
            "metadata": self.metadata.as_payload(),
        }


@dataclass(frozen=True, slots=True)
class NarrationResult:
    """The only artifact that outlives a narration job.

    Attributes:
        job_id: Identifier of the job that produced this result.
        paragraph_urls: One durable URL per paragraph when requested.
        final_url: Durable URL of the concatenated track when requested.
        metadata: One metadata record per paragraph, in paragraph order.
        episodes: Episode grouping for episode-mode jobs.
        duration_seconds: Duration of the final track, or summed paragraph durations.
    """

    job_id: str
    paragraph_urls: tuple[str, ...]
    final_url: str | None
    metadata: tuple[ParagraphMetadata, ...]
    episodes: tuple[EpisodeAudio, ...] = ()
    duration_seconds: float = 0.0
