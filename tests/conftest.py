"""Shared pytest fixtures for the full Narrator test suite."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from narrator.io.storage import FilesystemAudioStore
from narrator.music.selector import MusicSelector
from narrator.pipeline import NarrationPipeline
from narrator.retry import RetryPolicy
from tests.audio_fixtures import (
    PUBLIC_BASE_URL,
    FakeAnalyzer,
    FakeSynthesizer,
    RecordingStore,
    write_music_library,
)


@pytest.fixture
def music_store(tmp_path: Path) -> FilesystemAudioStore:
    """Provide a filesystem music library with one WAV track per category."""

    root = write_music_library(tmp_path / "music")
    return FilesystemAudioStore(root, PUBLIC_BASE_URL)


@pytest.fixture
def output_store(tmp_path: Path) -> RecordingStore:
    """Provide a recording filesystem store for uploaded narration audio."""

    return RecordingStore(tmp_path / "out")


@pytest.fixture
def scratch_root(tmp_path: Path) -> Path:
    """Provide a parent directory for per-job scratch space."""

    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture
def build_pipeline(
    music_store: FilesystemAudioStore,
    output_store: RecordingStore,
    scratch_root: Path,
) -> Callable[..., NarrationPipeline]:
    """Return a factory for WAV-output pipelines wired to deterministic test doubles."""

    def _build(**overrides: object) -> NarrationPipeline:
        settings: dict[str, object] = {
            "analyzer": FakeAnalyzer(),
            "synthesizer": FakeSynthesizer(),
            "music_selector": MusicSelector(music_store),
            "output_store": output_store,
            "output_format": "wav",
            "max_workers": 3,
            "mix_workers": 2,
            "stage_timeout_seconds": 10.0,
            "upload_retry": RetryPolicy(attempts=3, base_delay_seconds=0.0, sleeper=lambda _: None),
            "scratch_root": scratch_root,
            "clock": lambda: 1_700_000_000.0,
        }
        settings.update(overrides)
        return NarrationPipeline(**settings)  # type: ignore[arg-type]

    return _build
