"""Runtime executable resolution helpers.

Responsibilities:
- Locate the `ffmpeg` binary used for MP3 transcoding.
- Honor an explicit `NARRATOR_FFMPEG` override before bundled or PATH lookups.
"""

from __future__ import annotations

from collections.abc import Mapping
import os
from pathlib import Path
import shutil

from .parsing import normalize_optional_string


def executable_env_key(command_name: str) -> str:
    """Return the environment variable that overrides one tool's path."""

    return f"NARRATOR_{command_name.strip().upper().replace('-', '_')}"


def resolve_executable(
    command_name: str,
    app_root: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> str:
    """Return the path (or bare name) to run for `command_name`.

    Lookup order is the `NARRATOR_<TOOL>` variable, a `bin/` directory next
    to the package, then `PATH`. A tool found nowhere is returned by name so
    that `subprocess` raises its own missing-binary error.
    """

    normalized = command_name.strip()
    if not normalized:
        return command_name

    env_map: Mapping[str, str] = os.environ if env is None else env
    override = normalize_optional_string(env_map.get(executable_env_key(normalized)))
    if override is not None:
        return override

    bundled = (app_root if app_root is not None else _app_root()) / "bin" / normalized
    if bundled.is_file():
        return str(bundled)
    return shutil.which(normalized) or normalized


def _app_root() -> Path:
    return Path(__file__).resolve().parents[1]
