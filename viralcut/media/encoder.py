import os
import shlex
import shutil
import subprocess
import threading
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import imageio_ffmpeg
from loguru import logger

from viralcut.errors import ExternalToolFailure, ToolResolutionFailure

_cache_lock = threading.Lock()
# resolved binaries, keyed by the override they were resolved for
_cached_binaries: Dict[str, str] = {}


def _bundled_ffmpeg() -> Optional[str]:
    """ffmpeg shipped by imageio-ffmpeg, if the wheel carries one for this platform."""
    try:
        return imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError as e:
        logger.debug(f"Bundled ffmpeg unavailable: {e}")
        return None


def is_executable(candidate: str) -> bool:
    if not candidate:
        return False
    if os.sep in candidate or (os.altsep and os.altsep in candidate):
        return Path(candidate).exists()
    if shutil.which(candidate) is None:
        return False
    try:
        subprocess.run([candidate, "-version"], capture_output=True, check=True)
    except (OSError, subprocess.SubprocessError):
        return False
    return True


def _candidates(override: Optional[str]) -> Iterator[str]:
    yield (override or "").strip()
    yield _bundled_ffmpeg() or ""
    yield "ffmpeg.exe" if os.name == "nt" else "ffmpeg"


def resolve_ffmpeg_binary(override: Optional[str] = None) -> str:
    """
    Resolution order: explicit override, bundled binary, PATH.

    Raises:
        ToolResolutionFailure: none of the candidates is executable.
    """
    key = (override or "").strip()
    with _cache_lock:
        if key in _cached_binaries:
            return _cached_binaries[key]

        for candidate in _candidates(override):
            if candidate and is_executable(candidate):
                logger.info(f"Using ffmpeg binary: {candidate}")
                _cached_binaries[key] = candidate
                return candidate

    raise ToolResolutionFailure(
        "FFmpeg not found. Set FFMPEG_BIN, install imageio-ffmpeg or put ffmpeg on PATH to render clips."
    )


def reset_ffmpeg_cache() -> None:
    with _cache_lock:
        _cached_binaries.clear()


def describe_command(argv: List[str]) -> str:
    return shlex.join(argv)


class FFmpegRunner:
    """Blocking ffmpeg invocations; a non-zero exit becomes ExternalToolFailure with stderr kept."""

    def __init__(self, override: Optional[str] = None):
        self.override = override

    @property
    def binary(self) -> str:
        return resolve_ffmpeg_binary(self.override)

    def run(self, args: List[str], cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
        argv = [self.binary, *args]
        logger.debug(f"ffmpeg: {describe_command(argv)}")
        try:
            result = subprocess.run(argv, cwd=str(cwd) if cwd else None, capture_output=True, text=True)
        except OSError as e:
            raise ToolResolutionFailure(f"Could not execute ffmpeg at {argv[0]}: {e}") from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            tail = stderr[-2000:]
            raise ExternalToolFailure(f"ffmpeg exited with code {result.returncode}: {tail}", stderr)
        return result
