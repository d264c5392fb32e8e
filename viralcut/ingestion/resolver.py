"""
Locates a runnable yt-dlp.

Resolution is an ordered list of strategies. Each strategy either returns a
``ToolRunner`` or ``None`` and records what it tried in the shared diagnostics, so the
final error can tell the operator exactly which interpreters were rejected and why.
"""

import json
import os
import platform
import subprocess
import sys
import threading
from pathlib import Path
from typing import Callable, List, Optional, Set

from loguru import logger
from pydantic import BaseModel, Field

from viralcut.errors import ToolResolutionFailure

PYTHON_ARGS_PREFIX = ["-W", "ignore", "-m", "yt_dlp"]
PROBE_SCRIPT = (
    "import importlib.util, json, sys; "
    "print(json.dumps({'executable': sys.executable, "
    "'has_ytdlp': bool(importlib.util.find_spec('yt_dlp'))}))"
)
PROBE_TIMEOUT_SEC = 60


class ToolRunner(BaseModel):
    command: str
    args_prefix: List[str] = Field(default_factory=list)
    source: str

    def argv(self, args: List[str]) -> List[str]:
        return [self.command, *self.args_prefix, *args]


class PythonCandidate(BaseModel):
    command: str
    args: List[str] = Field(default_factory=list)
    source: str

    def describe(self) -> str:
        suffix = f" {' '.join(self.args)}" if self.args else ""
        return f"{self.command}{suffix} ({self.source})"


class ProbeResult(BaseModel):
    executable: str
    has_ytdlp: bool


class ResolverContext(BaseModel):
    base_dir: Path
    python_bin: Optional[str] = None
    extractor_args: Optional[str] = None
    is_windows: bool = Field(default_factory=lambda: platform.system() == "Windows")
    attempted: List[str] = Field(default_factory=list)
    without_module: List[str] = Field(default_factory=list)
    skipped_store: List[str] = Field(default_factory=list)
    seen: Set[str] = Field(default_factory=set)

    def extra_args(self) -> List[str]:
        return ["--extractor-args", self.extractor_args] if self.extractor_args else []


Strategy = Callable[[ResolverContext], Optional[ToolRunner]]


def install_instructions(is_windows: bool) -> str:
    if is_windows:
        return "\n".join(
            [
                "On Windows (PowerShell) run:",
                "  py -3 -m venv .venv",
                "  .\\.venv\\Scripts\\Activate.ps1",
                "  python -m pip install --upgrade pip",
                "  python -m pip install yt-dlp",
                "Optionally set YTDLP_PYTHON to the .venv\\Scripts\\python.exe path.",
            ]
        )
    return "\n".join(
        [
            "On Linux/macOS run:",
            "  python3 -m venv .venv",
            "  source .venv/bin/activate",
            "  python -m pip install --upgrade pip",
            "  python -m pip install yt-dlp",
        ]
    )


def venv_python(venv_dir: Path, is_windows: bool) -> Path:
    if is_windows:
        return venv_dir / "Scripts" / "python.exe"
    return venv_dir / "bin" / "python"


def parse_probe_output(raw: str) -> Optional[ProbeResult]:
    """Picks the last JSON line that looks like a probe payload."""
    lines = [line.strip() for line in raw.splitlines() if line.strip()]
    for line in reversed(lines):
        try:
            payload = json.loads(line)
        except ValueError:
            continue
        if isinstance(payload, dict) and isinstance(payload.get("executable"), str) and isinstance(
            payload.get("has_ytdlp"), bool
        ):
            return ProbeResult(**payload)
    return None


def probe_python(candidate: PythonCandidate, cwd: Path) -> Optional[ProbeResult]:
    try:
        result = subprocess.run(
            [candidate.command, *candidate.args, "-c", PROBE_SCRIPT],
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=PROBE_TIMEOUT_SEC,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Probe failed for {candidate.describe()}: {e}")
        return None
    return parse_probe_output(f"{result.stdout}\n{result.stderr}")


def _is_windows_store_python(executable: str, is_windows: bool) -> bool:
    return is_windows and "\\windowsapps\\" in executable.lower()


def _try_candidates(
    ctx: ResolverContext, candidates: List[PythonCandidate], only_if_exists: bool = False
) -> Optional[ToolRunner]:
    for candidate in candidates:
        if not candidate.command.strip():
            continue
        if only_if_exists and not Path(candidate.command).exists():
            continue
        key = "\0".join([candidate.command, *candidate.args])
        if key in ctx.seen:
            continue
        ctx.seen.add(key)

        ctx.attempted.append(candidate.describe())
        probe = probe_python(candidate, ctx.base_dir)
        if probe is None:
            continue
        if _is_windows_store_python(probe.executable, ctx.is_windows):
            ctx.skipped_store.append(probe.executable)
            continue
        if not probe.has_ytdlp:
            ctx.without_module.append(probe.executable)
            continue

        return ToolRunner(
            command=probe.executable,
            args_prefix=[*PYTHON_ARGS_PREFIX, *ctx.extra_args()],
            source=candidate.source,
        )
    return None


def _is_bare_command(command: str) -> bool:
    return os.sep not in command and not (os.altsep and os.altsep in command)


def explicit_override(ctx: ResolverContext) -> Optional[ToolRunner]:
    """A path must exist; a bare name such as ``python3.11`` is looked up on PATH by the probe."""
    if not ctx.python_bin or not ctx.python_bin.strip():
        return None
    candidate = PythonCandidate(command=ctx.python_bin.strip(), source="YTDLP_PYTHON")
    if not _is_bare_command(candidate.command) and not Path(candidate.command).exists():
        ctx.attempted.append(f"{candidate.describe()} [missing]")
        return None
    return _try_candidates(ctx, [candidate])


def project_virtualenvs(ctx: ResolverContext) -> Optional[ToolRunner]:
    candidates = [
        PythonCandidate(command=str(venv_python(ctx.base_dir / name, ctx.is_windows)), source=f"project {name}")
        for name in (".venv", "venv")
    ]
    return _try_candidates(ctx, candidates, only_if_exists=True)


def active_virtualenv(ctx: ResolverContext) -> Optional[ToolRunner]:
    active = os.getenv("VIRTUAL_ENV", "").strip()
    if not active:
        return None
    candidate = PythonCandidate(command=str(venv_python(Path(active), ctx.is_windows)), source="VIRTUAL_ENV")
    return _try_candidates(ctx, [candidate], only_if_exists=True)


def running_interpreter(ctx: ResolverContext) -> Optional[ToolRunner]:
    if not sys.executable:
        return None
    return _try_candidates(ctx, [PythonCandidate(command=sys.executable, source="running interpreter")])


def platform_launcher(ctx: ResolverContext) -> Optional[ToolRunner]:
    if not ctx.is_windows:
        return None
    return _try_candidates(ctx, [PythonCandidate(command="py", args=["-3"], source="py launcher")])


def path_interpreters(ctx: ResolverContext) -> Optional[ToolRunner]:
    candidates = [PythonCandidate(command="python", source="PATH python")]
    if not ctx.is_windows:
        candidates.append(PythonCandidate(command="python3", source="PATH python3"))
    return _try_candidates(ctx, candidates)


def standalone_binary(ctx: ResolverContext) -> Optional[ToolRunner]:
    ctx.attempted.append("yt-dlp (standalone binary)")
    try:
        subprocess.run(
            ["yt-dlp", "--version"],
            cwd=str(ctx.base_dir),
            capture_output=True,
            text=True,
            check=True,
            timeout=PROBE_TIMEOUT_SEC,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    return ToolRunner(command="yt-dlp", args_prefix=ctx.extra_args(), source="standalone binary")


DEFAULT_STRATEGIES: List[Strategy] = [
    explicit_override,
    project_virtualenvs,
    active_virtualenv,
    running_interpreter,
    platform_launcher,
    path_interpreters,
    standalone_binary,
]


def build_resolution_error(ctx: ResolverContext) -> ToolResolutionFailure:
    lines = ["yt-dlp is not available in any Python environment or on PATH."]
    if ctx.attempted:
        lines.append(f"Tried: {' | '.join(ctx.attempted)}")
    if ctx.without_module:
        lines.append(f"Python without the yt_dlp module: {', '.join(ctx.without_module)}")
    if ctx.skipped_store:
        lines.append(f"Skipped Microsoft Store Python (WindowsApps): {', '.join(ctx.skipped_store)}")
    lines.append(install_instructions(ctx.is_windows))
    return ToolResolutionFailure("\n".join(lines))


def resolve_ytdlp_runner(ctx: ResolverContext, strategies: Optional[List[Strategy]] = None) -> ToolRunner:
    for strategy in strategies or DEFAULT_STRATEGIES:
        runner = strategy(ctx)
        if runner is not None:
            logger.info(f"Using yt-dlp via {runner.source}: {runner.command}")
            return runner
    raise build_resolution_error(ctx)


class YtDlpResolver:
    """Resolves the yt-dlp runner once per process; failed resolutions are retried next call."""

    def __init__(
        self,
        base_dir: str = ".",
        python_bin: Optional[str] = None,
        extractor_args: Optional[str] = None,
        strategies: Optional[List[Strategy]] = None,
    ):
        self.base_dir = Path(base_dir).resolve()
        self.python_bin = python_bin
        self.extractor_args = extractor_args
        self.strategies = strategies or list(DEFAULT_STRATEGIES)
        self._runner: Optional[ToolRunner] = None
        self._lock = threading.Lock()

    def get_runner(self) -> ToolRunner:
        with self._lock:
            if self._runner is None:
                ctx = ResolverContext(
                    base_dir=self.base_dir,
                    python_bin=self.python_bin,
                    extractor_args=self.extractor_args,
                )
                self._runner = resolve_ytdlp_runner(ctx, self.strategies)
            return self._runner

    def reset(self) -> None:
        with self._lock:
            self._runner = None
