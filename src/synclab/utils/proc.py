from __future__ import annotations

# Canonical external-process runner for the pipeline:
# - list-argv only (no shell)
# - errors classified as not-found / non-zero exit / timeout so stages can pick a fallback
# - stderr tail attached to failures
import subprocess
from pathlib import Path


class ToolError(RuntimeError):
    pass


class ToolNotFound(ToolError):
    """The process could not be launched (binary missing, permission denied, bad cwd)."""


class ToolExitError(ToolError):
    def __init__(self, message: str, *, returncode: int, stderr_tail: str = "") -> None:
        super().__init__(message)
        self.returncode = int(returncode)
        self.stderr_tail = stderr_tail


class ToolTimeout(ToolError):
    pass


def _tail(s: str | bytes | None, n: int = 4000) -> str:
    if s is None:
        return ""
    if isinstance(s, bytes):
        s = s.decode("utf-8", errors="replace")
    s = str(s)
    return s if len(s) <= n else s[-n:]


def run_tool(
    argv: list[str],
    *,
    name: str | None = None,
    cwd: Path | None = None,
    timeout_s: float | None = None,
) -> subprocess.CompletedProcess[bytes]:
    """
    Run an external tool to completion and return the completed process.

    timeout_s of None or <= 0 waits indefinitely. Output is captured as bytes; the stderr
    tail is decoded with replacement characters.
    """
    label = name or Path(str(argv[0])).name
    timeout = float(timeout_s) if timeout_s and float(timeout_s) > 0 else None
    try:
        p = subprocess.run(
            [str(a) for a in argv],
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as ex:
        raise ToolTimeout(f"{label} timed out after {timeout}s") from ex
    except OSError as ex:
        # FileNotFoundError / PermissionError / NotADirectoryError for cwd
        raise ToolNotFound(f"{label} not found or not launchable: {ex}") from ex
    if p.returncode != 0:
        tail = _tail(p.stderr)
        raise ToolExitError(
            f"{label} failed (code {p.returncode})",
            returncode=p.returncode,
            stderr_tail=tail,
        )
    return p
