"""Console output and subprocess helpers shared by every command."""

import shlex
import subprocess
import sys
from pathlib import Path
from typing import Mapping, Optional, Sequence


def info(message: str) -> None:
    """Print a standard informational message."""
    print(f"[jc] {message}")


def error(message: str) -> None:
    """Print a standardized error message to stderr."""
    print(f"error: {message}", file=sys.stderr)


def run_cmd(
    cmd: Sequence[str],
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> int:
    """Run a subprocess command and return the exit code."""
    print("+", " ".join(shlex.quote(part) for part in cmd))
    try:
        subprocess.run(cmd, cwd=str(cwd) if cwd else None, check=True, env=env)
    except subprocess.CalledProcessError as exc:
        error(f"command failed with exit code {exc.returncode}")
        return exc.returncode
    except OSError as exc:
        error(f"failed to run {cmd[0]}: {exc}")
        return 127
    return 0


def run_quiet(cmd: Sequence[str], cwd: Optional[Path] = None) -> int:
    """Run a command with its output discarded; return the exit code."""
    try:
        result = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError:
        return 127
    return result.returncode
