"""Blocking execution of external commands (docker, npm, umbrel)."""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

from relsync.errors import ReleaseSyncError

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]


def run_command(
    args: Sequence[str],
    cwd: str | Path | None = None,
    timeout: float | None = None,
    capture: bool = True,
) -> subprocess.CompletedProcess:
    """Run ``args`` to completion and return the completed process.

    Does not raise on a non-zero exit; callers decide which stage error a
    failure maps to. ``subprocess.TimeoutExpired`` and ``OSError`` (tool not
    installed) propagate.
    """
    logger.debug("$ %s", shlex.join(args))
    return subprocess.run(
        list(args),
        cwd=cwd,
        capture_output=capture,
        text=True,
        timeout=timeout,
        check=False,
    )


def run_checked(
    runner: Runner,
    args: Sequence[str],
    error_cls: type[ReleaseSyncError],
    *,
    cwd: str | Path | None = None,
    timeout: float | None = None,
    capture: bool = True,
    suggestion: str = "",
) -> subprocess.CompletedProcess:
    """Run a command through ``runner`` and map any failure onto ``error_cls``."""
    command = shlex.join(args)
    try:
        proc = runner(args, cwd=cwd, timeout=timeout, capture=capture)
    except subprocess.TimeoutExpired:
        raise error_cls(
            f"`{command}` timed out after {timeout}s",
            suggestion=suggestion or "Raise --timeout or check the external service.",
        )
    except OSError as e:
        raise error_cls(f"Could not run `{command}`: {e}", suggestion=suggestion)

    if proc.returncode != 0:
        output = (proc.stderr or proc.stdout or "").strip()
        raise error_cls(
            f"`{command}` exited with status {proc.returncode}",
            suggestion=suggestion,
            detail=output[-2000:] if output else None,
        )
    return proc
