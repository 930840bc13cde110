"""Check that the external tools a run needs are on PATH."""

from __future__ import annotations

import shutil

from relsync.config import SyncConfig
from relsync.errors import ConfigurationError


def check_requirements(config: SyncConfig) -> list[str]:
    """Return the executables this run would invoke but cannot find."""
    missing = []
    if not config.dry_run and shutil.which("git") is None:
        missing.append("git")
    if not config.skip_build and not config.dry_run and shutil.which("docker") is None:
        missing.append("docker")
    if (
        not config.skip_verify
        and not config.dry_run
        and shutil.which("umbrel") is None
        and shutil.which("npm") is None
    ):
        missing.append("npm")
    return missing


def ensure_requirements(config: SyncConfig) -> None:
    missing = check_requirements(config)
    if missing:
        raise ConfigurationError(
            f"Missing required commands: {' '.join(missing)}",
            suggestion="Install them or pass --skip-build / --skip-lint.",
        )
