"""Run ``umbrel lint`` against the patched app.

The linter is an opaque pass/fail collaborator: any non-zero exit fails the
run. ``umbrel-cli`` is installed globally through npm when missing.
"""

from __future__ import annotations

import logging
import shutil
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from relsync.config import SyncConfig
from relsync.errors import VerifyError
from relsync.utils.logging import DRY_RUN_PREFIX
from relsync.utils.process import Runner, run_checked, run_command

logger = logging.getLogger(__name__)

UMBREL_CLI_PACKAGE = "umbrel-cli@^0.6.4"


@dataclass
class LintResult:
    """Result of linting one app."""

    app_id: str
    passed: bool
    installed_cli: bool = False
    stdout: str = ""
    duration_ms: int = 0
    dry_run: bool = False


class AppLinter:
    """Executes the Umbrel linter in the synced repository."""

    def __init__(
        self,
        config: SyncConfig,
        runner: Runner = run_command,
        which: Callable[[str], str | None] = shutil.which,
    ):
        self.config = config
        self.runner = runner
        self.which = which

    def lint(self, repo_path: str | Path, dry_run: bool = False) -> LintResult:
        app_id = self.config.app_id
        logger.info("Running umbrel lint %s...", app_id)

        if dry_run:
            logger.info("%s Would run: umbrel lint %s", DRY_RUN_PREFIX, app_id)
            return LintResult(app_id=app_id, passed=True, dry_run=True)

        start = time.monotonic()
        installed = self._ensure_cli()
        proc = run_checked(
            self.runner,
            ["umbrel", "lint", app_id],
            VerifyError,
            cwd=repo_path,
            timeout=self.config.command_timeout,
            suggestion=f"Fix the lint findings in {app_id}/ or re-run with --skip-lint.",
        )
        logger.info("Lint passed")
        return LintResult(
            app_id=app_id,
            passed=True,
            installed_cli=installed,
            stdout=(proc.stdout or "")[:5000],
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    def _ensure_cli(self) -> bool:
        if self.which("umbrel"):
            return False
        logger.info("Installing umbrel-cli...")
        run_checked(
            self.runner,
            ["npm", "install", "-g", UMBREL_CLI_PACKAGE],
            VerifyError,
            timeout=self.config.command_timeout,
            suggestion="Install umbrel-cli manually: npm install -g " + UMBREL_CLI_PACKAGE,
        )
        return True
