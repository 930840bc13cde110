"""Tests for the Umbrel lint stage."""

import pytest

from conftest import FakeRunner
from relsync.config import SyncConfig
from relsync.errors import VerifyError
from relsync.verify.lint import UMBREL_CLI_PACKAGE, AppLinter


def test_lint_runs_in_repo(tmp_path):
    runner = FakeRunner({("umbrel", "lint"): (0, "All checks passed")})
    result = AppLinter(SyncConfig(), runner, which=lambda name: "/usr/bin/umbrel").lint(tmp_path)

    assert result.passed
    assert not result.installed_cli
    assert runner.calls == [["umbrel", "lint", "clawdbot"]]


def test_lint_installs_cli_when_missing(tmp_path):
    runner = FakeRunner()
    result = AppLinter(SyncConfig(), runner, which=lambda name: None).lint(tmp_path)

    assert result.installed_cli
    assert runner.calls[0] == ["npm", "install", "-g", UMBREL_CLI_PACKAGE]


def test_lint_failure_is_fatal(tmp_path):
    runner = FakeRunner({("umbrel", "lint"): (1, "version must be semver")})
    with pytest.raises(VerifyError) as exc_info:
        AppLinter(SyncConfig(), runner, which=lambda name: "umbrel").lint(tmp_path)
    assert exc_info.value.stage == "verify"
    assert "semver" in exc_info.value.detail


def test_lint_dry_run(tmp_path):
    runner = FakeRunner()
    result = AppLinter(SyncConfig(), runner, which=lambda name: None).lint(tmp_path, dry_run=True)

    assert result.dry_run
    assert runner.calls == []
