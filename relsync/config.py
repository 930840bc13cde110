"""Run configuration.

Built once at startup from environment defaults plus CLI overrides, then
passed explicitly into every pipeline component.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, fields, replace
from pathlib import Path

from relsync.errors import ConfigurationError

DEFAULT_IMAGE_NAME = "ghcr.io/harmalh/clawdbot-umbrel"
DEFAULT_UPSTREAM_REPO = "getumbrel/umbrel-apps"
DEFAULT_RELEASE_PROJECT = "clawdbot/clawdbot"
DEFAULT_APP_ID = "clawdbot"
DEFAULT_PLATFORMS = ("linux/amd64", "linux/arm64")

FALLBACK_GIT_NAME = "Local User"
FALLBACK_GIT_EMAIL = "local@user.com"


@dataclass(frozen=True)
class SyncConfig:
    """Everything a pipeline run needs to know."""

    image_name: str = DEFAULT_IMAGE_NAME
    upstream_repo: str = DEFAULT_UPSTREAM_REPO
    base_branch: str = "master"
    release_project: str = DEFAULT_RELEASE_PROJECT
    app_id: str = DEFAULT_APP_ID
    app_name: str = "Clawdbot"
    template_dir: Path = Path("umbrel-app")
    build_context: Path = Path(".")
    build_arg: str = "CLAWDBOT_VERSION"
    platforms: tuple[str, ...] = DEFAULT_PLATFORMS
    work_dir: Path = Path(tempfile.gettempdir()) / "umbrel-update"

    version: str = ""
    digest: str = ""

    skip_build: bool = False
    skip_verify: bool = False
    create_pr: bool = False
    dry_run: bool = False
    verbose: bool = False

    github_token: str = ""
    github_api: str = "https://api.github.com"
    git_host: str = "https://github.com"
    command_timeout: float | None = None
    http_timeout: float = 15.0

    @classmethod
    def from_env(cls, **overrides) -> "SyncConfig":
        """Load defaults from the environment, then apply non-None overrides."""
        env = cls(
            image_name=os.getenv("IMAGE_NAME", DEFAULT_IMAGE_NAME),
            build_arg=os.getenv("RELSYNC_BUILD_ARG", "CLAWDBOT_VERSION"),
            work_dir=Path(os.getenv("TMPDIR", tempfile.gettempdir())) / "umbrel-update",
            github_token=os.getenv("UMBREL_APPS_PAT", "") or os.getenv("GITHUB_TOKEN", ""),
            github_api=os.getenv("GITHUB_API_URL", "https://api.github.com").rstrip("/"),
            git_host=os.getenv("GITHUB_SERVER_URL", "https://github.com").rstrip("/"),
        )
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown configuration fields: {', '.join(sorted(unknown))}")
        return replace(env, **{k: v for k, v in overrides.items() if v is not None})

    @property
    def repo_name(self) -> str:
        """Repository name without owner (``umbrel-apps``)."""
        return self.upstream_repo.split("/", 1)[-1]

    @property
    def upstream_url(self) -> str:
        return f"{self.git_host}/{self.upstream_repo}.git"

    @property
    def checkout_path(self) -> Path:
        return self.work_dir / self.repo_name

    @property
    def branch_name_prefix(self) -> str:
        return f"update-{self.app_id}-"

    def branch_for(self, version: str) -> str:
        return f"{self.branch_name_prefix}{version}"

    def validate(self) -> None:
        """Reject flag combinations that can never succeed."""
        if self.skip_build and not self.digest:
            raise ConfigurationError(
                "--skip-build requires --digest",
                suggestion="Pass the digest of an already published image with --digest.",
            )
        if self.create_pr and not self.dry_run and not self.github_token:
            raise ConfigurationError(
                "--create-pr requires a GitHub token",
                suggestion="Export UMBREL_APPS_PAT (or GITHUB_TOKEN) before running.",
            )
        if self.command_timeout is not None and self.command_timeout <= 0:
            raise ConfigurationError(
                f"Timeout must be positive, got {self.command_timeout}",
            )
