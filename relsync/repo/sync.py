"""Repository sync: bring the local umbrel-apps copy to the upstream tip.

The working copy is a scratch area, never a source of truth. Every sync
ends with the primary branch hard-reset to ``upstream/<base>`` and untracked
files removed, so local drift from earlier runs is discarded.
"""

from __future__ import annotations

import logging
from pathlib import Path

from git import GitCommandError, Repo

from relsync.config import SyncConfig
from relsync.errors import SyncError
from relsync.repo.git_ops import clone_repo, ensure_created, git_auth_env, open_repo
from relsync.repo.github import GitHubClient
from relsync.utils.logging import DRY_RUN_PREFIX

logger = logging.getLogger(__name__)

UPSTREAM = "upstream"
ORIGIN = "origin"


class RepositorySync:
    """Establishes the baseline state of the downstream repository."""

    def __init__(self, config: SyncConfig, github: GitHubClient | None = None):
        self.config = config
        self.github = github
        self.env = git_auth_env(config.github_token, config.git_host)

    def sync(self, work_dir: Path | None = None, dry_run: bool = False) -> Path:
        """Return the path of a copy whose primary branch equals the upstream tip."""
        path = Path(work_dir or self.config.work_dir) / self.config.repo_name
        base = self.config.base_branch

        if dry_run:
            action = "update" if open_repo(path) else "clone"
            logger.info("%s Would %s %s in %s", DRY_RUN_PREFIX, action, self.config.repo_name, path)
            logger.info("%s Would reset %s to %s/%s", DRY_RUN_PREFIX, base, UPSTREAM, base)
            return path

        logger.info("Setting up %s repository...", self.config.repo_name)
        try:
            repo = open_repo(path)
            if repo is not None:
                self._fetch(repo, ORIGIN)
                self._ensure_upstream(repo)
            else:
                repo = self._clone(path)
                self._ensure_upstream(repo)
            self._fetch(repo, UPSTREAM)
            self._reset_to_upstream(repo)
        except GitCommandError as e:
            raise SyncError(
                f"git {_command_name(e)} failed in {path}",
                suggestion="Check network access and that the token can read the fork.",
                detail=str(e)[-2000:],
            )

        logger.info("%s is at %s/%s (%s)", path, UPSTREAM, base, repo.head.commit.hexsha[:12])
        return path

    def _clone(self, path: Path) -> Repo:
        fork_url = self.github.find_fork() if self.github else None
        timeout = self.config.command_timeout
        if fork_url:
            logger.info("Cloning fork %s", fork_url)
            try:
                return clone_repo(fork_url, path, env=self.env, timeout=timeout)
            except GitCommandError as e:
                logger.info("Fork not found, cloning upstream... (%s)", e.status)
        logger.info("Cloning %s", self.config.upstream_url)
        return clone_repo(self.config.upstream_url, path, env=self.env, timeout=timeout)

    def _ensure_upstream(self, repo: Repo) -> None:
        url = self.config.upstream_url
        ensure_created(lambda: repo.git.remote("add", UPSTREAM, url))
        if repo.remote(UPSTREAM).url != url:
            repo.git.remote("set-url", UPSTREAM, url)

    def _fetch(self, repo: Repo, remote: str) -> None:
        logger.debug("Fetching %s", remote)
        with repo.git.custom_environment(**self.env):
            repo.git.fetch(remote, kill_after_timeout=self.config.command_timeout)

    def _reset_to_upstream(self, repo: Repo) -> None:
        base = self.config.base_branch
        ref = f"{UPSTREAM}/{base}"
        if base in repo.heads:
            repo.git.checkout("-f", base)
        else:
            repo.git.checkout("-f", "-b", base, ref)
        repo.git.reset("--hard", ref)
        repo.git.clean("-fd")


def _command_name(error: GitCommandError) -> str:
    command = error.command
    if isinstance(command, (list, tuple)) and len(command) > 1:
        return str(command[1])
    return str(command)
