"""Git operations: authenticated clone, idempotent ensure, repo opening."""

from __future__ import annotations

import base64
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from git import Git, GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

T = TypeVar("T")

ALREADY_EXISTS = "already exists"


def git_auth_env(token: str, host: str = "https://github.com") -> dict[str, str]:
    """Environment that makes git send ``token`` to ``host``.

    The credential lives only in the child process environment; it is never
    embedded in a remote URL or written to ``.git/config``.
    """
    env = {"GIT_TERMINAL_PROMPT": "0"}
    if not token:
        return env
    basic = base64.b64encode(f"x-access-token:{token}".encode()).decode()
    env.update(
        {
            "GIT_CONFIG_COUNT": "1",
            "GIT_CONFIG_KEY_0": f"http.{host.rstrip('/')}/.extraheader",
            "GIT_CONFIG_VALUE_0": f"AUTHORIZATION: basic {basic}",
        }
    )
    return env


def is_already_exists(error: GitCommandError) -> bool:
    return ALREADY_EXISTS in str(error)


def ensure_created(create: Callable[[], T], fallback: Callable[[], T] | None = None) -> T | None:
    """Attempt ``create``; an "already exists" failure counts as success.

    On that failure ``fallback`` runs instead (if given). Every other git
    failure propagates.
    """
    try:
        return create()
    except GitCommandError as e:
        if not is_already_exists(e):
            raise
        return fallback() if fallback else None


def open_repo(path: Path) -> Repo | None:
    """Open the working copy at ``path``, or None if there is none."""
    if not path.is_dir():
        return None
    try:
        return Repo(path)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return None


def clone_repo(
    url: str,
    path: Path,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> Repo:
    """Clone ``url`` into ``path`` (remote named ``origin``)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    git = Git()
    with git.custom_environment(**(env or {})):
        git.clone(url, str(path), kill_after_timeout=timeout)
    return Repo(path)


def config_value(repo: Repo, section: str, option: str) -> str:
    """Effective git config value (any scope), empty string when unset."""
    try:
        return repo.git.config("--get", f"{section}.{option}").strip()
    except GitCommandError:
        return ""


def remote_branch_sha(
    repo: Repo,
    remote: str,
    branch: str,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> str:
    """Commit the remote's ``branch`` points at, empty when absent or unreachable."""
    try:
        with repo.git.custom_environment(**(env or {})):
            out = repo.git.ls_remote(remote, f"refs/heads/{branch}", kill_after_timeout=timeout)
    except GitCommandError:
        return ""
    return out.split()[0] if out.strip() else ""
