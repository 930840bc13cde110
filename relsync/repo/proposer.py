"""Change proposal: commit the patch, push it, keep exactly one open PR.

The branch name is derived from the version (``update-<app>-<version>``),
so re-running for the same version reuses the same branch and the same pull
request. A run that has nothing to commit still pushes a branch the fork is
missing and opens a missing PR; only when both are current is the outcome
``NO_OP``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from git import GitCommandError, Repo

from relsync.config import FALLBACK_GIT_EMAIL, FALLBACK_GIT_NAME, SyncConfig
from relsync.errors import ProposalError
from relsync.models import ProposalOutcome, ProposalStatus, PushOutcome, ReleaseTarget
from relsync.repo.git_ops import (
    config_value,
    ensure_created,
    git_auth_env,
    open_repo,
    remote_branch_sha,
)
from relsync.repo.github import GitHubClient
from relsync.repo.sync import ORIGIN, UPSTREAM
from relsync.utils.logging import DRY_RUN_PREFIX

logger = logging.getLogger(__name__)


def push_branch(
    repo: Repo,
    branch: str,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> PushOutcome:
    """Push ``branch`` to origin: lease-protected first, forced second.

    The lease rejects the push when the remote branch moved since the last
    fetch. Only then is the branch force-pushed with upstream tracking.
    """
    if _try_push(repo, branch, ["--force-with-lease"], env, timeout):
        return PushOutcome.SAFE_PUSHED
    logger.warning("Safe push of %s rejected; falling back to forced push", branch)
    if _try_push(repo, branch, ["--force", "--set-upstream"], env, timeout):
        return PushOutcome.FORCED_PUSHED
    return PushOutcome.FAILED


def _try_push(
    repo: Repo,
    branch: str,
    flags: list[str],
    env: dict[str, str] | None,
    timeout: float | None,
) -> bool:
    try:
        with repo.git.custom_environment(**(env or {})):
            repo.git.push(ORIGIN, branch, *flags, kill_after_timeout=timeout)
    except GitCommandError as e:
        logger.debug("git push %s %s failed: %s", branch, " ".join(flags), e)
        return False
    return True


class ChangeProposer:
    """Commits, pushes and opens (or reuses) the pull request for a version."""

    def __init__(self, config: SyncConfig, github: GitHubClient | None = None):
        self.config = config
        self.github = github
        self.env = git_auth_env(config.github_token, config.git_host)

    def title(self, target: ReleaseTarget) -> str:
        return f"Update {self.config.app_name} to {target.version}"

    def body(self, target: ReleaseTarget) -> str:
        return (
            "## Summary\n\n"
            f"This PR updates the {self.config.app_name} app to version {target.version}.\n\n"
            "## Changes\n\n"
            f"- Updated Docker image to `{target.version}` with digest pinning\n"
            "- Updated app version in umbrel-app.yml\n"
            f"- Image digest: `{target.digest}`\n\n"
            "---\n\n"
            "*Created via relsync*"
        )

    def propose(self, repo_path: str | Path, target: ReleaseTarget, dry_run: bool = False) -> ProposalOutcome:
        branch = self.config.branch_for(target.version)
        logger.info("Creating/updating PR for branch %s...", branch)

        if dry_run:
            logger.info("%s Would commit %s/ and push %s", DRY_RUN_PREFIX, self.config.app_id, branch)
            logger.info("%s Would create PR: %s", DRY_RUN_PREFIX, self.title(target))
            return ProposalOutcome(status=ProposalStatus.DRY_RUN, branch=branch)

        repo = open_repo(Path(repo_path))
        if repo is None:
            raise ProposalError(f"No git repository at {repo_path}")

        try:
            self._ensure_identity(repo)
            self._ensure_branch(repo, branch)
            self._stage(repo)
            committed = bool(repo.index.diff("HEAD"))
            if committed:
                repo.git.commit(
                    "-m", self.title(target),
                    "-m", f"Updated Docker image to {target.version} with digest pinning",
                )
            else:
                logger.info("No changes to commit on %s", branch)
        except GitCommandError as e:
            raise ProposalError(
                f"Could not commit the update on {branch}",
                suggestion="Inspect the working copy; the next run resets it.",
                detail=str(e)[-2000:],
            )

        push = None
        remote_tip = remote_branch_sha(repo, ORIGIN, branch, self.env, self.config.command_timeout)
        if committed or remote_tip != repo.head.commit.hexsha:
            push = push_branch(repo, branch, self.env, self.config.command_timeout)
            if push == PushOutcome.FAILED:
                raise ProposalError(
                    f"Could not push {branch} to {ORIGIN}",
                    suggestion="Check that the token can push to your umbrel-apps fork.",
                )
            logger.info("Pushed %s (%s)", branch, push.value)
        else:
            logger.info("%s/%s already at %s", ORIGIN, branch, remote_tip[:12])
        return self._submit(target, branch, push)

    def _submit(self, target: ReleaseTarget, branch: str, push: PushOutcome | None) -> ProposalOutcome:
        if self.github is None:
            raise ProposalError("Creating a PR needs a GitHub client", suggestion="Export UMBREL_APPS_PAT.")

        upstream = self.config.upstream_repo
        head = f"{self.github.current_user()}:{branch}"
        existing = self.github.list_open_pulls(upstream, head)
        if existing:
            number = existing[0]["number"]
            pr = self.github.view_pull(upstream, number)
            logger.info("PR #%s already exists", number)
            return ProposalOutcome(
                # nothing pushed and the PR is open: the proposal is current
                status=ProposalStatus.UPDATED if push else ProposalStatus.NO_OP,
                branch=branch,
                push=push,
                number=number,
                url=pr.get("html_url", ""),
            )

        pr = self.github.create_pull(
            upstream, self.config.base_branch, head, self.title(target), self.body(target)
        )
        logger.info("PR #%s created", pr.get("number"))
        return ProposalOutcome(
            status=ProposalStatus.CREATED,
            branch=branch,
            push=push,
            number=pr.get("number"),
            url=pr.get("html_url", ""),
        )

    def _ensure_identity(self, repo: Repo) -> None:
        fallback = {"name": FALLBACK_GIT_NAME, "email": FALLBACK_GIT_EMAIL}
        for option, value in fallback.items():
            if not config_value(repo, "user", option):
                with repo.config_writer() as cw:
                    cw.set_value("user", option, value)

    def _ensure_branch(self, repo: Repo, branch: str) -> None:
        start = f"{UPSTREAM}/{self.config.base_branch}"
        ensure_created(
            lambda: repo.git.checkout("-b", branch, start),
            lambda: self._switch_keeping_worktree(repo, branch),
        )

    def _switch_keeping_worktree(self, repo: Repo, branch: str) -> None:
        # HEAD and index move to the existing branch; the patched files stay
        repo.git.symbolic_ref("HEAD", f"refs/heads/{branch}")
        repo.git.reset("--mixed", "-q")

    def _stage(self, repo: Repo) -> None:
        repo.git.add("--", self.config.app_id)
