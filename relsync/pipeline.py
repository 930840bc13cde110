"""Release pipeline: resolve → locate → sync → patch → lint → propose.

Strictly sequential. The first stage error halts the run; nothing is
retried. ``dry_run`` is handed to every stage so each one reports what it
would do without mutating anything outside the process.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from relsync.config import SyncConfig
from relsync.descriptors.patcher import DescriptorPatcher
from relsync.errors import ReleaseSyncError
from relsync.models import PatchResult, ProposalOutcome, ReleaseTarget, StageOutcome
from relsync.release.artifact import ArtifactLocator
from relsync.release.resolver import VersionResolver
from relsync.repo.github import GitHubClient
from relsync.repo.proposer import ChangeProposer
from relsync.repo.sync import RepositorySync
from relsync.utils.logging import step_timer
from relsync.utils.requirements import ensure_requirements
from relsync.verify.lint import AppLinter, LintResult

logger = logging.getLogger(__name__)

STAGES = ("resolve", "build", "sync", "patch", "verify", "propose")


@dataclass
class PipelineResult:
    """Everything a run produced, for the CLI summary."""

    target: ReleaseTarget | None = None
    repo_path: Path | None = None
    patch: PatchResult | None = None
    lint: LintResult | None = None
    proposal: ProposalOutcome | None = None
    stages: dict[str, StageOutcome] = field(default_factory=dict)
    failed_stage: str = ""

    @property
    def succeeded(self) -> bool:
        return not self.failed_stage


class ReleasePipeline:
    """Sequences the pipeline stages for one configuration.

    Collaborators default to the real implementations built from ``config``;
    tests pass fakes.
    """

    def __init__(
        self,
        config: SyncConfig,
        github: GitHubClient | None = None,
        resolver: VersionResolver | None = None,
        locator: ArtifactLocator | None = None,
        syncer: RepositorySync | None = None,
        patcher: DescriptorPatcher | None = None,
        linter: AppLinter | None = None,
        proposer: ChangeProposer | None = None,
        check_tools: bool = True,
    ):
        self.config = config
        self.github = github
        self.resolver = resolver or VersionResolver(config)
        self.locator = locator or ArtifactLocator(config)
        self.syncer = syncer or RepositorySync(config, github)
        self.patcher = patcher or DescriptorPatcher(config)
        self.linter = linter or AppLinter(config)
        self.proposer = proposer or ChangeProposer(config, github)
        self.check_tools = check_tools
        self.result = PipelineResult()

    def run(self) -> PipelineResult:
        """Run every stage; raise the first stage error after recording it."""
        cfg = self.config
        self.result = result = PipelineResult(stages={s: StageOutcome.SKIPPED for s in STAGES})

        cfg.validate()
        if self.check_tools:
            ensure_requirements(cfg)

        with self._stage("resolve"):
            version = self.resolver.resolve(cfg.version)
            logger.info("Target version: %s", version)

        with self._stage("build"):
            digest = self.locator.locate(version, cfg.skip_build, cfg.digest, cfg.dry_run)
            result.target = ReleaseTarget(version=version, digest=digest)
        if cfg.skip_build:
            result.stages["build"] = StageOutcome.SKIPPED

        with self._stage("sync"):
            result.repo_path = self.syncer.sync(cfg.work_dir, dry_run=cfg.dry_run)

        with self._stage("patch"):
            result.patch = self.patcher.patch(result.repo_path, result.target, dry_run=cfg.dry_run)

        if not cfg.skip_verify:
            with self._stage("verify"):
                result.lint = self.linter.lint(result.repo_path, dry_run=cfg.dry_run)

        if cfg.create_pr:
            with self._stage("propose"):
                result.proposal = self.proposer.propose(
                    result.repo_path, result.target, dry_run=cfg.dry_run
                )

        return result

    @contextmanager
    def _stage(self, name: str) -> Iterator[None]:
        with step_timer(name):
            try:
                yield
            except ReleaseSyncError:
                self.result.stages[name] = StageOutcome.FATAL_FAILURE
                self.result.failed_stage = name
                raise
        self.result.stages[name] = StageOutcome.SUCCESS
