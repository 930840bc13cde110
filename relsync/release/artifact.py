"""Artifact identification: build and publish the image, or accept a digest."""

from __future__ import annotations

import json
import logging
import shlex

from relsync.config import SyncConfig
from relsync.errors import BuildError, ConfigurationError, DigestError
from relsync.models import DRY_RUN_DIGEST, is_valid_digest
from relsync.utils.logging import DRY_RUN_PREFIX
from relsync.utils.process import Runner, run_checked, run_command

logger = logging.getLogger(__name__)


class ArtifactLocator:
    """Obtains the content digest of the image for a version.

    This is the only component that publishes to the registry. Republishing a
    version overwrites its tag; concurrent runs on the same tag are
    last-write-wins.
    """

    def __init__(self, config: SyncConfig, runner: Runner = run_command):
        self.config = config
        self.runner = runner

    def locate(
        self,
        version: str,
        skip_build: bool = False,
        supplied_digest: str = "",
        dry_run: bool = False,
    ) -> str:
        if skip_build:
            if not supplied_digest:
                raise ConfigurationError(
                    "--skip-build requires --digest",
                    suggestion="Pass the digest of an already published image with --digest.",
                )
            if not is_valid_digest(supplied_digest):
                raise ConfigurationError(
                    f"Supplied digest {supplied_digest!r} is not of the form <algorithm>:<hex>",
                )
            logger.info("Using existing digest: %s", supplied_digest)
            return supplied_digest

        if dry_run:
            logger.info("%s Would build: %s", DRY_RUN_PREFIX, shlex.join(self.build_command(version)))
            return DRY_RUN_DIGEST

        self._ensure_buildx()
        logger.info("Building multi-arch image for %s...", version)
        run_checked(
            self.runner,
            self.build_command(version),
            BuildError,
            cwd=self.config.build_context,
            timeout=self.config.command_timeout,
            capture=False,
            suggestion="Check the build output above and your registry login.",
        )
        return self.inspect_digest(version)

    def build_command(self, version: str) -> list[str]:
        image = self.config.image_name
        return [
            "docker", "buildx", "build",
            "--platform", ",".join(self.config.platforms),
            "--build-arg", f"{self.config.build_arg}={version}",
            "-t", f"{image}:{version}",
            "-t", f"{image}:latest",
            "--push",
            str(self.config.build_context),
        ]

    def inspect_digest(self, version: str) -> str:
        """Read the manifest digest of the just-published tag from the registry."""
        ref = f"{self.config.image_name}:{version}"
        proc = run_checked(
            self.runner,
            ["docker", "buildx", "imagetools", "inspect", ref, "--format", "{{json .Manifest}}"],
            DigestError,
            timeout=self.config.command_timeout,
            suggestion=f"Check that {ref} was pushed.",
        )
        try:
            manifest = json.loads(proc.stdout)
        except ValueError as exc:
            raise DigestError(f"Could not decode manifest for {ref}: {exc}", detail=proc.stdout[:500])

        digest = manifest.get("digest", "") if isinstance(manifest, dict) else ""
        if not is_valid_digest(digest):
            raise DigestError(
                f"Failed to get a valid digest for {ref} (got {digest!r})",
                suggestion="The registry response may be partial; re-run the inspect manually.",
            )
        logger.info("Image digest: %s", digest)
        return digest

    def _ensure_buildx(self) -> None:
        run_checked(
            self.runner,
            ["docker", "buildx", "version"],
            BuildError,
            timeout=self.config.command_timeout,
            suggestion="Run: docker buildx create --name multiarch --use",
        )
