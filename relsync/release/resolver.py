"""Version resolution against the upstream project's release feed."""

from __future__ import annotations

import logging

import httpx

from relsync.config import SyncConfig
from relsync.errors import ResolutionError

logger = logging.getLogger(__name__)


class VersionResolver:
    """Determines the version tag to promote."""

    def __init__(self, config: SyncConfig, client: httpx.Client | None = None):
        self.config = config
        self._client = client

    def resolve(self, explicit_version: str | None = None) -> str:
        """Return ``explicit_version`` unchanged, or the latest release tag.

        The tag format of an explicit version is not validated.
        """
        if explicit_version:
            return explicit_version

        project = self.config.release_project
        url = f"{self.config.github_api}/repos/{project}/releases/latest"
        logger.info("Fetching latest %s release...", project)

        headers = {"Accept": "application/vnd.github+json"}
        if self.config.github_token:
            headers["Authorization"] = f"Bearer {self.config.github_token}"

        try:
            client = self._client or httpx.Client(timeout=self.config.http_timeout)
            try:
                resp = client.get(url, headers=headers)
                resp.raise_for_status()
                data = resp.json()
            finally:
                if self._client is None:
                    client.close()
        except httpx.HTTPStatusError as exc:
            raise ResolutionError(
                f"Release feed for {project} returned HTTP {exc.response.status_code}",
                suggestion="Pass --version explicitly or check the project name.",
                detail=exc.response.text[:500],
            )
        except httpx.RequestError as exc:
            raise ResolutionError(
                f"Failed to reach the release feed for {project}: {exc}",
                suggestion="Check network access or pass --version explicitly.",
            )
        except ValueError as exc:
            raise ResolutionError(f"Release feed for {project} returned invalid JSON: {exc}")

        tag = data.get("tag_name") if isinstance(data, dict) else None
        if not tag:
            raise ResolutionError(
                f"Could not fetch latest version of {project}: response has no tag_name",
                suggestion="Pass --version explicitly.",
                detail=data,
            )
        return tag
