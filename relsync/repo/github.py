"""GitHub REST client: the calls the sync and proposal stages need."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from relsync.config import SyncConfig
from relsync.errors import ProposalError

logger = logging.getLogger(__name__)


class GitHubClient:
    """Thin wrapper around ``httpx.Client`` for api.github.com.

    Parameters
    ----------
    config : SyncConfig
        Supplies the API base URL, the token and the HTTP timeout.
    transport : httpx.BaseTransport | None
        Optional transport override (tests pass ``httpx.MockTransport``).
    """

    def __init__(self, config: SyncConfig, transport: httpx.BaseTransport | None = None):
        self.config = config
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if config.github_token:
            headers["Authorization"] = f"Bearer {config.github_token}"
        self._client = httpx.Client(
            base_url=config.github_api,
            headers=headers,
            timeout=config.http_timeout,
            transport=transport,
        )
        self._login: str | None = None

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def authenticated(self) -> bool:
        return bool(self.config.github_token)

    # ── Users and forks ─────────────────────────────────────────────

    def current_user(self) -> str:
        """Login of the authenticated user."""
        if self._login is None:
            self._login = self._request("GET", "/user")["login"]
        return self._login

    def find_fork(self) -> str | None:
        """Clone URL of the caller's fork of the upstream repo, if any.

        Returns None when unauthenticated, when the user has no repository of
        that name, or when the lookup itself fails.
        """
        if not self.authenticated:
            return None
        try:
            login = self.current_user()
            resp = self._client.get(f"/repos/{login}/{self.config.repo_name}")
        except (httpx.HTTPError, ProposalError) as exc:
            logger.warning("Could not look up fork: %s", exc)
            return None
        if resp.status_code == 404:
            return None
        if resp.is_error:
            logger.warning("Fork lookup returned HTTP %s", resp.status_code)
            return None
        try:
            data = resp.json()
        except ValueError:
            logger.warning("Fork lookup returned a non-JSON body")
            return None
        return data.get("clone_url") or f"{self.config.git_host}/{login}/{self.config.repo_name}.git"

    # ── Pull requests ───────────────────────────────────────────────

    def list_open_pulls(self, repo: str, head: str) -> list[dict[str, Any]]:
        """Open pull requests on ``repo`` whose head is ``owner:branch``."""
        return self._request("GET", f"/repos/{repo}/pulls", params={"state": "open", "head": head})

    def create_pull(self, repo: str, base: str, head: str, title: str, body: str) -> dict[str, Any]:
        return self._request(
            "POST",
            f"/repos/{repo}/pulls",
            json={"title": title, "body": body, "head": head, "base": base},
        )

    def view_pull(self, repo: str, number: int) -> dict[str, Any]:
        return self._request("GET", f"/repos/{repo}/pulls/{number}")

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = self._client.request(method, path, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            suggestion = "Check that UMBREL_APPS_PAT is valid and has repo scope."
            if status == 403:
                suggestion = "GitHub API rate limit or permissions; check the token scopes."
            raise ProposalError(
                f"GitHub API {method} {path} returned HTTP {status}",
                suggestion=suggestion,
                detail=exc.response.text[:500],
            )
        except httpx.RequestError as exc:
            raise ProposalError(f"Failed to reach GitHub API ({method} {path}): {exc}")
