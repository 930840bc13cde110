"""Shared fixtures: local git hosting, app descriptors, a fake GitHub API."""

import subprocess
from dataclasses import dataclass
from pathlib import Path

import pytest
from git import Actor, Repo

from relsync.config import SyncConfig

OLD_DIGEST = "sha256:" + "a" * 64
NEW_DIGEST = "sha256:" + "deadbeef" * 8

COMPOSE_YML = """version: "3.7"

services:
  app_proxy:
    environment:
      APP_HOST: clawdbot_web_1
      APP_PORT: 18789

  web:
    # pinned image, do not edit by hand
    image: ghcr.io/harmalh/clawdbot-umbrel:v2026.1.0@{digest}
    restart: on-failure
    volumes:
      - ${{APP_DATA_DIR}}/data:/data
""".format(digest=OLD_DIGEST)

MANIFEST_YML = """manifestVersion: 1
id: clawdbot
category: ai
name: Clawdbot
version: "2026.1.0"
tagline: Personal AI assistant
# keep the notes short
releaseNotes: "Initial release"
port: 18789
submitter: harmalh
"""

ACTOR = Actor("Test Author", "author@example.com")


def write_app(root: Path, app_id: str = "clawdbot") -> Path:
    app_dir = root / app_id
    app_dir.mkdir(parents=True, exist_ok=True)
    (app_dir / "docker-compose.yml").write_text(COMPOSE_YML)
    (app_dir / "umbrel-app.yml").write_text(MANIFEST_YML)
    return app_dir


@dataclass
class Hosting:
    """Bare repositories laid out like ``<host>/<owner>/<name>.git``."""

    root: Path
    upstream: Path
    fork: Path
    scratch: Path

    def commit_upstream(self, relpath: str, content: str, message: str = "Upstream change") -> str:
        """Push a new commit to upstream master and return its sha."""
        clone_dir = self.scratch / f"clone-{len(list(self.scratch.iterdir()))}"
        clone = Repo.clone_from(str(self.upstream), str(clone_dir))
        target = clone_dir / relpath
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        clone.index.add([relpath])
        commit = clone.index.commit(message, author=ACTOR, committer=ACTOR)
        clone.git.push("origin", "master")
        return commit.hexsha


@pytest.fixture(autouse=True)
def isolated_git(tmp_path, monkeypatch):
    """Keep the developer's global git config out of the tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(home / ".gitconfig"))
    monkeypatch.delenv("UMBREL_APPS_PAT", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)


@pytest.fixture
def hosting(tmp_path) -> Hosting:
    seed_dir = tmp_path / "seed"
    seed = Repo.init(seed_dir)
    (seed_dir / "README.md").write_text("# umbrel-apps\n")
    write_app(seed_dir, "clawdbot")
    seed.index.add(["README.md", "clawdbot/docker-compose.yml", "clawdbot/umbrel-app.yml"])
    seed.index.commit("Initial catalog", author=ACTOR, committer=ACTOR)
    seed.git.branch("-M", "master")

    root = tmp_path / "hosting"
    upstream = root / "getumbrel" / "umbrel-apps.git"
    fork = root / "octocat" / "umbrel-apps.git"
    Repo.clone_from(str(seed_dir), str(upstream), bare=True)
    Repo.clone_from(str(seed_dir), str(fork), bare=True)

    scratch = tmp_path / "scratch"
    scratch.mkdir()
    return Hosting(root=root, upstream=upstream, fork=fork, scratch=scratch)


@pytest.fixture
def template_dir(tmp_path) -> Path:
    templates = tmp_path / "templates"
    write_app(templates, "newapp")
    write_app(templates, "clawdbot")
    return templates


@pytest.fixture
def make_config(tmp_path, hosting, template_dir):
    def _make(**overrides) -> SyncConfig:
        values = dict(
            work_dir=tmp_path / "work",
            git_host=str(hosting.root),
            upstream_repo="getumbrel/umbrel-apps",
            template_dir=template_dir,
            build_context=tmp_path,
        )
        values.update(overrides)
        return SyncConfig(**values)

    return _make


class FakeGitHub:
    """In-memory stand-in for ``GitHubClient``."""

    def __init__(self, fork_url: str | None = None, login: str = "octocat"):
        self.fork_url = fork_url
        self.login = login
        self.pulls: list[dict] = []
        self.created: list[dict] = []
        self.authenticated = True

    def current_user(self) -> str:
        return self.login

    def find_fork(self) -> str | None:
        return self.fork_url

    def list_open_pulls(self, repo: str, head: str) -> list[dict]:
        return [p for p in self.pulls if p["head"] == head and p["state"] == "open"]

    def create_pull(self, repo: str, base: str, head: str, title: str, body: str) -> dict:
        number = len(self.pulls) + 1
        pr = {
            "number": number,
            "head": head,
            "base": base,
            "title": title,
            "body": body,
            "state": "open",
            "html_url": f"https://github.com/{repo}/pull/{number}",
        }
        self.pulls.append(pr)
        self.created.append(pr)
        return pr

    def view_pull(self, repo: str, number: int) -> dict:
        return next(p for p in self.pulls if p["number"] == number)


@pytest.fixture
def fake_github(hosting) -> FakeGitHub:
    return FakeGitHub(fork_url=str(hosting.fork))


class FakeRunner:
    """Records commands and answers them from a prefix table."""

    def __init__(self, responses: dict[tuple, tuple[int, str]] | None = None):
        self.responses = responses or {}
        self.calls: list[list[str]] = []

    def __call__(self, args, cwd=None, timeout=None, capture=True):
        args = list(args)
        self.calls.append(args)
        for prefix, (code, stdout) in self.responses.items():
            if tuple(args[: len(prefix)]) == prefix:
                return subprocess.CompletedProcess(args, code, stdout=stdout, stderr="")
        return subprocess.CompletedProcess(args, 0, stdout="", stderr="")
