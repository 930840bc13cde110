"""Tests for repository sync against local bare repositories."""

import shutil

import pytest
from git import Repo

from conftest import FakeGitHub
from relsync.errors import SyncError
from relsync.repo.sync import RepositorySync


def _upstream_tip(hosting) -> str:
    return Repo(hosting.upstream).commit("master").hexsha


def test_fresh_sync_clones_fork_and_adds_upstream(make_config, hosting, fake_github):
    config = make_config()
    path = RepositorySync(config, fake_github).sync()

    repo = Repo(path)
    assert path == config.work_dir / "umbrel-apps"
    assert repo.remote("origin").url == str(hosting.fork)
    assert repo.remote("upstream").url == config.upstream_url
    assert repo.active_branch.name == "master"
    assert repo.head.commit.hexsha == _upstream_tip(hosting)


def test_fresh_sync_without_fork_clones_upstream(make_config, hosting):
    config = make_config()
    path = RepositorySync(config, FakeGitHub(fork_url=None)).sync()

    repo = Repo(path)
    assert repo.remote("origin").url == config.upstream_url
    assert repo.remote("upstream").url == config.upstream_url


def test_unreachable_fork_falls_back_to_upstream(make_config, hosting, tmp_path):
    config = make_config()
    github = FakeGitHub(fork_url=str(tmp_path / "nowhere" / "umbrel-apps.git"))

    path = RepositorySync(config, github).sync()

    assert Repo(path).remote("origin").url == config.upstream_url


def test_resync_discards_local_drift(make_config, hosting, fake_github):
    config = make_config()
    syncer = RepositorySync(config, fake_github)
    path = syncer.sync()

    (path / "README.md").write_text("local edit\n")
    (path / "stray.txt").write_text("untracked\n")
    repo = Repo(path)
    repo.git.checkout("-b", "scratch")

    syncer.sync()

    assert repo.active_branch.name == "master"
    assert (path / "README.md").read_text() == "# umbrel-apps\n"
    assert not (path / "stray.txt").exists()
    assert not repo.is_dirty(untracked_files=True)


def test_resync_follows_upstream_hard_reset(make_config, hosting, fake_github):
    config = make_config()
    syncer = RepositorySync(config, fake_github)
    path = syncer.sync()

    new_tip = hosting.commit_upstream("other-app/umbrel-app.yml", "id: other-app\n")
    syncer.sync()

    assert Repo(path).head.commit.hexsha == new_tip
    assert (path / "other-app" / "umbrel-app.yml").exists()


def test_resync_restores_missing_upstream_remote(make_config, hosting, fake_github):
    config = make_config()
    syncer = RepositorySync(config, fake_github)
    path = syncer.sync()
    Repo(path).delete_remote("upstream")

    syncer.sync()

    assert Repo(path).remote("upstream").url == config.upstream_url


def test_fetch_failure_is_sync_error(make_config, hosting, fake_github):
    config = make_config()
    syncer = RepositorySync(config, fake_github)
    syncer.sync()
    shutil.rmtree(hosting.upstream)

    with pytest.raises(SyncError) as exc_info:
        syncer.sync()
    assert exc_info.value.stage == "sync"


def test_clone_failure_is_sync_error(make_config, hosting):
    config = make_config(upstream_repo="nobody/umbrel-apps")

    with pytest.raises(SyncError):
        RepositorySync(config, FakeGitHub(fork_url=None)).sync()


def test_dry_run_touches_nothing(make_config, fake_github):
    config = make_config()
    path = RepositorySync(config, fake_github).sync(dry_run=True)

    assert path == config.work_dir / "umbrel-apps"
    assert not config.work_dir.exists()
