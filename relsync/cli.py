"""relsync CLI — the main entry point for the release sync pipeline."""

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from relsync import __version__
from relsync.errors import ReleaseSyncError

console = Console()


@click.group()
@click.version_option(version=__version__)
def main():
    """relsync — promote a release into the Umbrel app store.

    Resolve the release version, build or locate the image digest, sync the
    umbrel-apps fork with upstream, patch the app descriptors and open (or
    reuse) one pull request per version.
    """


def _fail(error: ReleaseSyncError) -> None:
    console.print(f"[red]ERROR[/] ({error.stage}) {escape(error.message)}")
    if error.detail:
        console.print(f"  [dim]{escape(error.detail)}[/]")
    if error.suggestion:
        console.print(f"  [yellow]hint:[/] {escape(error.suggestion)}")
    raise SystemExit(1)


# ── Run ──────────────────────────────────────────────────────────────


@main.command()
@click.option("--version", "-v", "version", default=None, help="Version to promote (default: latest release)")
@click.option("--digest", "-d", default=None, help="Existing image digest (with --skip-build)")
@click.option("--skip-build", "-s", is_flag=True, help="Skip the image build (requires --digest)")
@click.option("--skip-lint", "-l", "skip_verify", is_flag=True, help="Skip umbrel lint")
@click.option("--create-pr", "-p", is_flag=True, help="Create/update the PR to the upstream repo")
@click.option("--dry-run", "-n", is_flag=True, help="Show what would be done without making changes")
@click.option("--work-dir", "-w", default=None, type=click.Path(path_type=Path), help="Where the umbrel-apps copy lives")
@click.option("--image", "image_name", default=None, help="Image name (default: $IMAGE_NAME)")
@click.option("--app-id", default=None, help="App directory in umbrel-apps")
@click.option("--app-name", default=None, help="Display name used in notes and PR titles")
@click.option("--upstream-repo", default=None, help="owner/name of the upstream app store")
@click.option("--base-branch", default=None, help="Upstream branch to track")
@click.option("--release-project", default=None, help="owner/name whose latest release is promoted")
@click.option("--template-dir", default=None, type=click.Path(path_type=Path), help="Directory holding <app-id>/ templates")
@click.option("--build-context", default=None, type=click.Path(path_type=Path), help="Docker build context")
@click.option("--platforms", default=None, help="Comma-separated build platforms")
@click.option("--timeout", "command_timeout", default=None, type=float, help="Deadline in seconds for each external command")
@click.option("--web", is_flag=True, help="Open an existing PR in the browser")
@click.option("--verbose", is_flag=True, help="Debug logging")
def run(web: bool, platforms: str | None, **options):
    """Run the full update pipeline."""
    from relsync.config import SyncConfig
    from relsync.pipeline import ReleasePipeline
    from relsync.repo.github import GitHubClient
    from relsync.utils.logging import configure_logging

    if platforms:
        options["platforms"] = tuple(p.strip() for p in platforms.split(",") if p.strip())

    config = SyncConfig.from_env(**options)
    configure_logging(config.verbose)
    console.print(f"\n[bold blue]relsync[/] — {config.app_name} Umbrel update\n")

    with GitHubClient(config) as github:
        pipeline = ReleasePipeline(config, github=github)
        try:
            result = pipeline.run()
        except ReleaseSyncError as e:
            _print_stages(pipeline.result.stages)
            _fail(e)

    _print_stages(result.stages)

    if result.target:
        console.print(f"  Version: [cyan]{result.target.version}[/]")
        console.print(f"  Digest:  [cyan]{result.target.digest}[/]")

    if result.patch and config.dry_run:
        table = Table(title="Planned descriptor changes")
        table.add_column("File", style="dim")
        table.add_column("Field", style="cyan")
        table.add_column("New value", style="green")
        for change in result.patch.changes:
            table.add_row(change.path.name, change.field, change.new)
        console.print(table)

    if result.proposal:
        console.print(f"\n  [green]PR:[/] {result.proposal.summary()}")
        if web and result.proposal.url:
            click.launch(result.proposal.url)

    lines = []
    if not config.create_pr and result.repo_path:
        lines.append(f"Review changes in: {result.repo_path / config.app_id}/")
        lines.append("Run with --create-pr to open a PR")
    lines.append("Test locally by installing on your Umbrel")
    console.print(Panel("\n".join(f"- {line}" for line in lines), title="Next steps"))


def _print_stages(stages: dict) -> None:
    if not stages:
        return
    table = Table(title="Stages")
    table.add_column("Stage", style="cyan")
    table.add_column("Outcome")
    colors = {"success": "green", "skipped": "yellow", "fatal_failure": "red"}
    for name, outcome in stages.items():
        color = colors.get(outcome.value, "white")
        table.add_row(name, f"[{color}]{outcome.value}[/]")
    console.print(table)


# ── Latest ───────────────────────────────────────────────────────────


@main.command()
@click.option("--release-project", default=None, help="owner/name to query")
def latest(release_project: str | None):
    """Print the latest release tag of the upstream project."""
    from relsync.config import SyncConfig
    from relsync.release.resolver import VersionResolver

    config = SyncConfig.from_env(release_project=release_project)
    try:
        console.print(VersionResolver(config).resolve())
    except ReleaseSyncError as e:
        _fail(e)


# ── Patch ────────────────────────────────────────────────────────────


@main.command()
@click.argument("repo_path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--version", "-v", "version", required=True, help="Version tag to write")
@click.option("--digest", "-d", required=True, help="Image digest to pin")
@click.option("--app-id", default=None, help="App directory inside REPO_PATH")
@click.option("--image", "image_name", default=None, help="Image name (default: $IMAGE_NAME)")
@click.option("--template-dir", default=None, type=click.Path(path_type=Path), help="Directory holding <app-id>/ templates")
@click.option("--dry-run", "-n", is_flag=True, help="Show the changes without writing")
def patch(repo_path: Path, version: str, digest: str, dry_run: bool, **options):
    """Patch the descriptors of an existing umbrel-apps checkout.

    No build, git or GitHub calls are made.
    """
    from relsync.config import SyncConfig
    from relsync.descriptors.patcher import DescriptorPatcher
    from relsync.models import ReleaseTarget
    from relsync.utils.logging import configure_logging

    config = SyncConfig.from_env(**options)
    configure_logging()
    try:
        target = ReleaseTarget(version=version, digest=digest)
        result = DescriptorPatcher(config).patch(repo_path, target, dry_run=dry_run)
    except ReleaseSyncError as e:
        _fail(e)

    table = Table(title=f"{config.app_id} descriptors")
    table.add_column("File", style="dim")
    table.add_column("Field", style="cyan")
    table.add_column("Old")
    table.add_column("New", style="green")
    for change in result.changes:
        table.add_row(change.path.name, change.field, change.old, change.new)
    console.print(table)
    if not result.has_changes:
        console.print("[yellow]Descriptors already up to date.[/]")


# ── Check ────────────────────────────────────────────────────────────


@main.command()
@click.option("--skip-build", "-s", is_flag=True, help="Docker will not be needed")
@click.option("--skip-lint", "-l", "skip_verify", is_flag=True, help="npm/umbrel will not be needed")
def check(skip_build: bool, skip_verify: bool):
    """Report external tools a run would need but cannot find."""
    from relsync.config import SyncConfig
    from relsync.utils.requirements import check_requirements

    missing = check_requirements(SyncConfig.from_env(skip_build=skip_build, skip_verify=skip_verify))
    if missing:
        console.print(f"[red]Missing required commands:[/] {' '.join(missing)}")
        raise SystemExit(1)
    console.print("[green]All required commands found.[/]")


if __name__ == "__main__":
    main()
