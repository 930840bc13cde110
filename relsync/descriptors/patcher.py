"""Descriptor patching: field-level rewrites of the two app descriptors.

Only the ``image`` lines of ``docker-compose.yml`` and the ``version`` and
``releaseNotes`` lines of ``umbrel-app.yml`` change. Everything else,
comments, ordering and line endings included, stays byte-for-byte.
"""

from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Callable
from datetime import date
from pathlib import Path

import yaml

from relsync.config import SyncConfig
from relsync.errors import DescriptorError
from relsync.models import FieldChange, PatchResult, ReleaseTarget
from relsync.utils.logging import DRY_RUN_PREFIX

logger = logging.getLogger(__name__)

COMPOSE_FILE = "docker-compose.yml"
MANIFEST_FILE = "umbrel-app.yml"

IMAGE_LINE = re.compile(r"^([ \t]*image:[ \t]*)([^\r\n]*)(?=\r?$)", re.MULTILINE)
VERSION_LINE = re.compile(r"^(version:)([^\r\n]*)(?=\r?$)", re.MULTILINE)
RELEASE_NOTES_LINE = re.compile(r"^(releaseNotes:)([^\r\n]*)(?=\r?$)", re.MULTILINE)


def release_notes(app_name: str, version: str, day: date) -> str:
    return f"Updated to {app_name} {version} ({day.isoformat()})"


def rewrite_lines(
    text: str, pattern: re.Pattern, new_value: str, path: Path, field: str
) -> tuple[str, list[FieldChange]]:
    """Replace the value part of every line ``pattern`` matches.

    Group 1 of ``pattern`` is the kept prefix (indentation and key), group 2
    the old value.
    """
    changes: list[FieldChange] = []

    def _sub(match: re.Match) -> str:
        changes.append(FieldChange(path=path, field=field, old=match.group(2).strip(), new=new_value))
        prefix = match.group(1)
        if not prefix[-1:].isspace() and not new_value[:1].isspace():
            prefix += " "
        return prefix + new_value

    return pattern.sub(_sub, text), changes


class DescriptorPatcher:
    """Applies idempotent version/digest edits to one app's descriptors."""

    def __init__(self, config: SyncConfig, today: Callable[[], date] = date.today):
        self.config = config
        self.today = today

    def patch(self, repo_path: str | Path, target: ReleaseTarget, dry_run: bool = False) -> PatchResult:
        app_dir = Path(repo_path) / self.config.app_id
        result = PatchResult(app_dir=app_dir)
        logger.info("Updating app files for version %s...", target.version)

        source_dir = app_dir
        if not app_dir.is_dir():
            template = Path(self.config.template_dir) / self.config.app_id
            if not template.is_dir():
                raise DescriptorError(
                    f"{app_dir} does not exist and no template found at {template}",
                    suggestion="Pass --template-dir pointing at the directory holding the app template.",
                )
            result.seeded_from_template = True
            if dry_run:
                logger.info("%s Would copy app template from %s", DRY_RUN_PREFIX, template)
                source_dir = template
            else:
                logger.info("Copying app template from %s", template)
                try:
                    shutil.copytree(template, app_dir)
                except OSError as e:
                    raise DescriptorError(
                        f"Could not copy app template {template} to {app_dir}",
                        detail=str(e),
                    )

        compose_text = _read(source_dir / COMPOSE_FILE)
        manifest_text = _read(source_dir / MANIFEST_FILE)

        new_compose, compose_changes = self.patch_compose(compose_text, target, app_dir / COMPOSE_FILE)
        new_manifest, manifest_changes = self.patch_manifest(manifest_text, target, app_dir / MANIFEST_FILE)
        result.changes = compose_changes + manifest_changes

        if dry_run:
            logger.info("%s Would update:", DRY_RUN_PREFIX)
            for change in result.changes:
                logger.info("%s   - %s: %s: %s", DRY_RUN_PREFIX, change.path, change.field, change.new)
            return result

        _write_if_changed(app_dir / COMPOSE_FILE, compose_text, new_compose)
        _write_if_changed(app_dir / MANIFEST_FILE, manifest_text, new_manifest)
        result.written = True
        logger.info("Updated app files in %s", app_dir)
        return result

    def patch_compose(self, text: str, target: ReleaseTarget, path: Path) -> tuple[str, list[FieldChange]]:
        new_text, changes = rewrite_lines(
            text, IMAGE_LINE, target.image_ref(self.config.image_name), path, "image"
        )
        if not changes:
            raise DescriptorError(f"No image: line found in {path}")
        _check_yaml(new_text, path)
        return new_text, changes

    def patch_manifest(self, text: str, target: ReleaseTarget, path: Path) -> tuple[str, list[FieldChange]]:
        new_text, changes = rewrite_lines(
            text, VERSION_LINE, f' "{target.clean_version}"', path, "version"
        )
        if not changes:
            raise DescriptorError(f"No top-level version: line found in {path}")

        notes = release_notes(self.config.app_name, target.version, self.today())
        new_text, notes_changes = rewrite_lines(
            new_text, RELEASE_NOTES_LINE, f' "{notes}"', path, "releaseNotes"
        )
        if not notes_changes:
            logger.warning("No top-level releaseNotes: line in %s; leaving notes unset", path)

        _check_yaml(new_text, path)
        for change in changes + notes_changes:
            change.new = change.new.strip()
        return new_text, changes + notes_changes


def _read(path: Path) -> str:
    if not path.is_file():
        raise DescriptorError(f"Descriptor file missing: {path}")
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def _write_if_changed(path: Path, old: str, new: str) -> None:
    if old == new:
        return
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(new)


def _check_yaml(text: str, path: Path) -> None:
    try:
        yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DescriptorError(f"{path} is not valid YAML after patching: {e}")
