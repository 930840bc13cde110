"""Data model shared by the pipeline stages."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from relsync.errors import DigestError

DIGEST_PATTERN = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[0-9a-fA-F]+$")

DRY_RUN_DIGEST = "sha256:" + "0" * 64


def is_valid_digest(digest: str) -> bool:
    """True when ``digest`` has the ``<algorithm>:<hex>`` shape."""
    return bool(digest) and DIGEST_PATTERN.match(digest) is not None


def strip_version_prefix(version: str) -> str:
    """Drop one leading ``v`` from a tag (``v2026.1.24`` -> ``2026.1.24``)."""
    return version[1:] if version.startswith("v") else version


@dataclass(frozen=True)
class ReleaseTarget:
    """The version being promoted and the digest of its published image."""

    version: str
    digest: str

    def __post_init__(self) -> None:
        if not is_valid_digest(self.digest):
            raise DigestError(
                f"Digest {self.digest!r} is not of the form <algorithm>:<hex>",
                suggestion="Pass a digest such as sha256:0123abcd...",
            )

    @property
    def clean_version(self) -> str:
        return strip_version_prefix(self.version)

    def image_ref(self, image_name: str) -> str:
        """Tag-plus-digest reference, e.g. ``ghcr.io/x/y:v1.2@sha256:...``."""
        return f"{image_name}:{self.version}@{self.digest}"


class StageOutcome(Enum):
    """Outcome of a single pipeline stage."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FATAL_FAILURE = "fatal_failure"


class PushOutcome(Enum):
    SAFE_PUSHED = "safe_pushed"
    FORCED_PUSHED = "forced_pushed"
    FAILED = "failed"


class ProposalStatus(Enum):
    CREATED = "created"
    UPDATED = "updated"
    NO_OP = "no_op"
    DRY_RUN = "dry_run"


@dataclass
class ProposalOutcome:
    """Result of submitting the change proposal for a branch."""

    status: ProposalStatus
    branch: str
    push: PushOutcome | None = None
    number: int | None = None
    url: str = ""

    def summary(self) -> str:
        if self.status == ProposalStatus.NO_OP:
            return f"No changes to commit on {self.branch}"
        if self.status == ProposalStatus.DRY_RUN:
            return f"Would create or update a pull request for {self.branch}"
        verb = "Created" if self.status == ProposalStatus.CREATED else "Updated"
        ref = f"#{self.number}" if self.number is not None else self.branch
        return f"{verb} pull request {ref}" + (f" ({self.url})" if self.url else "")


@dataclass
class FieldChange:
    """A single rewritten descriptor line."""

    path: Path
    field: str
    old: str
    new: str

    @property
    def changed(self) -> bool:
        return self.old != self.new


@dataclass
class PatchResult:
    """What the descriptor patcher did (or would do in a dry run)."""

    app_dir: Path
    changes: list[FieldChange] = field(default_factory=list)
    seeded_from_template: bool = False
    written: bool = False

    @property
    def has_changes(self) -> bool:
        return self.seeded_from_template or any(c.changed for c in self.changes)
