"""Structured error catalog for the release sync pipeline.

Every error names the stage that failed, a human message and a suggested
fix. All of them are terminal for the current run.
"""

from __future__ import annotations

from typing import Any


class ReleaseSyncError(Exception):
    """Base error with structured code, stage and suggestion."""

    code = "RELEASE_SYNC_ERROR"
    stage = "pipeline"

    def __init__(self, message: str, suggestion: str = "", detail: Any = None):
        self.message = message
        self.suggestion = suggestion
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "error_code": self.code,
            "stage": self.stage,
            "message": self.message,
        }
        if self.suggestion:
            d["suggestion"] = self.suggestion
        if self.detail:
            d["detail"] = self.detail
        return d


class ConfigurationError(ReleaseSyncError):
    code = "CONFIGURATION_INVALID"
    stage = "configuration"


class ResolutionError(ReleaseSyncError):
    code = "VERSION_RESOLUTION_FAILED"
    stage = "resolve"


class BuildError(ReleaseSyncError):
    code = "IMAGE_BUILD_FAILED"
    stage = "build"


class DigestError(ReleaseSyncError):
    code = "IMAGE_DIGEST_INVALID"
    stage = "build"


class SyncError(ReleaseSyncError):
    code = "REPOSITORY_SYNC_FAILED"
    stage = "sync"


class DescriptorError(ReleaseSyncError):
    code = "DESCRIPTOR_INVALID"
    stage = "patch"


class VerifyError(ReleaseSyncError):
    code = "LINT_FAILED"
    stage = "verify"


class ProposalError(ReleaseSyncError):
    code = "PROPOSAL_FAILED"
    stage = "propose"
