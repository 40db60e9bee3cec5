"""Typed failures raised by the synchronization engine."""

from __future__ import annotations

from typing import Any, Dict, Optional


class SyncError(Exception):
    """Base class for every failure the engine reports to callers."""

    code = "sync_error"
    retryable = False

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }


class InvalidSlug(SyncError):
    """Slug does not match the allowed pattern."""

    code = "invalid_slug"

    def __init__(self, slug: str) -> None:
        super().__init__(
            f"Invalid slug {slug!r}: use lowercase letters, digits, '-' and '_', "
            "starting with a letter or digit."
        )
        self.slug = slug


class InvalidPath(SyncError):
    """Operation path is malformed, duplicated, or escapes the repository root."""

    code = "invalid_path"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Invalid path {path!r}: {reason}")
        self.path = path
        self.reason = reason


class NotFound(SyncError):
    """Branch, repository, or object does not exist."""

    code = "not_found"


class Unauthorized(SyncError):
    """Credential was missing, rejected, or lacks permission."""

    code = "unauthorized"


class RateLimited(SyncError):
    """Remote store throttled the request."""

    code = "rate_limited"
    retryable = True

    def __init__(self, message: str = "", retry_after: Optional[float] = None) -> None:
        super().__init__(message or "Remote store rate limit exceeded")
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["retry_after"] = self.retry_after
        return data


class RemoteUnavailable(SyncError):
    """Network failure, timeout, or 5xx from the remote store."""

    code = "remote_unavailable"
    retryable = True


class RemoteRejected(SyncError):
    """Remote store refused a request for a reason not covered above."""

    code = "remote_rejected"

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["status"] = self.status
        return data


class Conflict(SyncError):
    """Conditional ref update found the branch somewhere other than expected."""

    code = "conflict"

    def __init__(self, branch: str, expected: str, actual: Optional[str] = None) -> None:
        detail = f" (now at {actual})" if actual else ""
        super().__init__(f"Branch '{branch}' is no longer at {expected}{detail}")
        self.branch = branch
        self.expected = expected
        self.actual = actual


class StaleBranch(SyncError):
    """The branch advanced while the transaction was being prepared."""

    code = "stale_branch"
    retryable = True

    def __init__(self, branch: str, expected: str, actual: Optional[str] = None) -> None:
        super().__init__(
            f"Branch '{branch}' moved since {expected[:7]} was read; "
            "re-run the change against the new head."
        )
        self.branch = branch
        self.expected = expected
        self.actual = actual


class PartialUploadFailure(SyncError):
    """A blob upload failed, so the whole transaction was abandoned."""

    code = "partial_upload_failure"

    def __init__(self, path: str, cause: SyncError) -> None:
        super().__init__(f"Upload of '{path}' failed: {cause.message}")
        self.path = path
        self.cause = cause

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.cause.retryable

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["path"] = self.path
        data["cause"] = self.cause.to_dict()
        return data


__all__ = [
    "SyncError",
    "InvalidSlug",
    "InvalidPath",
    "NotFound",
    "Unauthorized",
    "RateLimited",
    "RemoteUnavailable",
    "RemoteRejected",
    "Conflict",
    "StaleBranch",
    "PartialUploadFailure",
]
