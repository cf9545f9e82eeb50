"""Custom exceptions for SortGuard.

Every failure the engine reports to a caller is a ``SortGuardError`` carrying
an ``ErrorKind`` from a closed set. OS-level errors are mapped into this
taxonomy in exactly one place, ``translate_os_error``.
"""

from __future__ import annotations

import errno
from enum import Enum
from pathlib import Path
from typing import Any


class ErrorKind(str, Enum):
    """Closed error taxonomy shared by validation, reads, moves and rollback."""

    PATH_REJECTED = "path_rejected"
    SENSITIVE_PATH_BLOCKED = "sensitive_path_blocked"
    RATE_LIMITED = "rate_limited"
    TOO_LARGE = "too_large"
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    SYMLINK_LOOP = "symlink_loop"
    ABORTED = "aborted"
    OFFSET_BEYOND_END = "offset_beyond_end"
    ENCODING_ERROR = "encoding_error"
    IO_ERROR = "io_error"
    DESTINATION_COLLISION = "destination_collision"
    BACKUP_RESTORE_FAILED = "backup_restore_failed"
    MANIFEST_NOT_FOUND = "manifest_not_found"
    MANIFEST_CORRUPT = "manifest_corrupt"
    INVALID_MANIFEST_ID = "invalid_manifest_id"
    SCAN_LIMIT_EXCEEDED = "scan_limit_exceeded"


class SortGuardError(Exception):
    """Base exception for all SortGuard errors.

    Attributes:
        kind: Taxonomy entry for this error
        path: Path the error relates to, if any
        hint: Optional actionable suggestion for the caller
    """

    kind: ErrorKind = ErrorKind.IO_ERROR

    def __init__(
        self,
        message: str,
        *,
        path: str | Path | None = None,
        hint: str | None = None,
    ) -> None:
        self.message = message
        self.path = str(path) if path is not None else None
        self.hint = hint
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for caller-facing payloads."""
        result: dict[str, Any] = {
            "error": self.kind.value,
            "message": self.message,
        }
        if self.path is not None:
            result["path"] = self.path
        if self.hint is not None:
            result["hint"] = self.hint
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, path={self.path!r})"


# ============================================================================
# Validation
# ============================================================================


class PathRejected(SortGuardError):
    """Raised when a path fails validation.

    Covers traversal sequences, null bytes, block-list matches, paths outside
    the allow-list and symlinks whose real target escapes the allow-list.

    Attributes:
        reason: Short machine-friendly reason
        allowed_dirs: Allowed directories at the time of rejection
    """

    kind = ErrorKind.PATH_REJECTED

    def __init__(
        self,
        path: str | Path,
        reason: str,
        *,
        allowed_dirs: list[str] | None = None,
        hint: str | None = None,
    ) -> None:
        self.reason = reason
        self.allowed_dirs = allowed_dirs or []
        super().__init__(f"Path rejected: {reason}", path=path, hint=hint)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["reason"] = self.reason
        if self.allowed_dirs:
            result["allowed_dirs"] = self.allowed_dirs
        return result


class SensitivePathBlocked(SortGuardError):
    """Raised when a path matches a sensitive-file pattern."""

    kind = ErrorKind.SENSITIVE_PATH_BLOCKED

    def __init__(self, path: str | Path, pattern: str) -> None:
        self.pattern = pattern
        super().__init__(
            f"Access denied: path matches sensitive pattern {pattern}",
            path=path,
            hint="This file may contain credentials and cannot be read",
        )


class RateLimited(SortGuardError):
    """Raised when the rate limiter refuses an operation.

    Attributes:
        operation: Rate limiter key that was exhausted
        retry_after: Seconds until the limiter admits a new request
    """

    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self, operation: str, retry_after: int, path: str | Path | None = None
    ) -> None:
        self.operation = operation
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit exceeded for '{operation}' (retry after {retry_after}s)",
            path=path,
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["retry_after"] = self.retry_after
        return result


class ScanLimitExceeded(SortGuardError):
    """Raised when a directory scan exceeds its file budget."""

    kind = ErrorKind.SCAN_LIMIT_EXCEEDED


# ============================================================================
# Reads
# ============================================================================


class ReadError(SortGuardError):
    """Base class for errors surfaced by the secure reader."""


class TooLarge(ReadError):
    """Raised when a file exceeds the configured read ceiling."""

    kind = ErrorKind.TOO_LARGE

    def __init__(self, path: str | Path, size: int, max_bytes: int) -> None:
        self.size = size
        self.max_bytes = max_bytes
        super().__init__(
            f"File size ({size} bytes) exceeds maximum allowed ({max_bytes} bytes)",
            path=path,
            hint="Read a smaller range with offset or raise max_bytes",
        )


class NotFound(ReadError):
    kind = ErrorKind.NOT_FOUND


class AccessDenied(ReadError):
    kind = ErrorKind.ACCESS_DENIED


class SymlinkLoop(ReadError):
    kind = ErrorKind.SYMLINK_LOOP


class Aborted(ReadError):
    """Raised when a read is cancelled through its abort signal."""

    kind = ErrorKind.ABORTED


class OffsetBeyondEnd(ReadError):
    kind = ErrorKind.OFFSET_BEYOND_END


class EncodingFailed(ReadError):
    kind = ErrorKind.ENCODING_ERROR


class IOFailure(ReadError):
    kind = ErrorKind.IO_ERROR


# ============================================================================
# Moves
# ============================================================================


class DestinationCollision(SortGuardError):
    """Raised when the exclusive-create retry budget is exhausted."""

    kind = ErrorKind.DESTINATION_COLLISION


class BackupRestoreFailed(SortGuardError):
    """Raised when restoring an overwrite backup fails.

    This is the critical class: the pre-operation content now lives only at
    ``backup_path`` and needs manual attention.
    """

    kind = ErrorKind.BACKUP_RESTORE_FAILED

    def __init__(
        self, path: str | Path, backup_path: str | Path, cause: BaseException
    ) -> None:
        self.backup_path = str(backup_path)
        super().__init__(
            f"CRITICAL: failed to restore backup {backup_path} to {path}: {cause}",
            path=path,
            hint=f"Original content is preserved at {backup_path}",
        )


# ============================================================================
# Rollback
# ============================================================================


class ManifestNotFound(SortGuardError):
    kind = ErrorKind.MANIFEST_NOT_FOUND


class ManifestCorrupt(SortGuardError):
    kind = ErrorKind.MANIFEST_CORRUPT


class InvalidManifestId(SortGuardError):
    kind = ErrorKind.INVALID_MANIFEST_ID


_ERRNO_TO_ERROR: dict[int, type[ReadError]] = {
    errno.ENOENT: NotFound,
    errno.ENOTDIR: NotFound,
    errno.EACCES: AccessDenied,
    errno.EPERM: AccessDenied,
    errno.ELOOP: SymlinkLoop,
}


def translate_os_error(exc: OSError, path: str | Path) -> SortGuardError:
    """Map an ``OSError`` onto the error taxonomy.

    This is the single translation point between ``errno`` codes and
    ``ErrorKind``; callers never branch on OS error strings.
    """
    error_cls = _ERRNO_TO_ERROR.get(exc.errno or 0)
    if error_cls is NotFound:
        return NotFound(f"File not found: {path}", path=path)
    if error_cls is AccessDenied:
        return AccessDenied(f"Permission denied: {path}", path=path)
    if error_cls is SymlinkLoop:
        return SymlinkLoop(
            f"Symlink refused or loop detected: {path}",
            path=path,
            hint="Symbolic links are not followed when opening files",
        )
    if exc.errno == errno.EEXIST:
        return DestinationCollision(f"Destination already exists: {path}", path=path)
    if exc.errno == errno.EISDIR:
        return IOFailure(f"Cannot read a directory as a file: {path}", path=path)
    return IOFailure(f"I/O error on {path}: {exc.strerror or exc}", path=path)
