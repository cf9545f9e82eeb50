"""TOCTOU-resistant file reader.

A read passes three stages:

1. Validation: sensitive-pattern check, then ``PathValidator`` with symlinks
   refused and existence required
2. Resource controls: the rate limiter must admit the operation
3. Execution: a no-follow open, ``fstat`` on the descriptor, size and offset
   checks against that ``fstat`` result, then a chunked read with SHA-256

All size and type decisions are taken from the opened descriptor, never from
the path, so a file swapped after validation cannot be read through a symlink.
"""

from __future__ import annotations

import hashlib
import mimetypes
import os
import stat
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import anyio

from sortguard.core.constants import (
    DEFAULT_MAX_READ_BYTES,
    READ_CHUNK_SIZE,
    STREAMING_THRESHOLD,
)
from sortguard.core.errors import (
    Aborted,
    EncodingFailed,
    IOFailure,
    OffsetBeyondEnd,
    RateLimited,
    SensitivePathBlocked,
    SortGuardError,
    TooLarge,
    translate_os_error,
)
from sortguard.core.schemas import FileMetadata, ReadOptions, ReadResult
from sortguard.fs.fs_ops import O_NONBLOCK, open_no_follow
from sortguard.security.audit import AuditLogger
from sortguard.security.path_validator import PathValidator
from sortguard.security.rate_limiter import RateLimiter
from sortguard.security.sensitive import matched_pattern

_OPERATION = "read_file"


def _check_signal(signal: Any, path: Path, when: str) -> None:
    if signal is not None and signal.is_set():
        raise Aborted(f"Read aborted {when}: {path}", path=path)


class SecureFileReader:
    """Reads files inside the allow-list without following symlinks.

    Attributes:
        max_read_bytes: Ceiling applied to every read
    """

    def __init__(
        self,
        validator: PathValidator,
        rate_limiter: RateLimiter,
        audit: AuditLogger,
        *,
        max_read_bytes: int = DEFAULT_MAX_READ_BYTES,
    ) -> None:
        self._validator = validator
        self._rate_limiter = rate_limiter
        self._audit = audit
        self.max_read_bytes = max_read_bytes

    async def read(
        self, path: str | Path, options: ReadOptions | None = None
    ) -> ReadResult:
        """Read a file securely.

        Args:
            path: Path to read, absolute or relative to the validator base
            options: Encoding, byte ceiling, offset and abort signal

        Returns:
            ReadResult with decoded text (or bytes when ``encoding`` is None)

        Raises:
            SensitivePathBlocked: If the path looks like credentials or keys
            PathRejected: If validation refuses the path
            RateLimited: If the rate limiter refuses the read
            TooLarge: If the file exceeds the effective ``max_bytes``
            OffsetBeyondEnd: If ``offset`` is past the end of the file
            Aborted: If the abort signal trips
            NotFound, AccessDenied, SymlinkLoop, EncodingFailed, IOFailure
        """
        options = options or ReadOptions()
        max_bytes = min(options.max_bytes or self.max_read_bytes, self.max_read_bytes)
        self._audit.record(
            _OPERATION, path, "start", offset=options.offset, max_bytes=max_bytes
        )

        try:
            _check_signal(options.signal, Path(path), "before start")
            target = self._validate(path)
            decision = self._rate_limiter.check_limit(_OPERATION)
            if not decision.allowed:
                raise RateLimited(_OPERATION, decision.reset_in_seconds, path=path)

            result = await anyio.to_thread.run_sync(
                self._read_descriptor,
                target,
                options.encoding,
                max_bytes,
                options.offset,
                options.signal,
            )
        except SortGuardError as exc:
            self._audit.record(
                _OPERATION, path, "failure", error=exc.kind.value, message=exc.message
            )
            raise

        self._audit.record(
            _OPERATION,
            path,
            "success",
            bytes_read=result.bytes_read,
            checksum=result.metadata.checksum,
        )
        return result

    async def read_bytes(
        self,
        path: str | Path,
        *,
        max_bytes: int | None = None,
        offset: int = 0,
        signal: Any = None,
    ) -> ReadResult:
        """Read raw bytes; same checks as ``read`` with no decoding."""
        return await self.read(
            path,
            ReadOptions(
                encoding=None, max_bytes=max_bytes, offset=offset, signal=signal
            ),
        )

    def _validate(self, path: str | Path) -> Path:
        pattern = matched_pattern(path)
        if pattern is not None:
            raise SensitivePathBlocked(path, pattern)

        validated = self._validator.validate(
            path, allow_symlinks=False, require_exists=True
        )
        for candidate in (validated.path, validated.real_path):
            pattern = matched_pattern(candidate)
            if pattern is not None:
                raise SensitivePathBlocked(path, pattern)
        return validated.path

    def _read_descriptor(
        self,
        path: Path,
        encoding: str | None,
        max_bytes: int,
        offset: int,
        signal: Any,
    ) -> ReadResult:
        try:
            with open_no_follow(path, os.O_RDONLY | O_NONBLOCK) as fd:
                st = os.fstat(fd)
                if not stat.S_ISREG(st.st_mode):
                    raise IOFailure(f"Not a regular file: {path}", path=path)

                size = st.st_size
                if size > max_bytes:
                    raise TooLarge(path, size, max_bytes)
                if offset > size or (offset == size and size > 0):
                    raise OffsetBeyondEnd(
                        f"Offset {offset} is beyond the end of the file ({size} bytes)",
                        path=path,
                    )

                to_read = min(size - offset, max_bytes)
                data = self._read_range(fd, path, offset, to_read, size, signal)
        except OSError as exc:
            raise translate_os_error(exc, path) from exc

        checksum = hashlib.sha256(data).hexdigest()
        payload: str | bytes = data
        if encoding is not None:
            try:
                payload = data.decode(encoding)
            except (UnicodeDecodeError, LookupError) as exc:
                raise EncodingFailed(
                    f"Cannot decode {path} as {encoding}: {exc}", path=path
                ) from exc

        return ReadResult(
            data=payload,
            bytes_read=len(data),
            metadata=FileMetadata(
                path=path,
                mime_type=mimetypes.guess_type(path.name)[0]
                or "application/octet-stream",
                size=size,
                read_at=datetime.now(UTC),
                checksum=checksum,
                encoding=encoding,
            ),
        )

    @staticmethod
    def _read_range(
        fd: int, path: Path, offset: int, count: int, size: int, signal: Any
    ) -> bytes:
        """Read ``count`` bytes from ``offset``, in chunks for large files."""
        chunk_size = READ_CHUNK_SIZE if size > STREAMING_THRESHOLD else max(count, 1)
        os.lseek(fd, offset, os.SEEK_SET)
        parts: list[bytes] = []
        remaining = count
        while remaining > 0:
            _check_signal(signal, path, "during read")
            chunk = os.read(fd, min(chunk_size, remaining))
            if not chunk:
                # File shrank after fstat
                break
            parts.append(chunk)
            remaining -= len(chunk)
        return b"".join(parts)
