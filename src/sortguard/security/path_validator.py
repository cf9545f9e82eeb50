"""Layered path validation.

``PathValidator.validate`` runs each candidate path through:

1. Input checks (empty, null byte, control characters, length)
2. Traversal check on the raw input, then lexical normalization
3. Block-list patterns (always win)
4. Allow-list containment by path segment, never by substring
5. Symlink resolution, re-running 3 and 4 on the real path

Validation is advisory. Anything that opens a validated path must still use a
no-follow open, since the path can be swapped between check and use.
"""

from __future__ import annotations

import errno
import os
import re
import stat
import sys
from collections.abc import Iterable, Sequence
from pathlib import Path

from sortguard.core.constants import MAX_PATH_LENGTH
from sortguard.core.errors import NotFound, PathRejected, SymlinkLoop
from sortguard.core.schemas import ValidatedPath
from sortguard.utils.debug import debug

__all__ = [
    "COMMON_BLOCKED_PATTERNS",
    "PathValidator",
    "default_blocked_patterns",
    "is_sub_path",
]

_CONTROL_CHARS = re.compile(r"[\x00-\x1f]")
_IS_WINDOWS = os.name == "nt"

#: Development and build directories blocked on every platform
COMMON_BLOCKED_PATTERNS: tuple[str, ...] = (
    r"node_modules",
    r"(^|/)\.git(/|$)",
    r"(^|/)\.vscode(/|$)",
    r"(^|/)\.idea(/|$)",
    r"(^|/)\.next(/|$)",
    r"(^|/)dist(/|$)",
    r"(^|/)build(/|$)",
)

_LINUX_BLOCKED: tuple[str, ...] = (
    r"^/(etc|usr|bin|sbin|sys|proc|root|var|boot|opt)(/|$)",
)

_DARWIN_BLOCKED: tuple[str, ...] = (
    r"^/(System|Library|Applications|private|usr|bin|sbin|opt)(/|$)",
)

_WINDOWS_BLOCKED: tuple[str, ...] = (
    r"^[a-z]:/Windows(/|$)",
    r"/Program Files( \(x86\))?(/|$)",
    r"/ProgramData(/|$)",
    r"/AppData(/|$)",
    r"/\$Recycle\.Bin(/|$)",
    r"/System Volume Information(/|$)",
)


def default_blocked_patterns(platform: str | None = None) -> tuple[str, ...]:
    """Return the common block-list plus the system paths for ``platform``."""

    platform = platform or sys.platform
    if platform.startswith("win"):
        return COMMON_BLOCKED_PATTERNS + _WINDOWS_BLOCKED
    if platform == "darwin":
        return COMMON_BLOCKED_PATTERNS + _DARWIN_BLOCKED
    return COMMON_BLOCKED_PATTERNS + _LINUX_BLOCKED


def _for_matching(path: str) -> str:
    return path.replace("\\", "/")


def is_sub_path(parent: str | Path, child: str | Path) -> bool:
    """Return True when ``child`` equals ``parent`` or lies beneath it.

    Comparison is by whole path segments, so ``/data/a`` does not contain
    ``/data/ab``. On Windows the comparison is case-insensitive.
    """
    parent_str = os.path.normcase(os.path.normpath(str(parent)))
    child_str = os.path.normcase(os.path.normpath(str(child)))
    try:
        return os.path.commonpath([parent_str, child_str]) == parent_str
    except ValueError:
        # Different drives, or mixing absolute and relative paths
        return False


class PathValidator:
    """Approves paths against an allow-list and a block-list.

    Attributes:
        allowed_dirs: Directories operations are confined to
        base_dir: Directory relative inputs are resolved against
    """

    def __init__(
        self,
        allowed_dirs: Iterable[str | Path],
        *,
        base_dir: str | Path | None = None,
        blocked_patterns: Sequence[str] | None = None,
    ) -> None:
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        self.allowed_dirs: tuple[Path, ...] = tuple(
            Path(os.path.normpath(os.path.abspath(os.path.expanduser(d))))
            for d in allowed_dirs
        )
        # Allowed directories may themselves sit behind a symlink
        self._allowed_real: tuple[Path, ...] = tuple(
            Path(os.path.realpath(d)) for d in self.allowed_dirs
        )
        patterns = (
            default_blocked_patterns() if blocked_patterns is None else blocked_patterns
        )
        flags = re.IGNORECASE if _IS_WINDOWS else 0
        self._blocked = tuple(re.compile(p, flags) for p in patterns)

    def validate(
        self,
        raw_path: str | Path,
        *,
        allow_symlinks: bool = True,
        require_exists: bool = False,
    ) -> ValidatedPath:
        """Validate ``raw_path`` and return its absolute and real forms.

        Args:
            raw_path: Untrusted path, absolute or relative to ``base_dir``
            allow_symlinks: When False, reject a final component that is a symlink
            require_exists: When True, a missing path raises ``NotFound``

        Returns:
            ValidatedPath for this call; results are never cached

        Raises:
            PathRejected: If any validation layer refuses the path
            NotFound: If ``require_exists`` and the path does not exist
            SymlinkLoop: If resolving the path loops
        """
        raw = str(raw_path)
        self._check_input(raw)

        absolute = os.path.normpath(
            os.path.join(str(self.base_dir), os.path.expanduser(raw))
        )
        self._check_policy(absolute, raw)

        is_symlink = False
        try:
            st = os.lstat(absolute)
        except FileNotFoundError:
            exists = False
        except NotADirectoryError:
            exists = False
        except OSError as exc:
            if exc.errno == errno.ELOOP:
                raise SymlinkLoop(
                    f"Circular symlink detected: {raw}", path=raw
                ) from exc
            raise
        else:
            exists = True
            is_symlink = stat.S_ISLNK(st.st_mode)

        if is_symlink and not allow_symlinks:
            raise PathRejected(
                raw,
                "symlinks are not allowed",
                hint="Pass the target path directly instead of a link to it",
            )

        real = self._resolve(absolute, raw)
        if is_symlink and not os.path.exists(real):
            # Dangling link
            exists = False

        if real != absolute:
            debug(f"Resolved {absolute} -> {real}")
            self._check_policy(real, raw, resolved=True)

        if require_exists and not exists:
            raise NotFound(f"File not found: {raw}", path=raw)

        return ValidatedPath(
            path=Path(absolute),
            real_path=Path(real),
            exists=exists,
            is_symlink=is_symlink,
        )

    def is_allowed(self, path: str | Path) -> bool:
        """Cheap policy check without touching the filesystem."""

        try:
            raw = str(path)
            self._check_input(raw)
            absolute = os.path.normpath(
                os.path.join(str(self.base_dir), os.path.expanduser(raw))
            )
            self._check_policy(absolute, raw)
        except PathRejected:
            return False
        return True

    def describe_allowed(self) -> str:
        if not self.allowed_dirs:
            return "No directories are currently allowed"
        return "Allowed directories: " + ", ".join(str(d) for d in self.allowed_dirs)

    # ------------------------------------------------------------------ #

    def _check_input(self, raw: str) -> None:
        if not raw or not raw.strip():
            raise PathRejected(raw, "empty path")
        if "\x00" in raw:
            raise PathRejected(raw, "null byte in path")
        if _CONTROL_CHARS.search(raw):
            raise PathRejected(raw, "control characters in path")
        if len(raw) > MAX_PATH_LENGTH:
            raise PathRejected(raw, f"path exceeds maximum length ({MAX_PATH_LENGTH})")
        if ".." in re.split(r"[\\/]", raw):
            raise PathRejected(raw, "path traversal sequence")

    def _check_policy(
        self, candidate: str, raw: str, *, resolved: bool = False
    ) -> None:
        normalized = _for_matching(candidate)
        for pattern in self._blocked:
            if pattern.search(normalized):
                reason = "path matches blocked pattern"
                if resolved:
                    reason = "symlink target matches blocked pattern"
                raise PathRejected(
                    raw,
                    reason,
                    allowed_dirs=[str(d) for d in self.allowed_dirs],
                    hint="System and development directories cannot be organized",
                )

        roots = self.allowed_dirs
        if resolved:
            roots = roots + self._allowed_real
        if not any(is_sub_path(root, candidate) for root in roots):
            reason = "path is outside allowed directories"
            if resolved:
                reason = "symlink target is outside allowed directories"
            raise PathRejected(
                raw,
                reason,
                allowed_dirs=[str(d) for d in self.allowed_dirs],
                hint=self.describe_allowed(),
            )

    def _resolve(self, absolute: str, raw: str) -> str:
        try:
            return os.path.realpath(absolute, strict=True)
        except FileNotFoundError:
            # Resolve what exists of the parent chain, keep the missing tail
            pass
        except NotADirectoryError:
            pass
        except OSError as exc:
            if exc.errno == errno.ELOOP:
                raise SymlinkLoop(
                    f"Circular symlink detected: {raw}", path=raw
                ) from exc
            raise
        return os.path.realpath(absolute)
