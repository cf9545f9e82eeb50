"""Directory scanner that never follows symlinks.

This module lists the regular files of a directory for organizing and
duplicate detection. Symlinks are skipped rather than followed, hidden entries
and tool directories are ignored, and each file is stat'ed through a no-follow
descriptor so a file swapped for a link mid-scan is dropped.
"""

import os
import stat
from pathlib import Path

import structlog

from sortguard.core.constants import (
    DEFAULT_MAX_SCAN_DEPTH,
    DEFAULT_MAX_SCAN_FILES,
    SKIP_DIRECTORIES,
)
from sortguard.core.errors import IOFailure, ScanLimitExceeded, translate_os_error
from sortguard.core.schemas import FileEntry
from sortguard.fs.fs_ops import O_NONBLOCK, open_no_follow
from sortguard.fs.paths import to_datetime
from sortguard.utils.debug import debug

logger = structlog.get_logger()


def scan_directory(
    directory: Path,
    *,
    include_subdirs: bool = False,
    max_depth: int = DEFAULT_MAX_SCAN_DEPTH,
    max_files: int = DEFAULT_MAX_SCAN_FILES,
) -> list[FileEntry]:
    """Scan a directory for regular files.

    Args:
        directory: Directory to scan (should already be validated)
        include_subdirs: Whether to descend into subdirectories
        max_depth: Maximum recursion depth when ``include_subdirs`` is set
        max_files: Maximum number of files to return

    Returns:
        FileEntry list sorted by path

    Raises:
        NotFound: If the directory does not exist
        IOFailure: If ``directory`` is not a directory
        ScanLimitExceeded: If more than ``max_files`` files are found
    """
    try:
        st = os.stat(directory)
    except OSError as exc:
        raise translate_os_error(exc, directory) from exc
    if not stat.S_ISDIR(st.st_mode):
        raise IOFailure(f"Not a directory: {directory}", path=directory)

    entries: list[FileEntry] = []
    visited: set[tuple[int, int]] = {(st.st_dev, st.st_ino)}
    _walk(directory, 0, include_subdirs, max_depth, max_files, entries, visited)
    return sorted(entries, key=lambda e: str(e.path))


def _walk(
    directory: Path,
    depth: int,
    include_subdirs: bool,
    max_depth: int,
    max_files: int,
    entries: list[FileEntry],
    visited: set[tuple[int, int]],
) -> None:
    try:
        children = list(os.scandir(directory))
    except PermissionError:
        logger.warning("scan.permission_denied", directory=str(directory))
        return

    for child in children:
        if child.name.startswith("."):
            continue
        if child.is_symlink():
            debug(f"Skipping symlink during scan: {child.path}")
            continue

        if child.is_dir(follow_symlinks=False):
            if not include_subdirs or depth >= max_depth:
                continue
            if child.name in SKIP_DIRECTORIES:
                continue
            child_stat = child.stat(follow_symlinks=False)
            key = (child_stat.st_dev, child_stat.st_ino)
            if key in visited:
                # Bind mounts can re-enter a tree without a symlink
                continue
            visited.add(key)
            _walk(
                Path(child.path),
                depth + 1,
                include_subdirs,
                max_depth,
                max_files,
                entries,
                visited,
            )
            continue

        if not child.is_file(follow_symlinks=False):
            continue

        entry = _stat_entry(Path(child.path))
        if entry is None:
            continue
        if len(entries) >= max_files:
            raise ScanLimitExceeded(
                f"Directory contains more than {max_files} files",
                path=directory,
                hint="Scan a smaller directory or raise max_files",
            )
        entries.append(entry)


def _stat_entry(path: Path) -> FileEntry | None:
    """Stat through a no-follow descriptor; None when the file vanished or changed."""
    try:
        with open_no_follow(path, os.O_RDONLY | O_NONBLOCK) as fd:
            st = os.fstat(fd)
    except OSError as exc:
        debug(f"Skipping {path}: {exc}")
        return None
    if not stat.S_ISREG(st.st_mode):
        return None
    return FileEntry(
        path=path,
        name=path.name,
        size=st.st_size,
        modified=to_datetime(st.st_mtime),
    )
