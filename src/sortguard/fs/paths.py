"""Path utilities for filesystem operations.

Naming helpers for de-conflicted destinations and backup files, plus small
stat helpers shared by the mover, rollback and duplicate services.
"""

import os
import re
import time
from datetime import UTC, datetime
from pathlib import Path

_NUMBERED_STEM = re.compile(r"^(?P<base>.*)_(?P<n>\d+)$")


def epoch_ms() -> int:
    """Current time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def numbered_path(path: Path, counter: int, base_stem: str | None = None) -> Path:
    """Return ``path`` with ``_<counter>`` appended to its stem.

    Args:
        path: Destination whose name is taken
        counter: Suffix number
        base_stem: Stem to number instead of ``path.stem`` (so that retries
            produce ``photo_2.jpg`` rather than ``photo_1_2.jpg``)

    Returns:
        Sibling path with the numbered name
    """
    stem = base_stem if base_stem is not None else path.stem
    return path.with_name(f"{stem}_{counter}{path.suffix}")


def next_counter(destination: Path, base_stem: str) -> int:
    """Counter to try after ``destination`` turned out to be taken.

    ``report.pdf`` continues with 1; ``report_3.pdf`` continues with 4.
    """
    match = _NUMBERED_STEM.match(destination.stem)
    if match and match.group("base") == base_stem:
        return int(match.group("n")) + 1
    return 1


def get_backup_path(backup_dir: Path, original_name: str, kind: str) -> Path:
    """Generate a backup path ``<epoch-ms>_<kind>_<name>`` in ``backup_dir``.

    A ``_N`` suffix is appended to the stem if the name is already taken.

    Args:
        backup_dir: Directory to store backups in (created if missing)
        original_name: Basename of the file being backed up
        kind: ``overwrite`` or ``delete``

    Returns:
        Path for the backup file
    """
    backup_dir.mkdir(parents=True, exist_ok=True)
    preferred = backup_dir / f"{epoch_ms()}_{kind}_{original_name}"
    candidate = preferred
    counter = 1
    while os.path.lexists(candidate):
        candidate = numbered_path(preferred, counter)
        counter += 1
    return candidate


def mtime_of(path: Path) -> float:
    """Modification time of ``path`` without following a final symlink."""
    return os.lstat(path).st_mtime


def to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=UTC)


def ensure_parent_dir(path: Path) -> None:
    """Ensure parent directory exists for a path.

    Args:
        path: Path whose parent directory should exist

    Raises:
        OSError: If parent directory cannot be created
    """
    path.parent.mkdir(parents=True, exist_ok=True)
