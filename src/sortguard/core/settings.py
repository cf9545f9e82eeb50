"""Environment-driven settings for SortGuard.

Every value has a default; environment variables override it:

- ``SORTGUARD_ALLOWED_DIRS``: allow-listed directories, ``os.pathsep`` separated
- ``SORTGUARD_STATE_DIR``: holds ``rollbacks/`` and ``backups/`` (``~/.sortguard``)
- ``SORTGUARD_MAX_READ_BYTES``: default read ceiling
- ``SORTGUARD_RATE_PER_MINUTE`` / ``SORTGUARD_RATE_PER_HOUR``: reader limits
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from sortguard.core.constants import (
    DEFAULT_MAX_READ_BYTES,
    DEFAULT_RATE_PER_HOUR,
    DEFAULT_RATE_PER_MINUTE,
)

__all__ = ["Settings", "default_allowed_dirs", "load_settings"]

_HOME_FOLDERS = (
    "Desktop",
    "Documents",
    "Downloads",
    "Pictures",
    "Videos",
    "Music",
    "Projects",
    "Workspace",
)


@dataclass(frozen=True)
class Settings:
    """Resolved runtime configuration.

    Attributes:
        allowed_dirs: Directories operations are confined to
        state_dir: Root for manifests and backups
        max_read_bytes: Default per-read ceiling
        rate_per_minute: Reader admissions per rolling minute
        rate_per_hour: Reader admissions per rolling hour
        base_dir: Directory relative paths are resolved against
    """

    allowed_dirs: tuple[Path, ...]
    state_dir: Path
    max_read_bytes: int = DEFAULT_MAX_READ_BYTES
    rate_per_minute: int = DEFAULT_RATE_PER_MINUTE
    rate_per_hour: int = DEFAULT_RATE_PER_HOUR
    base_dir: Path = field(default_factory=Path.cwd)

    @property
    def rollback_dir(self) -> Path:
        return self.state_dir / "rollbacks"

    @property
    def backup_dir(self) -> Path:
        return self.state_dir / "backups"


def default_allowed_dirs(home: Path | None = None) -> tuple[Path, ...]:
    """Return the common user folders under ``home`` that exist."""

    home = home or Path.home()
    return tuple(
        home / name for name in _HOME_FOLDERS if (home / name).is_dir()
    )


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def load_settings() -> Settings:
    """Build ``Settings`` from the environment.

    Raises:
        ValueError: If a numeric variable is not a positive integer
    """

    raw_dirs = os.getenv("SORTGUARD_ALLOWED_DIRS")
    if raw_dirs:
        allowed = tuple(
            Path(part).expanduser().resolve()
            for part in raw_dirs.split(os.pathsep)
            if part.strip()
        )
    else:
        allowed = default_allowed_dirs()

    state_dir = Path(os.getenv("SORTGUARD_STATE_DIR") or "~/.sortguard").expanduser()

    return Settings(
        allowed_dirs=allowed,
        state_dir=state_dir,
        max_read_bytes=_int_from_env(
            "SORTGUARD_MAX_READ_BYTES", DEFAULT_MAX_READ_BYTES
        ),
        rate_per_minute=_int_from_env(
            "SORTGUARD_RATE_PER_MINUTE", DEFAULT_RATE_PER_MINUTE
        ),
        rate_per_hour=_int_from_env("SORTGUARD_RATE_PER_HOUR", DEFAULT_RATE_PER_HOUR),
    )
