"""Pytest configuration and fixtures for SortGuard tests."""

import os
from collections.abc import Callable
from pathlib import Path

import pytest

from sortguard.core.services import Services, build_services
from sortguard.core.settings import Settings
from sortguard.security.path_validator import COMMON_BLOCKED_PATTERNS, PathValidator


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Allow-listed directory the tests operate in."""
    root = tmp_path / "work"
    root.mkdir()
    return root


@pytest.fixture
def outside(tmp_path: Path) -> Path:
    """Directory next to the workspace that is not allow-listed."""
    root = tmp_path / "outside"
    root.mkdir()
    return root


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / "state"


@pytest.fixture
def settings(workspace: Path, state_dir: Path) -> Settings:
    return Settings(
        allowed_dirs=(workspace,),
        state_dir=state_dir,
        rate_per_minute=1000,
        rate_per_hour=10000,
        base_dir=workspace,
    )


@pytest.fixture
def validator(workspace: Path) -> PathValidator:
    """Validator confined to the workspace.

    Only the platform-independent block-list is used so the suite behaves the
    same wherever the temporary directory lives.
    """
    return PathValidator(
        [workspace], base_dir=workspace, blocked_patterns=COMMON_BLOCKED_PATTERNS
    )


@pytest.fixture
def services(settings: Settings) -> Services:
    return build_services(settings, blocked_patterns=COMMON_BLOCKED_PATTERNS)


def write_file(
    path: Path, content: str | bytes = "data", mtime: float | None = None
) -> Path:
    """Create ``path`` (and parents) with ``content``; optionally set its mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def make_file() -> Callable[..., Path]:
    return write_file
