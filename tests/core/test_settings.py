"""Tests for environment-driven settings."""

import os
from pathlib import Path

import pytest

from sortguard.core.constants import DEFAULT_MAX_READ_BYTES, DEFAULT_RATE_PER_MINUTE
from sortguard.core.settings import Settings, default_allowed_dirs, load_settings


class TestLoadSettings:
    def test_reads_environment(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        first, second = tmp_path / "one", tmp_path / "two"
        monkeypatch.setenv("SORTGUARD_ALLOWED_DIRS", f"{first}{os.pathsep}{second}")
        monkeypatch.setenv("SORTGUARD_STATE_DIR", str(tmp_path / "state"))
        monkeypatch.setenv("SORTGUARD_MAX_READ_BYTES", "2048")
        monkeypatch.setenv("SORTGUARD_RATE_PER_MINUTE", "5")

        settings = load_settings()

        assert settings.allowed_dirs == (first.resolve(), second.resolve())
        assert settings.state_dir == tmp_path / "state"
        assert settings.rollback_dir == tmp_path / "state" / "rollbacks"
        assert settings.backup_dir == tmp_path / "state" / "backups"
        assert settings.max_read_bytes == 2048
        assert settings.rate_per_minute == 5

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("SORTGUARD_ALLOWED_DIRS", str(tmp_path))
        for name in (
            "SORTGUARD_STATE_DIR",
            "SORTGUARD_MAX_READ_BYTES",
            "SORTGUARD_RATE_PER_MINUTE",
            "SORTGUARD_RATE_PER_HOUR",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = load_settings()

        assert settings.max_read_bytes == DEFAULT_MAX_READ_BYTES
        assert settings.rate_per_minute == DEFAULT_RATE_PER_MINUTE
        assert settings.state_dir == Path("~/.sortguard").expanduser()

    @pytest.mark.parametrize("value", ["lots", "0", "-3"])
    def test_rejects_bad_numbers(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, value: str
    ) -> None:
        monkeypatch.setenv("SORTGUARD_ALLOWED_DIRS", str(tmp_path))
        monkeypatch.setenv("SORTGUARD_RATE_PER_HOUR", value)

        with pytest.raises(ValueError, match="SORTGUARD_RATE_PER_HOUR"):
            load_settings()


def test_default_allowed_dirs_lists_existing_home_folders(tmp_path: Path) -> None:
    (tmp_path / "Documents").mkdir()
    (tmp_path / "Downloads").mkdir()
    (tmp_path / "Unrelated").mkdir()

    assert default_allowed_dirs(tmp_path) == (
        tmp_path / "Documents",
        tmp_path / "Downloads",
    )


def test_settings_are_frozen(tmp_path: Path) -> None:
    settings = Settings(allowed_dirs=(tmp_path,), state_dir=tmp_path)

    with pytest.raises(AttributeError):
        settings.state_dir = Path("/elsewhere")  # type: ignore[misc]
