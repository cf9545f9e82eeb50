"""Tests for naming helpers."""

import re
from pathlib import Path
from unittest.mock import patch

from sortguard.fs.paths import get_backup_path, next_counter, numbered_path


class TestNumberedPath:
    def test_appends_counter_to_stem(self) -> None:
        assert numbered_path(Path("/d/report.pdf"), 2) == Path("/d/report_2.pdf")

    def test_uses_base_stem_when_given(self) -> None:
        assert numbered_path(Path("/d/report_1.pdf"), 2, "report") == Path(
            "/d/report_2.pdf"
        )

    def test_next_counter(self) -> None:
        assert next_counter(Path("/d/report.pdf"), "report") == 1
        assert next_counter(Path("/d/report_3.pdf"), "report") == 4
        assert next_counter(Path("/d/v_2024.pdf"), "v") == 2025
        assert next_counter(Path("/d/other_3.pdf"), "report") == 1


class TestBackupPath:
    def test_name_carries_timestamp_and_kind(self, tmp_path: Path) -> None:
        backup = get_backup_path(tmp_path / "backups", "a.txt", "overwrite")

        assert backup.parent == tmp_path / "backups"
        assert backup.parent.is_dir()
        assert re.fullmatch(r"\d+_overwrite_a\.txt", backup.name)

    def test_clash_gets_numbered(self, tmp_path: Path) -> None:
        (tmp_path / "123_delete_a.txt").write_text("x")
        (tmp_path / "123_delete_a_1.txt").write_text("x")

        with patch("sortguard.fs.paths.epoch_ms", return_value=123):
            backup = get_backup_path(tmp_path, "a.txt", "delete")

        assert backup == tmp_path / "123_delete_a_2.txt"
