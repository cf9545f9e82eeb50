"""Tests for duplicate detection and reversible deletion."""

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest

from sortguard.core.duplicates import score_file
from sortguard.core.scanner import scan_directory
from sortguard.core.schemas import DuplicateStrategy, FileEntry
from sortguard.core.services import Services

MakeFile = Callable[..., Path]


def entry(path: str, mtime: float = 1_000_000_000) -> FileEntry:
    p = Path(path)
    return FileEntry(
        path=p, name=p.name, size=1, modified=datetime.fromtimestamp(mtime, tz=UTC)
    )


class TestScoreFile:
    def test_location_penalty_and_bonus(self) -> None:
        strategy = DuplicateStrategy.BEST_LOCATION
        messy = score_file(entry("/home/u/Downloads/x.pdf"), strategy)
        tidy = score_file(entry("/home/u/Documents/x.pdf"), strategy)

        assert messy.score == -55
        assert tidy.score == 15
        assert "Location penalty (Downloads/Temp)" in messy.reasons

    def test_copy_markers_are_penalised(self) -> None:
        for name in ("x copy.pdf", "x (2).pdf", "x_3.pdf"):
            scored = score_file(
                entry(f"/home/u/Documents/{name}"), DuplicateStrategy.BEST_LOCATION
            )
            assert scored.score == -15, name

    def test_best_name_ignores_location(self) -> None:
        scored = score_file(entry("/a/b/c/d/x_2.pdf"), DuplicateStrategy.BEST_NAME)

        assert scored.score == -30

    def test_newest_and_oldest_use_mtime(self) -> None:
        newer = entry("/a/x.pdf", mtime=2_000_000_000)
        older = entry("/a/y.pdf", mtime=1_000_000_000)

        newest = DuplicateStrategy.NEWEST
        oldest = DuplicateStrategy.OLDEST
        assert score_file(newer, newest).score > score_file(older, newest).score
        assert score_file(older, oldest).score > score_file(newer, oldest).score


class TestFindDuplicates:
    """Grouping by size, then by content hash."""

    def test_organized_folder_copy_is_kept(
        self, services: Services, workspace: Path, make_file: MakeFile
    ) -> None:
        """Test that the copy in Documents beats the ones in Downloads."""
        make_file(workspace / "Downloads" / "report.pdf", "same content")
        make_file(workspace / "Downloads" / "report (1).pdf", "same content")
        make_file(workspace / "Documents" / "report.pdf", "same content")
        files = scan_directory(workspace, include_subdirs=True)

        groups = services.duplicates.find_duplicates(files)

        assert len(groups) == 1
        group = groups[0]
        assert group.recommended_keep == workspace / "Documents" / "report.pdf"
        assert group.recommended_delete == [
            workspace / "Downloads" / "report.pdf",
            workspace / "Downloads" / "report (1).pdf",
        ]
        assert group.size_bytes == len("same content")
        assert group.wasted_space_bytes == 2 * len("same content")

    def test_same_size_different_content_is_not_a_duplicate(
        self, services: Services, workspace: Path, make_file: MakeFile
    ) -> None:
        make_file(workspace / "a.txt", "aaaa")
        make_file(workspace / "b.txt", "bbbb")
        make_file(workspace / "c.txt", "")
        make_file(workspace / "d.txt", "")

        groups = services.duplicates.find_duplicates(scan_directory(workspace))

        assert groups == []

    def test_groups_sorted_by_wasted_space(
        self, services: Services, workspace: Path, make_file: MakeFile
    ) -> None:
        for name in ("s1.txt", "s2.txt", "s3.txt"):
            make_file(workspace / name, "x" * 10)
        for name in ("l1.txt", "l2.txt"):
            make_file(workspace / name, "y" * 100)

        groups = services.duplicates.find_duplicates(scan_directory(workspace))

        assert [g.wasted_space_bytes for g in groups] == [100, 20]

    @pytest.mark.parametrize(
        ("strategy", "kept"),
        [(DuplicateStrategy.NEWEST, "b.txt"), (DuplicateStrategy.OLDEST, "a.txt")],
    )
    def test_age_strategies(
        self,
        services: Services,
        workspace: Path,
        make_file: MakeFile,
        strategy: DuplicateStrategy,
        kept: str,
    ) -> None:
        make_file(workspace / "a.txt", "same", mtime=1_000_000_000)
        make_file(workspace / "b.txt", "same", mtime=2_000_000_000)

        files = scan_directory(workspace)
        groups = services.duplicates.find_duplicates(files, strategy)

        assert groups[0].recommended_keep == workspace / kept


class TestDeleteFiles:
    """Deletion parks files in the backup area."""

    @pytest.mark.asyncio
    async def test_delete_and_rollback(
        self, services: Services, workspace: Path, make_file: MakeFile
    ) -> None:
        keep = make_file(workspace / "Documents" / "report.pdf", "same")
        extra = make_file(workspace / "Downloads" / "report.pdf", "same")

        report = await services.duplicates.delete_files([extra], keep=[keep])

        assert report.deleted == [str(extra)]
        assert not extra.exists()
        backups = list(services.settings.backup_dir.iterdir())
        assert len(backups) == 1
        assert backups[0].name.endswith("_delete_report.pdf")
        assert report.manifest_id is not None

        rollback = await services.rollback.rollback(report.manifest_id)

        assert rollback.success == 1
        assert extra.read_text() == "same"
        assert keep.read_text() == "same"

    @pytest.mark.asyncio
    async def test_kept_copy_is_never_deleted(
        self, services: Services, workspace: Path, make_file: MakeFile
    ) -> None:
        keep = make_file(workspace / "report.pdf", "same")

        report = await services.duplicates.delete_files([keep], keep=[keep])

        assert report.deleted == []
        assert report.failed[0].kind == "path_rejected"
        assert keep.exists()
        assert report.manifest_id is None

    @pytest.mark.asyncio
    async def test_content_must_match_a_kept_copy(
        self, services: Services, workspace: Path, make_file: MakeFile
    ) -> None:
        keep = make_file(workspace / "report.pdf", "same")
        changed = make_file(workspace / "report_2.pdf", "changed since the scan")

        report = await services.duplicates.delete_files([changed], keep=[keep])

        assert report.failed[0].kind == "path_rejected"
        assert "no kept copy" in report.failed[0].message
        assert changed.exists()

    @pytest.mark.asyncio
    async def test_paths_outside_allow_list_are_refused(
        self, services: Services, outside: Path, make_file: MakeFile
    ) -> None:
        stray = make_file(outside / "report.pdf", "same")

        report = await services.duplicates.delete_files([stray])

        assert report.failed[0].kind == "path_rejected"
        assert stray.exists()
