"""Tests for the organize chain orchestration."""

from collections.abc import Callable
from io import StringIO
from pathlib import Path

import pytest
from rich.console import Console

from sortguard.chains.organize_chain import OrganizeChain, OrganizeOptions
from sortguard.core.errors import PathRejected
from sortguard.core.schemas import ConflictStrategy, FileEntry
from sortguard.core.services import Services, build_services
from sortguard.core.settings import Settings
from sortguard.security.path_validator import COMMON_BLOCKED_PATTERNS

MakeFile = Callable[..., Path]


@pytest.fixture
def output() -> StringIO:
    return StringIO()


@pytest.fixture
def chain(services: Services, output: StringIO) -> OrganizeChain:
    console = Console(file=output, width=200, force_terminal=False)
    return OrganizeChain(
        services.validator, services.mover, services.rollback, ui=console
    )


class TestOrganizeChain:
    """Test the scan, plan and execute orchestration."""

    @pytest.mark.asyncio
    async def test_organize_moves_and_reports(
        self,
        chain: OrganizeChain,
        output: StringIO,
        workspace: Path,
        make_file: MakeFile,
    ) -> None:
        """Test that files move and the undo command is printed."""
        make_file(workspace / "a.pdf")
        make_file(workspace / "b.jpg")

        report = await chain.organize(OrganizeOptions(directory=str(workspace)))

        assert report.success_count == 2
        assert (workspace / "Documents" / "a.pdf").exists()
        text = output.getvalue()
        assert "MOVED a.pdf → Documents/a.pdf" in text
        assert f"sortguard rollback {report.manifest_id}" in text

    @pytest.mark.asyncio
    async def test_dry_run_prints_plan_only(
        self,
        chain: OrganizeChain,
        output: StringIO,
        workspace: Path,
        make_file: MakeFile,
    ) -> None:
        make_file(workspace / "a.pdf")

        report = await chain.organize(
            OrganizeOptions(directory=str(workspace), dry_run=True)
        )

        assert report.manifest_id is None
        assert (workspace / "a.pdf").exists()
        assert "PLAN a.pdf → Documents/a.pdf" in output.getvalue()

    @pytest.mark.asyncio
    async def test_skipped_files_are_listed(
        self,
        chain: OrganizeChain,
        output: StringIO,
        workspace: Path,
        make_file: MakeFile,
    ) -> None:
        make_file(workspace / "a.pdf")
        make_file(workspace / "Documents" / "a.pdf")

        await chain.organize(
            OrganizeOptions(directory=str(workspace), strategy=ConflictStrategy.SKIP)
        )

        assert "SKIPPED a.pdf (destination exists)" in output.getvalue()

    @pytest.mark.asyncio
    async def test_plan_includes_subdirectories_on_request(
        self, chain: OrganizeChain, workspace: Path, make_file: MakeFile
    ) -> None:
        make_file(workspace / "nested" / "a.pdf")

        flat = await chain.plan(OrganizeOptions(directory=str(workspace)))
        deep = await chain.plan(
            OrganizeOptions(directory=str(workspace), include_subdirs=True)
        )

        assert flat.moves == []
        assert deep.moves[0].destination == workspace / "Documents" / "a.pdf"

    @pytest.mark.asyncio
    async def test_rollback_prints_summary(
        self,
        chain: OrganizeChain,
        output: StringIO,
        workspace: Path,
        make_file: MakeFile,
    ) -> None:
        make_file(workspace / "a.pdf")
        report = await chain.organize(OrganizeOptions(directory=str(workspace)))
        assert report.manifest_id is not None

        result = await chain.rollback(report.manifest_id)

        assert result.success == 1
        assert (workspace / "a.pdf").exists()
        assert "Rollback completed (1 restored, 0 failed)" in output.getvalue()

    @pytest.mark.asyncio
    async def test_rejected_directory(
        self, chain: OrganizeChain, outside: Path
    ) -> None:
        with pytest.raises(PathRejected):
            await chain.organize(OrganizeOptions(directory=str(outside)))


class ArchiveResolver:
    def subpath_for(self, entry: FileEntry, category: str) -> str | None:
        return "archive" if category == "Documents" else None


@pytest.mark.asyncio
async def test_report_shows_resolver_subfolders(
    settings: Settings, output: StringIO, workspace: Path, make_file: MakeFile
) -> None:
    """Test that MOVED and PLAN lines show the full path below the root."""
    services = build_services(
        settings,
        blocked_patterns=COMMON_BLOCKED_PATTERNS,
        subpath_resolver=ArchiveResolver(),
    )
    chain = OrganizeChain(
        services.validator,
        services.mover,
        services.rollback,
        ui=Console(file=output, width=200, force_terminal=False),
    )
    make_file(workspace / "a.pdf")

    await chain.organize(OrganizeOptions(directory=str(workspace), dry_run=True))
    await chain.organize(OrganizeOptions(directory=str(workspace)))

    text = output.getvalue()
    assert "PLAN a.pdf → Documents/archive/a.pdf" in text
    assert "MOVED a.pdf → Documents/archive/a.pdf" in text
    assert (workspace / "Documents" / "archive" / "a.pdf").exists()
