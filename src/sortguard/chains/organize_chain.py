"""Organize chain for orchestrating scan, plan and execute with rollback.

This module provides the OrganizeChain class that drives the
scan→plan→execute pipeline, binding structured logging context and showing
Rich console output for each stage.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import anyio
import structlog
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)

from sortguard.core.organizer import AtomicMover
from sortguard.core.scanner import scan_directory
from sortguard.core.schemas import (
    ConflictStrategy,
    ExecutionReport,
    FileEntry,
    OrganizationPlan,
    RollbackReport,
)
from sortguard.fs.manifest import RollbackService
from sortguard.security.path_validator import PathValidator


@dataclass
class OrganizeOptions:
    """Options for organize runs.

    Attributes:
        directory: Directory to organize
        strategy: Conflict strategy (rename, skip, overwrite, overwrite_if_newer)
        dry_run: Plan only, without moving anything
        include_subdirs: Scan subdirectories as well
    """

    directory: str
    strategy: ConflictStrategy = ConflictStrategy.RENAME
    dry_run: bool = False
    include_subdirs: bool = False


class OrganizeChain:
    """Orchestrates organize and rollback runs with logging and Rich output."""

    def __init__(
        self,
        validator: PathValidator,
        mover: AtomicMover,
        rollback: RollbackService,
        logger: Any = None,
        ui: Console | None = None,
    ) -> None:
        """Initialize organize chain.

        Args:
            validator: Validator the target directory must pass
            mover: AtomicMover that plans and executes moves
            rollback: Rollback service for undo runs
            logger: Optional structlog logger instance
            ui: Optional Rich console for output
        """
        self._validator = validator
        self._mover = mover
        self._rollback = rollback
        self._logger = logger or structlog.get_logger()
        self._ui = ui or Console()

    async def plan(self, opts: OrganizeOptions) -> OrganizationPlan:
        """Scan the directory and return the plan without executing it."""
        root, files = await self._scan(opts)
        plan = self._mover.plan(root, files, opts.strategy)
        self._logger.info(
            "organize.planned",
            directory=str(root),
            moves=len(plan.moves),
            skipped=len(plan.skipped),
        )
        return plan

    async def organize(self, opts: OrganizeOptions) -> ExecutionReport:
        """Scan, plan and execute, showing progress for the execute stage.

        Args:
            opts: Organize options

        Returns:
            ExecutionReport (a plan-only report for dry runs)
        """
        root, files = await self._scan(opts)
        bound_logger = self._logger.bind(
            directory=str(root),
            strategy=opts.strategy.value,
            dry_run=opts.dry_run,
        )

        if opts.dry_run:
            report = await self._mover.organize(
                root, files, opts.strategy, dry_run=True
            )
            for record in report.actions:
                self._ui.print(
                    f"🔍 [blue]PLAN[/blue] {record.source.name} → "
                    f"{record.destination.relative_to(root)}"
                )
            bound_logger.info("organize.dry_run", planned=len(report.actions))
            return report

        plan = self._mover.plan(root, files, opts.strategy)
        with self._create_progress() as progress:
            task = progress.add_task(
                f"Organize — {opts.strategy.value}", total=len(plan.moves)
            )
            report = await self._mover.execute(plan)
            progress.update(task, completed=len(plan.moves))

        self._show_report(root, report)
        bound_logger.info(
            "organize.complete",
            moved=report.success_count,
            failed=report.error_count,
            manifest_id=report.manifest_id,
        )
        return report

    async def rollback(self, manifest_id: str) -> RollbackReport:
        """Undo a previous run and print the outcome."""
        self._ui.print("🔄 [yellow]Rolling back...[/yellow]")
        report = await self._rollback.rollback(manifest_id)
        for error in report.errors:
            self._ui.print(f"❌ [red]FAILED[/red] {error.path} ({error.message})")
        for warning in report.warnings:
            self._ui.print(f"⚠️ [yellow]{warning}[/yellow]")
        self._ui.print(
            f"✅ [green]Rollback completed[/green] "
            f"({report.success} restored, {report.failed} failed)"
        )
        return report

    async def _scan(self, opts: OrganizeOptions) -> tuple[Path, Sequence[FileEntry]]:
        root = self._validator.validate(opts.directory, require_exists=True).path
        files = await anyio.to_thread.run_sync(
            lambda: scan_directory(root, include_subdirs=opts.include_subdirs)
        )
        return root, files

    def _create_progress(self) -> Progress:
        """Create Rich progress display."""
        return Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=self._ui,
            transient=False,
        )

    def _show_report(self, root: Path, report: ExecutionReport) -> None:
        for record in report.actions:
            self._ui.print(
                f"✅ [green]MOVED[/green] {record.source.name} → "
                f"{record.destination.relative_to(root)}"
            )
        for skipped in report.skipped:
            self._ui.print(
                f"⚠️ [yellow]SKIPPED[/yellow] {skipped.path.name} "
                f"({skipped.reason})"
            )
        for error in report.errors:
            self._ui.print(
                f"❌ [red]FAILED[/red] {Path(error.path).name} ({error.message})"
            )
        if report.manifest_id:
            self._ui.print(
                f"↩️ [blue]Undo with[/blue] sortguard rollback {report.manifest_id}"
            )
