"""AtomicMover: plan and execute category moves with reversible results.

``plan`` is pure: it decides a destination for every file, de-conflicting
against the disk and against the other destinations of the same batch.
``execute`` performs the moves with exclusive-create semantics, records one
``RollbackAction`` per successful move and writes a single rollback manifest
for the batch.
"""

from __future__ import annotations

import os
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import anyio
import structlog

from sortguard.core.categorizer import Categorizer, SubpathResolver
from sortguard.core.constants import MAX_CONSECUTIVE_ERRORS, RESERVED_NAME_PATTERN
from sortguard.core.errors import (
    BackupRestoreFailed,
    SortGuardError,
    translate_os_error,
)
from sortguard.core.scanner import scan_directory
from sortguard.core.schemas import (
    ConflictStrategy,
    ExecutionReport,
    FileEntry,
    MoveError,
    MoveRecord,
    OrganizationPlan,
    PlannedMove,
    RollbackAction,
    SkippedFile,
)
from sortguard.fs.fs_ops import exclusive_move, move_with_retries, rename_no_clobber
from sortguard.fs.manifest import RollbackService
from sortguard.fs.paths import (
    ensure_parent_dir,
    epoch_ms,
    get_backup_path,
    mtime_of,
    numbered_path,
)
from sortguard.security.path_validator import PathValidator
from sortguard.utils.debug import debug


def is_reserved_name(name: str) -> bool:
    """True for OS device names such as ``CON`` or ``lpt1.txt``."""
    return RESERVED_NAME_PATTERN.match(name) is not None


@dataclass(frozen=True)
class _Moved:
    destination: Path
    action: RollbackAction


@dataclass(frozen=True)
class _Skipped:
    reason: str


class AtomicMover:
    """Plans and executes category moves inside the allow-list."""

    def __init__(
        self,
        validator: PathValidator,
        rollback: RollbackService,
        backup_dir: Path,
        *,
        categorizer: Categorizer | None = None,
        subpath_resolver: SubpathResolver | None = None,
        logger: Any = None,
    ) -> None:
        """Initialize the mover.

        Args:
            validator: Validator every source and destination must pass
            rollback: Service that persists the batch manifest
            backup_dir: Where overwritten files are parked
            categorizer: Filename to category mapping
            subpath_resolver: Optional collaborator adding subfolders
            logger: Optional structlog logger instance
        """
        self._validator = validator
        self._rollback = rollback
        self._backup_dir = backup_dir
        self._categorizer = categorizer or Categorizer()
        self._subpaths = subpath_resolver
        self._logger = logger or structlog.get_logger()

    # ------------------------------------------------------------------ #
    # Planning
    # ------------------------------------------------------------------ #

    def plan(
        self,
        directory: Path,
        files: Sequence[FileEntry],
        strategy: ConflictStrategy = ConflictStrategy.RENAME,
    ) -> OrganizationPlan:
        """Build an organization plan without touching the filesystem.

        Args:
            directory: Directory the category folders are created in
            files: Files to organize
            strategy: Conflict strategy for destinations that are taken

        Returns:
            OrganizationPlan with one PlannedMove per file that will move
        """
        strategy = ConflictStrategy(strategy)
        plan = OrganizationPlan(directory=directory, strategy=strategy)
        planned: set[Path] = set()
        counts: Counter[str] = Counter()

        for entry in files:
            category = self._categorizer.category_for(entry.name)
            folder = directory / category
            if self._subpaths is not None:
                subpath = self._subpaths.subpath_for(entry, category)
                if subpath:
                    folder = folder / subpath
            destination = folder / entry.name

            if destination == entry.path:
                plan.skipped.append(
                    SkippedFile(path=entry.path, reason="already organized")
                )
                continue

            conflict_state = "none"
            if destination in planned:
                # Another file of this batch already claims the destination
                if strategy is ConflictStrategy.SKIP:
                    plan.skipped.append(
                        SkippedFile(
                            path=entry.path,
                            reason=f"collides with planned destination {destination}",
                        )
                    )
                    continue
                destination = self._free_name(destination, entry, planned)
                conflict_state = "renamed"
            elif os.path.lexists(destination):
                if strategy is ConflictStrategy.SKIP:
                    plan.skipped.append(
                        SkippedFile(path=entry.path, reason="destination exists")
                    )
                    continue
                if strategy is ConflictStrategy.RENAME:
                    destination = self._free_name(destination, entry, planned)
                    conflict_state = "renamed"
                elif strategy is ConflictStrategy.OVERWRITE:
                    conflict_state = "overwrite"
                elif self._source_is_newer(entry.path, destination):
                    conflict_state = "overwrite"
                else:
                    plan.skipped.append(
                        SkippedFile(path=entry.path, reason="destination is newer")
                    )
                    continue

            planned.add(destination)
            counts[category] += 1
            plan.moves.append(
                PlannedMove(
                    source=entry.path,
                    destination=destination,
                    category=category,
                    conflict_state=conflict_state,
                    strategy=strategy,
                )
            )

        plan.category_counts = dict(counts)
        return plan

    @staticmethod
    def _free_name(destination: Path, entry: FileEntry, planned: set[Path]) -> Path:
        stem = Path(entry.name).stem
        counter = 1
        candidate = numbered_path(destination, counter, stem)
        while candidate in planned or os.path.lexists(candidate):
            counter += 1
            candidate = numbered_path(destination, counter, stem)
        return candidate

    @staticmethod
    def _source_is_newer(source: Path, destination: Path) -> bool:
        try:
            return mtime_of(source) >= mtime_of(destination)
        except FileNotFoundError:
            return True

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #

    async def execute(self, plan: OrganizationPlan) -> ExecutionReport:
        """Perform the moves of ``plan``.

        Per-file failures are collected and the batch continues, except that
        it stops after too many consecutive failures. A rollback manifest is
        written for whatever succeeded.

        Args:
            plan: Plan produced by ``plan``

        Returns:
            ExecutionReport with moves, errors and the manifest id
        """
        report = ExecutionReport(skipped=list(plan.skipped))
        log = self._logger.bind(
            directory=str(plan.directory), strategy=plan.strategy.value
        )
        statistics: Counter[str] = Counter()
        consecutive_errors = 0

        for index, move in enumerate(plan.moves):
            if consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
                remaining = len(plan.moves) - index
                report.warnings.append(
                    f"Aborted after {MAX_CONSECUTIVE_ERRORS} consecutive errors. "
                    f"{remaining} files remaining unprocessed."
                )
                log.warning("organize.aborted", remaining=remaining)
                break

            reserved = next(
                (
                    name
                    for name in (move.source.name, move.destination.name)
                    if is_reserved_name(name)
                ),
                None,
            )
            if reserved is not None:
                reason = f"reserved device name: {reserved}"
                report.skipped.append(SkippedFile(path=move.source, reason=reason))
                report.warnings.append(f"Skipped {move.source}: {reason}")
                continue

            try:
                result = await anyio.to_thread.run_sync(self._execute_move, move)
            except SortGuardError as exc:
                consecutive_errors += 1
                report.errors.append(
                    MoveError(
                        path=str(move.source), kind=exc.kind.value, message=exc.message
                    )
                )
                if isinstance(exc, BackupRestoreFailed):
                    log.critical(
                        "organize.restore_failed",
                        destination=str(move.destination),
                        backup_path=exc.backup_path,
                    )
                else:
                    log.warning(
                        "organize.move_failed",
                        source=str(move.source),
                        error=exc.kind.value,
                    )
                continue

            consecutive_errors = 0
            if isinstance(result, _Skipped):
                report.skipped.append(
                    SkippedFile(path=move.source, reason=result.reason)
                )
                continue

            statistics[move.category] += 1
            report.actions.append(
                MoveRecord(
                    source=move.source,
                    destination=result.destination,
                    category=move.category,
                )
            )
            report.rollback_actions.append(result.action)

        report.statistics = dict(statistics)

        if report.rollback_actions:
            try:
                report.manifest_id = await anyio.to_thread.run_sync(
                    self._rollback.create_manifest,
                    f"Organize {plan.directory} ({len(report.rollback_actions)} files)",
                    report.rollback_actions,
                )
            except OSError as exc:
                report.warnings.append(f"Rollback manifest could not be written: {exc}")
                log.error("organize.manifest_failed", error=str(exc))

        log.info(
            "organize.summary",
            moved=report.success_count,
            failed=report.error_count,
            skipped=len(report.skipped),
            manifest_id=report.manifest_id,
        )
        return report

    def _execute_move(self, move: PlannedMove) -> _Moved | _Skipped:
        source = self._validator.validate(
            move.source, allow_symlinks=False, require_exists=True
        ).path
        destination = self._validator.validate(move.destination).path

        try:
            ensure_parent_dir(destination)
            if move.conflict_state == "overwrite" and os.path.lexists(destination):
                if (
                    move.strategy is ConflictStrategy.OVERWRITE_IF_NEWER
                    and mtime_of(source) < mtime_of(destination)
                ):
                    return _Skipped("destination is newer")
                return self._overwrite(source, destination)

            on_exists = "skip" if move.strategy is ConflictStrategy.SKIP else "rename"
            outcome = move_with_retries(
                source, destination, on_exists=on_exists, base_stem=source.stem
            )
        except OSError as exc:
            raise translate_os_error(exc, source) from exc

        if not outcome.moved:
            return _Skipped("destination appeared after planning")
        return _Moved(
            destination=outcome.destination,
            action=RollbackAction(
                type="move",
                original_path=str(source),
                current_path=str(outcome.destination),
                timestamp=epoch_ms(),
            ),
        )

    def _overwrite(self, source: Path, destination: Path) -> _Moved:
        """Replace ``destination``, keeping the old file in the backup directory."""
        backup = get_backup_path(self._backup_dir, destination.name, "overwrite")
        rename_no_clobber(destination, backup)
        debug(f"Backed up existing file to: {backup}")

        try:
            exclusive_move(source, destination)
        except OSError as exc:
            try:
                rename_no_clobber(backup, destination)
            except OSError as restore_exc:
                raise BackupRestoreFailed(destination, backup, restore_exc) from exc
            debug(f"Restored {destination} from {backup}")
            raise

        return _Moved(
            destination=destination,
            action=RollbackAction(
                type="move",
                original_path=str(source),
                current_path=str(destination),
                overwritten_backup_path=str(backup),
                timestamp=epoch_ms(),
            ),
        )

    # ------------------------------------------------------------------ #

    async def organize(
        self,
        directory: str | Path,
        files: Sequence[FileEntry] | None = None,
        strategy: ConflictStrategy = ConflictStrategy.RENAME,
        *,
        dry_run: bool = False,
        include_subdirs: bool = False,
    ) -> ExecutionReport:
        """Validate ``directory``, plan and (unless ``dry_run``) execute.

        Args:
            directory: Directory to organize
            files: Files to organize; scanned from ``directory`` when omitted
            strategy: Conflict strategy
            dry_run: Return the planned moves without performing them
            include_subdirs: Scan subdirectories when ``files`` is omitted

        Returns:
            ExecutionReport; for a dry run it lists planned moves and has no
            manifest
        """
        root = self._validator.validate(directory, require_exists=True).path
        if files is None:
            files = await anyio.to_thread.run_sync(
                lambda: scan_directory(root, include_subdirs=include_subdirs)
            )
        plan = self.plan(root, files, strategy)

        if dry_run:
            return ExecutionReport(
                statistics=plan.category_counts,
                actions=[
                    MoveRecord(
                        source=m.source, destination=m.destination, category=m.category
                    )
                    for m in plan.moves
                ],
                skipped=plan.skipped,
                warnings=plan.warnings,
            )
        return await self.execute(plan)
