"""Duplicate detection, keep-scoring and reversible deletion.

Files are grouped by size first and hashed only when another file shares
their size. Within a group each copy gets a score (higher is better to keep)
and the best one becomes ``recommended_keep``. Deletion never unlinks: files
are moved into the backup directory and recorded in a rollback manifest.
"""

from __future__ import annotations

import re
from collections import defaultdict
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import anyio
import structlog

from sortguard.core.errors import PathRejected, SortGuardError, translate_os_error
from sortguard.core.schemas import (
    DeletionReport,
    DuplicateGroup,
    DuplicateStrategy,
    FileEntry,
    MoveError,
    RollbackAction,
    ScoredFile,
)
from sortguard.fs.fs_ops import rename_no_clobber, sha256_file
from sortguard.fs.manifest import RollbackService
from sortguard.fs.paths import epoch_ms, get_backup_path
from sortguard.security.path_validator import PathValidator
from sortguard.utils.debug import debug

_COPY_MARKER = re.compile(r"copy| \(\d+\)|_\d+$")
_UNORGANIZED = ("downloads", "temp", "tmp")
_ORGANIZED = ("documents", "projects", "pictures")


def score_file(entry: FileEntry, strategy: DuplicateStrategy) -> ScoredFile:
    """Score one copy of a duplicated file; higher means better to keep.

    - path depth: -1 per path segment
    - downloads/temp/tmp anywhere in the path: -50
    - documents/projects/pictures anywhere in the path: +20
    - copy markers in the name (``copy``, `` (1)``, trailing ``_1``): -30
    - ``newest`` / ``oldest``: plus / minus the mtime in ms scaled by 1e-9

    ``best_name`` only applies the name penalty.
    """
    score = 0.0
    reasons: list[str] = []
    normalized = str(entry.path).replace("\\", "/")
    lower_path = normalized.lower()

    if strategy is not DuplicateStrategy.BEST_NAME:
        depth = len(normalized.split("/"))
        score -= depth
        reasons.append(f"Path depth: {depth}")

        if any(word in lower_path for word in _UNORGANIZED):
            score -= 50
            reasons.append("Location penalty (Downloads/Temp)")
        if any(word in lower_path for word in _ORGANIZED):
            score += 20
            reasons.append("Location bonus (Organized folder)")

    if _COPY_MARKER.search(Path(entry.name).stem):
        score -= 30
        reasons.append("Filename penalty (Copy/Duplicate marker)")

    age_ms = entry.modified.timestamp() * 1000
    if strategy is DuplicateStrategy.NEWEST:
        score += age_ms / 1e9
        reasons.append("Newest bonus")
    elif strategy is DuplicateStrategy.OLDEST:
        score -= age_ms / 1e9
        reasons.append("Oldest bonus")

    return ScoredFile(
        path=entry.path,
        size=entry.size,
        modified=entry.modified,
        score=score,
        reasons=reasons,
    )


class DuplicateFinder:
    """Finds identical files and deletes extra copies reversibly."""

    def __init__(
        self,
        validator: PathValidator,
        rollback: RollbackService,
        backup_dir: Path,
        *,
        logger: Any = None,
    ) -> None:
        self._validator = validator
        self._rollback = rollback
        self._backup_dir = backup_dir
        self._logger = logger or structlog.get_logger()

    def find_duplicates(
        self,
        files: Sequence[FileEntry],
        strategy: DuplicateStrategy = DuplicateStrategy.BEST_LOCATION,
    ) -> list[DuplicateGroup]:
        """Group identical files and recommend which copy to keep.

        Empty files and files that cannot be hashed are ignored.

        Returns:
            Groups of two or more files, largest wasted space first
        """
        strategy = DuplicateStrategy(strategy)
        by_size: dict[int, list[FileEntry]] = defaultdict(list)
        for entry in files:
            if entry.size > 0:
                by_size[entry.size].append(entry)

        by_hash: dict[str, list[FileEntry]] = defaultdict(list)
        for same_size in by_size.values():
            if len(same_size) < 2:
                continue
            for entry in same_size:
                try:
                    by_hash[sha256_file(entry.path)].append(entry)
                except OSError as exc:
                    debug(f"Cannot hash {entry.path}: {exc}")

        groups: list[DuplicateGroup] = []
        for digest, entries in by_hash.items():
            if len(entries) < 2:
                continue
            scored = sorted(
                (score_file(e, strategy) for e in entries),
                key=lambda s: s.score,
                reverse=True,
            )
            size = entries[0].size
            groups.append(
                DuplicateGroup(
                    hash=digest,
                    size_bytes=size,
                    files=scored,
                    recommended_keep=scored[0].path,
                    recommended_delete=[s.path for s in scored[1:]],
                    wasted_space_bytes=size * (len(scored) - 1),
                )
            )

        groups.sort(key=lambda g: g.wasted_space_bytes, reverse=True)
        self._logger.info(
            "duplicates.found",
            groups=len(groups),
            wasted_bytes=sum(g.wasted_space_bytes for g in groups),
        )
        return groups

    async def delete_files(
        self,
        paths: Sequence[str | Path],
        *,
        keep: Sequence[str | Path] = (),
    ) -> DeletionReport:
        """Move files into the backup directory and record a manifest.

        Args:
            paths: Files to delete
            keep: Reference copies; when given, a file is only deleted if its
                content matches one of them, so the last copy is never removed

        Returns:
            DeletionReport with the manifest id for undoing the deletion
        """
        report = DeletionReport()
        actions: list[RollbackAction] = []
        keep_hashes = await anyio.to_thread.run_sync(self._hash_all, keep)
        kept = {Path(k) for k in keep}

        for raw in paths:
            if Path(raw) in kept:
                report.failed.append(
                    MoveError(
                        path=str(raw),
                        kind=PathRejected.kind.value,
                        message="File is listed as a copy to keep",
                    )
                )
                continue
            try:
                action = await anyio.to_thread.run_sync(
                    self._delete_one, raw, keep_hashes if keep else None
                )
            except SortGuardError as exc:
                report.failed.append(
                    MoveError(path=str(raw), kind=exc.kind.value, message=exc.message)
                )
                continue
            actions.append(action)
            report.deleted.append(action.original_path)

        if actions:
            report.manifest_id = await anyio.to_thread.run_sync(
                self._rollback.create_manifest,
                f"Delete {len(actions)} duplicate files",
                actions,
            )
        self._logger.info(
            "duplicates.deleted",
            deleted=len(report.deleted),
            failed=len(report.failed),
            manifest_id=report.manifest_id,
        )
        return report

    def _hash_all(self, paths: Sequence[str | Path]) -> set[str]:
        hashes: set[str] = set()
        for raw in paths:
            path = self._validator.validate(
                raw, allow_symlinks=False, require_exists=True
            ).path
            try:
                hashes.add(sha256_file(path))
            except OSError as exc:
                raise translate_os_error(exc, path) from exc
        return hashes

    def _delete_one(
        self, raw: str | Path, keep_hashes: set[str] | None
    ) -> RollbackAction:
        path = self._validator.validate(
            raw, allow_symlinks=False, require_exists=True
        ).path
        try:
            if keep_hashes is not None and sha256_file(path) not in keep_hashes:
                raise PathRejected(
                    path,
                    "content matches no kept copy",
                    hint="Only delete files listed as recommended_delete",
                )
            backup = get_backup_path(self._backup_dir, path.name, "delete")
            rename_no_clobber(path, backup)
        except OSError as exc:
            raise translate_os_error(exc, path) from exc
        debug(f"Deleted {path} (backup {backup})")
        return RollbackAction(
            type="delete",
            original_path=str(path),
            backup_path=str(backup),
            timestamp=epoch_ms(),
        )
