"""Rollback manifests and reverse replay.

Each organize or delete operation writes one ``<uuid>.json`` manifest listing
the actions it performed. ``RollbackService.rollback`` replays those actions
in reverse order and then deletes the manifest, so a manifest can be applied
at most once.
"""

from __future__ import annotations

import json
import os
import tempfile
import uuid
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import anyio
import structlog
from pydantic import ValidationError

from sortguard.core.constants import MANIFEST_ID_PATTERN
from sortguard.core.errors import (
    ErrorKind,
    InvalidManifestId,
    ManifestCorrupt,
    ManifestNotFound,
    SortGuardError,
    translate_os_error,
)
from sortguard.core.schemas import (
    MoveError,
    RollbackAction,
    RollbackManifest,
    RollbackReport,
)
from sortguard.fs.fs_ops import rename_no_clobber
from sortguard.fs.paths import ensure_parent_dir, epoch_ms
from sortguard.security.path_validator import PathValidator
from sortguard.utils.debug import debug


class _ActionFailed(Exception):
    """Internal signal that one action could not be undone."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        self.kind = kind
        super().__init__(message)


class RollbackService:
    """Owns the manifest directory and replays manifests in reverse.

    Concurrent ``rollback`` calls on the same id are not coordinated; callers
    must not undo one manifest from two places at once.
    """

    def __init__(
        self,
        storage_dir: Path,
        *,
        validator: PathValidator | None = None,
        logger: Any = None,
    ) -> None:
        """Initialize rollback service.

        Args:
            storage_dir: Directory holding ``<uuid>.json`` manifests
            validator: Optional validator action paths must satisfy on replay
            logger: Optional structlog logger instance
        """
        self.storage_dir = storage_dir
        self._validator = validator
        self._logger = (logger or structlog.get_logger()).bind(
            component="rollback"
        )

    # ------------------------------------------------------------------ #
    # Manifest store
    # ------------------------------------------------------------------ #

    def create_manifest(
        self, description: str, actions: Sequence[RollbackAction]
    ) -> str:
        """Persist a new manifest and return its id.

        The file is written to a temporary name in the same directory and
        moved into place with ``os.replace`` so readers never see a partial
        manifest.
        """
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        manifest = RollbackManifest(
            id=str(uuid.uuid4()),
            timestamp=epoch_ms(),
            description=description,
            actions=list(actions),
        )
        payload = manifest.model_dump_json(by_alias=True, exclude_none=True, indent=2)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.storage_dir, prefix=".manifest-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._manifest_path(manifest.id))
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        self._logger.info(
            "manifest.created", manifest_id=manifest.id, actions=len(manifest.actions)
        )
        return manifest.id

    def list_manifests(self) -> list[RollbackManifest]:
        """Return every readable manifest, newest first.

        A missing storage directory means there are no manifests. Unreadable
        files are logged and left out.
        """
        if not self.storage_dir.is_dir():
            return []

        manifests: list[RollbackManifest] = []
        for entry in sorted(self.storage_dir.glob("*.json")):
            try:
                manifests.append(self._load(entry, entry.stem))
            except SortGuardError as exc:
                self._logger.warning(
                    "manifest.unreadable", file=entry.name, error=exc.message
                )
        return sorted(manifests, key=lambda m: m.timestamp, reverse=True)

    def get_manifest(self, manifest_id: str) -> RollbackManifest:
        """Load one manifest by id.

        Raises:
            InvalidManifestId: If the id is not a UUID
            ManifestNotFound: If no manifest has that id
            ManifestCorrupt: If the manifest cannot be parsed
        """
        self._check_id(manifest_id)
        return self._load(self._manifest_path(manifest_id), manifest_id)

    # ------------------------------------------------------------------ #
    # Replay
    # ------------------------------------------------------------------ #

    async def rollback(self, manifest_id: str) -> RollbackReport:
        """Undo every action of a manifest, last action first.

        Per-action failures are collected into the report and do not stop the
        replay. The manifest is deleted afterwards.

        Raises:
            InvalidManifestId: If the id is not a UUID
            ManifestNotFound: If no manifest has that id
            ManifestCorrupt: If the manifest cannot be parsed
        """
        manifest = await anyio.to_thread.run_sync(self.get_manifest, manifest_id)
        log = self._logger.bind(manifest_id=manifest_id)
        report = RollbackReport(manifest_id=manifest_id)

        for action in reversed(manifest.actions):
            try:
                warning = await anyio.to_thread.run_sync(self._undo, action)
            except _ActionFailed as exc:
                report.failed += 1
                report.errors.append(
                    MoveError(
                        path=action.original_path, kind=exc.kind.value, message=str(exc)
                    )
                )
                log.warning(
                    "rollback.action_failed",
                    action=action.type,
                    path=action.original_path,
                    error=str(exc),
                )
                continue
            if warning:
                report.warnings.append(warning)
            else:
                report.success += 1

        try:
            await anyio.to_thread.run_sync(os.unlink, self._manifest_path(manifest_id))
            report.manifest_deleted = True
        except OSError as exc:
            report.warnings.append(
                f"Manifest {manifest_id} could not be deleted "
                f"and may be replayed: {exc}"
            )
            log.warning("rollback.manifest_not_deleted", error=str(exc))

        log.info(
            "rollback.summary",
            success=report.success,
            failed=report.failed,
            warnings=len(report.warnings),
        )
        return report

    def _undo(self, action: RollbackAction) -> str | None:
        """Undo one action. Returns a warning when nothing needed doing."""
        self._check_action_paths(action)
        if action.type == "move":
            return self._undo_move(action)
        if action.type == "copy":
            return self._undo_copy(action)
        return self._undo_delete(action)

    def _undo_move(self, action: RollbackAction) -> str | None:
        if action.current_path is None:
            raise _ActionFailed(
                ErrorKind.MANIFEST_CORRUPT, "Move action has no current path"
            )
        current = Path(action.current_path)
        original = Path(action.original_path)

        if not os.path.lexists(current):
            if os.path.lexists(original) and action.overwritten_backup_path is None:
                return f"Already undone: {original} is back in place"
            raise _ActionFailed(
                ErrorKind.NOT_FOUND, f"Current file not found: {current}"
            )

        ensure_parent_dir(original)
        self._relocate(current, original, "would overwrite")

        if action.overwritten_backup_path is not None:
            backup = Path(action.overwritten_backup_path)
            if not os.path.lexists(backup):
                raise _ActionFailed(
                    ErrorKind.BACKUP_RESTORE_FAILED,
                    f"CRITICAL: overwritten file backup missing: {backup}",
                )
            self._relocate(
                backup, current, "cannot restore backup, destination occupied"
            )
        debug(f"Undid move {original} <- {current}")
        return None

    def _undo_copy(self, action: RollbackAction) -> str | None:
        if action.current_path is None:
            raise _ActionFailed(
                ErrorKind.MANIFEST_CORRUPT, "Copy action has no current path"
            )
        try:
            os.unlink(action.current_path)
        except FileNotFoundError:
            raise _ActionFailed(
                ErrorKind.NOT_FOUND, f"File to un-copy not found: {action.current_path}"
            ) from None
        except OSError as exc:
            err = translate_os_error(exc, action.current_path)
            raise _ActionFailed(err.kind, err.message) from exc
        return None

    def _undo_delete(self, action: RollbackAction) -> str | None:
        if action.backup_path is None:
            raise _ActionFailed(
                ErrorKind.BACKUP_RESTORE_FAILED,
                "Cannot restore deleted file: no backup path recorded",
            )
        backup = Path(action.backup_path)
        if not os.path.lexists(backup):
            raise _ActionFailed(
                ErrorKind.BACKUP_RESTORE_FAILED,
                f"Cannot restore deleted file, backup not found: {backup}",
            )
        original = Path(action.original_path)
        ensure_parent_dir(original)
        self._relocate(backup, original, "cannot restore, destination already exists")
        return None

    @staticmethod
    def _relocate(src: Path, dst: Path, collision_message: str) -> None:
        try:
            rename_no_clobber(src, dst)
        except FileExistsError:
            raise _ActionFailed(
                ErrorKind.DESTINATION_COLLISION, f"{collision_message}: {dst}"
            ) from None
        except OSError as exc:
            err = translate_os_error(exc, src)
            raise _ActionFailed(err.kind, err.message) from exc

    def _check_action_paths(self, action: RollbackAction) -> None:
        if self._validator is None:
            return
        for raw in (action.original_path, action.current_path):
            if raw is not None and not self._validator.is_allowed(raw):
                raise _ActionFailed(
                    ErrorKind.PATH_REJECTED, f"Path outside allowed directories: {raw}"
                )

    # ------------------------------------------------------------------ #

    def _manifest_path(self, manifest_id: str) -> Path:
        return self.storage_dir / f"{manifest_id}.json"

    @staticmethod
    def _check_id(manifest_id: str) -> None:
        if not MANIFEST_ID_PATTERN.match(manifest_id):
            raise InvalidManifestId(
                f"Invalid manifest ID format: {manifest_id}",
                hint="Manifest ids are UUIDs, see the history command",
            )

    @staticmethod
    def _load(path: Path, manifest_id: str) -> RollbackManifest:
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ManifestNotFound(
                f"Manifest {manifest_id} not found", path=path
            ) from None
        except OSError as exc:
            raise translate_os_error(exc, path) from exc
        try:
            return RollbackManifest.model_validate(json.loads(content))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ManifestCorrupt(
                f"Failed to parse manifest {manifest_id}: {exc}", path=path
            ) from exc
