"""Pydantic schemas for the validate/read/plan/execute/rollback pipeline.

These schemas define the data structures passed between SortGuard services:
- ValidatedPath: Output of path validation
- ReadOptions / ReadResult: Secure reader input and output
- OrganizationPlan / ExecutionReport: AtomicMover plan and execution results
- RollbackManifest / RollbackReport: Persisted undo journal and replay outcome

All schemas use Pydantic v2 for validation and serialization.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class AbortSignal(Protocol):
    """Anything exposing ``is_set()``, e.g. ``anyio.Event`` or ``threading.Event``."""

    def is_set(self) -> bool: ...


class ConflictStrategy(str, Enum):
    """How the AtomicMover resolves a destination that is already taken.

    Attributes:
        RENAME: Append ``_N`` to the stem until a free name is found
        SKIP: Leave the source where it is
        OVERWRITE: Back up the existing destination, then replace it
        OVERWRITE_IF_NEWER: Overwrite only when the source is at least as new
    """

    RENAME = "rename"
    SKIP = "skip"
    OVERWRITE = "overwrite"
    OVERWRITE_IF_NEWER = "overwrite_if_newer"


class ValidatedPath(BaseModel):
    """A path approved by the PathValidator.

    Attributes:
        path: Absolute, lexically normalized path
        real_path: Symlink-resolved path (equal to ``path`` when nothing resolves)
        exists: Whether the path existed at validation time
        is_symlink: Whether the final component was a symlink
    """

    path: Path
    real_path: Path
    exists: bool
    is_symlink: bool = False

    model_config = {"frozen": True}

    @field_serializer("path", "real_path")
    def serialize_path(self, path: Path) -> str:
        """Serialize Path to string for JSON."""
        return str(path)


# ============================================================================
# Secure reads
# ============================================================================


class ReadOptions(BaseModel):
    """Options for a single secure read.

    Attributes:
        encoding: Text encoding to decode with; ``None`` returns raw bytes
        max_bytes: Per-call read ceiling; ``None`` uses the reader default
        offset: Byte offset to start reading from
        signal: Optional abort signal checked at chunk boundaries
    """

    encoding: str | None = "utf-8"
    max_bytes: int | None = Field(default=None, gt=0)
    offset: int = Field(default=0, ge=0)
    signal: Any = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class FileMetadata(BaseModel):
    path: Path
    mime_type: str
    size: int
    read_at: datetime
    checksum: str
    encoding: str | None = None

    @field_serializer("path")
    def serialize_path(self, path: Path) -> str:
        return str(path)


class ReadResult(BaseModel):
    """Data returned by ``SecureFileReader.read``.

    ``bytes_read`` never exceeds the effective ``max_bytes``, and
    ``metadata.checksum`` is the SHA-256 of exactly the bytes that were read.
    """

    data: str | bytes
    bytes_read: int
    metadata: FileMetadata


# ============================================================================
# Scanning and planning
# ============================================================================


class FileEntry(BaseModel):
    """A regular file discovered by the scanner.

    Attributes:
        path: Absolute path to the file
        name: Basename
        size: Size in bytes
        modified: Last modification time (UTC)
    """

    path: Path
    name: str
    size: int
    modified: datetime

    @field_serializer("path")
    def serialize_path(self, path: Path) -> str:
        return str(path)


class PlannedMove(BaseModel):
    """A single move decided by ``AtomicMover.plan``.

    Attributes:
        source: File to move
        destination: Final destination, already de-conflicted at plan time
        category: Category folder the file belongs to
        conflict_state: ``renamed`` when ``_N`` was appended, ``overwrite`` when
            an existing destination will be replaced
        strategy: Strategy the plan was built with
    """

    source: Path
    destination: Path
    category: str
    conflict_state: Literal["none", "renamed", "overwrite"] = "none"
    strategy: ConflictStrategy = ConflictStrategy.RENAME

    @field_serializer("source", "destination")
    def serialize_path(self, path: Path) -> str:
        return str(path)


class SkippedFile(BaseModel):
    path: Path
    reason: str

    @field_serializer("path")
    def serialize_path(self, path: Path) -> str:
        return str(path)


class OrganizationPlan(BaseModel):
    """Side-effect-free description of what an organize run would do."""

    directory: Path
    strategy: ConflictStrategy
    moves: list[PlannedMove] = Field(default_factory=list)
    category_counts: dict[str, int] = Field(default_factory=dict)
    skipped: list[SkippedFile] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @field_serializer("directory")
    def serialize_directory(self, directory: Path) -> str:
        return str(directory)


# ============================================================================
# Rollback journal
# ============================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class RollbackAction(_CamelModel):
    """One reversible filesystem action.

    Attributes:
        type: ``move``, ``copy`` or ``delete``
        original_path: Where the file lived before the action
        current_path: Where the file lives after the action (move/copy)
        backup_path: Backup copy location (delete)
        overwritten_backup_path: Backup of the file a move replaced
        timestamp: Epoch milliseconds at which the action completed
    """

    type: Literal["move", "copy", "delete"]
    original_path: str
    current_path: str | None = None
    backup_path: str | None = None
    overwritten_backup_path: str | None = None
    timestamp: int


class RollbackManifest(_CamelModel):
    """Persisted, ordered record of actions from one operation.

    Serialized as ``<id>.json`` with camelCase keys.
    """

    id: str
    timestamp: int
    description: str
    actions: list[RollbackAction] = Field(default_factory=list)


# ============================================================================
# Reports
# ============================================================================


class MoveRecord(BaseModel):
    source: Path
    destination: Path
    category: str

    @field_serializer("source", "destination")
    def serialize_path(self, path: Path) -> str:
        return str(path)


class MoveError(BaseModel):
    """A per-file failure recorded during a batch."""

    path: str
    kind: str
    message: str


class ExecutionReport(BaseModel):
    """Outcome of ``AtomicMover.execute``.

    Attributes:
        statistics: Count of successful moves per category
        actions: Moves that completed
        rollback_actions: Undo journal entries, one per completed move
        errors: Itemized per-file failures
        skipped: Files deliberately not moved
        warnings: Non-fatal notices (reserved names, aborted batch)
        manifest_id: Rollback manifest written for this batch, if any
    """

    statistics: dict[str, int] = Field(default_factory=dict)
    actions: list[MoveRecord] = Field(default_factory=list)
    rollback_actions: list[RollbackAction] = Field(default_factory=list)
    errors: list[MoveError] = Field(default_factory=list)
    skipped: list[SkippedFile] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    manifest_id: str | None = None

    @property
    def success_count(self) -> int:
        return len(self.actions)

    @property
    def error_count(self) -> int:
        return len(self.errors)


class RollbackReport(BaseModel):
    manifest_id: str
    success: int = 0
    failed: int = 0
    errors: list[MoveError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    manifest_deleted: bool = False


# ============================================================================
# Duplicates
# ============================================================================


class DuplicateStrategy(str, Enum):
    BEST_LOCATION = "best_location"
    BEST_NAME = "best_name"
    NEWEST = "newest"
    OLDEST = "oldest"


class ScoredFile(BaseModel):
    path: Path
    size: int
    modified: datetime
    score: float
    reasons: list[str] = Field(default_factory=list)

    @field_serializer("path")
    def serialize_path(self, path: Path) -> str:
        return str(path)


class DuplicateGroup(BaseModel):
    """Files sharing one content hash, best candidate first.

    Attributes:
        hash: SHA-256 of the shared content
        size_bytes: Size of each copy
        files: Scored files, descending by score
        recommended_keep: Highest scoring file
        recommended_delete: Every other file in the group
        wasted_space_bytes: Bytes reclaimable by deleting the extra copies
    """

    hash: str
    size_bytes: int
    files: list[ScoredFile]
    recommended_keep: Path
    recommended_delete: list[Path]
    wasted_space_bytes: int

    @field_serializer("recommended_keep")
    def serialize_keep(self, path: Path) -> str:
        return str(path)

    @field_serializer("recommended_delete")
    def serialize_delete(self, paths: list[Path]) -> list[str]:
        return [str(p) for p in paths]


class DeletionReport(BaseModel):
    deleted: list[str] = Field(default_factory=list)
    failed: list[MoveError] = Field(default_factory=list)
    manifest_id: str | None = None
