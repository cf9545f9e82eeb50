"""Filesystem operations for exclusive moves and rollback functionality.

This module provides race-resistant filesystem primitives and the rollback
manifest store, including no-follow opens, exclusive-create moves and
reverse replay of recorded actions.
"""

from sortguard.fs.fs_ops import (
    exclusive_move,
    move_with_retries,
    open_no_follow,
    rename_no_clobber,
)
from sortguard.fs.manifest import RollbackService
from sortguard.fs.paths import get_backup_path

__all__ = [
    "RollbackService",
    "exclusive_move",
    "get_backup_path",
    "move_with_retries",
    "open_no_follow",
    "rename_no_clobber",
]
