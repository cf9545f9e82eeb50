"""Race-resistant filesystem primitives.

Nothing in this module checks a path and then acts on it. Opens use
``O_NOFOLLOW`` so a swapped-in symlink is refused by the kernel, and new files
are created with ``O_CREAT | O_EXCL`` so an existing destination is never
clobbered. Collisions are retried through an explicit, bounded loop that
returns tagged attempt results instead of raising.
"""

import errno
import hashlib
import os
import stat
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal

from sortguard.core.constants import MAX_COLLISION_RETRIES, READ_CHUNK_SIZE
from sortguard.core.errors import DestinationCollision
from sortguard.fs.paths import ensure_parent_dir, next_counter, numbered_path
from sortguard.utils.debug import debug

O_NOFOLLOW: int = getattr(os, "O_NOFOLLOW", 0)
O_NONBLOCK: int = getattr(os, "O_NONBLOCK", 0)
O_CLOEXEC: int = getattr(os, "O_CLOEXEC", 0)
O_BINARY: int = getattr(os, "O_BINARY", 0)


@contextmanager
def open_no_follow(path: str | Path, flags: int = os.O_RDONLY) -> Iterator[int]:
    """Open ``path`` without following a final symlink and yield the descriptor.

    The descriptor is closed on every exit path. Where the platform has no
    ``O_NOFOLLOW`` an ``lstat`` guard runs immediately before the open.

    Raises:
        OSError: ``ELOOP`` if the final component is a symlink, or whatever
            ``os.open`` raises
    """
    if not O_NOFOLLOW and stat.S_ISLNK(os.lstat(path).st_mode):
        raise OSError(errno.ELOOP, "Refusing to follow symlink", str(path))
    fd = os.open(path, flags | O_NOFOLLOW | O_CLOEXEC | O_BINARY)
    try:
        yield fd
    finally:
        os.close(fd)


def _write_all(fd: int, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


def exclusive_copy(src: Path, dst: Path) -> None:
    """Copy regular file ``src`` to a newly created ``dst``.

    Source mode bits and timestamps are carried over. A partially written
    destination is removed before the error propagates.

    Raises:
        FileExistsError: If ``dst`` already exists (nothing is written)
        OSError: ``ELOOP`` if either side is a symlink, ``EINVAL`` if ``src``
            is not a regular file
    """
    with open_no_follow(src) as in_fd:
        st = os.fstat(in_fd)
        if not stat.S_ISREG(st.st_mode):
            raise OSError(errno.EINVAL, "Not a regular file", str(src))

        out_fd = os.open(
            dst,
            os.O_WRONLY | os.O_CREAT | os.O_EXCL | O_NOFOLLOW | O_CLOEXEC | O_BINARY,
            stat.S_IMODE(st.st_mode),
        )
        try:
            while chunk := os.read(in_fd, READ_CHUNK_SIZE):
                _write_all(out_fd, chunk)
            os.fsync(out_fd)
            if os.utime in os.supports_fd:
                os.utime(out_fd, ns=(st.st_atime_ns, st.st_mtime_ns))
        except BaseException:
            os.close(out_fd)
            with suppress(OSError):
                os.unlink(dst)
            raise
        os.close(out_fd)

    if os.utime not in os.supports_fd:
        os.utime(dst, ns=(st.st_atime_ns, st.st_mtime_ns))
    debug(f"Exclusive copy: {src} -> {dst}")


def exclusive_move(src: Path, dst: Path) -> None:
    """Move ``src`` to a newly created ``dst`` (exclusive copy, then unlink).

    If the source cannot be unlinked the copy is removed again, so the file
    never ends up in both places.

    Raises:
        FileExistsError: If ``dst`` already exists
        OSError: On any other failure
    """
    exclusive_copy(src, dst)
    try:
        os.unlink(src)
    except OSError:
        debug(f"Unlink of {src} failed, removing copy {dst}")
        with suppress(FileNotFoundError):
            os.unlink(dst)
        raise
    debug(f"Exclusive move: {src} -> {dst}")


def sha256_file(path: Path) -> str:
    """SHA-256 of a regular file, read through a no-follow descriptor."""
    digest = hashlib.sha256()
    with open_no_follow(path, os.O_RDONLY | O_NONBLOCK) as fd:
        if not stat.S_ISREG(os.fstat(fd).st_mode):
            raise OSError(errno.EINVAL, "Not a regular file", str(path))
        while chunk := os.read(fd, READ_CHUNK_SIZE):
            digest.update(chunk)
    return digest.hexdigest()


#: ``link`` errors meaning "no hard links here" rather than "destination taken"
_LINK_UNSUPPORTED = frozenset(
    {errno.EXDEV, errno.EPERM, errno.EMLINK, errno.ENOTSUP, errno.EOPNOTSUPP}
)


def rename_no_clobber(src: Path, dst: Path) -> None:
    """Rename ``src`` to ``dst`` but never replace an existing ``dst``.

    The new name is created with ``link``, which fails with ``EEXIST`` as a
    single step if anything (even a dangling symlink) already holds ``dst``;
    only then is ``src`` unlinked. Where hard links are unavailable, such as
    across filesystems, an exclusive move is used instead.

    Raises:
        FileExistsError: If ``dst`` exists
        OSError: On any other failure
    """
    try:
        os.link(src, dst, follow_symlinks=False)
    except FileExistsError:
        raise
    except (NotImplementedError, OSError) as e:
        if isinstance(e, OSError) and e.errno not in _LINK_UNSUPPORTED:
            raise
        debug(f"Hard link unavailable ({e}), moving {src} -> {dst}")
        exclusive_move(src, dst)
        return

    try:
        os.unlink(src)
    except OSError:
        with suppress(FileNotFoundError):
            os.unlink(dst)
        raise
    debug(f"Linked rename: {src} -> {dst}")


class AttemptStatus(Enum):
    RETRY = "retry"
    SUCCESS = "success"
    GIVE_UP = "give_up"


@dataclass(frozen=True)
class Attempt:
    status: AttemptStatus
    destination: Path


@dataclass(frozen=True)
class MoveOutcome:
    """Final result of ``move_with_retries``.

    Attributes:
        destination: Where the file landed, or the taken path on give-up
        moved: False when the skip policy gave up on an existing destination
        attempts: Number of exclusive-create attempts made
    """

    destination: Path
    moved: bool
    attempts: int


def _attempt_move(
    src: Path, dst: Path, on_exists: Literal["rename", "skip"]
) -> Attempt:
    try:
        exclusive_move(src, dst)
    except FileExistsError:
        if on_exists == "skip":
            return Attempt(AttemptStatus.GIVE_UP, dst)
        return Attempt(AttemptStatus.RETRY, dst)
    return Attempt(AttemptStatus.SUCCESS, dst)


def move_with_retries(
    src: Path,
    dst: Path,
    *,
    on_exists: Literal["rename", "skip"] = "rename",
    base_stem: str | None = None,
    max_attempts: int = MAX_COLLISION_RETRIES,
) -> MoveOutcome:
    """Move ``src`` to ``dst``, renaming to ``<stem>_N`` while names are taken.

    Args:
        src: File to move
        dst: Preferred destination
        on_exists: ``rename`` to advance the counter, ``skip`` to give up
        base_stem: Stem numbered names are built from (defaults to ``src`` stem)
        max_attempts: Upper bound on exclusive-create attempts

    Returns:
        MoveOutcome describing where the file ended up

    Raises:
        DestinationCollision: If every attempted name was taken
        OSError: On non-collision failures
    """
    ensure_parent_dir(dst)
    stem = base_stem if base_stem is not None else src.stem
    counter = next_counter(dst, stem)
    candidate = dst

    for attempt_no in range(1, max_attempts + 1):
        attempt = _attempt_move(src, candidate, on_exists)
        if attempt.status is AttemptStatus.SUCCESS:
            return MoveOutcome(attempt.destination, True, attempt_no)
        if attempt.status is AttemptStatus.GIVE_UP:
            return MoveOutcome(attempt.destination, False, attempt_no)
        debug(f"Destination taken, retrying: {candidate}")
        candidate = numbered_path(dst, counter, stem)
        counter += 1

    raise DestinationCollision(
        f"No free destination after {max_attempts} attempts",
        path=dst,
        hint="Clean up numbered copies in the destination folder",
    )
