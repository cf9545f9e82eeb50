"""Explicit construction of the SortGuard service graph."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from sortguard.core.categorizer import Categorizer, SubpathResolver
from sortguard.core.duplicates import DuplicateFinder
from sortguard.core.organizer import AtomicMover
from sortguard.core.settings import Settings, load_settings
from sortguard.fs.manifest import RollbackService
from sortguard.readers.secure_reader import SecureFileReader
from sortguard.security.audit import AuditLogger
from sortguard.security.path_validator import PathValidator
from sortguard.security.rate_limiter import RateLimiter


@dataclass(frozen=True)
class Services:
    settings: Settings
    validator: PathValidator
    rate_limiter: RateLimiter
    audit: AuditLogger
    reader: SecureFileReader
    rollback: RollbackService
    mover: AtomicMover
    duplicates: DuplicateFinder


def build_services(
    settings: Settings | None = None,
    *,
    blocked_patterns: Sequence[str] | None = None,
    subpath_resolver: SubpathResolver | None = None,
    logger: Any = None,
) -> Services:
    """Wire every service from ``settings``.

    Args:
        settings: Resolved settings; loaded from the environment when omitted
        blocked_patterns: Override for the platform block-list
        subpath_resolver: Optional collaborator for category subfolders
        logger: Optional structlog logger shared by all services

    Returns:
        Services holding one instance of each service
    """
    settings = settings or load_settings()
    logger = logger or structlog.get_logger()

    validator = PathValidator(
        settings.allowed_dirs,
        base_dir=settings.base_dir,
        blocked_patterns=blocked_patterns,
    )
    rate_limiter = RateLimiter(settings.rate_per_minute, settings.rate_per_hour)
    audit = AuditLogger(logger)
    rollback = RollbackService(
        settings.rollback_dir, validator=validator, logger=logger
    )

    return Services(
        settings=settings,
        validator=validator,
        rate_limiter=rate_limiter,
        audit=audit,
        reader=SecureFileReader(
            validator, rate_limiter, audit, max_read_bytes=settings.max_read_bytes
        ),
        rollback=rollback,
        mover=AtomicMover(
            validator,
            rollback,
            settings.backup_dir,
            categorizer=Categorizer(),
            subpath_resolver=subpath_resolver,
            logger=logger,
        ),
        duplicates=DuplicateFinder(
            validator, rollback, settings.backup_dir, logger=logger
        ),
    )
