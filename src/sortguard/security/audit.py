"""Structured audit trail for file access.

Every record goes through structlog as an ``audit.<outcome>`` event. Paths
are redacted with ``redact_path`` before they are logged.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import structlog

from sortguard.security.sensitive import redact_path

Outcome = Literal["start", "success", "failure"]


class AuditLogger:
    """Audit sink accepting ``(operation, path, outcome, context)`` records."""

    def __init__(self, logger: Any = None) -> None:
        self._logger = (logger or structlog.get_logger()).bind(component="audit")

    def record(
        self,
        operation: str,
        path: str | Path,
        outcome: Outcome,
        **context: Any,
    ) -> None:
        method = self._logger.warning if outcome == "failure" else self._logger.info
        method(
            f"audit.{outcome}",
            operation=operation,
            path=redact_path(path),
            **context,
        )
