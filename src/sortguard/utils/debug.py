"""Debug utility for SortGuard.

Provides a single debug() function that can be toggled via the
SORTGUARD_DEBUG environment variable. Low-level filesystem code uses it for
tracing; service-level events go through structlog instead.

Usage:
    from sortguard.utils.debug import debug

    debug(f"Exclusive copy: {src} -> {dst}")

Environment:
    SORTGUARD_DEBUG: Set to '1', 'true', 'yes' (case-insensitive) to enable
                     debug output. Any other value or unset disables it.
"""

import os
import sys
from typing import Any

# Determine if debug mode is enabled at module import time
_DEBUG_ENABLED = os.environ.get("SORTGUARD_DEBUG", "").lower() in (
    "1",
    "true",
    "yes",
)


def debug(msg: Any) -> None:
    """Print debug message to stderr if SORTGUARD_DEBUG is enabled.

    Args:
        msg: Message to print. Will be converted to string.

    Note:
        The environment variable is read once at import time.
    """
    if _DEBUG_ENABLED:
        print(f"[DEBUG] {msg}", file=sys.stderr)
