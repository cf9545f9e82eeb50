"""Sliding-window rate limiter keyed by operation name."""

from __future__ import annotations

import math
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from sortguard.core.constants import DEFAULT_RATE_PER_HOUR, DEFAULT_RATE_PER_MINUTE

_MINUTE = 60.0
_HOUR = 3600.0


@dataclass(frozen=True)
class RateLimitDecision:
    """Admission decision for one request.

    Attributes:
        allowed: Whether the request was admitted and recorded
        reset_in_seconds: Seconds until a refused request would be admitted
    """

    allowed: bool
    reset_in_seconds: int = 0


class RateLimiter:
    """Per-operation limiter with a per-minute and a per-hour window.

    Each admitted request is timestamped; a request is refused while either
    window already holds its maximum number of timestamps.
    """

    def __init__(
        self,
        per_minute: int = DEFAULT_RATE_PER_MINUTE,
        per_hour: int = DEFAULT_RATE_PER_HOUR,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.per_minute = per_minute
        self.per_hour = per_hour
        self._clock = clock
        self._requests: dict[str, deque[float]] = {}

    def check_limit(self, operation: str) -> RateLimitDecision:
        """Admit or refuse one request for ``operation``.

        Returns:
            RateLimitDecision; refused requests are not recorded
        """
        now = self._clock()
        times = self._requests.setdefault(operation, deque())

        # Remove timestamps older than the longest window
        while times and times[0] <= now - _HOUR:
            times.popleft()

        in_last_minute = [t for t in times if t > now - _MINUTE]
        if len(in_last_minute) >= self.per_minute:
            reset = in_last_minute[0] + _MINUTE - now
            return RateLimitDecision(False, max(1, math.ceil(reset)))
        if len(times) >= self.per_hour:
            reset = times[0] + _HOUR - now
            return RateLimitDecision(False, max(1, math.ceil(reset)))

        times.append(now)
        return RateLimitDecision(True)

    def reset(self, operation: str | None = None) -> None:
        if operation is None:
            self._requests.clear()
        else:
            self._requests.pop(operation, None)
