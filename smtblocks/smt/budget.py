"""
Solver time budget shared by all solver calls of one top-level comparison.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from ..errors import OutOfTime

logger = logging.getLogger(__name__)


class TimeBudget:
    """
    Remaining solver time, in seconds.

    A budget created from a non-positive number of seconds is unlimited: it
    never sets a solver timeout and never runs out.
    """

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.initial = seconds
        self.remaining = float(seconds)
        self.clock = clock

    @property
    def limited(self) -> bool:
        return self.initial > 0

    def solver_timeout_ms(self) -> Optional[int]:
        """Timeout to configure on the next solver call, None when unlimited."""
        if not self.limited:
            return None
        return max(1, int(self.remaining * 1000))

    def charge(self, elapsed: float) -> None:
        """
        Deduct `elapsed` seconds of solving.

        Raises OutOfTime when the budget does not cover the elapsed time.
        """
        if not self.limited:
            return
        if elapsed >= self.remaining:
            logger.info(f"[SMT] Time budget of {self.initial}s exhausted")
            self.remaining = 0.0
            raise OutOfTime(self.initial)
        self.remaining -= elapsed
        logger.debug(f"[SMT] Charged {elapsed:.3f}s, {self.remaining:.3f}s left")

    def __repr__(self):
        if not self.limited:
            return "TimeBudget(unlimited)"
        return f"TimeBudget(remaining={self.remaining:.3f}s of {self.initial}s)"
