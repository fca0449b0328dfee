"""Cooperative execution-time budget."""

from __future__ import annotations

import os
import time
from typing import Callable

MAX_EXECUTION_SECONDS = int(os.environ.get("IMPORT_MAX_EXECUTION_SECONDS", 300))
SAFETY_MARGIN_SECONDS = 10


def remaining(
    start_time: float,
    ceiling: float,
    *,
    margin: float = SAFETY_MARGIN_SECONDS,
    now: float | None = None,
) -> bool:
    """True while there is still time left before ``ceiling - margin``."""
    current = time.time() if now is None else now
    return current - start_time <= ceiling - margin


class ExecutionBudget:
    def __init__(
        self,
        ceiling: float = MAX_EXECUTION_SECONDS,
        *,
        margin: float = SAFETY_MARGIN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ceiling = ceiling
        self.margin = margin
        self.clock = clock
        self.start_time: float | None = None

    def start(self) -> None:
        self.start_time = self.clock()

    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        return self.clock() - self.start_time

    def remaining(self) -> bool:
        if self.start_time is None:
            self.start()
        return remaining(self.start_time, self.ceiling, margin=self.margin, now=self.clock())
