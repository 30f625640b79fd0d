"""Progress and time-remaining estimates for loads of unknown size."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Optional


def estimate_total(current: int, limit: int, last_page_length: int, minimum: int) -> int:
    """Guess the final record count from what has arrived so far.

    While pages keep coming back full the real total is unknown, so the guess
    is twice the current count, never below ``minimum``. The first short page
    ends the load and the total collapses to exactly ``current``.
    """
    if last_page_length < limit:
        return current
    return max(current * 2, minimum)


def percentage(current: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return min(current * 100.0 / total, 100.0)


@dataclass(frozen=True)
class Progress:
    current: int = 0
    total: int = 0
    percentage: float = 0.0
    is_estimate: bool = True

    @classmethod
    def of(cls, current: int, total: int, is_estimate: bool = True) -> "Progress":
        return cls(current, total, percentage(current, total), is_estimate)

    @classmethod
    def finished(cls, current: int) -> "Progress":
        return cls(current, current, 100.0, False)

    def __add__(self, other: "Progress") -> "Progress":
        return Progress.of(
            self.current + other.current,
            self.total + other.total,
            self.is_estimate or other.is_estimate,
        )


@dataclass(frozen=True)
class BatchRecord:
    index: int
    size: int
    total: int
    at: float


class EtaTracker:
    """Linear time-remaining extrapolation from batch arrival times.

    The rate is records per second since ``start``; it is noisy for the first
    batches and settles as more arrive.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, history_size: int = 10) -> None:
        self._clock = clock
        self._started_at: Optional[float] = None
        self._arrivals: list[float] = []
        self._history: Deque[BatchRecord] = deque(maxlen=history_size)

    @property
    def started_at(self) -> Optional[float]:
        return self._started_at

    @property
    def batch_count(self) -> int:
        return len(self._arrivals)

    @property
    def history(self) -> tuple[BatchRecord, ...]:
        return tuple(self._history)

    def start(self) -> None:
        self._started_at = self._clock()
        self._arrivals = []
        self._history.clear()

    def record_batch(self, size: int, total: int) -> BatchRecord:
        now = self._clock()
        record = BatchRecord(len(self._arrivals), size, total, now)
        self._arrivals.append(now)
        self._history.append(record)
        return record

    def seconds_remaining(self, current: int, total: int) -> float:
        if current <= 0 or self._started_at is None:
            return 0.0
        elapsed = self._clock() - self._started_at
        if elapsed <= 0:
            return 0.0
        rate = current / elapsed
        return max(total - current, 0) / rate

    def average_batch_seconds(self) -> float:
        if len(self._arrivals) < 2:
            return 0.0
        intervals = [b - a for a, b in zip(self._arrivals, self._arrivals[1:])]
        return sum(intervals) / len(intervals)
