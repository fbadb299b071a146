"""
Deterministic scheduler driven by an explicit clock.

Replaces interval/timeout callbacks: the host advances time and due calls
run in (due time, scheduling order).
"""

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Callable, List, Optional


@dataclass(order=True)
class ScheduledCall:
    """A callback due at ``due_ms``. Cancelled calls are skipped."""
    due_ms: float
    sequence: int
    callback: Callable[[], None] = field(compare=False)
    label: str = field(default="", compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler:
    """Min-heap of scheduled calls keyed on due time."""

    def __init__(self):
        self._queue: List[ScheduledCall] = []
        self._counter = itertools.count()

    def call_at(self, due_ms: float, callback: Callable[[], None], label: str = "") -> ScheduledCall:
        call = ScheduledCall(due_ms=due_ms, sequence=next(self._counter),
                             callback=callback, label=label)
        heapq.heappush(self._queue, call)
        return call

    def next_due(self) -> Optional[float]:
        self._drop_cancelled()
        return self._queue[0].due_ms if self._queue else None

    def pop_due(self, until_ms: float) -> Optional[ScheduledCall]:
        """Remove and return the earliest live call due at or before ``until_ms``."""
        self._drop_cancelled()
        if self._queue and self._queue[0].due_ms <= until_ms:
            return heapq.heappop(self._queue)
        return None

    def pending(self, label: Optional[str] = None) -> List[ScheduledCall]:
        return sorted(c for c in self._queue
                      if not c.cancelled and (label is None or c.label == label))

    def _drop_cancelled(self) -> None:
        while self._queue and self._queue[0].cancelled:
            heapq.heappop(self._queue)

    def __len__(self) -> int:
        return sum(1 for c in self._queue if not c.cancelled)
