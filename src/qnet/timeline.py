"""Pending-event list ordered by time, FIFO among simultaneous events."""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Tuple


class EventKind(str, Enum):
    ARRIVAL = "arrival"
    DEPARTURE = "departure"


@dataclass(frozen=True)
class Event:
    time: float
    kind: EventKind
    job_id: int
    node_id: int


class Timeline:
    """Binary heap keyed by ``(time, insertion sequence)``."""

    def __init__(self) -> None:
        self._heap: List[Tuple[float, int, Event]] = []
        self._sequence: Iterator[int] = itertools.count()

    def insert(self, event: Event) -> None:
        heapq.heappush(self._heap, (event.time, next(self._sequence), event))

    def pop_earliest(self) -> Optional[Event]:
        """Remove and return the earliest event, or ``None`` when empty."""
        if not self._heap:
            return None
        return heapq.heappop(self._heap)[2]

    def peek(self) -> Optional[Event]:
        return self._heap[0][2] if self._heap else None

    def __len__(self) -> int:
        return len(self._heap)

    def __bool__(self) -> bool:
        return bool(self._heap)
