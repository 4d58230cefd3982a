"""Single-server FIFO station and its busy/idle bookkeeping."""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Tuple

from .distributions import Distribution


@dataclass
class Node:
    """
    Mutable state of one queue during a run.

    ``queue`` holds every job present at the station; its head is the job in
    service. Busy time and per-job samples are only accumulated inside the
    observation window ``[window_start, window_end]``.
    """

    node_id: int
    service: Distribution
    window_start: float = 0.0
    window_end: float = math.inf
    queue: Deque[int] = field(default_factory=deque)
    busy: bool = False
    busy_since: Optional[float] = None
    total_busy_time: float = 0.0
    jobs_served: int = 0
    wait_times: List[float] = field(default_factory=list)
    service_times: List[float] = field(default_factory=list)
    wait_total: float = 0.0
    service_total: float = 0.0

    @property
    def queue_length(self) -> int:
        return len(self.queue)

    def arrive(self, job_id: int, now: float) -> bool:
        """Enqueue ``job_id``; return True when it starts service right away."""
        self.queue.append(job_id)
        if self.busy:
            return False
        self.busy = True
        self.busy_since = now
        return True

    def begin_service(self, now: float, arrived_at: float, duration: float) -> None:
        """Record the head job entering service at ``now`` for ``duration``."""
        if arrived_at >= self.window_start:
            self.wait_times.append(now - arrived_at)
            self.service_times.append(duration)
            self.wait_total += now - arrived_at
            self.service_total += duration

    def complete(self, now: float) -> Tuple[int, Optional[int]]:
        """
        Finish the job at the head of the queue.

        Returns the finished job and the job that now starts service, if any.
        """
        finished = self.queue.popleft()
        self.jobs_served += 1
        self._accumulate_busy_time(now)
        if self.queue:
            self.busy_since = now
            return finished, self.queue[0]
        self.busy = False
        self.busy_since = None
        return finished, None

    @property
    def mean_wait(self) -> float:
        return self.wait_total / len(self.wait_times) if self.wait_times else 0.0

    @property
    def mean_service(self) -> float:
        return self.service_total / len(self.service_times) if self.service_times else 0.0

    def busy_time(self, now: float) -> float:
        """Busy time inside the window, including the current partial interval."""
        partial = 0.0
        if self.busy_since is not None:
            partial = self._window_overlap(self.busy_since, now)
        return self.total_busy_time + partial

    def _accumulate_busy_time(self, now: float) -> None:
        if self.busy_since is None:
            return
        self.total_busy_time += self._window_overlap(self.busy_since, now)

    def _window_overlap(self, start: float, end: float) -> float:
        dt = min(end, self.window_end) - max(start, self.window_start)
        return dt if dt > 0 else 0.0
