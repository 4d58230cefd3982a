"""Hand progress snapshots to a slow consumer without stalling the engine."""

from __future__ import annotations

import logging
import threading
from queue import Empty, Full, Queue
from typing import Callable, Optional

from .network_core import ProgressSnapshot

logger = logging.getLogger(__name__)

_SENTINEL = object()


class SnapshotRelay:
    """
    Callable passed as ``progress`` to :func:`run_network`.

    Snapshots are queued and delivered to ``consumer`` on a daemon thread.
    When the queue is full the oldest pending snapshot is discarded, so the
    simulation loop never waits on rendering.
    """

    def __init__(self, consumer: Callable[[ProgressSnapshot], None], maxsize: int = 64):
        self.consumer = consumer
        self.queue: Queue = Queue(maxsize=maxsize)
        self.dropped = 0
        self.delivered = 0
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "SnapshotRelay":
        if self._thread is None:
            self._thread = threading.Thread(target=self._drain, name="snapshot-relay", daemon=True)
            self._thread.start()
        return self

    def __call__(self, snapshot: ProgressSnapshot) -> None:
        while True:
            try:
                self.queue.put_nowait(snapshot)
                return
            except Full:
                try:
                    self.queue.get_nowait()
                    self.dropped += 1
                except Empty:
                    pass

    def close(self) -> None:
        """Deliver whatever is still queued and stop the worker."""
        if self._thread is None:
            return
        self.queue.put(_SENTINEL)
        self._thread.join()
        self._thread = None
        if self.dropped:
            logger.debug("Snapshot relay dropped %d stale snapshots", self.dropped)

    def _drain(self) -> None:
        while True:
            item = self.queue.get()
            if item is _SENTINEL:
                break
            try:
                self.consumer(item)
            except Exception:
                logger.exception("Progress consumer failed on snapshot at t=%.4f", item.time)
                continue
            self.delivered += 1

    def __enter__(self) -> "SnapshotRelay":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
