"""Thin out long result series before handing them to a renderer."""

from __future__ import annotations

from dataclasses import replace
from typing import Sequence, Tuple

from .network_core import RunResult

MAX_DATA_POINTS = 1_000


def _every_nth(values: Sequence, step: int) -> Tuple:
    return tuple(values[::step])


def downsample(result: RunResult, max_points: int = MAX_DATA_POINTS) -> RunResult:
    """
    Return a copy of ``result`` keeping every ``len // max_points``-th sample.

    Scalars (means, utilizations, counters) are untouched; only the queue-length
    series and the sojourn list are thinned.
    """
    if max_points < 1:
        raise ValueError("max_points must be >= 1.")

    node_stats = {}
    for node_id, stats in result.node_stats.items():
        n = len(stats.queue_lengths)
        if n > max_points:
            step = n // max_points
            stats = replace(
                stats,
                queue_lengths=_every_nth(stats.queue_lengths, step),
                times=_every_nth(stats.times, step),
            )
        node_stats[node_id] = stats

    sojourn_times = result.sojourn_times
    if len(sojourn_times) > max_points:
        sojourn_times = _every_nth(sojourn_times, len(sojourn_times) // max_points)

    return replace(result, node_stats=node_stats, sojourn_times=sojourn_times)
