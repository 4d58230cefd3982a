"""Probabilistic routing of departing jobs between nodes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidRoutingTable

logger = logging.getLogger(__name__)

EXIT: Optional[int] = None
SUM_TOLERANCE = 1e-6


@dataclass(frozen=True)
class RoutingTable:
    """
    Validated routing table.

    ``rows`` maps a source node to ``(destination, cumulative bound)`` pairs in
    ascending destination order. A row summing to less than one sends the
    remaining probability mass out of the network; an empty row is an exit node.
    """

    rows: Mapping[int, Tuple[Tuple[int, float], ...]]
    probabilities: Mapping[int, Mapping[int, float]]

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[object, Mapping[object, float]], node_ids: Iterable[int]
    ) -> "RoutingTable":
        """
        Validate ``mapping`` (source -> destination -> probability) eagerly.

        Raises:
            InvalidRoutingTable: on negative probabilities, rows summing above
                one, or sources/destinations that are not known nodes.
        """
        known = set(node_ids)
        rows: Dict[int, Tuple[Tuple[int, float], ...]] = {}
        probabilities: Dict[int, Dict[int, float]] = {}
        for raw_source, raw_row in mapping.items():
            source = _as_node_id(raw_source)
            if source not in known:
                raise InvalidRoutingTable(f"Routing source {source} is not a configured node.")
            row: Dict[int, float] = {}
            for raw_dest, raw_prob in (raw_row or {}).items():
                dest = _as_node_id(raw_dest)
                prob = float(raw_prob)
                if dest not in known:
                    raise InvalidRoutingTable(
                        f"Routing {source}->{dest} targets an unknown node."
                    )
                if prob < 0:
                    raise InvalidRoutingTable(
                        f"Routing probability {source}->{dest} is negative ({prob})."
                    )
                if prob > 0:
                    row[dest] = row.get(dest, 0.0) + prob
            total = sum(row.values())
            if total > 1.0 + SUM_TOLERANCE:
                raise InvalidRoutingTable(
                    f"Routing probabilities out of node {source} sum to {total:.6f} > 1."
                )
            if 0 < total < 1.0 - SUM_TOLERANCE:
                logger.debug("Node %s exits with probability %.4f", source, 1.0 - total)
            rows[source] = _cumulative(row, total)
            probabilities[source] = dict(sorted(row.items()))
        return cls(rows=rows, probabilities=probabilities)

    def destinations(self, node_id: int) -> Tuple[Tuple[int, float], ...]:
        return self.rows.get(node_id, ())

    def exit_probability(self, node_id: int) -> float:
        return max(0.0, 1.0 - sum(self.probabilities.get(node_id, {}).values()))

    def is_exit_node(self, node_id: int) -> bool:
        return not self.rows.get(node_id)

    def matrix(self, order: Sequence[int]) -> np.ndarray:
        """Dense routing matrix ``P[i, j] = p(order[i] -> order[j])``."""
        index = {node_id: i for i, node_id in enumerate(order)}
        P = np.zeros((len(order), len(order)))
        for source, row in self.probabilities.items():
            for dest, prob in row.items():
                P[index[source], index[dest]] = prob
        return P

    def as_dict(self) -> Dict[int, Dict[int, float]]:
        return {source: dict(row) for source, row in self.probabilities.items()}


def _as_node_id(raw: object) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidRoutingTable(f"Node id {raw!r} is not an integer.") from exc


def _cumulative(row: Mapping[int, float], total: float) -> Tuple[Tuple[int, float], ...]:
    bounds = []
    cumulative = 0.0
    for dest in sorted(row):
        cumulative += row[dest]
        bounds.append((dest, cumulative))
    if bounds and abs(total - 1.0) <= SUM_TOLERANCE:
        # Rounding must not leak a sliver of mass to the exit.
        bounds[-1] = (bounds[-1][0], 1.0)
    return tuple(bounds)


def route(node_id: int, table: RoutingTable, rng: np.random.Generator) -> Optional[int]:
    """Pick the next node for a job leaving ``node_id``, or ``EXIT``."""
    row = table.destinations(node_id)
    if not row:
        return EXIT
    u = rng.random()
    for dest, bound in row:
        if bound >= u:
            return dest
    return EXIT
