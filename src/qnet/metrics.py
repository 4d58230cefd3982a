"""Closed-form performance metrics for M/M/1 stations and Jackson networks."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Mapping, Sequence, Union

import numpy as np

from .routing import RoutingTable


@dataclass(frozen=True)
class MM1Theory:
    """Bundle of theoretical steady-state metrics for an M/M/1 system."""

    rho: float
    L: float
    Lq: float
    W: float
    Wq: float

    def as_dict(self) -> Mapping[str, float]:
        """Return the metrics as a plain dictionary (handy for printing)."""
        return asdict(self)


@dataclass(frozen=True)
class JacksonTheory:
    """Effective arrival rates, per-node M/M/1 metrics and network totals."""

    arrival_rates: Dict[int, float]
    nodes: Dict[int, MM1Theory]
    L: float
    W: float

    def utilizations(self) -> Dict[int, float]:
        return {node: theory.rho for node, theory in self.nodes.items()}


def rho(lam: float, mu: float) -> float:
    """Return the traffic intensity λ/μ validating the input domain."""
    if lam < 0:
        raise ValueError("Arrival rate lam must be non-negative.")
    if mu <= 0:
        raise ValueError("Service rate mu must be strictly positive.")
    return lam / mu


def mm1_theory(lam: float, mu: float) -> MM1Theory:
    """
    Compute steady-state M/M/1 metrics.

    Raises:
        ValueError: when ρ ≥ 1 (system unstable) or inputs are invalid.
    """
    r = rho(lam, mu)
    if r >= 1.0:
        raise ValueError("Unstable system: rho must be < 1 for M/M/1.")

    if lam == 0:
        return MM1Theory(rho=0.0, L=0.0, Lq=0.0, W=0.0, Wq=0.0)

    denom = 1.0 - r
    L = r / denom
    Lq = (r * r) / denom
    W = L / lam
    Wq = Lq / lam
    return MM1Theory(rho=r, L=L, Lq=Lq, W=W, Wq=Wq)


def jackson_theory(
    external_arrival_rates: Mapping[int, float],
    service_rates: Mapping[int, float],
    routing: Union[RoutingTable, Mapping[int, Mapping[int, float]]],
) -> JacksonTheory:
    """
    Solve the traffic equations exactly and treat each node as an M/M/1 queue.

    Raises:
        ValueError: when the flow equations are singular or any node has ρ ≥ 1.
    """
    order: Sequence[int] = sorted(int(n) for n in service_rates)
    if not isinstance(routing, RoutingTable):
        routing = RoutingTable.from_mapping(routing, order)
    P = routing.matrix(order)
    lam0 = np.array([float(external_arrival_rates.get(n, 0.0)) for n in order])
    # (I - P^T) λ = λ0
    try:
        lam = np.linalg.solve(np.eye(len(order)) - P.T, lam0)
    except np.linalg.LinAlgError as exc:
        raise ValueError("Routing matrix leads to singular flow equations.") from exc

    rates = {n: float(lam[i]) for i, n in enumerate(order)}
    nodes = {n: mm1_theory(rates[n], float(service_rates[n])) for n in order}
    total_L = sum(t.L for t in nodes.values())
    total_external = float(lam0.sum())
    W = total_L / total_external if total_external > 0 else 0.0
    return JacksonTheory(arrival_rates=rates, nodes=nodes, L=total_L, W=W)


def relative_error(sim_value: float, reference_value: float) -> float:
    """Return |sim-ref| / ref guarding division by zero."""
    if reference_value == 0:
        return 0.0 if sim_value == 0 else float("inf")
    return abs(sim_value - reference_value) / abs(reference_value)
