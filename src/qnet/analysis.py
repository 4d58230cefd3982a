"""Output analysis: batch means, Little's law and Jackson's theorem checks."""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Dict, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .metrics import relative_error
from .routing import RoutingTable

if TYPE_CHECKING:
    from .network_core import RunResult

logger = logging.getLogger(__name__)

JACKSON_TOLERANCE = 1e-4
JACKSON_MAX_ITERATIONS = 100
VALIDITY_THRESHOLD_PCT = 5.0

Routing = Union[RoutingTable, Mapping[int, Mapping[int, float]]]


def erfinv(x: float) -> float:
    """
    Inverse error function on (-1, 1).

    Giles' single-precision polynomial seeds two Newton steps on ``math.erf``,
    which brings the result to double precision.
    """
    if not -1.0 < x < 1.0:
        if x in (-1.0, 1.0):
            return math.copysign(math.inf, x)
        raise ValueError("erfinv is defined on (-1, 1).")
    if x == 0.0:
        return 0.0
    w = -math.log((1.0 - x) * (1.0 + x))
    if w < 5.0:
        w -= 2.5
        p = 2.81022636e-08
        for c in (3.43273939e-07, -3.5233877e-06, -4.39150654e-06, 0.00021858087,
                  -0.00125372503, -0.00417768164, 0.246640727, 1.50140941):
            p = c + p * w
    else:
        w = math.sqrt(w) - 3.0
        p = -0.000200214257
        for c in (0.000100950558, 0.00134934322, -0.00367342844, 0.00573950773,
                  -0.0076224613, 0.00943887047, 1.00167406, 2.83297682):
            p = c + p * w
    y = p * x
    for _ in range(2):
        y -= (math.erf(y) - x) / (2.0 / math.sqrt(math.pi) * math.exp(-y * y))
    return y


def z_critical(confidence_level: float) -> float:
    """Two-sided standard-normal critical value, e.g. 1.96 for 0.95."""
    if not 0 < confidence_level < 1:
        raise ValueError("Confidence level must lie strictly between 0 and 1.")
    return math.sqrt(2.0) * erfinv(confidence_level)


@dataclass(frozen=True)
class BatchMeansResult:
    batch_size: int
    batch_numbers: Tuple[int, ...]
    batch_means: Tuple[float, ...]
    batch_half_widths: Tuple[float, ...]
    grand_mean: float
    half_width: float

    @property
    def n_batches(self) -> int:
        return len(self.batch_means)


def batch_means(
    data: Sequence[float], batch_size: int, confidence_level: float = 0.95
) -> BatchMeansResult:
    """
    Split ``data`` into consecutive batches of ``batch_size`` values.

    Each batch reports its mean and ``z * s / sqrt(b)`` with ``s`` the batch
    sample standard deviation. ``half_width`` is the interval on the grand mean
    built from the spread of the batch means. Trailing values that do not fill
    a batch are ignored; too little data yields zero batches.
    """
    if batch_size < 1:
        raise ValueError("Batch size must be >= 1.")
    z = z_critical(confidence_level)
    n_batches = len(data) // batch_size
    if n_batches == 0:
        return BatchMeansResult(batch_size, (), (), (), 0.0, 0.0)

    batches = np.asarray(data[: n_batches * batch_size], dtype=float).reshape(n_batches, batch_size)
    means = batches.mean(axis=1)
    if batch_size > 1:
        stds = batches.std(axis=1, ddof=1)
    else:
        stds = np.zeros(n_batches)
    half_widths = z * stds / math.sqrt(batch_size)
    grand_mean = float(means.mean())
    half_width = z * float(means.std(ddof=1)) / math.sqrt(n_batches) if n_batches > 1 else 0.0
    return BatchMeansResult(
        batch_size=batch_size,
        batch_numbers=tuple(range(1, n_batches + 1)),
        batch_means=tuple(float(m) for m in means),
        batch_half_widths=tuple(float(h) for h in half_widths),
        grand_mean=grand_mean,
        half_width=half_width,
    )


def sojourn_half_width(samples: Sequence[float], batch_size: int, confidence_level: float) -> float:
    """CI half-width for the mean sojourn time; falls back to i.i.d. when batches are scarce."""
    result = batch_means(samples, batch_size, confidence_level)
    if result.n_batches > 1:
        return result.half_width
    if len(samples) > 1:
        return z_critical(confidence_level) * float(np.std(samples, ddof=1)) / math.sqrt(len(samples))
    return 0.0


def time_weighted_mean(
    values: Sequence[float],
    times: Sequence[float],
    start: Optional[float] = None,
    end: Optional[float] = None,
) -> float:
    """
    Mean of a piecewise-constant series sampled at ``times`` over ``[start, end]``.

    The window defaults to the first and last sample. The first value covers
    the stretch from ``start`` to the second sample and the last value is held
    until ``end``.
    """
    if len(values) == 0:
        return 0.0
    v = np.asarray(values, dtype=float)
    if len(times) != len(values):
        return float(v.mean())
    t = np.asarray(times, dtype=float)
    lo = t[0] if start is None else min(start, t[0])
    hi = t[-1] if end is None else max(end, t[-1])
    if hi - lo <= 0:
        return float(v.mean())
    bounds = np.append(t, hi)
    bounds[0] = lo
    return float(np.sum(v * np.diff(bounds)) / (hi - lo))


def jobs_in_system(run_result: "RunResult") -> Tuple[np.ndarray, np.ndarray]:
    """Total number of jobs across all nodes at each sampling instant."""
    stats = list(run_result.node_stats.values())
    if not stats:
        return np.zeros(0), np.zeros(0)
    n = min(len(s.queue_lengths) for s in stats)
    totals = np.zeros(n)
    for s in stats:
        totals += np.asarray(s.queue_lengths[:n], dtype=float)
    times = np.asarray(stats[0].times[:n], dtype=float) if len(stats[0].times) >= n else np.zeros(0)
    return totals, times


@dataclass(frozen=True)
class LittleResult:
    little_l: float
    simulated_average: float
    ratio: float
    percentage_error: float
    little_l_half_width: float = 0.0
    n_samples: int = 0

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


def littles_law(
    run_result: "RunResult",
    external_arrival_rates: Mapping[int, float],
    mean_sojourn_time: float,
    confidence_level: float = 0.95,
    batch_size: int = 100,
) -> LittleResult:
    """
    Compare ``L = lambda * W`` with the time-averaged number of jobs in the network.

    ``lambda`` is the total external arrival rate. ``little_l_half_width`` scales
    the confidence interval of ``W`` by ``lambda``. With no queue-length samples
    the result has ``n_samples == 0`` and zero ratio and error.
    """
    lam = float(sum(external_arrival_rates.values()))
    little_l = lam * mean_sojourn_time
    half_width = lam * sojourn_half_width(run_result.sojourn_times, batch_size, confidence_level)

    totals, times = jobs_in_system(run_result)
    if totals.size == 0:
        return LittleResult(little_l, 0.0, 0.0, 0.0, half_width, 0)

    window_end = run_result.final_time
    simulated = time_weighted_mean(totals, times, window_end - run_result.obs_time, window_end)
    if simulated == 0:
        ratio = 1.0 if little_l == 0 else math.inf
    else:
        ratio = little_l / simulated
    error = relative_error(little_l, simulated) * 100.0
    return LittleResult(little_l, simulated, ratio, error, half_width, int(totals.size))


@dataclass(frozen=True)
class TrafficSolution:
    rates: Dict[int, float]
    iterations: int
    converged: bool
    max_change: float


def _routing_rows(routing: Routing) -> Dict[int, Dict[int, float]]:
    if isinstance(routing, RoutingTable):
        return routing.as_dict()
    return {int(s): {int(d): float(p) for d, p in (row or {}).items()} for s, row in routing.items()}


def solve_traffic_equations(
    external_arrival_rates: Mapping[int, float],
    routing: Routing,
    tolerance: float = JACKSON_TOLERANCE,
    max_iterations: int = JACKSON_MAX_ITERATIONS,
) -> TrafficSolution:
    """
    Fixed-point solve of ``lambda_i = lambda0_i + sum_j lambda_j * p_ji``.

    Iteration starts from the external rates and stops once the largest change
    drops below ``tolerance``. Exhausting ``max_iterations`` returns the last
    iterate with ``converged=False``.
    """
    rows = _routing_rows(routing)
    external = {int(k): float(v) for k, v in external_arrival_rates.items()}
    nodes = set(external) | set(rows)
    for row in rows.values():
        nodes.update(row)
    rates = {node: external.get(node, 0.0) for node in sorted(nodes)}

    iterations = 0
    max_change = math.inf
    while iterations < max_iterations:
        new_rates = {node: external.get(node, 0.0) for node in rates}
        for source, row in rows.items():
            for dest, prob in row.items():
                new_rates[dest] += rates[source] * prob
        max_change = max((abs(new_rates[n] - rates[n]) for n in rates), default=0.0)
        rates = new_rates
        iterations += 1
        if max_change < tolerance:
            break

    converged = max_change < tolerance
    if not converged:
        logger.warning(
            "Traffic equations did not converge after %d iterations (max change %.3g)",
            iterations,
            max_change,
        )
    return TrafficSolution(rates=rates, iterations=iterations, converged=converged, max_change=max_change)


@dataclass(frozen=True)
class JacksonResult:
    theoretical_utilization: Dict[int, float]
    simulated_utilization: Dict[int, float]
    errors: Dict[int, float]
    average_error: float
    max_error: float
    is_valid: bool
    iterations: int
    converged: bool
    arrival_rates: Dict[int, float]


def jacksons_theorem(
    run_result: "RunResult",
    service_rates: Mapping[int, float],
    external_arrival_rates: Mapping[int, float],
    routing: Routing,
    threshold_pct: float = VALIDITY_THRESHOLD_PCT,
) -> JacksonResult:
    """
    Compare simulated utilizations with ``rho_i = lambda_i / mu_i``.

    Errors are percentages relative to the theoretical value. The network is
    deemed valid when the average error is below ``threshold_pct``.
    """
    solution = solve_traffic_equations(external_arrival_rates, routing)
    theoretical: Dict[int, float] = {}
    simulated: Dict[int, float] = {}
    errors: Dict[int, float] = {}
    for node, mu in service_rates.items():
        node = int(node)
        theoretical[node] = solution.rates.get(node, 0.0) / mu
        simulated[node] = float(run_result.utilizations.get(node, 0.0))
        errors[node] = relative_error(simulated[node], theoretical[node]) * 100.0

    average_error = float(np.mean(list(errors.values()))) if errors else 0.0
    max_error = max(errors.values(), default=0.0)
    return JacksonResult(
        theoretical_utilization=theoretical,
        simulated_utilization=simulated,
        errors=errors,
        average_error=average_error,
        max_error=max_error,
        is_valid=average_error < threshold_pct,
        iterations=solution.iterations,
        converged=solution.converged,
        arrival_rates=solution.rates,
    )
