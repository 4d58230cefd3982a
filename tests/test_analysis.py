"""Batch means, Little's law and Jackson's theorem checks."""

import math
from dataclasses import replace

import numpy as np
import pytest

from qnet.analysis import (
    batch_means,
    erfinv,
    jacksons_theorem,
    littles_law,
    solve_traffic_equations,
    time_weighted_mean,
    z_critical,
)
from qnet.network_core import NodeStats, RunResult
from qnet.routing import RoutingTable


def synthetic_result(queue_lengths, utilizations=None, sojourn_times=()):
    node_stats = {
        node_id: NodeStats(
            arrivals=len(series),
            departures=len(series),
            queue_lengths=tuple(series),
            times=tuple(float(t) for t in range(len(series))),
        )
        for node_id, series in queue_lengths.items()
    }
    return RunResult(
        mean_sojourn_time=float(np.mean(sojourn_times)) if sojourn_times else 0.0,
        confidence_interval=0.0,
        node_stats=node_stats,
        utilizations=utilizations or {},
        sojourn_times=tuple(sojourn_times),
        processed_jobs=len(sojourn_times),
        final_time=float(max(len(s) for s in queue_lengths.values())),
        obs_time=float(max(len(s) for s in queue_lengths.values())),
    )


def test_z_critical_known_values():
    assert z_critical(0.95) == pytest.approx(1.959964, abs=1e-6)
    assert z_critical(0.99) == pytest.approx(2.575829, abs=1e-6)
    assert z_critical(0.90) == pytest.approx(1.644854, abs=1e-6)


def test_erfinv_inverts_erf():
    for x in (-0.999, -0.5, 0.0, 0.3, 0.9, 0.999999):
        assert math.erf(erfinv(x)) == pytest.approx(x, abs=1e-12)


def test_batch_means_on_uniform_samples():
    data = np.random.default_rng(42).uniform(0, 10, size=10_000)
    result = batch_means(data, batch_size=100)
    assert result.n_batches == 100
    assert result.batch_numbers[0] == 1
    assert result.batch_numbers[-1] == 100
    assert all(0 <= m <= 10 for m in result.batch_means)
    assert result.grand_mean == pytest.approx(float(data.mean()), abs=1e-9)
    assert result.grand_mean == pytest.approx(5.0, abs=0.2)
    assert 0 < result.half_width < 0.2


def test_batch_half_width_uses_batch_spread():
    data = [1.0, 3.0, 5.0, 5.0]
    result = batch_means(data, batch_size=2, confidence_level=0.95)
    assert result.batch_means == (2.0, 5.0)
    assert result.batch_half_widths[0] == pytest.approx(z_critical(0.95) * math.sqrt(2.0) / math.sqrt(2))
    assert result.batch_half_widths[1] == 0.0


def test_batch_means_empty_data():
    result = batch_means([], batch_size=10)
    assert result.n_batches == 0
    assert result.grand_mean == 0.0
    assert result.half_width == 0.0
    assert batch_means([1.0, 2.0], batch_size=10).n_batches == 0


def test_time_weighted_mean_weights_by_duration():
    # 0 jobs for 9 time units, then 10 jobs for 1 unit
    assert time_weighted_mean([0, 10, 10], [0.0, 9.0, 10.0]) == pytest.approx(1.0)
    assert time_weighted_mean([], []) == 0.0


def test_time_weighted_mean_covers_the_whole_window():
    # 2 jobs from the window start until t=4, then 0 jobs held until the end
    assert time_weighted_mean([2, 0], [1.0, 4.0], start=0.0, end=8.0) == pytest.approx(1.0)
    assert time_weighted_mean([2, 0], [1.0, 4.0]) == pytest.approx(2.0)


def test_littles_law_holds_last_sample_until_final_time():
    result = replace(synthetic_result({1: [0, 4]}), final_time=10.0, obs_time=10.0)
    little = littles_law(result, {1: 1.0}, mean_sojourn_time=3.6)
    # 0 jobs on [0, 1), 4 jobs on [1, 10]
    assert little.simulated_average == pytest.approx(3.6)
    assert little.ratio == pytest.approx(1.0)


def test_littles_law_on_constant_queue():
    result = synthetic_result({1: [1] * 100})
    little = littles_law(result, {1: 5.0}, mean_sojourn_time=0.2, confidence_level=0.95)
    assert little.little_l == pytest.approx(1.0)
    assert little.simulated_average == pytest.approx(1.0)
    assert little.ratio == pytest.approx(1.0)
    assert little.percentage_error == pytest.approx(0.0, abs=1e-9)


def test_littles_law_sums_nodes():
    result = synthetic_result({1: [1] * 50, 2: [1] * 50})
    little = littles_law(result, {1: 5.0}, mean_sojourn_time=0.4)
    assert little.simulated_average == pytest.approx(2.0)
    assert little.ratio == pytest.approx(1.0)


def test_littles_law_without_samples():
    result = synthetic_result({1: []})
    little = littles_law(result, {1: 5.0}, mean_sojourn_time=0.2)
    assert little.n_samples == 0
    assert little.simulated_average == 0.0
    assert little.ratio == 0.0
    assert little.percentage_error == 0.0


def test_traffic_equations_tandem():
    solution = solve_traffic_equations({1: 5.0}, {1: {2: 1.0}, 2: {}})
    assert solution.converged
    assert solution.rates == pytest.approx({1: 5.0, 2: 5.0})


def test_traffic_equations_report_non_convergence():
    solution = solve_traffic_equations({1: 5.0}, {1: {1: 0.999}}, max_iterations=100)
    assert not solution.converged
    assert solution.iterations == 100
    assert solution.rates[1] > 5.0


def test_jackson_two_node_tandem():
    result = synthetic_result({1: [1], 2: [1]}, utilizations={1: 0.48, 2: 0.51})
    table = RoutingTable.from_mapping({1: {2: 1.0}, 2: {}}, node_ids=[1, 2])
    jackson = jacksons_theorem(result, {1: 10.0, 2: 10.0}, {1: 5.0}, table)
    assert jackson.theoretical_utilization == pytest.approx({1: 0.5, 2: 0.5})
    assert jackson.errors[1] == pytest.approx(4.0)
    assert jackson.errors[2] == pytest.approx(2.0)
    assert jackson.average_error == pytest.approx(3.0)
    assert jackson.max_error == pytest.approx(4.0)
    assert jackson.is_valid
    assert jackson.converged


def test_jackson_flags_large_errors():
    result = synthetic_result({1: [1]}, utilizations={1: 0.3})
    jackson = jacksons_theorem(result, {1: 10.0}, {1: 5.0}, {1: {}})
    assert not jackson.is_valid
    assert jackson.average_error == pytest.approx(40.0)
