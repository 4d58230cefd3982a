"""Cross-check the event-list core against the SimPy reference model."""

import pytest

from qnet.network_core import run_network
from qnet.reference import run_reference
from qnet.scenarios import get_params


def test_reference_matches_theory_for_tandem():
    params = get_params("tandem", seed=11, warmup=50.0, period=2_000.0)
    ref = run_reference(params)
    assert ref.n_samples > 0
    assert ref.mean_sojourn_time == pytest.approx(0.4, rel=0.2)
    assert ref.utilizations[1] == pytest.approx(0.5, rel=0.1)
    assert ref.utilizations[2] == pytest.approx(0.5, rel=0.1)


def test_engine_and_reference_agree():
    params = get_params("mm1", seed=3, warmup=50.0, period=2_000.0)
    engine = run_network(params)
    ref = run_reference(params)
    assert engine.mean_sojourn_time == pytest.approx(ref.mean_sojourn_time, rel=0.25)
    assert engine.utilizations[1] == pytest.approx(ref.utilizations[1], rel=0.1)
