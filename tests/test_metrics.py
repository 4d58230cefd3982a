"""Unit tests for analytical M/M/1 and Jackson network metrics."""

import math

import pytest

from qnet.metrics import jackson_theory, mm1_theory, relative_error, rho


def test_rho_basic_value():
    assert math.isclose(rho(0.5, 1.0), 0.5)


def test_mm1_theory_matches_known_case():
    theory = mm1_theory(0.5, 1.0)
    assert math.isclose(theory.rho, 0.5)
    assert math.isclose(theory.L, 1.0)
    assert math.isclose(theory.Lq, 0.5)
    assert math.isclose(theory.W, 2.0)
    assert math.isclose(theory.Wq, 1.0)
    assert math.isclose(theory.L, 0.5 * theory.W)  # Little's law


def test_mm1_theory_invalid_rho():
    with pytest.raises(ValueError):
        mm1_theory(1.0, 1.0)


def test_relative_error_guard_zero_reference():
    assert relative_error(0.0, 0.0) == 0.0
    assert math.isinf(relative_error(1.0, 0.0))


def test_rho_requires_positive_mu():
    with pytest.raises(ValueError):
        rho(0.5, 0.0)


def test_jackson_tandem_adds_node_sojourns():
    theory = jackson_theory({1: 5.0}, {1: 10.0, 2: 10.0}, {1: {2: 1.0}, 2: {}})
    assert theory.arrival_rates == pytest.approx({1: 5.0, 2: 5.0})
    assert theory.utilizations() == pytest.approx({1: 0.5, 2: 0.5})
    assert math.isclose(theory.W, 0.4)
    assert math.isclose(theory.L, 2.0)


def test_jackson_feedback_rates():
    theory = jackson_theory({1: 5.0}, {1: 10.0, 2: 8.0}, {1: {2: 0.8}, 2: {1: 0.2}})
    lam1 = 5.0 / (1 - 0.16)
    assert theory.arrival_rates[1] == pytest.approx(lam1)
    assert theory.arrival_rates[2] == pytest.approx(0.8 * lam1)


def test_jackson_unstable_node_raises():
    with pytest.raises(ValueError):
        jackson_theory({1: 12.0}, {1: 10.0}, {1: {}})
