"""Unit tests for random variate generation."""

import math

import numpy as np
import pytest

from qnet.distributions import (
    Beta,
    Coxian,
    Deterministic,
    Erlang,
    Exponential,
    Gamma,
    Hyperexponential,
    Hypoexponential,
    LogNormal,
    Pareto,
    Uniform,
    Weibull,
    describe,
    make_distribution,
    mean_of,
    sample,
    supported_kinds,
)
from qnet.errors import InvalidParameters, UnsupportedDistribution

DURATIONS = [
    Exponential(mean=0.5),
    Uniform(low=0.0, high=2.0),
    Erlang(k=3, theta=0.2),
    Hyperexponential(probs=(0.3, 0.7), means=(0.1, 1.0)),
    Hypoexponential(rates=(2.0, 5.0)),
    Coxian(rates=(3.0, 1.0), continue_probs=(0.4,)),
    Weibull(shape=0.7, scale=1.0),
    LogNormal(mu=-1.0, sigma=1.5),
    Gamma(shape=0.4, scale=2.0),
    Beta(alpha=0.5, beta=0.5, scale=3.0),
    Pareto(alpha=2.5, xm=0.1),
]


@pytest.mark.parametrize("dist", DURATIONS, ids=lambda d: type(d).__name__)
def test_durations_are_strictly_positive(dist):
    rng = np.random.default_rng(7)
    draws = [sample(dist, rng) for _ in range(10_000)]
    assert min(draws) > 0


def test_deterministic_returns_exact_value():
    rng = np.random.default_rng(0)
    for v in (0.0, 0.1, 3.0, 12345.678):
        assert sample(Deterministic(value=v), rng) == v


def test_uniform_stays_in_bounds():
    rng = np.random.default_rng(1)
    draws = [sample(Uniform(low=1.0, high=5.0), rng) for _ in range(10_000)]
    assert min(draws) >= 1.0
    assert max(draws) <= 5.0


@pytest.mark.parametrize(
    "dist",
    [
        Exponential(mean=0.5),
        Erlang(k=4, theta=0.25),
        Hyperexponential(probs=(0.5, 0.5), means=(0.2, 1.8)),
        Hypoexponential(rates=(1.0, 4.0)),
        Coxian(rates=(2.0, 2.0), continue_probs=(0.5, 0.0)),
        Gamma(shape=2.0, scale=0.5),
        Weibull(shape=2.0, scale=1.0),
    ],
    ids=lambda d: type(d).__name__,
)
def test_sample_mean_matches_analytic_mean(dist):
    rng = np.random.default_rng(2024)
    draws = np.array([sample(dist, rng) for _ in range(20_000)])
    assert draws.mean() == pytest.approx(mean_of(dist), rel=0.05)


def test_mean_of_closed_forms():
    assert mean_of(Erlang(k=3, theta=0.5)) == pytest.approx(1.5)
    assert mean_of(Coxian(rates=(2.0, 4.0), continue_probs=(0.5,))) == pytest.approx(0.5 + 0.125)
    assert mean_of(Beta(alpha=1.0, beta=3.0, scale=2.0)) == pytest.approx(0.5)
    assert math.isinf(mean_of(Pareto(alpha=1.0, xm=1.0)))


def test_same_seed_gives_same_stream():
    dist = Hyperexponential(probs=(0.2, 0.8), means=(0.5, 2.0))
    a = np.random.default_rng(99)
    b = np.random.default_rng(99)
    assert [sample(dist, a) for _ in range(50)] == [sample(dist, b) for _ in range(50)]


def test_make_distribution_accepts_dashboard_names():
    dist = make_distribution("hyperexponential", {"p": [0.4, 0.6], "means": [1.0, 2.0]})
    assert dist == Hyperexponential(probs=(0.4, 0.6), means=(1.0, 2.0))
    cox = make_distribution("Coxian", {"lambdas": [1.0, 2.0], "probs": [0.3]})
    assert cox.continue_probs == (0.3,)
    assert describe(dist)["distribution"] == "hyperexponential"
    assert "exponential" in supported_kinds()


def test_unknown_distribution_is_rejected():
    with pytest.raises(UnsupportedDistribution):
        make_distribution("poisson", {"lambda": 1.0})
    with pytest.raises(UnsupportedDistribution):
        sample("exponential", np.random.default_rng(0))


def test_invalid_parameters_raise():
    with pytest.raises(InvalidParameters):
        Exponential(mean=0.0)
    with pytest.raises(InvalidParameters):
        Uniform(low=3.0, high=1.0)
    with pytest.raises(InvalidParameters):
        Hyperexponential(probs=(0.5, 0.2), means=(1.0, 1.0))
    with pytest.raises(InvalidParameters):
        make_distribution("exponential", {"rate": 2.0})
