"""Random variate generation for inter-arrival and service times."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from functools import singledispatch
from typing import Callable, Dict, Mapping, Tuple, Union

import numpy as np

from .errors import InvalidParameters, UnsupportedDistribution

_PROB_TOLERANCE = 1e-9
_MAX_REDRAWS = 1_000


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise InvalidParameters(message)


@dataclass(frozen=True)
class Exponential:
    mean: float

    def __post_init__(self) -> None:
        _require(self.mean > 0, "Exponential mean must be strictly positive.")


@dataclass(frozen=True)
class Deterministic:
    value: float

    def __post_init__(self) -> None:
        _require(self.value >= 0, "Deterministic value must be non-negative.")


@dataclass(frozen=True)
class Uniform:
    low: float
    high: float

    def __post_init__(self) -> None:
        _require(self.low >= 0, "Uniform low bound must be non-negative.")
        _require(self.high > 0, "Uniform high bound must be strictly positive.")
        _require(self.low <= self.high, "Uniform requires low <= high.")


@dataclass(frozen=True)
class Erlang:
    """Sum of ``k`` exponential phases, each with mean ``theta``."""

    k: int
    theta: float

    def __post_init__(self) -> None:
        _require(int(self.k) == self.k and self.k >= 1, "Erlang k must be an integer >= 1.")
        _require(self.theta > 0, "Erlang theta must be strictly positive.")


@dataclass(frozen=True)
class Hyperexponential:
    """Mixture of exponentials: branch ``i`` is taken with ``probs[i]``."""

    probs: Tuple[float, ...]
    means: Tuple[float, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "probs", tuple(float(p) for p in self.probs))
        object.__setattr__(self, "means", tuple(float(m) for m in self.means))
        _require(len(self.probs) > 0, "Hyperexponential needs at least one branch.")
        _require(len(self.probs) == len(self.means), "probs and means must have equal length.")
        _require(all(p >= 0 for p in self.probs), "Branch probabilities must be non-negative.")
        _require(abs(sum(self.probs) - 1.0) <= 1e-6, "Branch probabilities must sum to 1.")
        _require(all(m > 0 for m in self.means), "Branch means must be strictly positive.")


@dataclass(frozen=True)
class Hypoexponential:
    """Sum of exponential phases with distinct ``rates``."""

    rates: Tuple[float, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "rates", tuple(float(r) for r in self.rates))
        _require(len(self.rates) > 0, "Hypoexponential needs at least one phase.")
        _require(all(r > 0 for r in self.rates), "Phase rates must be strictly positive.")


@dataclass(frozen=True)
class Coxian:
    """Phase-type chain; after phase ``i`` the job moves on with ``continue_probs[i]``."""

    rates: Tuple[float, ...]
    continue_probs: Tuple[float, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "rates", tuple(float(r) for r in self.rates))
        object.__setattr__(self, "continue_probs", tuple(float(p) for p in self.continue_probs))
        _require(len(self.rates) > 0, "Coxian needs at least one phase.")
        _require(all(r > 0 for r in self.rates), "Phase rates must be strictly positive.")
        _require(
            len(self.continue_probs) in (len(self.rates), len(self.rates) - 1),
            "continue_probs must have one entry per phase (the last may be omitted).",
        )
        _require(
            all(0.0 <= p <= 1.0 for p in self.continue_probs),
            "Continue probabilities must lie in [0, 1].",
        )


@dataclass(frozen=True)
class Weibull:
    shape: float
    scale: float

    def __post_init__(self) -> None:
        _require(self.shape > 0 and self.scale > 0, "Weibull shape and scale must be positive.")


@dataclass(frozen=True)
class LogNormal:
    """Log-normal with parameters of the underlying normal."""

    mu: float
    sigma: float

    def __post_init__(self) -> None:
        _require(self.sigma >= 0, "Log-normal sigma must be non-negative.")


@dataclass(frozen=True)
class Gamma:
    shape: float
    scale: float

    def __post_init__(self) -> None:
        _require(self.shape > 0 and self.scale > 0, "Gamma shape and scale must be positive.")


@dataclass(frozen=True)
class Beta:
    alpha: float
    beta: float
    scale: float = 1.0

    def __post_init__(self) -> None:
        _require(self.alpha > 0 and self.beta > 0, "Beta alpha and beta must be positive.")
        _require(self.scale > 0, "Beta scale must be strictly positive.")


@dataclass(frozen=True)
class Pareto:
    alpha: float
    xm: float

    def __post_init__(self) -> None:
        _require(self.alpha > 0 and self.xm > 0, "Pareto alpha and xm must be positive.")


Distribution = Union[
    Exponential,
    Deterministic,
    Uniform,
    Erlang,
    Hyperexponential,
    Hypoexponential,
    Coxian,
    Weibull,
    LogNormal,
    Gamma,
    Beta,
    Pareto,
]


def _positive(draw: Callable[[], float]) -> float:
    """Redraw until the sample is strictly positive (a zero uniform maps to 0)."""
    for _ in range(_MAX_REDRAWS):
        value = float(draw())
        if value > 0:
            return value
    raise InvalidParameters("Distribution keeps producing non-positive samples.")


@singledispatch
def sample(distribution, rng: np.random.Generator) -> float:
    """Draw one variate from ``distribution`` using ``rng``."""
    raise UnsupportedDistribution(type(distribution).__name__)


@sample.register
def _(distribution: Exponential, rng: np.random.Generator) -> float:
    return _positive(lambda: rng.exponential(distribution.mean))


@sample.register
def _(distribution: Deterministic, rng: np.random.Generator) -> float:
    return float(distribution.value)


@sample.register
def _(distribution: Uniform, rng: np.random.Generator) -> float:
    span = distribution.high - distribution.low
    return _positive(lambda: distribution.low + rng.random() * span)


@sample.register
def _(distribution: Erlang, rng: np.random.Generator) -> float:
    return _positive(lambda: rng.exponential(distribution.theta, size=int(distribution.k)).sum())


@sample.register
def _(distribution: Hyperexponential, rng: np.random.Generator) -> float:
    u = rng.random()
    chosen = distribution.means[-1]
    cumulative = 0.0
    for prob, mean in zip(distribution.probs, distribution.means):
        cumulative += prob
        if u <= cumulative:
            chosen = mean
            break
    return _positive(lambda: rng.exponential(chosen))


@sample.register
def _(distribution: Hypoexponential, rng: np.random.Generator) -> float:
    scales = 1.0 / np.asarray(distribution.rates)
    return _positive(lambda: rng.exponential(scales).sum())


@sample.register
def _(distribution: Coxian, rng: np.random.Generator) -> float:
    def draw() -> float:
        total = 0.0
        for i, rate in enumerate(distribution.rates):
            total += rng.exponential(1.0 / rate)
            if i >= len(distribution.continue_probs) or rng.random() >= distribution.continue_probs[i]:
                break
        return total

    return _positive(draw)


@sample.register
def _(distribution: Weibull, rng: np.random.Generator) -> float:
    return _positive(lambda: distribution.scale * rng.weibull(distribution.shape))


@sample.register
def _(distribution: LogNormal, rng: np.random.Generator) -> float:
    return _positive(lambda: rng.lognormal(distribution.mu, distribution.sigma))


@sample.register
def _(distribution: Gamma, rng: np.random.Generator) -> float:
    return _positive(lambda: rng.gamma(distribution.shape, distribution.scale))


@sample.register
def _(distribution: Beta, rng: np.random.Generator) -> float:
    return _positive(lambda: distribution.scale * rng.beta(distribution.alpha, distribution.beta))


@sample.register
def _(distribution: Pareto, rng: np.random.Generator) -> float:
    # numpy draws the Lomax form; shifting by one gives the classical Pareto on [xm, inf).
    return _positive(lambda: distribution.xm * (1.0 + rng.pareto(distribution.alpha)))


def mean_of(distribution: Distribution) -> float:
    """Return the analytic mean of ``distribution`` (``inf`` when it does not exist)."""
    if isinstance(distribution, Exponential):
        return distribution.mean
    if isinstance(distribution, Deterministic):
        return distribution.value
    if isinstance(distribution, Uniform):
        return 0.5 * (distribution.low + distribution.high)
    if isinstance(distribution, Erlang):
        return distribution.k * distribution.theta
    if isinstance(distribution, Hyperexponential):
        return sum(p * m for p, m in zip(distribution.probs, distribution.means))
    if isinstance(distribution, Hypoexponential):
        return sum(1.0 / r for r in distribution.rates)
    if isinstance(distribution, Coxian):
        total = 0.0
        reach = 1.0
        for i, rate in enumerate(distribution.rates):
            total += reach / rate
            if i >= len(distribution.continue_probs):
                break
            reach *= distribution.continue_probs[i]
        return total
    if isinstance(distribution, Weibull):
        return distribution.scale * math.gamma(1.0 + 1.0 / distribution.shape)
    if isinstance(distribution, LogNormal):
        return math.exp(distribution.mu + 0.5 * distribution.sigma**2)
    if isinstance(distribution, Gamma):
        return distribution.shape * distribution.scale
    if isinstance(distribution, Beta):
        return distribution.scale * distribution.alpha / (distribution.alpha + distribution.beta)
    if isinstance(distribution, Pareto):
        if distribution.alpha <= 1:
            return math.inf
        return distribution.alpha * distribution.xm / (distribution.alpha - 1.0)
    raise UnsupportedDistribution(type(distribution).__name__)


# Parameter names accepted from dashboard-style configuration, per kind.
_ALIASES: Dict[str, Dict[str, str]] = {
    "hyperexponential": {"p": "probs"},
    "hypoexponential": {"lambdas": "rates"},
    "coxian": {"lambdas": "rates", "probs": "continue_probs"},
}

_KINDS: Dict[str, type] = {
    "exponential": Exponential,
    "deterministic": Deterministic,
    "uniform": Uniform,
    "erlang": Erlang,
    "hyperexponential": Hyperexponential,
    "hypoexponential": Hypoexponential,
    "coxian": Coxian,
    "weibull": Weibull,
    "lognormal": LogNormal,
    "gamma": Gamma,
    "beta": Beta,
    "pareto": Pareto,
}


def supported_kinds() -> Tuple[str, ...]:
    return tuple(sorted(_KINDS))


def make_distribution(kind: str, params: Mapping[str, object]) -> Distribution:
    """
    Build a distribution from a kind name and a parameter mapping.

    Raises:
        UnsupportedDistribution: when ``kind`` is not a known name.
        InvalidParameters: when parameters are missing or out of range.
    """
    key = kind.strip().lower().replace("-", "").replace("_", "")
    if key not in _KINDS:
        raise UnsupportedDistribution(kind)
    aliases = _ALIASES.get(key, {})
    kwargs = {aliases.get(name, name): value for name, value in params.items()}
    try:
        return _KINDS[key](**kwargs)
    except TypeError as exc:
        raise InvalidParameters(f"Bad parameters for {kind!r}: {exc}") from exc


def describe(distribution: Distribution) -> Dict[str, object]:
    """Inverse of :func:`make_distribution`, handy for tables and logs."""
    name = next(k for k, cls in _KINDS.items() if isinstance(distribution, cls))
    return {"distribution": name, "params": asdict(distribution)}
