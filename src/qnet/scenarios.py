"""Pre-defined network scenarios used by the CLI and the tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional

from .distributions import Exponential
from .network_core import NetworkParams, NodeConfig


@dataclass(frozen=True)
class Scenario:
    """Exponential network: external rates, service rates and routing."""

    name: str
    external_rates: Mapping[int, float]
    service_rates: Mapping[int, float]
    routing: Mapping[int, Mapping[int, float]] = field(default_factory=dict)


SCENARIOS: Dict[str, Scenario] = {
    "mm1": Scenario(name="mm1", external_rates={1: 5.0}, service_rates={1: 10.0}),
    "tandem": Scenario(
        name="tandem",
        external_rates={1: 5.0},
        service_rates={1: 10.0, 2: 10.0},
        routing={1: {2: 1.0}, 2: {}},
    ),
    # λ1 = 5 + 0.2 λ2, λ2 = 0.8 λ1  =>  λ1 ≈ 5.952, λ2 ≈ 4.762
    "feedback": Scenario(
        name="feedback",
        external_rates={1: 5.0},
        service_rates={1: 10.0, 2: 8.0},
        routing={1: {2: 0.8}, 2: {1: 0.2}},
    ),
}


def list_scenarios() -> Iterable[str]:
    """Return available scenario identifiers."""
    return sorted(SCENARIOS.keys())


def get_params(
    name: str,
    seed: Optional[int],
    warmup: float,
    period: float,
    **overrides,
) -> NetworkParams:
    """Return `NetworkParams` for a named scenario."""
    key = name.lower()
    if key not in SCENARIOS:
        raise KeyError(f"Scenario '{name}' is not defined. Available: {list(list_scenarios())}")
    scenario = SCENARIOS[key]
    return NetworkParams(
        nodes=tuple(
            NodeConfig(node_id, Exponential(mean=1.0 / mu))
            for node_id, mu in sorted(scenario.service_rates.items())
        ),
        routing=scenario.routing,
        arrivals={node_id: Exponential(mean=1.0 / lam) for node_id, lam in scenario.external_rates.items()},
        arrival_rates=dict(scenario.external_rates),
        simulation_period=period,
        warmup=warmup,
        seed=seed,
        **overrides,
    )
