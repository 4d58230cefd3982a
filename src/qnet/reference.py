"""Independent SimPy implementation of the same network, used for cross-checks."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

import numpy as np
import simpy

from .distributions import sample
from .network_core import NetworkParams
from .routing import EXIT, route


@dataclass
class ReferenceResult:
    """Container for the aggregated outputs of one SimPy replication."""

    mean_sojourn_time: float
    utilizations: Dict[int, float]
    n_samples: int
    obs_time: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


class ReferenceNetwork:
    """Jobs are SimPy processes walking the network; nodes are unit-capacity resources."""

    def __init__(self, env: simpy.Environment, params: NetworkParams):
        self.env = env
        self.params = params
        self.rng = np.random.default_rng(seed=params.seed)
        self.servers = {nid: simpy.Resource(env, capacity=1) for nid in params.node_ids}
        self.services = {cfg.node_id: cfg.service for cfg in params.nodes}
        self.busy_time: Dict[int, float] = {nid: 0.0 for nid in params.node_ids}
        self.busy_start: Dict[int, Optional[float]] = {nid: None for nid in params.node_ids}
        self.system_samples: List[float] = []

    def arrival_process(self, node_id: int):
        """Generate external arrivals at ``node_id`` until the horizon."""
        while True:
            yield self.env.timeout(sample(self.params.arrivals[node_id], self.rng))
            if self.env.now > self.params.horizon:
                break
            self.env.process(self._job(node_id))

    def _job(self, node_id: int):
        first_arrival = self.env.now
        current: Optional[int] = node_id
        while current is not EXIT:
            with self.servers[current].request() as req:
                yield req
                self.busy_start[current] = self.env.now
                yield self.env.timeout(sample(self.services[current], self.rng))
                self._accumulate_busy_time(current, self.env.now)
                self.busy_start[current] = None
            current = route(current, self.params.routing, self.rng)

        if first_arrival >= self.params.warmup:
            self.system_samples.append(self.env.now - first_arrival)

    def _accumulate_busy_time(self, node_id: int, end_time: float) -> None:
        """Accumulate server busy time intersected with the observation window."""
        start = self.busy_start[node_id]
        if start is None:
            return
        window_start = max(start, self.params.warmup)
        window_end = min(end_time, self.params.horizon)
        dt = window_end - window_start
        if dt > 0:
            self.busy_time[node_id] += dt


def run_reference(params: NetworkParams) -> ReferenceResult:
    """Run one SimPy replication of ``params`` and return aggregated statistics."""
    env = simpy.Environment()
    system = ReferenceNetwork(env, params)
    for node_id in sorted(params.arrivals):
        if params.arrival_rates.get(node_id, 0.0) > 0:
            env.process(system.arrival_process(node_id))
    env.run(until=params.horizon)
    for node_id in params.node_ids:
        system._accumulate_busy_time(node_id, params.horizon)

    obs_time = params.simulation_period
    utilizations = {nid: busy / obs_time for nid, busy in system.busy_time.items()}
    W_mean = float(np.mean(system.system_samples)) if system.system_samples else 0.0
    return ReferenceResult(
        mean_sojourn_time=W_mean,
        utilizations=utilizations,
        n_samples=len(system.system_samples),
        obs_time=obs_time,
    )
