"""Event-list simulation core for open networks of single-server queues."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np

from .analysis import sojourn_half_width
from .distributions import Distribution, make_distribution, mean_of, sample
from .errors import InvalidParameters
from .node import Node
from .routing import EXIT, RoutingTable, route
from .timeline import Event, EventKind, Timeline

logger = logging.getLogger(__name__)

ProgressCallback = Callable[["ProgressSnapshot"], None]
StopCheck = Callable[[], bool]


@dataclass(frozen=True)
class NodeConfig:
    node_id: int
    service: Distribution


@dataclass(frozen=True)
class NetworkParams:
    """
    Immutable description of one run.

    ``arrivals`` maps a node to the inter-arrival distribution of its external
    stream. ``arrival_rates`` defaults to ``1 / mean`` of those distributions;
    a node with a zero rate gets no external stream.
    """

    nodes: Tuple[NodeConfig, ...]
    routing: Union[RoutingTable, Mapping[int, Mapping[int, float]]]
    arrivals: Mapping[int, Distribution]
    simulation_period: float
    warmup: float = 0.0
    seed: Optional[int] = None
    arrival_rates: Optional[Mapping[int, float]] = None
    confidence_level: float = 0.95
    batch_size: int = 100
    stats_interval: float = 0.0
    max_jobs: Optional[int] = None
    progress_interval: float = 0.01

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))
        ids = [n.node_id for n in self.nodes]
        if not ids:
            raise InvalidParameters("At least one node is required.")
        if len(set(ids)) != len(ids):
            raise InvalidParameters("Node ids must be unique.")
        if self.simulation_period <= 0:
            raise InvalidParameters("Simulation period must be positive.")
        if self.warmup < 0:
            raise InvalidParameters("Warm-up period must be non-negative.")
        if not 0 < self.confidence_level < 1:
            raise InvalidParameters("Confidence level must lie strictly between 0 and 1.")
        if self.batch_size < 1:
            raise InvalidParameters("Batch size must be >= 1.")
        if self.stats_interval < 0 or self.progress_interval < 0:
            raise InvalidParameters("Sampling intervals must be non-negative.")
        if self.max_jobs is not None and self.max_jobs < 1:
            raise InvalidParameters("max_jobs must be >= 1 when given.")
        unknown = set(self.arrivals) - set(ids)
        if unknown:
            raise InvalidParameters(f"Arrival streams reference unknown nodes: {sorted(unknown)}")

        if not isinstance(self.routing, RoutingTable):
            object.__setattr__(self, "routing", RoutingTable.from_mapping(self.routing, ids))

        for node_id, dist in self.arrivals.items():
            if mean_of(dist) <= 0:
                raise InvalidParameters(f"Arrival stream at node {node_id} has a non-positive mean gap.")
        for cfg in self.nodes:
            if mean_of(cfg.service) <= 0:
                raise InvalidParameters(f"Node {cfg.node_id} has a non-positive mean service time.")

        if self.arrival_rates is None:
            rates = {node_id: 1.0 / mean_of(dist) for node_id, dist in self.arrivals.items()}
        else:
            rates = {int(k): float(v) for k, v in self.arrival_rates.items()}
            missing = {k for k, v in rates.items() if v > 0} - set(self.arrivals)
            if missing:
                raise InvalidParameters(
                    f"Nodes {sorted(missing)} have an arrival rate but no arrival distribution."
                )
        if any(r < 0 for r in rates.values()):
            raise InvalidParameters("Arrival rates must be non-negative.")
        object.__setattr__(self, "arrival_rates", rates)

    @property
    def horizon(self) -> float:
        return self.warmup + self.simulation_period

    @property
    def node_ids(self) -> Tuple[int, ...]:
        return tuple(n.node_id for n in self.nodes)

    def service_rates(self) -> Dict[int, float]:
        """``mu_i = 1 / E[S_i]`` for every node."""
        return {n.node_id: 1.0 / mean_of(n.service) for n in self.nodes}

    @classmethod
    def from_dict(cls, config: Mapping[str, object]) -> "NetworkParams":
        """
        Build parameters from plain mappings, e.g. a dashboard form::

            {"nodes": {"1": {"distribution": "exponential", "params": {"mean": 0.1}}},
             "routing": {"1": {}},
             "arrivals": {"1": {"distribution": "exponential", "params": {"mean": 0.2}}},
             "simulation_period": 50, "warmup": 10, "seed": 123}
        """
        data = dict(config)
        nodes = tuple(
            NodeConfig(int(node_id), make_distribution(entry["distribution"], entry.get("params", {})))
            for node_id, entry in data.pop("nodes").items()
        )
        arrivals = {
            int(node_id): make_distribution(entry["distribution"], entry.get("params", {}))
            for node_id, entry in data.pop("arrivals", {}).items()
        }
        routing = data.pop("routing", {})
        return cls(nodes=nodes, routing=routing, arrivals=arrivals, **data)


@dataclass(frozen=True)
class NodeStats:
    arrivals: int
    departures: int
    queue_lengths: Tuple[int, ...]
    times: Tuple[float, ...]
    jobs_served: int = 0
    mean_wait: float = 0.0
    mean_service: float = 0.0


@dataclass(frozen=True)
class ProgressSnapshot:
    """
    Value copy of the run state handed to progress consumers.

    Counters are cumulative. The sample series (``sojourn_times`` and each
    node's ``queue_lengths`` and ``times``) only hold what was recorded since
    the previous snapshot; a consumer that needs the full history appends them.
    """

    time: float
    node_stats: Mapping[int, NodeStats]
    processed_jobs: int
    sojourn_times: Tuple[float, ...]
    progress_percent: float


@dataclass(frozen=True)
class RunResult:
    """Aggregated outputs of one run; the engine's only output artifact."""

    mean_sojourn_time: float
    confidence_interval: float
    node_stats: Mapping[int, NodeStats]
    utilizations: Mapping[int, float]
    sojourn_times: Tuple[float, ...]
    processed_jobs: int
    final_time: float
    obs_time: float
    seed: Optional[int] = None
    stopped: bool = False

    def as_dict(self) -> Dict[str, object]:
        """Flat scalar summary, one column per node metric."""
        row: Dict[str, object] = {
            "seed": self.seed,
            "mean_sojourn_time": self.mean_sojourn_time,
            "confidence_interval": self.confidence_interval,
            "processed_jobs": self.processed_jobs,
            "n_samples": len(self.sojourn_times),
            "final_time": self.final_time,
            "obs_time": self.obs_time,
            "stopped": self.stopped,
        }
        for node_id, stats in self.node_stats.items():
            row[f"utilization_{node_id}"] = self.utilizations.get(node_id, 0.0)
            row[f"arrivals_{node_id}"] = stats.arrivals
            row[f"departures_{node_id}"] = stats.departures
            row[f"mean_wait_{node_id}"] = stats.mean_wait
        return row


@dataclass
class JobRecord:
    """Per-job trail, dropped as soon as the job leaves the network."""

    first_arrival: float
    visits: List[List[Optional[float]]] = field(default_factory=list)

    def arrive(self, node_id: int, now: float) -> None:
        self.visits.append([node_id, now, None])

    def depart(self, now: float) -> None:
        self.visits[-1][2] = now

    @property
    def arrived_at(self) -> float:
        return self.visits[-1][1]


@dataclass
class _NodeCounters:
    arrivals: int = 0
    departures: int = 0
    queue_lengths: List[int] = field(default_factory=list)
    times: List[float] = field(default_factory=list)


class NetworkSystem:
    """Owns the timeline, node states and measurements of one run."""

    def __init__(self, params: NetworkParams):
        self.params = params
        self.rng = np.random.default_rng(seed=params.seed)
        self.timeline = Timeline()
        self.time = 0.0
        self.nodes: Dict[int, Node] = {
            cfg.node_id: Node(
                cfg.node_id,
                cfg.service,
                window_start=params.warmup,
                window_end=params.horizon,
            )
            for cfg in params.nodes
        }
        self.counters: Dict[int, _NodeCounters] = {nid: _NodeCounters() for nid in self.nodes}
        self.jobs: Dict[int, JobRecord] = {}
        self.sojourn_times: List[float] = []
        self.processed_jobs = 0
        self._next_job_id = 0
        self._last_sample: Optional[float] = None
        self._last_update = 0.0
        self._reported_samples = 0
        self._reported_sojourns = 0

    def _new_job_id(self) -> int:
        job_id = self._next_job_id
        self._next_job_id += 1
        return job_id

    def _has_external_stream(self, node_id: int) -> bool:
        return self.params.arrival_rates.get(node_id, 0.0) > 0

    def _schedule_external_arrival(self, node_id: int) -> None:
        gap = sample(self.params.arrivals[node_id], self.rng)
        self.timeline.insert(Event(self.time + gap, EventKind.ARRIVAL, self._new_job_id(), node_id))

    def _start_service(self, node: Node, job_id: int) -> None:
        duration = sample(node.service, self.rng)
        node.begin_service(self.time, self.jobs[job_id].arrived_at, duration)
        self.timeline.insert(Event(self.time + duration, EventKind.DEPARTURE, job_id, node.node_id))

    def prime(self) -> None:
        """Schedule the first external arrival of every active stream."""
        for node_id in sorted(self.params.arrivals):
            if self._has_external_stream(node_id):
                self._schedule_external_arrival(node_id)

    def handle_arrival(self, event: Event) -> None:
        node = self.nodes[event.node_id]
        record = self.jobs.get(event.job_id)
        external = record is None
        if external:
            record = JobRecord(first_arrival=self.time)
            self.jobs[event.job_id] = record
        record.arrive(event.node_id, self.time)
        self.counters[event.node_id].arrivals += 1

        if node.arrive(event.job_id, self.time):
            self._start_service(node, event.job_id)

        # Routed jobs keep their id and must not renew the external stream.
        if external and self._has_external_stream(event.node_id):
            self._schedule_external_arrival(event.node_id)

    def handle_departure(self, event: Event) -> None:
        node = self.nodes[event.node_id]
        finished, next_job = node.complete(self.time)
        self.counters[event.node_id].departures += 1
        record = self.jobs[finished]
        record.depart(self.time)

        destination = route(event.node_id, self.params.routing, self.rng)
        if destination is EXIT:
            self._finalize(finished, record)
        else:
            self.timeline.insert(Event(self.time, EventKind.ARRIVAL, finished, destination))

        if next_job is not None:
            self._start_service(node, next_job)

    def _finalize(self, job_id: int, record: JobRecord) -> None:
        self.processed_jobs += 1
        if record.first_arrival >= self.params.warmup:
            self.sojourn_times.append(self.time - record.first_arrival)
        del self.jobs[job_id]

    def open_window(self, next_event_time: float) -> None:
        """Sample the queues as they stand at the warm-up boundary, once."""
        if self._last_sample is None and next_event_time >= self.params.warmup:
            self._record_sample(self.params.warmup)

    def sample_queue_lengths(self) -> None:
        if self.time < self.params.warmup:
            return
        interval = self.params.stats_interval
        if interval > 0 and self._last_sample is not None and self.time - self._last_sample < interval:
            return
        self._record_sample(self.time)

    def _record_sample(self, at: float) -> None:
        self._last_sample = at
        for node_id, node in self.nodes.items():
            counters = self.counters[node_id]
            counters.queue_lengths.append(node.queue_length)
            counters.times.append(at)

    def node_stats(self) -> Dict[int, NodeStats]:
        stats: Dict[int, NodeStats] = {}
        for node_id, node in self.nodes.items():
            counters = self.counters[node_id]
            stats[node_id] = NodeStats(
                arrivals=counters.arrivals,
                departures=counters.departures,
                queue_lengths=tuple(counters.queue_lengths),
                times=tuple(counters.times),
                jobs_served=node.jobs_served,
                mean_wait=float(np.mean(node.wait_times)) if node.wait_times else 0.0,
                mean_service=float(np.mean(node.service_times)) if node.service_times else 0.0,
            )
        return stats

    def _recent_node_stats(self, start: int) -> Dict[int, NodeStats]:
        """Cumulative counters with only the queue-length samples from ``start`` on."""
        stats: Dict[int, NodeStats] = {}
        for node_id, node in self.nodes.items():
            counters = self.counters[node_id]
            stats[node_id] = NodeStats(
                arrivals=counters.arrivals,
                departures=counters.departures,
                queue_lengths=tuple(counters.queue_lengths[start:]),
                times=tuple(counters.times[start:]),
                jobs_served=node.jobs_served,
                mean_wait=node.mean_wait,
                mean_service=node.mean_service,
            )
        return stats

    def maybe_report(self, progress: Optional[ProgressCallback]) -> None:
        if progress is None or self.time - self._last_update < self.params.progress_interval:
            return
        self._last_update = self.time
        snapshot = ProgressSnapshot(
            time=self.time,
            node_stats=self._recent_node_stats(self._reported_samples),
            processed_jobs=self.processed_jobs,
            sojourn_times=tuple(self.sojourn_times[self._reported_sojourns:]),
            progress_percent=min(100.0, self.time / self.params.horizon * 100.0),
        )
        # every node samples at the same instants, so one cursor covers all series
        self._reported_samples = len(next(iter(self.counters.values())).times)
        self._reported_sojourns = len(self.sojourn_times)
        progress(snapshot)

    def result(self, end_time: float, stopped: bool) -> RunResult:
        obs_time = max(end_time - self.params.warmup, 0.0)
        if obs_time > 0:
            utilizations = {nid: node.busy_time(end_time) / obs_time for nid, node in self.nodes.items()}
        else:
            utilizations = {nid: 0.0 for nid in self.nodes}
        mean_sojourn = float(np.mean(self.sojourn_times)) if self.sojourn_times else 0.0
        half_width = sojourn_half_width(
            self.sojourn_times, self.params.batch_size, self.params.confidence_level
        )
        return RunResult(
            mean_sojourn_time=mean_sojourn,
            confidence_interval=half_width,
            node_stats=self.node_stats(),
            utilizations=utilizations,
            sojourn_times=tuple(self.sojourn_times),
            processed_jobs=self.processed_jobs,
            final_time=end_time,
            obs_time=obs_time,
            seed=self.params.seed,
            stopped=stopped,
        )


def run_network(
    params: NetworkParams,
    progress: Optional[ProgressCallback] = None,
    stop_requested: Optional[StopCheck] = None,
) -> RunResult:
    """
    Run one replication of the network described by ``params``.

    ``progress`` receives :class:`ProgressSnapshot` values at most every
    ``params.progress_interval`` simulated time units. ``stop_requested`` is
    polled once per event; when it returns True the run ends at the current
    event boundary and the result is flagged ``stopped``.

    Raises:
        UnsupportedDistribution: if a sampler meets an unknown distribution.
        InvalidParameters: if a distribution keeps yielding non-positive values.
    """
    horizon = params.horizon
    system = NetworkSystem(params)
    logger.info(
        "Starting run: %d nodes, horizon %.3f (warm-up %.3f), seed %s",
        len(system.nodes),
        horizon,
        params.warmup,
        params.seed,
    )
    system.prime()

    end_time = horizon
    stopped = False
    while system.time < horizon:
        if stop_requested is not None and stop_requested():
            logger.info("Stop requested at t=%.4f", system.time)
            end_time, stopped = system.time, True
            break

        event = system.timeline.pop_earliest()
        if event is None:
            logger.debug("Timeline empty at t=%.4f; no sustained arrivals", system.time)
            break
        if event.time > horizon:
            break

        system.open_window(event.time)
        system.time = event.time
        if event.kind is EventKind.ARRIVAL:
            system.handle_arrival(event)
        else:
            system.handle_departure(event)

        system.sample_queue_lengths()
        system.maybe_report(progress)

        if params.max_jobs is not None and system.processed_jobs >= params.max_jobs:
            logger.info("Reached %d processed jobs at t=%.4f", system.processed_jobs, system.time)
            end_time = system.time
            break

    result = system.result(end_time=min(end_time, horizon), stopped=stopped)
    logger.info(
        "Run finished: %d jobs processed, mean sojourn %.5f +/- %.5f",
        result.processed_jobs,
        result.mean_sojourn_time,
        result.confidence_interval,
    )
    return result

