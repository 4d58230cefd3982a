"""Discrete-event simulation of open queueing networks."""

from .analysis import (
    BatchMeansResult,
    JacksonResult,
    LittleResult,
    TrafficSolution,
    batch_means,
    jacksons_theorem,
    littles_law,
    solve_traffic_equations,
    z_critical,
)
from .distributions import make_distribution, mean_of, sample, supported_kinds
from .errors import InvalidParameters, InvalidRoutingTable, QNetError, UnsupportedDistribution
from .metrics import JacksonTheory, MM1Theory, jackson_theory, mm1_theory, relative_error, rho
from .network_core import NetworkParams, NodeConfig, NodeStats, ProgressSnapshot, RunResult, run_network
from .progress import SnapshotRelay
from .reduce import downsample
from .reference import ReferenceResult, run_reference
from .routing import EXIT, RoutingTable, route
from .scenarios import Scenario, get_params, list_scenarios
from .timeline import Event, EventKind, Timeline

__all__ = [
    "BatchMeansResult",
    "EXIT",
    "Event",
    "EventKind",
    "InvalidParameters",
    "InvalidRoutingTable",
    "JacksonResult",
    "JacksonTheory",
    "LittleResult",
    "MM1Theory",
    "NetworkParams",
    "NodeConfig",
    "NodeStats",
    "ProgressSnapshot",
    "QNetError",
    "ReferenceResult",
    "RoutingTable",
    "RunResult",
    "Scenario",
    "SnapshotRelay",
    "Timeline",
    "TrafficSolution",
    "UnsupportedDistribution",
    "batch_means",
    "downsample",
    "get_params",
    "jackson_theory",
    "jacksons_theorem",
    "list_scenarios",
    "littles_law",
    "make_distribution",
    "mean_of",
    "mm1_theory",
    "relative_error",
    "rho",
    "route",
    "run_network",
    "run_reference",
    "sample",
    "solve_traffic_equations",
    "supported_kinds",
    "z_critical",
]
