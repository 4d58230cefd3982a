"""Command line interface to run replicated queueing-network simulations."""

from __future__ import annotations

import argparse
import json
import logging
import math
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd
from tqdm import trange

from qnet import (
    NetworkParams,
    RunResult,
    get_params,
    jackson_theory,
    jacksons_theorem,
    list_scenarios,
    littles_law,
    relative_error,
    run_network,
    run_reference,
    z_critical,
)
from qnet.distributions import describe

logger = logging.getLogger("run_sim")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run replicated simulations of an open queueing network."
    )
    parser.add_argument(
        "--scenario",
        type=str,
        choices=list(list_scenarios()),
        default="tandem",
        help="Named network (ignored when --config is given).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="JSON file with nodes, routing and arrivals (dashboard format).",
    )
    parser.add_argument("--seed", type=int, default=123, help="Base random seed.")
    parser.add_argument("--warmup", type=float, default=100.0, help="Warm-up time to discard.")
    parser.add_argument("--period", type=float, default=2_000.0, help="Observed simulation time.")
    parser.add_argument("--replications", type=int, default=5, help="Number of replications.")
    parser.add_argument("--batch-size", type=int, default=100, help="Batch size for batch means.")
    parser.add_argument("--confidence", type=float, default=0.95, help="Confidence level.")
    parser.add_argument(
        "--reference",
        action="store_true",
        help="Also run the SimPy reference model for every replication.",
    )
    parser.add_argument(
        "--outputs",
        type=Path,
        default=Path("outputs/results.csv"),
        help="Path where the CSV summary will be written.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args()


def build_params(args: argparse.Namespace, seed: int) -> NetworkParams:
    common = dict(confidence_level=args.confidence, batch_size=args.batch_size)
    if args.config is None:
        return get_params(args.scenario, seed=seed, warmup=args.warmup, period=args.period, **common)
    config = json.loads(args.config.read_text())
    config.update(seed=seed, warmup=args.warmup, simulation_period=args.period, **common)
    return NetworkParams.from_dict(config)


def run_replications(args: argparse.Namespace) -> Iterable[Dict[str, float]]:
    """Yield one flat row per replication."""
    for rep in trange(args.replications, desc="Simulating", unit="rep"):
        params = build_params(args, seed=args.seed + rep)
        result = run_network(params)
        row = result.as_dict()
        row.update(validation_columns(params, result))
        if args.reference:
            ref = run_reference(params)
            row["ref_mean_sojourn_time"] = ref.mean_sojourn_time
            for node_id, util in ref.utilizations.items():
                row[f"ref_utilization_{node_id}"] = util
        yield row


def validation_columns(params: NetworkParams, result: RunResult) -> Dict[str, float]:
    little = littles_law(
        result,
        params.arrival_rates,
        result.mean_sojourn_time,
        params.confidence_level,
        params.batch_size,
    )
    jackson = jacksons_theorem(result, params.service_rates(), params.arrival_rates, params.routing)
    return {
        "little_L": little.little_l,
        "little_simulated_L": little.simulated_average,
        "little_error_pct": little.percentage_error,
        "jackson_avg_error_pct": jackson.average_error,
        "jackson_max_error_pct": jackson.max_error,
        "jackson_valid": jackson.is_valid,
    }


def theory_lookup(params: NetworkParams) -> Optional[Dict[str, float]]:
    """Jackson/M-M-1 reference values, or None when the network is unstable."""
    try:
        theory = jackson_theory(params.arrival_rates, params.service_rates(), params.routing)
    except ValueError as exc:
        logger.warning("No closed form available: %s", exc)
        return None
    lookup = {"mean_sojourn_time": theory.W}
    for node_id, rho in theory.utilizations().items():
        lookup[f"utilization_{node_id}"] = rho
    return lookup


def compute_summary(
    df: pd.DataFrame, theory: Optional[Dict[str, float]], confidence: float
) -> pd.DataFrame:
    if df.empty:
        return pd.DataFrame()

    n = len(df)
    z = z_critical(confidence)
    metrics: List[str] = ["mean_sojourn_time"] + sorted(c for c in df.columns if c.startswith("utilization_"))
    metrics += ["little_error_pct", "jackson_avg_error_pct"]
    rows = []
    for name in metrics:
        series = pd.to_numeric(df[name], errors="coerce")
        mean = float(series.mean())
        std = float(series.std(ddof=1)) if n > 1 else 0.0
        half = z * std / math.sqrt(n) if n > 1 else 0.0
        theory_value = theory.get(name, float("nan")) if theory else float("nan")
        rel_err = (
            relative_error(mean, theory_value) * 100
            if theory and name in theory
            else float("nan")
        )
        rows.append(
            {
                "metric": name,
                "mean": mean,
                "std": std,
                "ci_halfwidth": half,
                "ci_rel_pct": (half / mean * 100) if mean else 0.0,
                "theory": theory_value,
                "relative_error_pct": rel_err,
                "replications": n,
            }
        )
    return pd.DataFrame(rows)


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    base = build_params(args, seed=args.seed)
    for cfg in base.nodes:
        logger.info("Node %s service %s", cfg.node_id, describe(cfg.service))

    df = pd.DataFrame(list(run_replications(args)))
    if df.empty:
        raise SystemExit("No simulation data was produced.")

    ensure_parent(args.outputs)
    df.to_csv(args.outputs, index=False)

    theory = theory_lookup(base)
    summary_df = compute_summary(df, theory, args.confidence)
    summary_path = args.outputs.parent / "summary.csv"
    summary_df.to_csv(summary_path, index=False)

    label = args.config.name if args.config else args.scenario
    print(f"\nNetwork: {label}  ({len(base.nodes)} nodes, {args.replications} replications)")
    print(f"  warm-up {args.warmup:g}, observed period {args.period:g}")

    print("\nSimulation vs. Jackson network theory:")
    for _, row in summary_df.iterrows():
        theory_text = "" if math.isnan(row["theory"]) else f"  theory {row['theory']:>10.6f}"
        error_text = "" if math.isnan(row["relative_error_pct"]) else f"  err {row['relative_error_pct']:>7.3f}%"
        print(
            f"  {row['metric']:<22}: {row['mean']:>10.6f} +/- {row['ci_halfwidth']:.6f}"
            f"{theory_text}{error_text}"
        )

    valid = int(df["jackson_valid"].sum())
    print(f"\nJackson check valid in {valid}/{len(df)} replications")
    if args.reference:
        ref_mean = float(df["ref_mean_sojourn_time"].mean())
        print(f"SimPy reference mean sojourn: {ref_mean:.6f}")

    print(f"\nResults written to {args.outputs.resolve()}")
    print(f"Summary written to {summary_path.resolve()}")


if __name__ == "__main__":
    main()
