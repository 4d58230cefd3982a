"""Generate figures for a single network run: queues, sojourn times, utilization."""

from __future__ import annotations

import argparse
import math
from pathlib import Path
from typing import Dict

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from qnet import (
    RunResult,
    batch_means,
    downsample,
    get_params,
    jackson_theory,
    list_scenarios,
    run_network,
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Plot the outputs of one simulation run.")
    parser.add_argument("--scenario", type=str, choices=list(list_scenarios()), default="tandem")
    parser.add_argument("--seed", type=int, default=123, help="Random seed.")
    parser.add_argument("--warmup", type=float, default=100.0, help="Warm-up time.")
    parser.add_argument("--period", type=float, default=2_000.0, help="Observed simulation time.")
    parser.add_argument("--batch-size", type=int, default=100, help="Batch size for batch means.")
    parser.add_argument("--confidence", type=float, default=0.95, help="Confidence level.")
    parser.add_argument(
        "--reports-dir",
        type=Path,
        default=Path("reports"),
        help="Directory where PNG files will be saved.",
    )
    return parser.parse_args()


def plot_queue_lengths(result: RunResult, out: Path) -> None:
    fig, ax = plt.subplots(figsize=(8, 4))
    for node_id, stats in sorted(result.node_stats.items()):
        ax.step(stats.times, stats.queue_lengths, where="post", label=f"Node {node_id}", linewidth=0.8)
    ax.set_xlabel("Simulated time")
    ax.set_ylabel("Jobs at node")
    ax.set_title("Queue length over time")
    ax.legend()
    fig.tight_layout()
    fig.savefig(out, dpi=150)
    plt.close(fig)


def plot_sojourn_times(result: RunResult, confidence: float, out: Path) -> None:
    samples = np.asarray(result.sojourn_times)
    fig, ax = plt.subplots(figsize=(8, 4))
    if samples.size:
        running = np.cumsum(samples) / np.arange(1, samples.size + 1)
        ax.plot(np.arange(1, samples.size + 1), running, color="#4c72b0", label="Running mean")
        ax.axhspan(
            result.mean_sojourn_time - result.confidence_interval,
            result.mean_sojourn_time + result.confidence_interval,
            color="#4c72b0",
            alpha=0.15,
            label=f"{confidence:.0%} CI",
        )
    ax.set_xlabel("Completed jobs")
    ax.set_ylabel("Sojourn time")
    ax.set_title("Mean sojourn time")
    ax.legend()
    fig.tight_layout()
    fig.savefig(out, dpi=150)
    plt.close(fig)


def plot_batch_means(result: RunResult, batch_size: int, confidence: float, out: Path) -> None:
    batches = batch_means(result.sojourn_times, batch_size, confidence)
    fig, ax = plt.subplots(figsize=(8, 4))
    if batches.n_batches:
        ax.errorbar(
            batches.batch_numbers,
            batches.batch_means,
            yerr=batches.batch_half_widths,
            fmt="o",
            capsize=3,
            elinewidth=1,
        )
        ax.axhline(batches.grand_mean, color="gray", linestyle="--", linewidth=1)
    ax.set_xlabel("Batch")
    ax.set_ylabel("Mean sojourn time")
    ax.set_title(f"Batch means (size={batch_size}) with {confidence:.0%} intervals")
    fig.tight_layout()
    fig.savefig(out, dpi=150)
    plt.close(fig)


def plot_utilization(result: RunResult, theory: Dict[int, float], out: Path) -> None:
    labels = sorted(result.utilizations)
    x = np.arange(len(labels))
    width = 0.35

    fig, ax = plt.subplots(figsize=(6, 4))
    ax.bar(x - width / 2, [theory.get(n, math.nan) for n in labels], width=width, label="Theory")
    ax.bar(x + width / 2, [result.utilizations[n] for n in labels], width=width, label="Simulation")
    ax.set_xticks(list(x))
    ax.set_xticklabels([f"Node {n}" for n in labels])
    ax.set_ylim(0, 1)
    ax.set_ylabel("Utilization")
    ax.set_title("Utilization: Jackson theory vs. simulation")
    ax.legend()
    fig.tight_layout()
    fig.savefig(out, dpi=150)
    plt.close(fig)


def main() -> None:
    args = parse_args()
    params = get_params(
        args.scenario,
        seed=args.seed,
        warmup=args.warmup,
        period=args.period,
        batch_size=args.batch_size,
        confidence_level=args.confidence,
    )
    result = run_network(params)
    theory = jackson_theory(params.arrival_rates, params.service_rates(), params.routing)

    args.reports_dir.mkdir(parents=True, exist_ok=True)
    plot_batch_means(result, args.batch_size, args.confidence, args.reports_dir / "batch_means.png")

    thin = downsample(result)
    plot_queue_lengths(thin, args.reports_dir / "queue_lengths.png")
    plot_sojourn_times(result, args.confidence, args.reports_dir / "sojourn_times.png")
    plot_utilization(result, theory.utilizations(), args.reports_dir / "utilization.png")

    print(f"Figures written to {args.reports_dir.resolve()}")


if __name__ == "__main__":
    main()
