"""Matplotlib helpers for curve diagnostics."""

from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from .curves import IsdaCompliantCurve
from .hazard import hazard_segments
from .reporting import PricingRow


def save_core_diagnostics(
    discount_curve: IsdaCompliantCurve,
    credit_curve: IsdaCompliantCurve,
    pricing_rows: Sequence[PricingRow],
    destination: Path,
) -> List[Path]:
    destination.mkdir(parents=True, exist_ok=True)
    written = [
        destination / "hazard_curve.png",
        destination / "survival_default.png",
        destination / "discount_curve.png",
        destination / "pv_contributions.png",
    ]
    plot_hazard_curve(credit_curve, written[0])
    plot_probabilities(credit_curve, credit_curve.knot_times[-1], written[1])
    plot_discount_curve(discount_curve, written[2])
    plot_pv_contributions(pricing_rows, written[3])
    return [path for path in written if path.exists()]


def plot_hazard_curve(credit_curve: IsdaCompliantCurve, destination: Path) -> None:
    x: list[float] = []
    y: list[float] = []
    for segment in hazard_segments(credit_curve):
        x.extend([segment.start, segment.end])
        y.extend([segment.hazard_rate, segment.hazard_rate])
    if not x:
        return
    plt.figure(figsize=(6, 4))
    plt.plot(x, y, drawstyle="steps-post", label="Forward hazard rate")
    plt.xlabel("Time (years)")
    plt.ylabel("Hazard rate")
    plt.title("Piece-wise Hazard Structure")
    plt.grid(True, alpha=0.3)
    plt.legend()
    plt.tight_layout()
    plt.savefig(destination)
    plt.close()


def plot_probabilities(credit_curve: IsdaCompliantCurve, maturity: float, destination: Path) -> None:
    if maturity <= 0:
        return
    grid = np.linspace(0.0, maturity, 200)
    surv = np.array([credit_curve.df(float(t)) for t in grid], dtype=float)
    plt.figure(figsize=(6, 4))
    plt.plot(grid, surv, label="Survival probability")
    plt.plot(grid, 1.0 - surv, label="Default probability")
    plt.xlabel("Time (years)")
    plt.ylabel("Probability")
    plt.title("Survival vs Default")
    plt.ylim(0.0, 1.0)
    plt.grid(True, alpha=0.3)
    plt.legend()
    plt.tight_layout()
    plt.savefig(destination)
    plt.close()


def plot_discount_curve(discount_curve: IsdaCompliantCurve, destination: Path) -> None:
    end = discount_curve.knot_times[-1]
    grid = np.linspace(0.0, end, 200)
    zero = np.array([discount_curve.zero_rate(float(t)) for t in grid], dtype=float)
    fig, ax1 = plt.subplots(figsize=(7, 4))
    ax1.plot(grid, zero * 100.0, color="tab:blue", label="Zero rate (%)")
    ax1.scatter(discount_curve.knot_times, discount_curve.zero_rates * 100.0, color="tab:blue", marker="o")
    ax1.set_xlabel("Time (years)")
    ax1.set_ylabel("Zero rate (%)", color="tab:blue")
    ax1.grid(True, alpha=0.3)

    ax2 = ax1.twinx()
    ax2.plot(grid, [discount_curve.df(float(t)) for t in grid], color="tab:orange", label="Discount factor")
    ax2.set_ylabel("Discount factor", color="tab:orange")

    lines, labels = [], []
    for ax in (ax1, ax2):
        line, label = ax.get_legend_handles_labels()
        lines.extend(line)
        labels.extend(label)
    fig.legend(lines, labels, loc="upper right", bbox_to_anchor=(0.9, 0.9))
    plt.title("Discount Curve")
    fig.tight_layout()
    plt.savefig(destination)
    plt.close(fig)


def plot_pv_contributions(pricing_rows: Sequence[PricingRow], destination: Path) -> None:
    rows = list(pricing_rows)
    if not rows:
        return
    labels = [row.label for row in rows]
    premium = [row.premium for row in rows]
    protection = [row.protection for row in rows]
    upfront = [row.points_upfront for row in rows]
    x = np.arange(len(labels))
    width = 0.35
    plt.figure(figsize=(7, 4))
    plt.bar(x - width / 2, premium, width, label="Premium leg")
    plt.bar(x + width / 2, protection, width, label="Protection leg")
    plt.plot(x, upfront, color="black", marker="o", label="Points upfront")
    plt.xticks(x, labels)
    plt.ylabel("Present value")
    plt.title("PV Contributions by Node")
    plt.grid(True, axis="y", alpha=0.3)
    plt.legend()
    plt.tight_layout()
    plt.savefig(destination)
    plt.close()
