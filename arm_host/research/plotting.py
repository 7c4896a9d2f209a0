# arm_host/research/plotting.py
"""
Visualization for joint runs.

Includes:
- Position vs reference vs goal, tracking error, voltage (one figure)
- Step response with settling band and metric annotations
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
from matplotlib.axes import Axes  # noqa: E402
from matplotlib.figure import Figure  # noqa: E402

from .metrics import ControlMetrics, history_frame  # noqa: E402


DEFAULT_STYLE = {
    "figure.figsize": (12, 6),
    "axes.grid": True,
    "axes.labelsize": 11,
    "axes.titlesize": 12,
    "lines.linewidth": 1.5,
    "legend.fontsize": 10,
    "grid.alpha": 0.3,
}


def apply_style():
    """Apply default plotting style."""
    plt.rcParams.update(DEFAULT_STYLE)


def plot_joint_run(
    history: List[Dict[str, Any]],
    figsize: Tuple[float, float] = (12, 9),
    title: str = "Joint Run",
) -> Figure:
    """
    Three stacked panels sharing the time axis: position (true, estimated,
    reference, goal), reference tracking error, and applied voltage.
    """
    df = history_frame(history)
    t = df["time"].to_numpy()

    fig, axes = plt.subplots(3, 1, figsize=figsize, sharex=True)
    fig.suptitle(title, fontsize=14)

    axes[0].plot(t, df["goal"], "k:", label="Goal", alpha=0.7)
    axes[0].plot(t, df["reference_position"], "b--", label="Reference", linewidth=2)
    axes[0].plot(t, df["position"], "r-", label="Actual")
    axes[0].plot(t, df["estimate_position"], "g-", label="Estimate", alpha=0.6)
    axes[0].set_ylabel("Position (raw)")
    axes[0].legend()
    axes[0].grid(True, alpha=0.3)

    error = df["reference_position"].to_numpy() - df["position"].to_numpy()
    axes[1].plot(t, error, "g-", label="Reference - Actual")
    axes[1].axhline(y=0, color="k", linestyle="--", alpha=0.5)
    axes[1].set_ylabel("Error (raw)")
    axes[1].legend()
    axes[1].grid(True, alpha=0.3)

    axes[2].plot(t, df["voltage"], "m-", label="Voltage")
    axes[2].set_ylabel("Voltage (V)")
    axes[2].legend()
    axes[2].grid(True, alpha=0.3)

    axes[-1].set_xlabel("Time (s)")
    plt.tight_layout()
    return fig


def plot_step_response(
    times: np.ndarray,
    response: np.ndarray,
    setpoint: float,
    metrics: Optional[ControlMetrics] = None,
    band: float = 0.02,
    ax: Optional[Axes] = None,
    title: str = "Step Response",
) -> Axes:
    """
    Plot step response with characteristic annotations.
    """
    if ax is None:
        _, ax = plt.subplots(1, 1, figsize=(12, 4))

    ax.plot(times, response, "b-", linewidth=2, label="Response")
    ax.axhline(y=setpoint, color="r", linestyle="--", label="Setpoint")

    half_width = abs(setpoint) * band
    ax.fill_between(
        times,
        setpoint - half_width,
        setpoint + half_width,
        alpha=0.1,
        color="green",
        label=f"{band:.0%} band",
    )

    if metrics:
        text_lines = []
        if metrics.rise_time_s is not None:
            text_lines.append(f"Rise time: {metrics.rise_time_s*1000:.1f} ms")
        if metrics.settling_time_s is not None:
            text_lines.append(f"Settling: {metrics.settling_time_s*1000:.1f} ms")
        if metrics.overshoot_percent is not None:
            text_lines.append(f"Overshoot: {metrics.overshoot_percent:.1f}%")
        if metrics.steady_state_error is not None:
            text_lines.append(f"SS Error: {metrics.steady_state_error:.4f}")
        if text_lines:
            ax.text(
                0.98, 0.02, "\n".join(text_lines),
                transform=ax.transAxes,
                ha="right", va="bottom",
                bbox=dict(boxstyle="round", facecolor="white", alpha=0.8),
            )

    ax.set_xlabel("Time (s)")
    ax.set_ylabel("Position")
    ax.set_title(title)
    ax.legend(loc="center right")
    return ax


def save_figure(
    fig: Figure,
    path: str,
    dpi: int = 150,
    tight: bool = True,
):
    """Save figure to file."""
    if tight:
        fig.tight_layout()
    fig.savefig(path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
