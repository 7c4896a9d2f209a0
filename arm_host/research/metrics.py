# arm_host/research/metrics.py
"""
Performance metrics for joint runs.

Includes:
- Tracking error (reference vs actual)
- Step response characteristics (rise, settling, overshoot)
- Motion profile limit checks
- Loading recorded JSONL telemetry
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd


# =============================================================================
# Data Loading
# =============================================================================

def load_jsonl(path: str) -> List[Dict[str, Any]]:
    """Load a JSONL file into a list of dictionaries."""
    rows = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                rows.append(json.loads(line))
    return rows


def filter_events(rows: List[Dict], event_prefix: str) -> List[Dict]:
    """Filter rows by event prefix."""
    return [r for r in rows if str(r.get("event", "")).startswith(event_prefix)]


def history_frame(history: List[Dict[str, Any]]) -> pd.DataFrame:
    """Simulation or telemetry rows as a DataFrame, one row per tick."""
    return pd.DataFrame(history)


# =============================================================================
# Control Performance Metrics
# =============================================================================

@dataclass
class ControlMetrics:
    """Control loop performance metrics."""
    # Tracking error
    rmse: float = 0.0
    mae: float = 0.0
    max_error: float = 0.0

    # Step response characteristics
    rise_time_s: Optional[float] = None       # 10% to 90%
    settling_time_s: Optional[float] = None   # Within band of final
    overshoot_percent: Optional[float] = None
    steady_state_error: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def compute_tracking_error(
    setpoints: Sequence[float],
    actuals: Sequence[float],
) -> Tuple[float, float, float]:
    """
    Compute tracking error metrics.

    Returns: (rmse, mae, max_error)
    """
    if len(setpoints) != len(actuals) or len(setpoints) == 0:
        return (0.0, 0.0, 0.0)

    errors = np.asarray(setpoints, dtype=float) - np.asarray(actuals, dtype=float)
    rmse = float(np.sqrt(np.mean(errors ** 2)))
    mae = float(np.mean(np.abs(errors)))
    max_error = float(np.max(np.abs(errors)))

    return (rmse, mae, max_error)


def analyze_step_response(
    times_s: Sequence[float],
    values: Sequence[float],
    setpoint: float,
    initial: float = 0.0,
    settling_threshold: float = 0.02,
) -> ControlMetrics:
    """
    Analyze step response characteristics.

    Args:
        times_s: Time values in seconds
        values: Response values
        setpoint: Target setpoint value
        initial: Initial value before step
        settling_threshold: Settling band as fraction of step size
    """
    if len(times_s) < 2 or len(values) < 2:
        return ControlMetrics()

    t = np.asarray(times_s, dtype=float)
    y = np.asarray(values, dtype=float)
    step_size = setpoint - initial

    if abs(step_size) < 1e-9:
        return ControlMetrics()

    y_norm = (y - initial) / step_size

    # Rise time (10% to 90%)
    rise_time_s = None
    t_10 = t_90 = None
    for i, yn in enumerate(y_norm):
        if t_10 is None and yn >= 0.1:
            t_10 = t[i]
        if t_90 is None and yn >= 0.9:
            t_90 = t[i]
            break
    if t_10 is not None and t_90 is not None:
        rise_time_s = float(t_90 - t_10)

    peak = float(np.max(y_norm))
    overshoot_percent = (peak - 1.0) * 100 if peak > 1.0 else 0.0

    # Settling time: last exit from the band
    settling_time_s = None
    outside = np.nonzero(np.abs(y_norm - 1.0) > settling_threshold)[0]
    if outside.size == 0:
        settling_time_s = 0.0
    elif outside[-1] + 1 < len(t):
        settling_time_s = float(t[outside[-1] + 1] - t[0])

    steady_state = float(np.mean(y_norm[-max(1, len(y_norm) // 10):]))
    steady_state_error = abs(1.0 - steady_state) * abs(step_size)

    rmse, mae, max_error = compute_tracking_error(np.full_like(y, setpoint), y)

    return ControlMetrics(
        rmse=rmse,
        mae=mae,
        max_error=max_error,
        rise_time_s=rise_time_s,
        settling_time_s=settling_time_s,
        overshoot_percent=overshoot_percent,
        steady_state_error=steady_state_error,
    )


def reference_tracking_metrics(history: List[Dict[str, Any]]) -> ControlMetrics:
    """Tracking error of the true position against the profiled reference."""
    refs = [row["reference_position"] for row in history]
    actual = [row["position"] for row in history]
    rmse, mae, max_e = compute_tracking_error(refs, actual)
    return ControlMetrics(rmse=rmse, mae=mae, max_error=max_e)


# =============================================================================
# Profile Limits
# =============================================================================

def profile_limit_violations(
    positions_velocities: Sequence[Tuple[float, float]],
    max_velocity: float,
    max_acceleration: float,
    dt: float,
    initial_velocity: float = 0.0,
    rel_tol: float = 1e-6,
) -> List[int]:
    """
    Indices of reference samples that break the velocity or acceleration limit.

    Acceleration is the velocity change from the previous sample over ``dt``.
    """
    v_lim = max_velocity * (1 + rel_tol) + 1e-12
    a_lim = max_acceleration * (1 + rel_tol) + 1e-9

    violations = []
    prev_v = initial_velocity
    for i, (_, v) in enumerate(positions_velocities):
        if abs(v) > v_lim or abs(v - prev_v) / dt > a_lim:
            violations.append(i)
        prev_v = v
    return violations


def ticks_to_settle(
    history: List[Dict[str, Any]],
    target: float,
    tolerance: float,
) -> Optional[int]:
    """First tick after which the true position stays within ``tolerance`` of ``target``."""
    settled_from = None
    for row in history:
        if abs(row["position"] - target) <= tolerance:
            if settled_from is None:
                settled_from = row["tick"]
        else:
            settled_from = None
    return settled_from
