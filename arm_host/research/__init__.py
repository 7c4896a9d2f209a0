# arm_host/research/__init__.py
"""
Simulation and analysis tools for joint runs.

Modules:
- simulation: Simulated arm, encoder and motor wired to a JointController
- metrics: Tracking error, step response, profile limit checks
- plotting: Run visualization (matplotlib)

Example usage:
    from arm_host.research.simulation import build_simulation
    from arm_host.research.metrics import analyze_step_response
"""

from .metrics import (
    ControlMetrics,
    analyze_step_response,
    compute_tracking_error,
    history_frame,
    profile_limit_violations,
    reference_tracking_metrics,
    ticks_to_settle,
)

from .simulation import (
    GaussianNoise,
    SimulatedArm,
    SimulatedEncoder,
    SimulatedMotor,
    SimulationRunner,
    build_simulation,
)

__all__ = [
    # metrics
    "ControlMetrics",
    "analyze_step_response",
    "compute_tracking_error",
    "history_frame",
    "profile_limit_violations",
    "reference_tracking_metrics",
    "ticks_to_settle",
    # simulation
    "GaussianNoise",
    "SimulatedArm",
    "SimulatedEncoder",
    "SimulatedMotor",
    "SimulationRunner",
    "build_simulation",
]
