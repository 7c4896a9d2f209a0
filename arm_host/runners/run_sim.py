# arm_host/runners/run_sim.py
"""
Drive a joint profile against the simulated arm and report how it tracked.

    python -m arm_host.runners.run_sim --profile sim --goal-deg 57.3 --ticks 200
    python -m arm_host.runners.run_sim --noise 0.002 --dropout 0.05 --plot run.png
"""
from __future__ import annotations

import argparse
import math
from typing import List, Optional

from arm_host.config.settings import JointSettings
from arm_host.core.event_bus import EventBus
from arm_host.logger import JointLogBundle, TelemetryRecorder
from arm_host.research.metrics import (
    analyze_step_response,
    history_frame,
    profile_limit_violations,
    reference_tracking_metrics,
    ticks_to_settle,
)
from arm_host.research.simulation import build_simulation


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Simulated joint step run")

    ap.add_argument("--profile", default="sim", help="Joint profile (default: sim, radians end to end)")
    ap.add_argument("--config", default=None, help="Load settings from a YAML file instead of a profile")

    ap.add_argument("--start-deg", type=float, default=0.0, help="Initial joint angle in degrees")
    ap.add_argument("--goal-deg", type=float, default=57.3, help="Goal joint angle in degrees")
    ap.add_argument("--ticks", type=int, default=200, help="Number of control ticks to run")

    # Encoder imperfections
    ap.add_argument("--noise", type=float, default=0.0, help="Encoder noise std, raw units")
    ap.add_argument("--dropout", type=float, default=0.0, help="Probability a read returns nothing")
    ap.add_argument("--seed", type=int, default=None, help="Random seed")

    # Output
    ap.add_argument("--log-dir", default="logs", help="Directory for text and JSONL logs")
    ap.add_argument("--plot", default=None, help="Write a run plot to this path")
    ap.add_argument("--csv", default=None, help="Write the per-tick history to this CSV path")
    ap.add_argument("--verbose", action="store_true", help="Echo the joint log to the console")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.ticks < 1:
        raise SystemExit("--ticks must be at least 1")

    if args.config:
        settings = JointSettings.from_file(args.config)
    else:
        settings = JointSettings.load(args.profile)

    logs = JointLogBundle(settings.name, log_dir=args.log_dir, console=args.verbose)
    bus = EventBus()
    recorder = TelemetryRecorder(bus, logs.events)

    mapping = settings.kinematic_mapping()
    goal_rad = math.radians(args.goal_deg)
    start_raw = mapping.to_raw(math.radians(args.start_deg))

    try:
        runner = build_simulation(
            settings,
            initial_position=start_raw,
            noise_std=args.noise,
            dropout_prob=args.dropout,
            seed=args.seed,
            goal_schedule={0: goal_rad},
            telemetry=bus,
            logger=logs.text.get_logger(),
        )
        history = runner.run(args.ticks)
    finally:
        logs.close()

    joint = runner.joint
    goal_raw = joint.goal.position
    final = history[-1]

    step = analyze_step_response(
        [row["time"] for row in history],
        [row["position"] for row in history],
        setpoint=goal_raw,
        initial=start_raw,
    )
    tracking = reference_tracking_metrics(history)
    constraints = settings.constraints()
    violations = profile_limit_violations(
        [(row["reference_position"], row["reference_velocity"]) for row in history],
        constraints.max_velocity,
        constraints.max_acceleration,
        joint.dt,
    )
    settle_tol = 0.01 * abs(mapping.scale)
    settled = ticks_to_settle(history, goal_raw, settle_tol)

    print(f"[run_sim] {settings.name}: {args.start_deg:.2f} deg -> {math.degrees(joint.target_angle):.2f} deg, "
          f"{len(history)} ticks at {joint.dt * 1000:.0f} ms")
    print(f"[run_sim] final angle {math.degrees(mapping.to_kinematic_angle(final['position'])):.3f} deg, "
          f"velocity {mapping.velocity_to_kinematic(final['velocity']):.4f} rad/s, "
          f"voltage {final['voltage']:.3f} V")
    print(f"[run_sim] settled (0.01 rad) at tick {settled}, "
          f"rise {step.rise_time_s}, overshoot {step.overshoot_percent or 0.0:.2f}%")
    print(f"[run_sim] reference tracking rmse {tracking.rmse:.5f} max {tracking.max_error:.5f} (raw)")
    print(f"[run_sim] profile limit violations: {len(violations)}, "
          f"skipped ticks: {joint.skipped_ticks}, events recorded: {recorder.count}")

    if args.csv:
        history_frame(history).to_csv(args.csv, index=False)
        print("[run_sim] Wrote:", args.csv)

    if args.plot:
        from arm_host.research.plotting import plot_joint_run, save_figure

        fig = plot_joint_run(history, title=f"{settings.name}: step to {args.goal_deg:.1f} deg")
        save_figure(fig, args.plot)
        print("[run_sim] Wrote:", args.plot)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
