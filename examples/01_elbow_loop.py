#!/usr/bin/env python3
"""
Example 01: Elbow Control Loop

Demonstrates:
- Loading the elbow profile
- Driving two linked motors through LeaderFollowerActuator
- Running JointController.tick() on a fixed period
- Recording telemetry to JSONL through the EventBus

The simulated arm stands in for hardware here; swap ``SimulatedEncoder`` and
the two ``SimulatedMotor`` objects for your encoder and motor-controller
drivers. Anything with ``read_position()`` / ``set_voltage()`` works.

Usage:
    python 01_elbow_loop.py            # 30 degree move, real-time pacing
    python 01_elbow_loop.py 45 --fast  # no sleeping between ticks
"""
import math
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from arm_host.config.settings import JointSettings
from arm_host.control.plant import LinearArmPlant
from arm_host.core.event_bus import EventBus
from arm_host.joint import JointController, LeaderFollowerActuator
from arm_host.logger import JointLogBundle, TelemetryRecorder
from arm_host.research.simulation import SimulatedArm, SimulatedEncoder, SimulatedMotor


def main() -> None:
    goal_deg = float(sys.argv[1]) if len(sys.argv) > 1 and not sys.argv[1].startswith("-") else 30.0
    fast = "--fast" in sys.argv

    settings = JointSettings.load("elbow")
    dt = settings.loop.dt
    mapping = settings.kinematic_mapping()

    # Stand-in hardware: arm resting at kinematic zero
    arm = SimulatedArm(LinearArmPlant(settings.plant_parameters(), dt), position=mapping.to_raw(0.0))
    encoder = SimulatedEncoder(arm)
    leader = SimulatedMotor(settings.controller.max_voltage)
    follower = SimulatedMotor(settings.controller.max_voltage)
    motors = LeaderFollowerActuator(leader, follower)

    logs = JointLogBundle("elbow_example", console=True)
    bus = EventBus()
    TelemetryRecorder(bus, logs.events)

    joint = JointController(settings, encoder, motors, telemetry=bus, logger=logs.text.get_logger())
    joint.set_goal_degrees(goal_deg)

    print(f"[Example] elbow -> {goal_deg:.1f} deg, dt={dt * 1000:.0f} ms")
    next_tick = time.monotonic()
    try:
        for i in range(int(4.0 / dt)):
            joint.tick()
            arm.step(leader.voltage, dt)

            if i % 25 == 0:
                print(
                    f"  t={i * dt:5.2f}s  angle={math.degrees(joint.get_kinematic_angle()):7.2f} deg  "
                    f"V={joint.last_voltage:6.2f}  follower={follower.voltage:6.2f}"
                )

            if not fast:
                next_tick += dt
                time.sleep(max(0.0, next_tick - time.monotonic()))
    except KeyboardInterrupt:
        print("\n[Example] Interrupted")
    finally:
        motors.stop()
        logs.close()

    print(f"[Example] final angle {math.degrees(joint.get_kinematic_angle()):.2f} deg")


if __name__ == "__main__":
    main()
