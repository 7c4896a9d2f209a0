# arm_host/joint/__init__.py
# Joint-level pieces: kinematic mapping, hardware ports, and the control loop.
#   from arm_host.joint import JointController, KinematicMapping
from .kinematics import KinematicMapping
from .ports import (
    LeaderFollowerActuator,
    PositionSensor,
    TelemetrySink,
    VelocitySensor,
    VoltageActuator,
)
from .controller import SKIPPED_TOPIC, TELEMETRY_TOPIC, JointController

__all__ = [
    "KinematicMapping",
    "PositionSensor",
    "VelocitySensor",
    "VoltageActuator",
    "TelemetrySink",
    "LeaderFollowerActuator",
    "JointController",
    "TELEMETRY_TOPIC",
    "SKIPPED_TOPIC",
]
