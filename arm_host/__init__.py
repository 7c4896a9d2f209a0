"""
arm_host: position control for a single motor-driven arm joint.

Motion profile -> Kalman filter -> LQR -> voltage, once per fixed tick.

    from arm_host import JointController, JointSettings

    settings = JointSettings.load("elbow")
    joint = JointController(settings, sensor, actuator)
"""

from .config.settings import JointSettings
from .joint.controller import JointController

__all__ = ["JointSettings", "JointController"]
