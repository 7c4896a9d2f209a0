# arm_host/joint/kinematics.py
from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class KinematicMapping:
    """
    Affine map between raw sensor units and the joint's kinematic angle.

        angle = (raw - offset) / scale
        raw   = angle * scale + offset

    ``offset`` is the raw reading at kinematic zero; ``scale`` is raw units per
    radian (the gear ratio when the sensor sits on the motor side).
    """
    offset: float = 0.0
    scale: float = 1.0

    def __post_init__(self) -> None:
        if not math.isfinite(self.offset):
            raise ValueError(f"offset must be finite, got {self.offset}")
        if not math.isfinite(self.scale) or self.scale == 0.0:
            raise ValueError(f"scale must be finite and non-zero, got {self.scale}")

    def to_kinematic_angle(self, raw: float) -> float:
        return (raw - self.offset) / self.scale

    def to_raw(self, angle_rad: float) -> float:
        return angle_rad * self.scale + self.offset

    def velocity_to_kinematic(self, raw_per_sec: float) -> float:
        return raw_per_sec / self.scale

    def velocity_to_raw(self, rad_per_sec: float) -> float:
        return rad_per_sec * self.scale
