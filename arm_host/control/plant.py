# arm_host/control/plant.py
"""
Electromechanical plant model for a single-jointed arm.

The arm is a rigid link on a geared shaft driven by one or more identical DC
motors. States are [angle, angular velocity] (rad, rad/s), the input is the
motor voltage (V) and the output is the angle.

    J * dw/dt = G * Kt * i,    i = (V - w * G / Kv) / R

which gives

    A = [[0, 1], [0, -G^2 * Kt / (Kv * R * J)]]
    B = [[0], [G * Kt / (R * J)]]
    C = [[1, 0]]
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np
from numpy.typing import ArrayLike

from .state_space import StateSpaceModel, discretize


def rpm_to_rad_per_sec(rpm: float) -> float:
    return rpm * 2.0 * math.pi / 60.0


# (nominal V, stall torque N*m, stall current A, free current A, free speed rpm)
MOTOR_PRESETS: Dict[str, Tuple[float, float, float, float, float]] = {
    "neo": (12.0, 2.6, 105.0, 1.8, 5676.0),
    "neo550": (12.0, 0.97, 100.0, 1.4, 11000.0),
    "falcon500": (12.0, 4.69, 257.0, 1.5, 6380.0),
    "cim": (12.0, 2.42, 133.0, 2.7, 5310.0),
}


@dataclass(frozen=True)
class DCMotor:
    """
    Brushed/brushless DC motor characteristics, optionally for a gang of motors.

    Torque and current figures are per motor; the gang scales them by
    ``num_motors`` when deriving the electrical constants.
    """
    nominal_voltage: float
    stall_torque: float       # N*m per motor
    stall_current: float      # A per motor
    free_current: float       # A per motor
    free_speed: float         # rad/s
    num_motors: int = 1

    def __post_init__(self) -> None:
        if self.num_motors < 1:
            raise ValueError(f"num_motors must be >= 1, got {self.num_motors}")
        for name in ("nominal_voltage", "stall_torque", "stall_current", "free_speed"):
            value = getattr(self, name)
            if not (math.isfinite(value) and value > 0):
                raise ValueError(f"{name} must be positive, got {value}")
        if not (math.isfinite(self.free_current) and self.free_current >= 0):
            raise ValueError(f"free_current must be non-negative, got {self.free_current}")
        if self.nominal_voltage - self.resistance * self.free_current * self.num_motors <= 0:
            raise ValueError("free current draws the whole nominal voltage across the windings")

    @classmethod
    def preset(cls, name: str, num_motors: int = 1) -> "DCMotor":
        """Build a motor from a named preset, e.g. ``DCMotor.preset("neo", 2)``."""
        key = name.lower()
        if key not in MOTOR_PRESETS:
            raise ValueError(f"Unknown motor type '{name}', expected one of {sorted(MOTOR_PRESETS)}")
        volts, stall_torque, stall_current, free_current, free_rpm = MOTOR_PRESETS[key]
        return cls(
            nominal_voltage=volts,
            stall_torque=stall_torque,
            stall_current=stall_current,
            free_current=free_current,
            free_speed=rpm_to_rad_per_sec(free_rpm),
            num_motors=num_motors,
        )

    @property
    def resistance(self) -> float:
        """Winding resistance of the gang (Ohms)."""
        return self.nominal_voltage / (self.stall_current * self.num_motors)

    @property
    def kv(self) -> float:
        """Velocity constant (rad/s per V)."""
        return self.free_speed / (
            self.nominal_voltage - self.resistance * self.free_current * self.num_motors
        )

    @property
    def kt(self) -> float:
        """Torque constant (N*m per A)."""
        return self.stall_torque / self.stall_current


@dataclass(frozen=True)
class PlantParameters:
    """Physical constants of the joint; immutable for the life of the subsystem."""
    motor: DCMotor
    gear_ratio: float           # motor turns per joint turn
    moment_of_inertia: float    # kg*m^2 about the joint

    def __post_init__(self) -> None:
        if not (math.isfinite(self.gear_ratio) and self.gear_ratio > 0):
            raise ValueError(f"gear_ratio must be greater than zero, got {self.gear_ratio}")
        if not (math.isfinite(self.moment_of_inertia) and self.moment_of_inertia > 0):
            raise ValueError(
                f"moment_of_inertia must be greater than zero, got {self.moment_of_inertia}"
            )


def single_jointed_arm_system(params: PlantParameters) -> StateSpaceModel:
    """Continuous-time model of a single-jointed arm."""
    motor = params.motor
    G = params.gear_ratio
    J = params.moment_of_inertia

    A = np.array([
        [0.0, 1.0],
        [0.0, -(G ** 2) * motor.kt / (motor.kv * motor.resistance * J)],
    ])
    B = np.array([[0.0], [G * motor.kt / (motor.resistance * J)]])
    C = np.array([[1.0, 0.0]])
    D = np.array([[0.0]])
    return StateSpaceModel(A, B, C, D)


@dataclass
class LinearArmPlant:
    """
    Continuous arm model plus its zero-order-hold discretization at ``dt``.

    The discrete matrices are computed once; ``calculate_x`` only
    re-discretizes when called with a different period.
    """
    params: PlantParameters
    dt: float
    continuous: StateSpaceModel = field(init=False)
    discrete: StateSpaceModel = field(init=False)

    def __post_init__(self) -> None:
        if not (math.isfinite(self.dt) and self.dt > 0):
            raise ValueError(f"dt must be positive, got {self.dt}")
        self.continuous = single_jointed_arm_system(self.params)
        self.discrete = discretize(self.continuous, self.dt)

    @property
    def A(self) -> np.ndarray:
        return self.discrete.A

    @property
    def B(self) -> np.ndarray:
        return self.discrete.B

    @property
    def C(self) -> np.ndarray:
        return self.discrete.C

    @property
    def D(self) -> np.ndarray:
        return self.discrete.D

    def calculate_x(self, x: ArrayLike, u: ArrayLike, dt: Optional[float] = None) -> np.ndarray:
        """Propagate the state one step: x[k+1] = Ad x[k] + Bd u[k]."""
        x = np.asarray(x, dtype=np.float64).reshape(-1, 1)
        u = np.asarray(u, dtype=np.float64).reshape(-1, 1)
        if dt is None or dt == self.dt:
            model = self.discrete
        else:
            model = discretize(self.continuous, dt)
        return model.A @ x + model.B @ u

    def calculate_y(self, x: ArrayLike, u: ArrayLike) -> np.ndarray:
        """Output equation: y = C x + D u."""
        x = np.asarray(x, dtype=np.float64).reshape(-1, 1)
        u = np.asarray(u, dtype=np.float64).reshape(-1, 1)
        return self.C @ x + self.D @ u
