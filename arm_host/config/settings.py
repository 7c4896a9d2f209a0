# arm_host/config/settings.py
from __future__ import annotations

import math
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import yaml

from ..control.plant import MOTOR_PRESETS, DCMotor, PlantParameters
from ..control.profile import Constraints
from ..joint.kinematics import KinematicMapping

T = TypeVar("T")

CONFIG_DIR = Path(__file__).resolve().parent
DEFAULT_PROFILE = "elbow"
GOAL_POLICIES = ("pass", "clamp", "reject")


def _require_positive(name: str, value: float) -> None:
    if not (isinstance(value, (int, float)) and math.isfinite(value) and value > 0):
        raise ValueError(f"{name} must be a positive number, got {value!r}")


@dataclass
class MotorSettings:
    type: str = "neo"
    count: int = 2

    def validate(self) -> None:
        if self.type.lower() not in MOTOR_PRESETS:
            raise ValueError(f"motor.type '{self.type}' unknown, expected one of {sorted(MOTOR_PRESETS)}")
        if int(self.count) < 1:
            raise ValueError(f"motor.count must be >= 1, got {self.count}")


@dataclass
class PlantSettings:
    gear_ratio: float = 240.0
    moment_of_inertia: float = 2.0     # kg*m^2

    def validate(self) -> None:
        _require_positive("plant.gear_ratio", self.gear_ratio)
        _require_positive("plant.moment_of_inertia", self.moment_of_inertia)


@dataclass
class KinematicSettings:
    offset: float = 630.0              # raw reading at kinematic zero
    scale: float = 240.0               # raw units per radian


@dataclass
class ProfileSettings:
    max_velocity: float = math.radians(45.0)        # raw units/s
    max_acceleration: float = math.radians(90.0)    # raw units/s^2

    def validate(self) -> None:
        _require_positive("profile.max_velocity", self.max_velocity)
        _require_positive("profile.max_acceleration", self.max_acceleration)


@dataclass
class EstimatorSettings:
    state_std_devs: List[float] = field(default_factory=lambda: [0.015, 0.17])
    measurement_std_devs: List[float] = field(default_factory=lambda: [0.01])
    initial_covariance_scale: float = 1.0
    seed_velocity_from_sensor: bool = True

    def validate(self) -> None:
        if len(self.state_std_devs) != 2:
            raise ValueError("estimator.state_std_devs needs [position, velocity]")
        if len(self.measurement_std_devs) != 1:
            raise ValueError("estimator.measurement_std_devs needs [position]")
        for i, s in enumerate(self.state_std_devs):
            _require_positive(f"estimator.state_std_devs[{i}]", s)
        _require_positive("estimator.measurement_std_devs[0]", self.measurement_std_devs[0])
        _require_positive("estimator.initial_covariance_scale", self.initial_covariance_scale)


@dataclass
class ControllerSettings:
    # Position and velocity error tolerances (rad, rad/s)
    state_tolerances: List[float] = field(
        default_factory=lambda: [math.radians(1.0), math.radians(10.0)]
    )
    # Control effort tolerance (V)
    input_tolerances: List[float] = field(default_factory=lambda: [12.0])
    max_voltage: float = 12.0
    feedforward: bool = True

    def validate(self) -> None:
        if len(self.state_tolerances) != 2:
            raise ValueError("controller.state_tolerances needs [position, velocity]")
        if len(self.input_tolerances) != 1:
            raise ValueError("controller.input_tolerances needs [voltage]")
        for i, t in enumerate(self.state_tolerances):
            _require_positive(f"controller.state_tolerances[{i}]", t)
        _require_positive("controller.input_tolerances[0]", self.input_tolerances[0])
        _require_positive("controller.max_voltage", self.max_voltage)


@dataclass
class SafetySettings:
    # Plausibility window for raw position readings; None disables the check
    position_min: Optional[float] = None
    position_max: Optional[float] = None
    # Goal window in kinematic radians and what to do outside it
    goal_min: Optional[float] = None
    goal_max: Optional[float] = None
    goal_policy: str = "pass"

    def validate(self) -> None:
        if self.goal_policy not in GOAL_POLICIES:
            raise ValueError(f"safety.goal_policy must be one of {GOAL_POLICIES}, got {self.goal_policy!r}")
        for lo, hi, name in (
            (self.position_min, self.position_max, "position"),
            (self.goal_min, self.goal_max, "goal"),
        ):
            if lo is not None and hi is not None and lo > hi:
                raise ValueError(f"safety.{name}_min ({lo}) is above safety.{name}_max ({hi})")


@dataclass
class LoopSettings:
    dt: float = 0.020      # seconds

    def validate(self) -> None:
        _require_positive("loop.dt", self.dt)


@dataclass
class JointSettings:
    """
    Every constant a joint needs: physical plant, calibration, limits, tuning.

    Usage:
        settings = JointSettings.load("elbow")           # packaged profile
        settings = JointSettings.from_file("my.yaml")    # any YAML/JSON-like file
    """
    name: str = "joint"
    motor: MotorSettings = field(default_factory=MotorSettings)
    plant: PlantSettings = field(default_factory=PlantSettings)
    kinematics: KinematicSettings = field(default_factory=KinematicSettings)
    profile: ProfileSettings = field(default_factory=ProfileSettings)
    estimator: EstimatorSettings = field(default_factory=EstimatorSettings)
    controller: ControllerSettings = field(default_factory=ControllerSettings)
    safety: SafetySettings = field(default_factory=SafetySettings)
    loop: LoopSettings = field(default_factory=LoopSettings)

    def __post_init__(self) -> None:
        for section in (self.motor, self.plant, self.profile, self.estimator,
                        self.controller, self.safety, self.loop):
            section.validate()
        # Constructing the mapping checks the calibration constants
        self.kinematic_mapping()

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def dc_motor(self) -> DCMotor:
        return DCMotor.preset(self.motor.type, int(self.motor.count))

    def plant_parameters(self) -> PlantParameters:
        return PlantParameters(
            motor=self.dc_motor(),
            gear_ratio=float(self.plant.gear_ratio),
            moment_of_inertia=float(self.plant.moment_of_inertia),
        )

    def kinematic_mapping(self) -> KinematicMapping:
        return KinematicMapping(
            offset=float(self.kinematics.offset),
            scale=float(self.kinematics.scale),
        )

    def constraints(self) -> Constraints:
        return Constraints(
            max_velocity=float(self.profile.max_velocity),
            max_acceleration=float(self.profile.max_acceleration),
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "JointSettings":
        data = dict(data or {})
        sections = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in sections:
                raise ValueError(f"Unknown settings section '{key}'")
            if key == "name":
                kwargs[key] = str(value)
                continue
            section_cls = _SECTION_TYPES[key]
            kwargs[key] = _section_from_dict(section_cls, key, value)
        return cls(**kwargs)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "JointSettings":
        data = yaml.safe_load(Path(path).read_text())
        return cls.from_dict(data)

    @classmethod
    def load(cls, profile: Optional[str] = None) -> "JointSettings":
        """Load a packaged profile; defaults to $ARM_HOST_PROFILE or 'elbow'."""
        profile = profile or os.environ.get("ARM_HOST_PROFILE", DEFAULT_PROFILE)
        cfg_path = CONFIG_DIR / f"joint_profile_{profile}.yaml"
        if not cfg_path.exists():
            raise ValueError(f"No joint profile named '{profile}' ({cfg_path})")
        return cls.from_file(cfg_path)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def save(self, path: Union[str, Path]) -> None:
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


_SECTION_TYPES: Dict[str, Type[Any]] = {
    "motor": MotorSettings,
    "plant": PlantSettings,
    "kinematics": KinematicSettings,
    "profile": ProfileSettings,
    "estimator": EstimatorSettings,
    "controller": ControllerSettings,
    "safety": SafetySettings,
    "loop": LoopSettings,
}


def _section_from_dict(cls: Type[T], section: str, data: Optional[Dict[str, Any]]) -> T:
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"Settings section '{section}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{section}': {sorted(unknown)}")
    return cls(**data)
