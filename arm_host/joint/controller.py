# arm_host/joint/controller.py
"""
Position control loop for one arm joint.

Each tick, in order:
    1. step the motion profile toward the goal (new reference)
    2. correct the Kalman filter with the new position sample
    3. compute the LQR (+ feedforward) voltage, clamped to the battery
    4. send the voltage to the actuator
    5. predict the filter forward with that voltage

Everything after the sensor read is synchronous numeric work, so a tick never
blocks. All internal state lives in the sensor's raw frame; callers talk to
the joint in kinematic radians.
"""
from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any, Dict, Optional

import numpy as np

from ..control.estimator import KalmanFilter
from ..control.plant import LinearArmPlant
from ..control.profile import State, step
from ..control.regulator import LinearQuadraticRegulator, PlantInversionFeedforward
from .ports import PositionSensor, TelemetrySink, VelocitySensor, VoltageActuator

if TYPE_CHECKING:
    from ..config.settings import JointSettings

TELEMETRY_TOPIC = "joint.telemetry"
SKIPPED_TOPIC = "joint.tick_skipped"


class JointController:
    """
    Profiled LQR position controller with a Kalman filter observer.

    Usage:
        settings = JointSettings.load("elbow")
        joint = JointController(settings, sensor=encoder, actuator=motors, telemetry=bus)
        joint.set_goal(math.radians(30))
        # scheduler, every settings.loop.dt seconds:
        joint.tick()

    The constructor reads the sensor once to seed the filter, the profile
    reference and the goal, so a freshly built joint holds where it is.
    """

    def __init__(
        self,
        settings: "JointSettings",
        sensor: PositionSensor,
        actuator: VoltageActuator,
        telemetry: Optional[TelemetrySink] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings
        self.name = settings.name
        self._sensor = sensor
        self._actuator = actuator
        self._telemetry = telemetry
        self._log = logger or logging.getLogger(__name__)

        self._dt = float(settings.loop.dt)
        self._mapping = settings.kinematic_mapping()
        self._constraints = settings.constraints()
        self._safety = settings.safety

        self._plant = LinearArmPlant(settings.plant_parameters(), self._dt)

        est = settings.estimator
        self._observer = KalmanFilter(
            self._plant,
            est.state_std_devs,
            est.measurement_std_devs,
            self._dt,
            initial_covariance_scale=est.initial_covariance_scale,
            logger=self._log,
        )

        ctl = settings.controller
        self._regulator = LinearQuadraticRegulator(
            self._plant,
            ctl.state_tolerances,
            ctl.input_tolerances,
            self._dt,
            max_voltage=ctl.max_voltage,
        )
        self._feedforward = PlantInversionFeedforward(self._plant) if ctl.feedforward else None

        self._log.info(
            "%s: LQR K=%s poles=%s, Kalman K_ss=%s",
            self.name,
            np.array2string(self._regulator.K, precision=4),
            np.array2string(np.abs(self._regulator.closed_loop_poles), precision=4),
            np.array2string(self._observer.steady_state_gain.ravel(), precision=4),
        )

        self._goal = State()
        self._reference = State()
        self._u = np.zeros((1, 1))
        self._last_raw = 0.0
        self._last_voltage = 0.0
        self._tick_count = 0
        self._skipped_ticks = 0

        self.reset()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Re-seed filter, reference and goal from a fresh sensor sample."""
        raw = self._read_position()
        if raw is None:
            raise RuntimeError(f"{self.name}: no valid position reading to initialize from")

        velocity = 0.0
        if self.settings.estimator.seed_velocity_from_sensor and isinstance(self._sensor, VelocitySensor):
            sample = self._sensor.read_velocity()
            if sample is not None and math.isfinite(sample):
                velocity = float(sample)

        self._observer.reset([raw, velocity])
        self._reference = State(raw, velocity)
        self._goal = State(raw, 0.0)
        if self._feedforward is not None:
            self._feedforward.reset([raw, velocity])

        self._u = np.zeros((1, 1))
        self._last_raw = raw
        self._last_voltage = 0.0
        self._log.info("%s: reset at raw=%.4f (%.2f deg)", self.name, raw,
                       math.degrees(self._mapping.to_kinematic_angle(raw)))

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def set_goal(self, angle_rad: float) -> None:
        """Move toward ``angle_rad`` (kinematic radians), at rest on arrival."""
        angle = float(angle_rad)
        if not math.isfinite(angle):
            self._log.warning("%s: ignoring non-finite goal %r", self.name, angle_rad)
            return

        lo, hi = self._safety.goal_min, self._safety.goal_max
        outside = (lo is not None and angle < lo) or (hi is not None and angle > hi)
        if outside:
            policy = self._safety.goal_policy
            if policy == "reject":
                self._log.warning("%s: rejected goal %.4f rad outside [%s, %s]", self.name, angle, lo, hi)
                return
            if policy == "clamp":
                clamped = min(max(angle, lo if lo is not None else angle), hi if hi is not None else angle)
                self._log.warning("%s: clamped goal %.4f rad to %.4f", self.name, angle, clamped)
                angle = clamped

        # One assignment: a tick sees either the old goal or the new one
        self._goal = State(self._mapping.to_raw(angle), 0.0)

    def set_goal_degrees(self, angle_deg: float) -> None:
        self.set_goal(math.radians(angle_deg))

    def hold(self) -> None:
        """Stop where the reference is now."""
        self._goal = State(self._reference.position, 0.0)

    # ------------------------------------------------------------------
    # Periodic
    # ------------------------------------------------------------------

    def tick(self) -> None:
        goal = self._goal
        raw = self._read_position()
        if raw is None:
            self._skip_tick()
            return
        self._last_raw = raw

        self._reference = step(self._constraints, goal, self._reference, self._dt)
        r = np.array([[self._reference.position], [self._reference.velocity]])

        self._observer.correct(self._u, [raw])

        u = self._regulator.calculate(self._observer.x_hat, r)
        if self._feedforward is not None:
            u = self._regulator.clamp(u + self._feedforward.calculate(r))
        volts = float(u[0, 0])

        self._actuator.set_voltage(volts)

        self._observer.predict(u, self._dt)

        self._u = u
        self._last_voltage = volts
        self._tick_count += 1

        self._publish(TELEMETRY_TOPIC, self.telemetry_snapshot(goal))

    def _skip_tick(self) -> None:
        self._skipped_ticks += 1
        self._log.warning("%s: no valid position sample, holding %.3f V", self.name, self._last_voltage)
        self._actuator.set_voltage(self._last_voltage)
        self._publish(SKIPPED_TOPIC, {
            "joint": self.name,
            "tick": self._tick_count,
            "skipped_ticks": self._skipped_ticks,
            "voltage": self._last_voltage,
        })

    def _read_position(self) -> Optional[float]:
        try:
            sample = self._sensor.read_position()
        except Exception:
            self._log.warning("%s: position read failed", self.name, exc_info=True)
            return None
        if sample is None:
            return None

        raw = float(sample)
        if not math.isfinite(raw):
            return None
        lo, hi = self._safety.position_min, self._safety.position_max
        if (lo is not None and raw < lo) or (hi is not None and raw > hi):
            self._log.warning("%s: implausible position %.4f outside [%s, %s]", self.name, raw, lo, hi)
            return None
        return raw

    def _publish(self, topic: str, data: Dict[str, Any]) -> None:
        if self._telemetry is None:
            return
        try:
            self._telemetry.publish(topic, data)
        except Exception:
            self._log.debug("%s: telemetry publish failed", self.name, exc_info=True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_kinematic_angle(self) -> float:
        """Joint angle from the latest raw sample (unfiltered), in radians."""
        return self._mapping.to_kinematic_angle(self._last_raw)

    @property
    def target_angle(self) -> float:
        """Goal in kinematic radians."""
        return self._mapping.to_kinematic_angle(self._goal.position)

    @property
    def estimated_angle(self) -> float:
        """Filtered joint angle in kinematic radians."""
        return self._mapping.to_kinematic_angle(self._observer.x_hat_at(0))

    @property
    def goal(self) -> State:
        return self._goal

    @property
    def reference(self) -> State:
        return self._reference

    @property
    def estimate(self) -> State:
        return State(self._observer.x_hat_at(0), self._observer.x_hat_at(1))

    @property
    def last_voltage(self) -> float:
        return self._last_voltage

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def skipped_ticks(self) -> int:
        return self._skipped_ticks

    @property
    def dt(self) -> float:
        return self._dt

    @property
    def plant(self) -> LinearArmPlant:
        return self._plant

    @property
    def observer(self) -> KalmanFilter:
        return self._observer

    @property
    def regulator(self) -> LinearQuadraticRegulator:
        return self._regulator

    def telemetry_snapshot(self, goal: Optional[State] = None) -> Dict[str, Any]:
        goal = goal or self._goal
        target = self._mapping.to_kinematic_angle(goal.position)
        angle = self.get_kinematic_angle()
        estimate = self.estimate
        return {
            "joint": self.name,
            "tick": self._tick_count,
            "target_angle_rad": target,
            "target_angle_deg": math.degrees(target),
            "kinematic_angle_rad": angle,
            "kinematic_angle_deg": math.degrees(angle),
            "measured_position": self._last_raw,
            "reference_position": self._reference.position,
            "reference_velocity": self._reference.velocity,
            "estimate_position": estimate.position,
            "estimate_velocity": estimate.velocity,
            "voltage": self._last_voltage,
        }
