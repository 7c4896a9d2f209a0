# arm_host/research/simulation.py
"""
Closed-loop simulation of a joint controller against a simulated arm.

Includes:
- Gaussian noise model for sensor readings
- Arm "truth" propagated through the linear plant model
- Encoder with noise, dropouts and occasional glitches (sensor port)
- Motor that clamps and records voltage (actuator port)
- A runner that ticks the controller, then the arm, once per period
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from ..config.settings import JointSettings
from ..control.plant import LinearArmPlant, PlantParameters
from ..joint.controller import JointController
from ..joint.ports import TelemetrySink


# =============================================================================
# Noise Models
# =============================================================================

@dataclass
class GaussianNoise:
    """Gaussian noise model."""
    mean: float = 0.0
    std: float = 0.0
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def sample(self) -> float:
        return self.rng.gauss(self.mean, self.std) if self.std > 0 else self.mean

    def add_to(self, value: float) -> float:
        return value + self.sample()


# =============================================================================
# Arm, Encoder, Motor
# =============================================================================

class SimulatedArm:
    """
    The "physical" joint: state [position, velocity] in raw sensor units,
    advanced by the discretized arm model under the applied voltage.
    """

    def __init__(
        self,
        plant: LinearArmPlant,
        position: float = 0.0,
        velocity: float = 0.0,
        max_voltage: float = 12.0,
    ) -> None:
        self.plant = plant
        self.max_voltage = float(max_voltage)
        self.x = np.array([[float(position)], [float(velocity)]])

    @property
    def position(self) -> float:
        return float(self.x[0, 0])

    @property
    def velocity(self) -> float:
        return float(self.x[1, 0])

    def step(self, voltage: float, dt: Optional[float] = None) -> Dict[str, float]:
        voltage = float(np.clip(voltage, -self.max_voltage, self.max_voltage))
        self.x = self.plant.calculate_x(self.x, [voltage], dt)
        return self.get_state()

    def get_state(self) -> Dict[str, float]:
        return {"position": self.position, "velocity": self.velocity}

    def reset(self, position: float = 0.0, velocity: float = 0.0) -> None:
        self.x = np.array([[float(position)], [float(velocity)]])


class SimulatedEncoder:
    """
    Absolute encoder on the simulated arm. Satisfies PositionSensor and
    VelocitySensor.

    ``dropout_prob`` makes a read return None; ``glitch_prob`` makes it
    return ``glitch_value`` (an implausible reading).
    """

    def __init__(
        self,
        arm: SimulatedArm,
        noise: Optional[GaussianNoise] = None,
        velocity_noise: Optional[GaussianNoise] = None,
        dropout_prob: float = 0.0,
        glitch_prob: float = 0.0,
        glitch_value: float = float("nan"),
        rng: Optional[random.Random] = None,
    ) -> None:
        self.arm = arm
        self.noise = noise or GaussianNoise()
        self.velocity_noise = velocity_noise or GaussianNoise()
        self.dropout_prob = float(dropout_prob)
        self.glitch_prob = float(glitch_prob)
        self.glitch_value = glitch_value
        self._rng = rng or random.Random()
        self.reads = 0
        self.dropouts = 0
        self.glitches = 0

    def read_position(self) -> Optional[float]:
        self.reads += 1
        if self.dropout_prob > 0 and self._rng.random() < self.dropout_prob:
            self.dropouts += 1
            return None
        if self.glitch_prob > 0 and self._rng.random() < self.glitch_prob:
            self.glitches += 1
            return self.glitch_value
        return self.noise.add_to(self.arm.position)

    def read_velocity(self) -> Optional[float]:
        return self.velocity_noise.add_to(self.arm.velocity)


class SimulatedMotor:
    """Actuator port that clamps to the battery and records every command."""

    def __init__(self, max_voltage: float = 12.0) -> None:
        self.max_voltage = float(max_voltage)
        self.voltage = 0.0
        self.history: List[float] = []

    def set_voltage(self, volts: float) -> None:
        self.voltage = float(np.clip(volts, -self.max_voltage, self.max_voltage))
        self.history.append(self.voltage)


# =============================================================================
# Simulation Runner
# =============================================================================

class SimulationRunner:
    """
    Runs the joint controller against the simulated arm.

    Each step: apply any goal scheduled for this tick, ``joint.tick()``, then
    advance the arm one period under the motor's voltage.
    """

    def __init__(
        self,
        joint: JointController,
        arm: SimulatedArm,
        encoder: SimulatedEncoder,
        motor: SimulatedMotor,
        goal_schedule: Optional[Dict[int, float]] = None,
    ) -> None:
        self.joint = joint
        self.arm = arm
        self.encoder = encoder
        self.motor = motor
        self.goal_schedule: Dict[int, float] = dict(goal_schedule or {})
        self.dt = joint.dt

        self.index = 0
        self.time = 0.0
        self.history: List[Dict[str, Any]] = []

    def step(self) -> Dict[str, Any]:
        """Run one simulation step."""
        if self.index in self.goal_schedule:
            self.joint.set_goal(self.goal_schedule[self.index])

        self.joint.tick()
        truth = self.arm.step(self.motor.voltage, self.dt)

        reference = self.joint.reference
        estimate = self.joint.estimate
        row = {
            "tick": self.index,
            "time": self.time,
            "goal": self.joint.goal.position,
            "reference_position": reference.position,
            "reference_velocity": reference.velocity,
            "estimate_position": estimate.position,
            "estimate_velocity": estimate.velocity,
            "position": truth["position"],
            "velocity": truth["velocity"],
            "voltage": self.motor.voltage,
        }
        self.history.append(row)

        self.index += 1
        self.time += self.dt
        return row

    def run(self, ticks: int) -> List[Dict[str, Any]]:
        """Run the simulation for a number of ticks."""
        for _ in range(int(ticks)):
            self.step()
        return self.history

    def run_for(self, duration_s: float) -> List[Dict[str, Any]]:
        return self.run(int(round(duration_s / self.dt)))


def build_simulation(
    settings: JointSettings,
    initial_position: float = 0.0,
    initial_velocity: float = 0.0,
    noise_std: float = 0.0,
    dropout_prob: float = 0.0,
    glitch_prob: float = 0.0,
    seed: Optional[int] = None,
    true_params: Optional[PlantParameters] = None,
    goal_schedule: Optional[Dict[int, float]] = None,
    telemetry: Optional[TelemetrySink] = None,
    logger: Any = None,
) -> SimulationRunner:
    """
    Wire a controller to a simulated arm.

    Args:
        settings: Joint settings (the controller's model and tuning)
        initial_position: Starting arm position, raw units
        noise_std: Encoder position noise std, raw units
        dropout_prob: Probability an encoder read returns None
        glitch_prob: Probability an encoder read returns NaN
        seed: Seed for all random draws
        true_params: Physical parameters of the simulated arm; defaults to
            the controller's own model
        goal_schedule: {tick index: goal in kinematic radians}
    """
    rng = random.Random(seed)
    dt = settings.loop.dt
    max_voltage = settings.controller.max_voltage

    truth_plant = LinearArmPlant(true_params or settings.plant_parameters(), dt)
    arm = SimulatedArm(truth_plant, initial_position, initial_velocity, max_voltage)
    encoder = SimulatedEncoder(
        arm,
        noise=GaussianNoise(std=noise_std, rng=rng),
        dropout_prob=dropout_prob,
        glitch_prob=glitch_prob,
        rng=rng,
    )
    motor = SimulatedMotor(max_voltage)

    joint = JointController(settings, encoder, motor, telemetry=telemetry, logger=logger)
    return SimulationRunner(joint, arm, encoder, motor, goal_schedule)

