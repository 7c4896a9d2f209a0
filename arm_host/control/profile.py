# arm_host/control/profile.py
"""
Trapezoidal motion profile.

A profile accelerates at the maximum acceleration until it either reaches the
maximum velocity or has to start slowing down, cruises, then decelerates into
the goal. Profiles that start or end with a non-zero velocity are solved as if
they were full trapezoids from rest to rest and the extra time is cut off. A
reference moving too fast to stop at the goal brakes at the full rate and
then comes back.

Example:
    constraints = Constraints(max_velocity=math.radians(45), max_acceleration=math.radians(90))
    reference = State(0.0, 0.0)
    goal = State(1.0, 0.0)
    while reference != goal:
        reference = step(constraints, goal, reference, 0.020)
"""
from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Constraints:
    """Velocity (units/s) and acceleration (units/s^2) limits of a profile."""
    max_velocity: float
    max_acceleration: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.max_velocity) and self.max_velocity > 0):
            raise ValueError(f"max_velocity must be positive, got {self.max_velocity}")
        if not (math.isfinite(self.max_acceleration) and self.max_acceleration > 0):
            raise ValueError(f"max_acceleration must be positive, got {self.max_acceleration}")


@dataclass(frozen=True)
class State:
    """A (position, velocity) pair: profiler reference, goal, or estimator belief."""
    position: float = 0.0
    velocity: float = 0.0

    def scaled(self, direction: float) -> "State":
        return State(self.position * direction, self.velocity * direction)


def _should_flip(constraints: Constraints, initial: State, goal: State) -> bool:
    """
    True when the profile has to start by accelerating toward -position.

    Compares where each state comes to rest when braked at the full rate.
    """
    max_a = constraints.max_acceleration
    initial_stop = initial.position + initial.velocity * abs(initial.velocity) / (2.0 * max_a)
    goal_stop = goal.position + goal.velocity * abs(goal.velocity) / (2.0 * max_a)
    return initial_stop > goal_stop


class TrapezoidProfile:
    """
    Time-parameterized trapezoidal profile from ``initial`` to ``goal``.

    The profile is solved in a frame where the motion is towards +position;
    samples are flipped back on the way out.
    """

    def __init__(self, constraints: Constraints, goal: State, initial: State = State()) -> None:
        self._constraints = constraints
        max_v = constraints.max_velocity
        max_a = constraints.max_acceleration

        if abs(initial.velocity) > max_v:
            initial = State(initial.position, math.copysign(max_v, initial.velocity))

        self._direction = -1.0 if _should_flip(constraints, initial, goal) else 1.0
        self._initial = initial.scaled(self._direction)
        self._goal = goal.scaled(self._direction)

        # Treat the profile as if it started and ended at rest
        cutoff_begin = self._initial.velocity / max_a
        cutoff_dist_begin = cutoff_begin * cutoff_begin * max_a / 2.0

        cutoff_end = self._goal.velocity / max_a
        cutoff_dist_end = cutoff_end * cutoff_end * max_a / 2.0

        full_trapezoid_dist = (
            cutoff_dist_begin + (self._goal.position - self._initial.position) + cutoff_dist_end
        )
        acceleration_time = max_v / max_a

        full_speed_dist = full_trapezoid_dist - acceleration_time * acceleration_time * max_a

        # Never reaches full speed: triangular profile
        if full_speed_dist < 0:
            acceleration_time = math.sqrt(max(full_trapezoid_dist, 0.0) / max_a)
            full_speed_dist = 0.0

        self._end_accel = acceleration_time - cutoff_begin
        self._end_full_speed = self._end_accel + full_speed_dist / max_v
        self._end_deccel = self._end_full_speed + acceleration_time - cutoff_end

    @property
    def constraints(self) -> Constraints:
        return self._constraints

    def calculate(self, t: float) -> State:
        """Sample the profile ``t`` seconds after its start."""
        max_v = self._constraints.max_velocity
        max_a = self._constraints.max_acceleration
        initial = self._initial
        goal = self._goal

        if t < self._end_accel:
            velocity = initial.velocity + t * max_a
            position = initial.position + (initial.velocity + t * max_a / 2.0) * t
        elif t < self._end_full_speed:
            velocity = max_v
            position = (
                initial.position
                + (initial.velocity + self._end_accel * max_a / 2.0) * self._end_accel
                + max_v * (t - self._end_accel)
            )
        elif t <= self._end_deccel:
            time_left = self._end_deccel - t
            velocity = goal.velocity + time_left * max_a
            position = goal.position - (goal.velocity + time_left * max_a / 2.0) * time_left
        else:
            return goal.scaled(self._direction)

        return State(position, velocity).scaled(self._direction)

    def total_time(self) -> float:
        """Duration of the whole profile in seconds."""
        return max(self._end_deccel, 0.0)

    def is_finished(self, t: float) -> bool:
        return t >= self.total_time()


def step(constraints: Constraints, goal: State, previous: State, dt: float) -> State:
    """
    Advance a reference one period toward ``goal``.

    ``previous`` must be the reference this function produced last time, not
    a measured or estimated plant state.
    """
    return TrapezoidProfile(constraints, goal, previous).calculate(dt)
