"""Tests for the trapezoidal motion profile."""

import math

import pytest

from arm_host.control.profile import Constraints, State, TrapezoidProfile, step


DT = 0.020
ELBOW = Constraints(max_velocity=math.radians(45.0), max_acceleration=math.radians(90.0))


def run_to_goal(constraints, goal, start=State(), max_ticks=2000):
    """Step a reference until it equals the goal; returns every sample including start."""
    samples = [start]
    reference = start
    for _ in range(max_ticks):
        reference = step(constraints, goal, reference, DT)
        samples.append(reference)
        if reference == goal:
            break
    return samples


def assert_within_limits(samples, constraints):
    v_lim = constraints.max_velocity * (1 + 1e-6) + 1e-12
    a_lim = constraints.max_acceleration * (1 + 1e-6) + 1e-9
    for prev, cur in zip(samples, samples[1:]):
        assert abs(cur.velocity) <= v_lim
        assert abs(cur.velocity - prev.velocity) / DT <= a_lim


# ============================================================================
# Constraints / State
# ============================================================================


class TestConstraints:

    @pytest.mark.parametrize("v, a", [(0.0, 1.0), (1.0, 0.0), (-1.0, 1.0), (float("nan"), 1.0)])
    def test_non_positive_rejected(self, v, a):
        with pytest.raises(ValueError):
            Constraints(v, a)

    def test_state_defaults_to_rest_at_zero(self):
        assert State() == State(0.0, 0.0)


# ============================================================================
# Time-parameterized profile
# ============================================================================


class TestTrapezoidProfile:

    def test_total_time_full_trapezoid(self):
        """0.5 s ramp up, cruise, 0.5 s ramp down for a 1 rad move."""
        profile = TrapezoidProfile(ELBOW, State(1.0, 0.0))

        cruise = (1.0 - ELBOW.max_velocity ** 2 / ELBOW.max_acceleration) / ELBOW.max_velocity
        assert profile.total_time() == pytest.approx(1.0 + cruise)
        assert profile.total_time() == pytest.approx(1.7732, abs=1e-3)

    def test_samples_follow_the_trapezoid(self):
        profile = TrapezoidProfile(ELBOW, State(1.0, 0.0))

        ramp = profile.calculate(0.25)
        assert ramp.velocity == pytest.approx(0.25 * ELBOW.max_acceleration)
        assert ramp.position == pytest.approx(0.5 * ELBOW.max_acceleration * 0.25 ** 2)

        cruise = profile.calculate(1.0)
        assert cruise.velocity == pytest.approx(ELBOW.max_velocity)

        assert profile.calculate(profile.total_time() + 0.1) == State(1.0, 0.0)
        assert profile.is_finished(profile.total_time())
        assert not profile.is_finished(1.0)

    def test_triangular_profile_never_reaches_max_velocity(self):
        profile = TrapezoidProfile(ELBOW, State(0.1, 0.0))

        peak = max(profile.calculate(i * 0.001).velocity for i in range(1000))
        assert peak < ELBOW.max_velocity
        assert profile.total_time() == pytest.approx(2 * math.sqrt(0.1 / ELBOW.max_acceleration))

    def test_negative_direction_is_mirrored(self):
        forward = TrapezoidProfile(ELBOW, State(1.0, 0.0))
        backward = TrapezoidProfile(ELBOW, State(-1.0, 0.0))

        for t in (0.1, 0.6, 1.2, 1.7):
            f, b = forward.calculate(t), backward.calculate(t)
            assert b.position == pytest.approx(-f.position)
            assert b.velocity == pytest.approx(-f.velocity)

    def test_initial_velocity_above_limit_is_capped(self):
        profile = TrapezoidProfile(ELBOW, State(5.0, 0.0), State(0.0, 10.0))
        assert profile.calculate(0.0).velocity == pytest.approx(ELBOW.max_velocity)


# ============================================================================
# Per-tick stepping
# ============================================================================


class TestStep:

    @pytest.mark.parametrize("goal_position", [1.0, -1.0, 0.05, 3.0])
    def test_converges_within_limits(self, goal_position):
        goal = State(goal_position, 0.0)
        samples = run_to_goal(ELBOW, goal)

        assert samples[-1] == goal
        assert_within_limits(samples, ELBOW)

    def test_converges_in_profile_time(self):
        goal = State(1.0, 0.0)
        samples = run_to_goal(ELBOW, goal)

        total = TrapezoidProfile(ELBOW, goal).total_time()
        assert len(samples) - 1 <= math.ceil(total / DT) + 1

    def test_idempotent_at_goal(self):
        goal = State(0.7, 0.0)
        assert step(ELBOW, goal, goal, DT) == goal
        assert step(ELBOW, goal, step(ELBOW, goal, goal, DT), DT) == goal

    def test_goal_equal_to_start_stays_put(self):
        start = State(0.3, 0.0)
        for _ in range(5):
            assert step(ELBOW, start, start, DT) == start

    def test_goal_change_mid_motion(self):
        """Reversing mid-move still converges within both limits."""
        samples = run_to_goal(ELBOW, State(1.0, 0.0), max_ticks=40)
        assert samples[-1].velocity > 0

        reversed_samples = run_to_goal(ELBOW, State(-0.5, 0.0), start=samples[-1])
        assert reversed_samples[-1] == State(-0.5, 0.0)
        assert_within_limits(reversed_samples, ELBOW)

    # Braking distance at full speed is v^2 / 2a, about 0.196 rad
    @pytest.mark.parametrize("offset", [-0.05, -0.01, 0.0, 0.05, 0.196, 0.5])
    def test_goal_near_moving_reference(self, offset):
        moving = run_to_goal(ELBOW, State(3.0, 0.0), max_ticks=40)[-1]
        assert moving.velocity == pytest.approx(ELBOW.max_velocity)

        goal = State(moving.position + offset, 0.0)
        samples = run_to_goal(ELBOW, goal, start=moving)

        assert samples[-1] == goal
        assert_within_limits(samples, ELBOW)

    def test_stop_brakes_instead_of_reversing(self):
        moving = run_to_goal(ELBOW, State(3.0, 0.0), max_ticks=40)[-1]
        nxt = step(ELBOW, State(moving.position, 0.0), moving, DT)

        assert nxt.velocity == pytest.approx(moving.velocity - ELBOW.max_acceleration * DT)
        expected = moving.position + (moving.velocity + nxt.velocity) / 2 * DT
        assert nxt.position == pytest.approx(expected)

    def test_overshoot_then_return(self):
        """A stop from full speed runs past the stop point by the braking distance."""
        moving = run_to_goal(ELBOW, State(3.0, 0.0), max_ticks=40)[-1]
        goal = State(moving.position, 0.0)
        samples = run_to_goal(ELBOW, goal, start=moving)

        braking = ELBOW.max_velocity ** 2 / (2 * ELBOW.max_acceleration)
        peak = max(s.position for s in samples)
        assert peak == pytest.approx(moving.position + braking, abs=ELBOW.max_velocity * DT)
        assert samples[-1] == goal

    @pytest.mark.parametrize("velocity", [0.3, -0.3])
    def test_start_moving_with_goal_at_start(self, velocity):
        """Seeded velocity with the goal at the same place."""
        start = State(0.2, velocity)
        samples = run_to_goal(ELBOW, State(0.2, 0.0), start=start)

        assert samples[-1] == State(0.2, 0.0)
        assert_within_limits(samples, ELBOW)

    def test_moving_away_from_goal(self):
        start = State(0.0, -ELBOW.max_velocity)
        samples = run_to_goal(ELBOW, State(0.5, 0.0), start=start)

        assert samples[-1] == State(0.5, 0.0)
        assert_within_limits(samples, ELBOW)
        assert min(s.position for s in samples) < 0.0

    def test_larger_dt_still_converges(self):
        goal = State(2.0, 0.0)
        reference = State()
        for _ in range(500):
            reference = step(ELBOW, goal, reference, 0.1)
        assert reference == goal
