"""Tests for the per-tick joint control loop."""

import logging
import math

import pytest
from fakes.fake_io import FakeActuator, FakeSensor, FakeVelocitySensor, RaisingSink

from arm_host.control.profile import State
from arm_host.joint.controller import SKIPPED_TOPIC, TELEMETRY_TOPIC, JointController
from arm_host.research.metrics import profile_limit_violations


# ============================================================================
# Construction
# ============================================================================


class TestConstruction:

    def test_holds_where_it_starts(self, sim_settings, actuator):
        joint = JointController(sim_settings, FakeSensor([0.25]), actuator)

        assert joint.goal == State(0.25, 0.0)
        assert joint.reference == State(0.25, 0.0)
        assert joint.estimate.position == pytest.approx(0.25)
        assert joint.target_angle == pytest.approx(0.25)
        assert actuator.voltages == []

    def test_requires_a_valid_first_reading(self, sim_settings, actuator):
        with pytest.raises(RuntimeError, match="no valid position"):
            JointController(sim_settings, FakeSensor([None]), actuator)
        with pytest.raises(RuntimeError):
            JointController(sim_settings, FakeSensor([float("nan")]), actuator)

    def test_seeds_velocity_from_velocity_sensor(self, sim_settings, actuator):
        joint = JointController(sim_settings, FakeVelocitySensor([0.0], velocity=0.3), actuator)
        assert joint.estimate.velocity == pytest.approx(0.3)
        assert joint.reference.velocity == pytest.approx(0.3)
        assert joint.goal.velocity == 0.0

    def test_seeded_velocity_brakes_to_start(self, sim_settings, actuator):
        c = sim_settings.constraints()
        dt = sim_settings.loop.dt
        joint = JointController(sim_settings, FakeVelocitySensor([0.0], velocity=0.3), actuator)

        refs = []
        for _ in range(60):
            joint.tick()
            refs.append((joint.reference.position, joint.reference.velocity))

        assert profile_limit_violations(refs, c.max_velocity, c.max_acceleration, dt,
                                        initial_velocity=0.3) == []
        assert refs[0][1] == pytest.approx(0.3 - c.max_acceleration * dt)
        assert joint.reference == State(0.0, 0.0)


# ============================================================================
# Ticking
# ============================================================================


class TestTick:

    def test_goal_equal_to_start_gives_zero_voltage(self, sim_settings, actuator):
        joint = JointController(sim_settings, FakeSensor([0.4]), actuator)
        joint.set_goal(0.4)
        joint.tick()

        assert actuator.voltages == [pytest.approx(0.0, abs=1e-9)]

    def test_voltage_is_always_clamped(self, sim_settings, actuator):
        sensor = FakeSensor([0.0])
        joint = JointController(sim_settings, sensor, actuator)
        joint.set_goal(3.0)

        # Sensor claims the arm never moves, so the error keeps growing
        for _ in range(100):
            joint.tick()

        assert len(actuator.voltages) == 100
        assert all(-12.0 <= v <= 12.0 for v in actuator.voltages)
        assert max(actuator.voltages) == pytest.approx(12.0)

    def test_moves_toward_goal(self, sim_settings, actuator):
        joint = JointController(sim_settings, FakeSensor([0.0]), actuator)
        joint.set_goal(1.0)
        joint.tick()

        assert joint.reference.position > 0.0
        assert joint.reference.velocity > 0.0
        assert actuator.last > 0.0
        assert joint.tick_count == 1

    def test_publishes_telemetry(self, sim_settings, actuator, bus):
        joint = JointController(sim_settings, FakeSensor([0.1]), actuator, telemetry=bus)
        joint.set_goal(0.5)
        joint.tick()

        event = bus.last(TELEMETRY_TOPIC)
        assert event is not None
        data = event.data
        assert data["joint"] == "sim"
        assert data["tick"] == 1
        assert data["target_angle_rad"] == pytest.approx(0.5)
        assert data["target_angle_deg"] == pytest.approx(math.degrees(0.5))
        assert data["kinematic_angle_rad"] == pytest.approx(0.1)
        assert data["voltage"] == pytest.approx(actuator.last)


# ============================================================================
# Bad samples
# ============================================================================


class TestSkippedTicks:

    @pytest.mark.parametrize("bad", [None, float("nan"), float("inf"), OSError("bus timeout")])
    def test_bad_sample_skips_tick(self, sim_settings, actuator, bus, bad):
        sensor = FakeSensor([0.0, 0.0])
        joint = JointController(sim_settings, sensor, actuator, telemetry=bus)
        joint.set_goal(1.0)
        joint.tick()

        reference = joint.reference
        estimate = joint.estimate
        volts = actuator.last

        sensor.push(bad, 0.0)
        joint.tick()

        # Nothing advanced; the previous voltage was re-sent
        assert joint.reference == reference
        assert joint.estimate == estimate
        assert joint.tick_count == 1
        assert joint.skipped_ticks == 1
        assert actuator.voltages[-1] == pytest.approx(volts)

        skipped = bus.last(SKIPPED_TOPIC)
        assert skipped is not None
        assert skipped.data["skipped_ticks"] == 1

        joint.tick()
        assert joint.tick_count == 2

    def test_out_of_window_sample_is_skipped(self, sim_settings, actuator):
        sensor = FakeSensor([0.0, 100.0])
        joint = JointController(sim_settings, sensor, actuator)
        joint.tick()

        assert joint.skipped_ticks == 1
        assert actuator.voltages == [0.0]
        assert joint.get_kinematic_angle() == pytest.approx(0.0)

    def test_sensor_failure_is_logged(self, sim_settings, actuator, caplog):
        sensor = FakeSensor([0.0, OSError("bus timeout")])
        joint = JointController(sim_settings, sensor, actuator)
        with caplog.at_level(logging.WARNING, logger="arm_host.joint.controller"):
            joint.tick()
        assert any("position read failed" in r.getMessage() for r in caplog.records)


# ============================================================================
# Goals
# ============================================================================


class TestGoals:

    def test_non_finite_goal_ignored(self, sim_settings, actuator):
        joint = JointController(sim_settings, FakeSensor([0.2]), actuator)
        joint.set_goal(float("nan"))
        assert joint.goal == State(0.2, 0.0)

    def test_pass_policy_accepts_anything(self, make_settings, actuator):
        joint = JointController(make_settings(goal_min=-1.0, goal_max=1.0), FakeSensor([0.0]), actuator)
        joint.set_goal(5.0)
        assert joint.target_angle == pytest.approx(5.0)

    def test_clamp_policy(self, make_settings, actuator):
        settings = make_settings(goal_min=-1.0, goal_max=1.0, goal_policy="clamp")
        joint = JointController(settings, FakeSensor([0.0]), actuator)

        joint.set_goal(5.0)
        assert joint.target_angle == pytest.approx(1.0)
        joint.set_goal(-5.0)
        assert joint.target_angle == pytest.approx(-1.0)
        joint.set_goal(0.5)
        assert joint.target_angle == pytest.approx(0.5)

    def test_reject_policy_keeps_previous_goal(self, make_settings, actuator):
        settings = make_settings(goal_min=-1.0, goal_max=1.0, goal_policy="reject")
        joint = JointController(settings, FakeSensor([0.0]), actuator)

        joint.set_goal(0.5)
        joint.set_goal(2.0)
        assert joint.target_angle == pytest.approx(0.5)

    def test_one_sided_window(self, make_settings, actuator):
        settings = make_settings(goal_max=1.0, goal_policy="clamp")
        joint = JointController(settings, FakeSensor([0.0]), actuator)

        joint.set_goal(-50.0)
        assert joint.target_angle == pytest.approx(-50.0)
        joint.set_goal(50.0)
        assert joint.target_angle == pytest.approx(1.0)

    def test_set_goal_degrees(self, sim_settings, actuator):
        joint = JointController(sim_settings, FakeSensor([0.0]), actuator)
        joint.set_goal_degrees(45.0)
        assert joint.target_angle == pytest.approx(math.pi / 4)

    def test_goal_is_converted_to_raw_frame(self, elbow_settings, actuator):
        joint = JointController(elbow_settings, FakeSensor([630.0]), actuator)
        joint.set_goal(0.5)
        assert joint.goal.position == pytest.approx(630.0 + 120.0)
        assert joint.target_angle == pytest.approx(0.5)

    def test_hold_freezes_reference(self, sim_settings, actuator):
        joint = JointController(sim_settings, FakeSensor([0.0]), actuator)
        joint.set_goal(1.0)
        for _ in range(10):
            joint.tick()
        joint.hold()
        assert joint.goal == State(joint.reference.position, 0.0)

    def test_hold_mid_move_respects_limits(self, sim_settings, actuator):
        c = sim_settings.constraints()
        dt = sim_settings.loop.dt
        joint = JointController(sim_settings, FakeSensor([0.0]), actuator)
        joint.set_goal(1.0)
        for _ in range(40):
            joint.tick()

        moving = joint.reference
        assert moving.velocity == pytest.approx(c.max_velocity)

        joint.hold()
        refs = []
        for _ in range(150):
            joint.tick()
            refs.append((joint.reference.position, joint.reference.velocity))

        assert profile_limit_violations(refs, c.max_velocity, c.max_acceleration, dt,
                                        initial_velocity=moving.velocity) == []
        # Brakes forward on the first tick instead of jumping back
        assert refs[0][0] > moving.position
        assert joint.reference == joint.goal == State(moving.position, 0.0)


# ============================================================================
# Queries and telemetry isolation
# ============================================================================


class TestQueries:

    def test_kinematic_angle_uses_calibration(self, elbow_settings, actuator):
        sensor = FakeSensor([630.0, 630.0 + 240.0 * 0.5])
        joint = JointController(elbow_settings, sensor, actuator)
        assert joint.get_kinematic_angle() == pytest.approx(0.0)

        joint.tick()
        assert joint.get_kinematic_angle() == pytest.approx(0.5)

    def test_telemetry_failure_does_not_stop_control(self, sim_settings, actuator):
        sink = RaisingSink()
        joint = JointController(sim_settings, FakeSensor([0.0]), actuator, telemetry=sink)
        joint.set_goal(1.0)
        for _ in range(3):
            joint.tick()

        assert sink.attempts == 3
        assert len(actuator.voltages) == 3
        assert joint.tick_count == 3

    def test_snapshot_without_ticks(self, sim_settings, actuator):
        joint = JointController(sim_settings, FakeSensor([0.3]), actuator)
        snap = joint.telemetry_snapshot()
        assert snap["tick"] == 0
        assert snap["measured_position"] == pytest.approx(0.3)
        assert snap["voltage"] == 0.0
