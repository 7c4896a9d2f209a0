"""Closed-loop runs of the joint controller against the simulated arm."""

import math

import pytest
from helpers import CapturingBus

from arm_host.control.plant import DCMotor, PlantParameters
from arm_host.joint.controller import TELEMETRY_TOPIC
from arm_host.research.metrics import (
    analyze_step_response,
    profile_limit_violations,
    reference_tracking_metrics,
    ticks_to_settle,
)
from arm_host.research.simulation import build_simulation


TICKS = 200


class TestStepToOneRadian:

    @pytest.fixture
    def history(self, sim_settings):
        runner = build_simulation(sim_settings, goal_schedule={0: 1.0})
        return runner.run(TICKS)

    def test_settles_at_goal(self, history):
        final = history[-1]
        assert len(history) == TICKS
        assert final["position"] == pytest.approx(1.0, abs=0.01)
        assert final["velocity"] == pytest.approx(0.0, abs=0.01)

    def test_reference_respects_limits(self, sim_settings, history):
        c = sim_settings.constraints()
        refs = [(row["reference_position"], row["reference_velocity"]) for row in history]
        assert profile_limit_violations(refs, c.max_velocity, c.max_acceleration, sim_settings.loop.dt) == []
        assert history[-1]["reference_position"] == 1.0

    def test_voltage_bounded(self, history):
        assert all(abs(row["voltage"]) <= 12.0 for row in history)

    def test_tracks_reference_closely(self, sim_settings, history):
        """The arm runs at most about one tick of travel off the reference."""
        metrics = reference_tracking_metrics(history)
        one_tick = sim_settings.profile.max_velocity * sim_settings.loop.dt
        assert metrics.max_error < 2 * one_tick

    def test_step_metrics(self, history):
        metrics = analyze_step_response(
            [row["time"] for row in history],
            [row["position"] for row in history],
            setpoint=1.0,
        )
        assert metrics.overshoot_percent < 1.0
        assert metrics.rise_time_s is not None
        assert metrics.settling_time_s is not None
        assert metrics.settling_time_s < TICKS * 0.020

    def test_settles_before_the_end(self, history):
        settled = ticks_to_settle(history, 1.0, 0.01)
        assert settled is not None
        # Profile alone takes about 1.77 s
        assert settled < 120


class TestHoldAtStart:

    def test_first_voltage_is_zero_when_goal_is_start(self, sim_settings):
        runner = build_simulation(sim_settings, initial_position=0.3, goal_schedule={0: 0.3})
        runner.run(5)

        assert runner.motor.history[0] == pytest.approx(0.0, abs=1e-9)
        assert runner.arm.position == pytest.approx(0.3, abs=1e-9)

    def test_no_goal_holds_position(self, sim_settings):
        runner = build_simulation(sim_settings, initial_position=-0.4)
        history = runner.run(50)
        assert all(abs(row["voltage"]) < 1e-9 for row in history)


class TestImperfectWorld:

    def test_noisy_encoder_still_converges(self, sim_settings):
        runner = build_simulation(sim_settings, noise_std=0.001, seed=7, goal_schedule={0: 1.0})
        history = runner.run(250)

        final = history[-1]
        assert final["position"] == pytest.approx(1.0, abs=0.02)
        assert all(abs(row["voltage"]) <= 12.0 for row in history)

    def test_dropouts_are_skipped(self, sim_settings):
        bus = CapturingBus()
        runner = build_simulation(sim_settings, seed=3, goal_schedule={0: 1.0}, telemetry=bus)
        # Start dropping reads only after the controller has initialized
        runner.encoder.dropout_prob = 0.1
        history = runner.run(TICKS)

        joint = runner.joint
        assert runner.encoder.dropouts > 0
        assert joint.skipped_ticks == runner.encoder.dropouts
        assert joint.tick_count + joint.skipped_ticks == TICKS
        assert len(bus.of(TELEMETRY_TOPIC)) == joint.tick_count
        # Skipped ticks stretch the profile; it still finishes within the run
        assert history[-1]["position"] == pytest.approx(1.0, abs=0.02)

    def test_model_mismatch(self, sim_settings):
        """Arm is 25% heavier than the controller believes."""
        heavier = PlantParameters(DCMotor.preset("neo", 2), gear_ratio=240.0, moment_of_inertia=2.5)
        runner = build_simulation(sim_settings, true_params=heavier, goal_schedule={0: 1.0})
        history = runner.run(300)

        assert history[-1]["position"] == pytest.approx(1.0, abs=0.02)

    def test_goal_change_mid_run(self, sim_settings):
        runner = build_simulation(sim_settings, goal_schedule={0: 1.0, 50: -0.5})
        history = runner.run(300)

        assert history[-1]["goal"] == pytest.approx(-0.5)
        assert history[-1]["position"] == pytest.approx(-0.5, abs=0.01)

    def test_clamped_goal_in_sim_profile(self, sim_settings):
        runner = build_simulation(sim_settings, goal_schedule={0: 10.0})
        runner.run(1)
        assert runner.joint.target_angle == pytest.approx(math.pi)
