# tests/conftest.py

import pytest
from fakes.fake_io import FakeActuator, FakeSensor
from helpers import CapturingBus

from arm_host.config.settings import (
    JointSettings,
    KinematicSettings,
    SafetySettings,
)
from arm_host.control.plant import DCMotor, LinearArmPlant, PlantParameters

DT = 0.020


# ============== Pytest Configuration ==============

def pytest_configure(config):
    config.addinivalue_line("markers", "slow: marks tests as slow")


# ============== Model Fixtures ==============

@pytest.fixture
def arm_params() -> PlantParameters:
    """Two NEOs on a 240:1 reduction, 2 kg*m^2 arm."""
    return PlantParameters(DCMotor.preset("neo", 2), gear_ratio=240.0, moment_of_inertia=2.0)


@pytest.fixture
def arm_plant(arm_params) -> LinearArmPlant:
    return LinearArmPlant(arm_params, DT)


# ============== Joint Fixtures ==============

@pytest.fixture
def sim_settings() -> JointSettings:
    """Packaged identity-mapping profile."""
    return JointSettings.load("sim")


@pytest.fixture
def elbow_settings() -> JointSettings:
    return JointSettings.load("elbow")


@pytest.fixture
def make_settings():
    """Build identity-mapping settings with a custom safety section."""
    def _make(**safety) -> JointSettings:
        return JointSettings(
            name="test",
            kinematics=KinematicSettings(offset=0.0, scale=1.0),
            safety=SafetySettings(**safety),
        )
    return _make


@pytest.fixture
def bus():
    return CapturingBus()


@pytest.fixture
def sensor():
    return FakeSensor([0.0])


@pytest.fixture
def actuator():
    return FakeActuator()

