"""
Control building blocks for a single-jointed arm.

Provides the plant model, trapezoidal motion profile, Kalman filter and LQR
used by arm_host.joint.JointController, plus the scipy-based design helpers
they are built on.

Example usage:
    import numpy as np
    from arm_host.control import DCMotor, PlantParameters, LinearArmPlant
    from arm_host.control import KalmanFilter, LinearQuadraticRegulator

    params = PlantParameters(DCMotor.preset("neo", 2), gear_ratio=240.0, moment_of_inertia=2.0)
    plant = LinearArmPlant(params, dt=0.020)

    observer = KalmanFilter(plant, [0.015, 0.17], [0.01], dt=0.020)
    controller = LinearQuadraticRegulator(
        plant, [np.radians(1.0), np.radians(10.0)], [12.0], dt=0.020
    )
"""

from .state_space import StateSpaceModel, discretize, discretize_aq, discretize_r
from .design import (
    check_stability,
    cost_matrix,
    covariance_matrix,
    is_detectable,
    is_stabilizable,
    kalman_gain_discrete,
    lqr_discrete,
)
from .plant import (
    MOTOR_PRESETS,
    DCMotor,
    LinearArmPlant,
    PlantParameters,
    single_jointed_arm_system,
)
from .profile import Constraints, State, TrapezoidProfile, step
from .estimator import KalmanFilter
from .regulator import LinearQuadraticRegulator, PlantInversionFeedforward

__all__ = [
    # Models
    "StateSpaceModel",
    "discretize",
    "discretize_aq",
    "discretize_r",
    # Plant
    "MOTOR_PRESETS",
    "DCMotor",
    "PlantParameters",
    "LinearArmPlant",
    "single_jointed_arm_system",
    # Design
    "cost_matrix",
    "covariance_matrix",
    "is_stabilizable",
    "is_detectable",
    "lqr_discrete",
    "kalman_gain_discrete",
    "check_stability",
    # Profile
    "Constraints",
    "State",
    "TrapezoidProfile",
    "step",
    # Estimation / control
    "KalmanFilter",
    "LinearQuadraticRegulator",
    "PlantInversionFeedforward",
]
