# arm_host/control/estimator.py
"""
Discrete-time linear Kalman filter for the arm plant.

The filter keeps a full error covariance P and recomputes its gain on every
correction, so the estimate starts from the configured initial uncertainty and
settles to the steady-state filter as P converges.

Per tick the caller must run ``correct`` with the new measurement, compute
the control input, then ``predict`` with that input.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np
from numpy.typing import ArrayLike

from .design import covariance_matrix, kalman_gain_discrete
from .plant import LinearArmPlant
from .state_space import discretize_aq, discretize_r


class KalmanFilter:
    """
    Kalman filter fusing the plant model with position measurements.

    Args:
        plant: Arm plant (provides A, B, C, D)
        state_std_devs: How much we trust the model, per state
            (rad, rad/s); larger means more process noise
        measurement_std_devs: How much we trust the sensor, per output (rad)
        dt: Nominal period in seconds
        initial_covariance_scale: P0 = scale * steady-state covariance;
            values above 1 start the filter less certain than steady state
        logger: Optional logger for ordering warnings
    """

    def __init__(
        self,
        plant: LinearArmPlant,
        state_std_devs: Sequence[float],
        measurement_std_devs: Sequence[float],
        dt: float,
        initial_covariance_scale: float = 1.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._plant = plant
        self._dt = float(dt)
        self._log = logger or logging.getLogger(__name__)

        n = plant.continuous.num_states
        p = plant.continuous.num_outputs

        if len(state_std_devs) != n:
            raise ValueError(f"state_std_devs needs {n} entries, got {len(state_std_devs)}")
        if len(measurement_std_devs) != p:
            raise ValueError(
                f"measurement_std_devs needs {p} entries, got {len(measurement_std_devs)}"
            )
        if not initial_covariance_scale > 0:
            raise ValueError(
                f"initial_covariance_scale must be positive, got {initial_covariance_scale}"
            )
        if any(s <= 0 for s in measurement_std_devs):
            raise ValueError("measurement_std_devs must be positive")

        self._cont_Q = covariance_matrix(state_std_devs)
        self._cont_R = covariance_matrix(measurement_std_devs)

        self._disc_A, self._disc_Q = discretize_aq(plant.continuous.A, self._cont_Q, self._dt)
        self._disc_R = discretize_r(self._cont_R, self._dt)

        self._K_ss, self._P_ss = kalman_gain_discrete(
            self._disc_A, plant.C, self._disc_Q, self._disc_R
        )
        self._initial_covariance_scale = float(initial_covariance_scale)

        self._x_hat = np.zeros((n, 1))
        self._P = self._P_ss * self._initial_covariance_scale
        self._corrected = False
        self.reset()

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def x_hat(self) -> np.ndarray:
        """Current state estimate as an (n, 1) column."""
        return self._x_hat.copy()

    def x_hat_at(self, i: int) -> float:
        return float(self._x_hat[i, 0])

    @property
    def P(self) -> np.ndarray:
        """Current error covariance."""
        return self._P.copy()

    @property
    def steady_state_covariance(self) -> np.ndarray:
        return self._P_ss.copy()

    @property
    def steady_state_gain(self) -> np.ndarray:
        return self._K_ss.copy()

    @property
    def discrete_Q(self) -> np.ndarray:
        return self._disc_Q.copy()

    @property
    def discrete_R(self) -> np.ndarray:
        return self._disc_R.copy()

    def reset(self, x0: Optional[ArrayLike] = None, P0: Optional[ArrayLike] = None) -> None:
        """
        Seed the estimate and covariance.

        Without ``P0`` the covariance is the steady-state covariance scaled by
        ``initial_covariance_scale``.
        """
        n = self._x_hat.shape[0]
        if x0 is None:
            self._x_hat = np.zeros((n, 1))
        else:
            self._x_hat = np.asarray(x0, dtype=np.float64).reshape(n, 1)

        if P0 is None:
            self._P = self._P_ss * self._initial_covariance_scale
        else:
            P0 = np.atleast_2d(np.asarray(P0, dtype=np.float64))
            if P0.shape != (n, n):
                raise ValueError(f"P0 must be {n}x{n}, got {P0.shape}")
            self._P = P0.copy()

        self._corrected = False

    # ------------------------------------------------------------------
    # Filter steps
    # ------------------------------------------------------------------

    def correct(self, u: ArrayLike, y: ArrayLike) -> None:
        """Fold a measurement into the estimate using the current covariance."""
        if self._corrected:
            self._log.warning("Kalman filter corrected twice without a predict in between")

        C = self._plant.C
        D = self._plant.D
        u = np.asarray(u, dtype=np.float64).reshape(-1, 1)
        y = np.asarray(y, dtype=np.float64).reshape(-1, 1)

        S = C @ self._P @ C.T + self._disc_R
        # K = P C' S^-1, solved as S' K' = C P'
        K = np.linalg.solve(S.T, C @ self._P.T).T

        residual = y - (C @ self._x_hat + D @ u)
        self._x_hat = self._x_hat + K @ residual

        # Joseph form keeps P symmetric positive semi-definite
        I_KC = np.eye(self._P.shape[0]) - K @ C
        self._P = I_KC @ self._P @ I_KC.T + K @ self._disc_R @ K.T

        self._corrected = True

    def predict(self, u: ArrayLike, dt: Optional[float] = None) -> None:
        """Project the estimate and covariance one period ahead under input ``u``."""
        if not self._corrected:
            self._log.warning("Kalman filter predicted without a correct since the last predict")

        if dt is None or dt == self._dt:
            A, Q = self._disc_A, self._disc_Q
        else:
            A, Q = discretize_aq(self._plant.continuous.A, self._cont_Q, dt)

        self._x_hat = self._plant.calculate_x(self._x_hat, u, dt)
        self._P = A @ self._P @ A.T + Q
        self._corrected = False
