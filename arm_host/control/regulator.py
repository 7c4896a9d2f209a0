# arm_host/control/regulator.py
"""
Linear-quadratic regulator and plant-inversion feedforward for the arm.

The regulator gain is synthesized once from per-state error tolerances and a
voltage tolerance (Bryson's rule), so any numeric failure surfaces when the
controller is built rather than inside a control tick.
"""
from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
from numpy.typing import ArrayLike

from .design import check_stability, cost_matrix, lqr_discrete
from .plant import LinearArmPlant
from .state_space import discretize


class LinearQuadraticRegulator:
    """
    Discrete LQR: u = clip(K (r - x_hat), -max_voltage, max_voltage).

    Args:
        plant: Arm plant
        state_tolerances: Acceptable error per state (rad, rad/s). Smaller
            values penalize excursion harder and make the controller more
            aggressive.
        input_tolerances: Acceptable control effort per input (V). Smaller
            values penalize effort and make the controller gentler; the
            battery voltage is a sensible starting point.
        dt: Nominal period in seconds
        max_voltage: Output clamp (V)
    """

    def __init__(
        self,
        plant: LinearArmPlant,
        state_tolerances: Sequence[float],
        input_tolerances: Sequence[float],
        dt: float,
        max_voltage: float = 12.0,
    ) -> None:
        if not max_voltage > 0:
            raise ValueError(f"max_voltage must be positive, got {max_voltage}")

        n = plant.continuous.num_states
        m = plant.continuous.num_inputs
        if len(state_tolerances) != n:
            raise ValueError(f"state_tolerances needs {n} entries, got {len(state_tolerances)}")
        if len(input_tolerances) != m:
            raise ValueError(f"input_tolerances needs {m} entries, got {len(input_tolerances)}")

        self._Q = cost_matrix(state_tolerances)
        self._R = cost_matrix(input_tolerances)
        self._max_voltage = float(max_voltage)

        discrete = discretize(plant.continuous, dt)
        self._K, self._S, _ = lqr_discrete(discrete.A, discrete.B, self._Q, self._R)

        stable, self._poles = check_stability(discrete.A, discrete.B, self._K)
        if not stable:
            raise ValueError(
                f"LQR closed loop is unstable, poles {np.abs(self._poles).tolist()}"
            )

    @property
    def K(self) -> np.ndarray:
        """Gain matrix (m x n)."""
        return self._K.copy()

    @property
    def closed_loop_poles(self) -> np.ndarray:
        return self._poles.copy()

    @property
    def max_voltage(self) -> float:
        return self._max_voltage

    def clamp(self, u: ArrayLike) -> np.ndarray:
        u = np.asarray(u, dtype=np.float64).reshape(-1, 1)
        return np.clip(u, -self._max_voltage, self._max_voltage)

    def calculate(self, x_hat: ArrayLike, r: ArrayLike) -> np.ndarray:
        """Optimal input driving ``x_hat`` toward reference ``r``, clamped."""
        x_hat = np.asarray(x_hat, dtype=np.float64).reshape(-1, 1)
        r = np.asarray(r, dtype=np.float64).reshape(-1, 1)
        return self.clamp(self._K @ (r - x_hat))


class PlantInversionFeedforward:
    """
    Feedforward that inverts the discrete plant along the reference trajectory.

        u_ff = pinv(Bd) (r[k+1] - Ad r[k])

    Call ``reset`` with the starting reference, then ``calculate`` with each
    new reference; the previous reference is remembered between calls.
    """

    def __init__(self, plant: LinearArmPlant, dt: Optional[float] = None) -> None:
        model = plant.discrete if dt is None else discretize(plant.continuous, dt)
        self._A = model.A
        self._B_pinv = np.linalg.pinv(model.B)
        self._r = np.zeros((model.num_states, 1))
        self._u_ff = np.zeros((model.num_inputs, 1))

    @property
    def u_ff(self) -> np.ndarray:
        return self._u_ff.copy()

    def reset(self, r: Optional[ArrayLike] = None) -> None:
        if r is None:
            self._r = np.zeros_like(self._r)
        else:
            self._r = np.asarray(r, dtype=np.float64).reshape(-1, 1)
        self._u_ff = np.zeros_like(self._u_ff)

    def calculate(self, next_r: ArrayLike) -> np.ndarray:
        next_r = np.asarray(next_r, dtype=np.float64).reshape(-1, 1)
        self._u_ff = self._B_pinv @ (next_r - self._A @ self._r)
        self._r = next_r
        return self._u_ff.copy()
