"""
State-space model and the discretization helpers the plant, estimator and
regulator are built on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from numpy.typing import ArrayLike
from scipy.linalg import expm


@dataclass
class StateSpaceModel:
    """
    State-space model: dx/dt = Ax + Bu (or x[k+1] = Ax[k] + Bu[k]), y = Cx + Du

    Attributes:
        A: State matrix (n x n)
        B: Input matrix (n x m)
        C: Output matrix (p x n)
        D: Feedthrough matrix (p x m), defaults to zero

    Example:
        # Single-jointed arm driven by a voltage, position measured
        model = StateSpaceModel([[0, 1], [0, -247.6]], [[0], [52.0]], [[1, 0]])
        model_d = discretize(model, 0.020)
    """

    A: np.ndarray
    B: np.ndarray
    C: np.ndarray
    D: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        """Convert to numpy arrays and validate dimensions."""
        self.A = np.atleast_2d(np.asarray(self.A, dtype=np.float64))
        self.B = np.atleast_2d(np.asarray(self.B, dtype=np.float64))
        self.C = np.atleast_2d(np.asarray(self.C, dtype=np.float64))

        p = self.C.shape[0]
        m = self.B.shape[1]

        if self.D is None:
            self.D = np.zeros((p, m), dtype=np.float64)
        else:
            self.D = np.atleast_2d(np.asarray(self.D, dtype=np.float64))

        self._validate()

    def _validate(self) -> None:
        """Validate matrix dimensions are consistent."""
        n = self.num_states
        m = self.num_inputs
        p = self.num_outputs

        if self.A.shape != (n, n):
            raise ValueError(f"A must be square, got shape {self.A.shape}")
        if self.B.shape != (n, m):
            raise ValueError(f"B shape {self.B.shape} inconsistent with A ({n}x{n}) and {m} inputs")
        if self.C.shape != (p, n):
            raise ValueError(f"C shape {self.C.shape} inconsistent with {p} outputs and {n} states")
        if self.D.shape != (p, m):
            raise ValueError(f"D shape {self.D.shape} inconsistent with {p} outputs and {m} inputs")
        for name in ("A", "B", "C", "D"):
            if not np.all(np.isfinite(getattr(self, name))):
                raise ValueError(f"{name} contains non-finite entries")

    @property
    def num_states(self) -> int:
        """Number of state variables (n)."""
        return self.A.shape[0]

    @property
    def num_inputs(self) -> int:
        """Number of control inputs (m)."""
        return self.B.shape[1]

    @property
    def num_outputs(self) -> int:
        """Number of outputs (p)."""
        return self.C.shape[0]

    def __repr__(self) -> str:
        return (
            f"StateSpaceModel(n={self.num_states}, m={self.num_inputs}, p={self.num_outputs})"
        )


def discretize(sys: StateSpaceModel, dt: float) -> StateSpaceModel:
    """
    Zero-order-hold discretization of a continuous-time model.

    Args:
        sys: Continuous-time StateSpaceModel
        dt: Sample time in seconds

    Returns:
        Discrete-time StateSpaceModel (Ad, Bd, C, D)
    """
    if not dt > 0:
        raise ValueError(f"dt must be positive, got {dt}")

    n = sys.num_states
    m = sys.num_inputs

    # Build augmented matrix [A, B; 0, 0] and take matrix exponential
    aug = np.zeros((n + m, n + m))
    aug[:n, :n] = sys.A * dt
    aug[:n, n:] = sys.B * dt

    exp_aug = expm(aug)
    Ad = exp_aug[:n, :n]
    Bd = exp_aug[:n, n:]

    return StateSpaceModel(Ad, Bd, sys.C.copy(), sys.D.copy())


def discretize_aq(
    A: ArrayLike,
    Q: ArrayLike,
    dt: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Discretize the state matrix together with a continuous process noise covariance.

    Uses Van Loan's method:
        M = [[-A, Q], [0, A']] * dt
        expm(M) = [[., Phi12], [0, Phi22]]
        Ad = Phi22', Qd = Ad * Phi12

    Returns:
        (Ad, Qd) with Qd symmetrized
    """
    A = np.atleast_2d(np.asarray(A, dtype=np.float64))
    Q = np.atleast_2d(np.asarray(Q, dtype=np.float64))
    n = A.shape[0]

    M = np.zeros((2 * n, 2 * n))
    M[:n, :n] = -A * dt
    M[:n, n:] = Q * dt
    M[n:, n:] = A.T * dt

    phi = expm(M)
    phi12 = phi[:n, n:]
    phi22 = phi[n:, n:]

    Ad = phi22.T
    Qd = Ad @ phi12
    # Round-off in expm leaves Qd slightly asymmetric
    Qd = (Qd + Qd.T) / 2.0

    return Ad, Qd


def discretize_r(R: ArrayLike, dt: float) -> np.ndarray:
    """Discretize a continuous measurement noise covariance: Rd = R / dt."""
    R = np.atleast_2d(np.asarray(R, dtype=np.float64))
    return R / dt
