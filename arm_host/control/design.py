"""
Control system design tools using scipy.

Provides discrete-time LQR and steady-state Kalman gain synthesis, Bryson-style
cost/covariance matrix builders, and the stabilizability/detectability checks
that gate construction of the regulator and the estimator.
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np
from numpy.typing import ArrayLike
from scipy.linalg import solve_discrete_are


def cost_matrix(tolerances: Sequence[float]) -> np.ndarray:
    """
    Build a diagonal cost matrix from per-element tolerances (Bryson's rule).

    Each diagonal entry is 1 / tolerance^2, so an excursion of one tolerance
    costs the same in every element. An infinite tolerance means "don't care".

    Example:
        # Position within 1 degree, velocity within 10 degrees/s
        Q = cost_matrix([np.radians(1.0), np.radians(10.0)])
    """
    tol = np.asarray(tolerances, dtype=np.float64).ravel()
    if tol.size == 0:
        raise ValueError("tolerances must not be empty")
    if np.any(tol <= 0) or np.any(np.isnan(tol)):
        raise ValueError(f"tolerances must be positive, got {tol.tolist()}")
    return np.diag(1.0 / np.square(tol))


def covariance_matrix(std_devs: Sequence[float]) -> np.ndarray:
    """Build a diagonal covariance matrix from standard deviations."""
    std = np.asarray(std_devs, dtype=np.float64).ravel()
    if std.size == 0:
        raise ValueError("std_devs must not be empty")
    if np.any(std < 0) or not np.all(np.isfinite(std)):
        raise ValueError(f"std_devs must be finite and non-negative, got {std.tolist()}")
    return np.diag(np.square(std))


def is_stabilizable(A: ArrayLike, B: ArrayLike, tol: float = 1e-9) -> bool:
    """
    Check stabilizability of a discrete-time pair (A, B) with the PBH test.

    Every eigenvalue on or outside the unit circle must satisfy
    rank([lambda*I - A, B]) = n.
    """
    A = np.atleast_2d(np.asarray(A, dtype=np.float64))
    B = np.atleast_2d(np.asarray(B, dtype=np.float64))
    n = A.shape[0]

    for lam in np.linalg.eigvals(A):
        if abs(lam) < 1.0 - tol:
            continue
        pbh = np.hstack([lam * np.eye(n) - A, B])
        if np.linalg.matrix_rank(pbh) < n:
            return False
    return True


def is_detectable(A: ArrayLike, C: ArrayLike, tol: float = 1e-9) -> bool:
    """Check detectability of a discrete-time pair (A, C); dual of stabilizability."""
    A = np.atleast_2d(np.asarray(A, dtype=np.float64))
    C = np.atleast_2d(np.asarray(C, dtype=np.float64))
    return is_stabilizable(A.T, C.T, tol=tol)


def lqr_discrete(
    A: ArrayLike,
    B: ArrayLike,
    Q: ArrayLike,
    R: ArrayLike,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Compute the discrete-time LQR gain matrix K.

    Minimizes J = sum(x'Qx + u'Ru)

    Args:
        A: Discrete-time state matrix (n x n)
        B: Discrete-time input matrix (n x m)
        Q: State cost matrix (n x n), must be positive semi-definite
        R: Input cost matrix (m x m), must be positive definite

    Returns:
        K: Optimal gain matrix (m x n), use u = K @ (r - x)
        S: Solution to the discrete algebraic Riccati equation
        E: Closed-loop eigenvalues

    Raises:
        ValueError: if (A, B) is not stabilizable or the Riccati solve fails
    """
    A = np.atleast_2d(np.asarray(A, dtype=np.float64))
    B = np.atleast_2d(np.asarray(B, dtype=np.float64))
    Q = np.atleast_2d(np.asarray(Q, dtype=np.float64))
    R = np.atleast_2d(np.asarray(R, dtype=np.float64))

    if not is_stabilizable(A, B):
        raise ValueError(
            "The system passed to the LQR is uncontrollable (not stabilizable):\n"
            f"A =\n{A}\nB =\n{B}"
        )

    try:
        S = solve_discrete_are(A, B, Q, R)
        # K = (R + B'SB)^-1 (B'SA)
        K = np.linalg.solve(R + B.T @ S @ B, B.T @ S @ A)
    except (np.linalg.LinAlgError, ValueError) as e:
        raise ValueError(f"LQR gain synthesis failed: {e}") from e

    if not np.all(np.isfinite(K)):
        raise ValueError("LQR gain synthesis produced non-finite gains")

    E = np.linalg.eigvals(A - B @ K)
    return K, S, E


def kalman_gain_discrete(
    A: ArrayLike,
    C: ArrayLike,
    Q: ArrayLike,
    R: ArrayLike,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Steady-state discrete Kalman filter design.

    Solves the filter Riccati equation
        P = APA' - APC'(CPC' + R)^-1 CPA' + Q
    for the steady-state prior covariance P, then K = PC'(CPC' + R)^-1.

    Args:
        A: Discrete-time state matrix (n x n)
        C: Output matrix (p x n)
        Q: Discrete process noise covariance (n x n)
        R: Discrete measurement noise covariance (p x p)

    Returns:
        K: Steady-state gain (n x p)
        P: Steady-state prior error covariance (n x n)

    Raises:
        ValueError: if (A, C) is not detectable or the Riccati solve fails
    """
    A = np.atleast_2d(np.asarray(A, dtype=np.float64))
    C = np.atleast_2d(np.asarray(C, dtype=np.float64))
    Q = np.atleast_2d(np.asarray(Q, dtype=np.float64))
    R = np.atleast_2d(np.asarray(R, dtype=np.float64))

    if not is_detectable(A, C):
        raise ValueError(
            "The system passed to the Kalman filter is unobservable (not detectable):\n"
            f"A =\n{A}\nC =\n{C}"
        )

    try:
        P = solve_discrete_are(A.T, C.T, Q, R)
        S = C @ P @ C.T + R
        K = np.linalg.solve(S.T, (C @ P.T)).T
    except (np.linalg.LinAlgError, ValueError) as e:
        raise ValueError(f"Kalman gain synthesis failed: {e}") from e

    if not (np.all(np.isfinite(P)) and np.all(np.isfinite(K))):
        raise ValueError("Kalman gain synthesis produced non-finite values")

    return K, P


def check_stability(
    A: ArrayLike,
    B: ArrayLike,
    K: ArrayLike,
    margin: float = 0.0,
) -> Tuple[bool, np.ndarray]:
    """
    Check that the discrete closed loop x[k+1] = (A - BK) x[k] is stable.

    Every pole must lie strictly inside a circle of radius ``1 - margin``.

    Returns:
        Tuple of (is_stable, closed-loop poles)
    """
    A = np.atleast_2d(np.asarray(A, dtype=np.float64))
    B = np.atleast_2d(np.asarray(B, dtype=np.float64))
    K = np.atleast_2d(np.asarray(K, dtype=np.float64))

    poles = np.linalg.eigvals(A - B @ K)
    return bool(np.all(np.abs(poles) < 1.0 - margin)), poles
