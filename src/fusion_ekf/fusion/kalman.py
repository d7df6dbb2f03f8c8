"""
Kalman Filter Core for Laser/Radar State Estimation

This module owns the state estimate and the model matrices of a
constant-velocity tracker and implements the filter recursion.

State Vector Definition:
    x = [px, py, vx, vy]ᵀ ∈ ℝ⁴

Where:
    - [px, py]: Position in the fixed 2D Cartesian frame (m)
    - [vx, vy]: Velocity in the same frame (m/s)

Kalman Recursion:
    Prediction:
        x̂(k|k-1) = F x̂(k-1|k-1)
        P(k|k-1) = F P(k-1|k-1) Fᵀ + Q

    Linear update (laser):
        y = z - H x̂
        S = H P Hᵀ + R
        K = P Hᵀ S⁻¹
        x̂ = x̂ + K y
        P = (I - K H) P

    Linearized update (radar):
        y = z - h(x̂),  bearing component wrapped into (-π, π]
        H is replaced by the Jacobian Hj = ∂h/∂x evaluated at x̂

Numerical Safeguards:
    - Covariance symmetrized after every step
    - Innovation covariance S checked for finiteness and conditioning;
      a singular S raises SingularInnovationError instead of falling back
      to a pseudo-inverse
    - Posterior computed in full before assignment, so a failed update
      leaves the prior intact
"""

import logging
from typing import Callable, Optional

import numpy as np
import scipy.linalg

from .jacobian import normalize_angle
from ..exceptions import SingularInnovationError, UninitializedFilterError

logger = logging.getLogger(__name__)

STATE_SIZE = 4

# Index of the bearing component in radar measurement space
BEARING_INDEX = 1


class KalmanFilter:
    """
    Kalman filter state and model matrices with linear and linearized updates.

    The filter performs no model refresh of its own: the owner writes the
    time-dependent entries of F and Q before calling predict(), and selects
    H and R before each update.

    Attributes:
        x: State estimate [px, py, vx, vy]
        P: 4x4 state covariance
        F: 4x4 state transition matrix
        Q: 4x4 process noise covariance
        H: Measurement matrix (2x4 for laser, 3x4 or 2x4 for radar)
        R: Measurement noise covariance matching H
    """

    def __init__(self, max_condition_number: float = 1e12):
        """
        Create an uninitialized filter.

        Args:
            max_condition_number: Innovation covariances with a larger
                condition number are treated as singular
        """
        if max_condition_number <= 1.0:
            raise ValueError(f"Maximum condition number must exceed 1, got {max_condition_number}")

        self.x: Optional[np.ndarray] = None
        self.P: Optional[np.ndarray] = None
        self.F: Optional[np.ndarray] = None
        self.Q: Optional[np.ndarray] = None
        self.H: Optional[np.ndarray] = None
        self.R: Optional[np.ndarray] = None

        self._max_condition_number = max_condition_number
        self._identity = np.eye(STATE_SIZE)
        self._initialized = False

        # Retained from the most recent update for consistency diagnostics
        self.last_innovation: Optional[np.ndarray] = None
        self.last_innovation_covariance: Optional[np.ndarray] = None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def init(self, x0: np.ndarray, P0: np.ndarray, F0: np.ndarray,
             H0: np.ndarray, R0: np.ndarray, Q0: np.ndarray) -> None:
        """
        Set the state and all model matrices.

        Values are copied; shapes are the caller's responsibility.

        Args:
            x0: Initial state (4,)
            P0: Initial covariance (4x4)
            F0: Transition matrix (4x4)
            H0: Measurement matrix
            R0: Measurement noise covariance
            Q0: Process noise covariance (4x4)
        """
        self.x = np.array(x0, dtype=float).reshape(STATE_SIZE)
        self.P = np.array(P0, dtype=float)
        self.F = np.array(F0, dtype=float)
        self.H = np.array(H0, dtype=float)
        self.R = np.array(R0, dtype=float)
        self.Q = np.array(Q0, dtype=float)
        self.last_innovation = None
        self.last_innovation_covariance = None
        self._initialized = True
        logger.debug(f"Kalman filter initialized with x0={self.x}")

    def _require_initialized(self, operation: str) -> None:
        if not self._initialized:
            raise UninitializedFilterError(f"{operation}() called before init()")

    def set_transition(self, dt: float) -> None:
        """Write the elapsed time into the position/velocity coupling terms of F."""
        self._require_initialized('set_transition')
        self.F[0, 2] = dt
        self.F[1, 3] = dt

    def predict(self) -> None:
        """
        Prediction step: x ← F·x, P ← F·P·Fᵀ + Q.

        Raises:
            UninitializedFilterError: If init() has not been called
        """
        self._require_initialized('predict')

        self.x = self.F @ self.x
        P = self.F @ self.P @ self.F.T + self.Q
        self.P = (P + P.T) * 0.5

    def update_linear(self, z: np.ndarray) -> None:
        """
        Standard Kalman update with the current H and R.

        Args:
            z: Measurement vector matching the rows of H

        Raises:
            UninitializedFilterError: If init() has not been called
            SingularInnovationError: If S = H·P·Hᵀ + R cannot be inverted
        """
        self._require_initialized('update_linear')

        z = np.asarray(z, dtype=float)
        y = z - self.H @ self.x
        self._apply_update(y, self.H)

    def update_nonlinear(self, z: np.ndarray,
                         h_fn: Callable[[np.ndarray], np.ndarray],
                         jacobian_h: np.ndarray) -> None:
        """
        Extended Kalman update around the current estimate.

        The innovation is formed with the nonlinear model h_fn, while the
        Jacobian stands in for H when computing S and K. The bearing
        component of the innovation is wrapped into (-π, π] first.

        Args:
            z: Measurement vector [range, bearing(, range_rate)]
            h_fn: Nonlinear measurement function h(x)
            jacobian_h: Jacobian of h_fn evaluated at the current state

        Raises:
            UninitializedFilterError: If init() has not been called
            SingularInnovationError: If S cannot be inverted
        """
        self._require_initialized('update_nonlinear')

        z = np.asarray(z, dtype=float)
        Hj = np.asarray(jacobian_h, dtype=float)
        y = z - np.asarray(h_fn(self.x), dtype=float)
        y[BEARING_INDEX] = normalize_angle(y[BEARING_INDEX])
        self._apply_update(y, Hj)

    def _apply_update(self, y: np.ndarray, H: np.ndarray) -> None:
        """Shared gain computation and posterior assignment."""
        PHt = self.P @ H.T
        S = H @ PHt + self.R
        S_inv = self._invert_innovation_covariance(S)
        K = PHt @ S_inv

        x_post = self.x + K @ y
        P_post = (self._identity - K @ H) @ self.P
        P_post = (P_post + P_post.T) * 0.5

        self.x = x_post
        self.P = P_post
        self.last_innovation = y
        self.last_innovation_covariance = S

        logger.debug(f"Update applied: innovation={y}, trace(P)={np.trace(self.P):.4f}")

    def _invert_innovation_covariance(self, S: np.ndarray) -> np.ndarray:
        """
        Invert S, failing loudly on singular or ill-conditioned matrices.

        Raises:
            SingularInnovationError: If S is non-finite, ill-conditioned or singular
        """
        if not np.all(np.isfinite(S)):
            raise SingularInnovationError("Innovation covariance contains NaN or infinite values")

        condition_number = float(np.linalg.cond(S))
        if not np.isfinite(condition_number) or condition_number > self._max_condition_number:
            raise SingularInnovationError(
                f"Innovation covariance is singular (condition number {condition_number:.3e})",
                condition_number,
            )

        try:
            return scipy.linalg.inv(S)
        except scipy.linalg.LinAlgError as err:
            raise SingularInnovationError(f"Innovation covariance inversion failed: {err}",
                                          condition_number) from err
