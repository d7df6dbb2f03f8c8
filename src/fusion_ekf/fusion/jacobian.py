"""
Linearization of the radar measurement model.

The radar reports polar quantities that are a nonlinear function of the
Cartesian state x = [px, py, vx, vy]ᵀ:

    h(x) = [ ρ  ]   [ √(px² + py²)            ]
           [ φ  ] = [ atan2(py, px)            ]
           [ ρ̇  ]   [ (px·vx + py·vy) / ρ     ]

The EKF update replaces h by its first-order Taylor expansion around the
predicted state, using the Jacobian Hj = ∂h/∂x. With c1 = px² + py²,
c2 = √c1 and c3 = c1·c2:

    Hj = [ px/c2                 py/c2                 0      0     ]
         [ -py/c1                px/c1                 0      0     ]
         [ py(vx·py - vy·px)/c3  px(px·vy - py·vx)/c3  px/c2  py/c2 ]

Both h and Hj are undefined at the sensor origin. Rather than returning a
matrix containing Inf/NaN, evaluation fails with DegenerateStateError when
c1 falls below a small threshold.
"""

from typing import Optional

import numpy as np

from ..exceptions import DegenerateStateError


# px² + py² below this value is treated as the sensor origin
DEGENERATE_RADIUS_SQUARED = 1e-4


def normalize_angle(angle: float) -> float:
    """
    Wrap an angle into the half-open interval (-π, π].

    Args:
        angle: Angle in radians

    Returns:
        Equivalent angle in (-π, π]
    """
    wrapped = np.mod(angle + np.pi, 2 * np.pi) - np.pi
    # np.mod yields [-π, π); move the closed end to +π
    if wrapped <= -np.pi:
        wrapped += 2 * np.pi
    return float(wrapped)


def _radius_squared(x: np.ndarray, threshold: float) -> float:
    px, py = float(x[0]), float(x[1])
    c1 = px * px + py * py
    if c1 < threshold:
        raise DegenerateStateError(c1, threshold)
    return c1


def compute_jacobian(x: np.ndarray, with_range_rate: bool = True,
                     threshold: float = DEGENERATE_RADIUS_SQUARED) -> np.ndarray:
    """
    Jacobian of the radar measurement function evaluated at x.

    Args:
        x: State vector [px, py, vx, vy]
        with_range_rate: Include the range-rate row (3x4), otherwise 2x4
        threshold: Minimum admissible px² + py²

    Returns:
        3x4 or 2x4 Jacobian matrix

    Raises:
        DegenerateStateError: If px² + py² is below threshold
    """
    c1 = _radius_squared(x, threshold)
    px, py, vx, vy = (float(v) for v in x[:4])
    c2 = np.sqrt(c1)
    c3 = c1 * c2

    Hj = np.zeros((3 if with_range_rate else 2, 4))
    Hj[0, 0] = px / c2
    Hj[0, 1] = py / c2
    Hj[1, 0] = -py / c1
    Hj[1, 1] = px / c1
    if with_range_rate:
        Hj[2, 0] = py * (vx * py - vy * px) / c3
        Hj[2, 1] = px * (px * vy - py * vx) / c3
        Hj[2, 2] = px / c2
        Hj[2, 3] = py / c2
    return Hj


def predict_radar_measurement(x: np.ndarray, with_range_rate: bool = True,
                              threshold: float = DEGENERATE_RADIUS_SQUARED) -> np.ndarray:
    """
    Map a Cartesian state into radar measurement space.

    Args:
        x: State vector [px, py, vx, vy]
        with_range_rate: Include range-rate in the output
        threshold: Minimum admissible px² + py²

    Returns:
        [range, bearing, range_rate] or [range, bearing]

    Raises:
        DegenerateStateError: If px² + py² is below threshold
    """
    c1 = _radius_squared(x, threshold)
    px, py, vx, vy = (float(v) for v in x[:4])
    rho = np.sqrt(c1)
    phi = np.arctan2(py, px)
    if not with_range_rate:
        return np.array([rho, phi])
    return np.array([rho, phi, (px * vx + py * vy) / rho])


class JacobianLinearizer:
    """
    Radar measurement model bound to a degeneracy threshold.

    The linearizer is stateless apart from its configuration; a single
    instance can be shared by any number of filters.

    Attributes:
        threshold: Minimum admissible px² + py²
        with_range_rate: Default measurement dimension (3 when True, else 2)
    """

    def __init__(self, threshold: float = DEGENERATE_RADIUS_SQUARED, with_range_rate: bool = True):
        if threshold <= 0:
            raise ValueError(f"Degeneracy threshold must be positive, got {threshold}")
        self.threshold = threshold
        self.with_range_rate = with_range_rate

    def _range_rate(self, with_range_rate: Optional[bool]) -> bool:
        return self.with_range_rate if with_range_rate is None else with_range_rate

    def compute(self, x: np.ndarray, with_range_rate: Optional[bool] = None) -> np.ndarray:
        """Jacobian at x; see compute_jacobian()."""
        return compute_jacobian(x, self._range_rate(with_range_rate), self.threshold)

    def predict_measurement(self, x: np.ndarray, with_range_rate: Optional[bool] = None) -> np.ndarray:
        """Nonlinear forward mapping at x; see predict_radar_measurement()."""
        return predict_radar_measurement(x, self._range_rate(with_range_rate), self.threshold)
