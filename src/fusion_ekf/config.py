"""
Sensor and filter configuration for laser/radar fusion.

The default values are domain-tuned sensor parameters, not derived values:

    R_laser = diag(0.0225, 0.0225)            laser position noise [m²]
    R_radar = diag(0.09, 0.0009, 0.09)        range [m²], bearing [rad²], range-rate [m²/s²]
    P0      = diag(1, 1, 1000, 1000)          initial state uncertainty
    σ²_ax = σ²_ay = 9                         acceleration noise [m²/s⁴]

Every parameter can be overridden at construction time or loaded from a
plain mapping (e.g. a JSON file) through FusionConfig.from_dict().
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping

import numpy as np


def _default_laser_noise() -> np.ndarray:
    return np.diag([0.0225, 0.0225])


def _default_radar_noise() -> np.ndarray:
    return np.diag([0.09, 0.0009, 0.09])


def _default_initial_covariance() -> np.ndarray:
    return np.array([1.0, 1.0, 1000.0, 1000.0])


@dataclass
class FusionConfig:
    """
    Configuration parameters for the fusion filter.

    Attributes:
        laser_noise: 2x2 laser measurement noise covariance
        radar_noise: 3x3 radar measurement noise covariance (range, bearing, range-rate)
        initial_covariance_diag: Diagonal of the initial state covariance P0
        noise_ax: Acceleration noise variance along x
        noise_ay: Acceleration noise variance along y
        min_dt: Intervals at or below this many seconds are treated as zero
        init_epsilon: Seeding samples with |px| and |py| below this are rejected
        degenerate_threshold: Radar model is undefined when px² + py² is below this
        use_range_rate: Model radar range-rate (3-row Jacobian) when available
    """
    laser_noise: np.ndarray = field(default_factory=_default_laser_noise)
    radar_noise: np.ndarray = field(default_factory=_default_radar_noise)
    initial_covariance_diag: np.ndarray = field(default_factory=_default_initial_covariance)
    noise_ax: float = 9.0
    noise_ay: float = 9.0
    min_dt: float = 1e-4
    init_epsilon: float = 1e-4
    degenerate_threshold: float = 1e-4
    use_range_rate: bool = True

    def __post_init__(self):
        """Validate configuration parameters."""
        self.laser_noise = np.array(self.laser_noise, dtype=float)
        self.radar_noise = np.array(self.radar_noise, dtype=float)
        self.initial_covariance_diag = np.array(self.initial_covariance_diag, dtype=float)

        self._validate_noise_matrix('laser_noise', self.laser_noise, 2)
        self._validate_noise_matrix('radar_noise', self.radar_noise, 3)

        if self.initial_covariance_diag.shape != (4,):
            raise ValueError(
                f"initial_covariance_diag must have 4 elements, got {self.initial_covariance_diag.shape}"
            )
        if np.any(self.initial_covariance_diag < 0):
            raise ValueError("initial_covariance_diag must be non-negative")

        if self.noise_ax < 0 or self.noise_ay < 0:
            raise ValueError(
                f"Acceleration noise variances must be non-negative, got ({self.noise_ax}, {self.noise_ay})"
            )
        for name in ('min_dt', 'init_epsilon', 'degenerate_threshold'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

    @staticmethod
    def _validate_noise_matrix(name: str, matrix: np.ndarray, size: int) -> None:
        if matrix.shape != (size, size):
            raise ValueError(f"{name} must be {size}x{size}, got {matrix.shape}")
        if not np.all(np.isfinite(matrix)):
            raise ValueError(f"{name} contains NaN or infinite values")
        if not np.allclose(matrix, matrix.T):
            raise ValueError(f"{name} must be symmetric")
        if np.min(np.linalg.eigvalsh(matrix)) <= 0:
            raise ValueError(f"{name} must be positive definite")

    @property
    def initial_covariance(self) -> np.ndarray:
        """Initial state covariance P0 as a 4x4 matrix."""
        return np.diag(self.initial_covariance_diag)

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> 'FusionConfig':
        """
        Build a configuration from a plain mapping.

        Noise matrices may be given as nested lists or as a list of diagonal
        entries.

        Raises:
            ValueError: If an unknown key is present or a value is invalid
        """
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

        kwargs: Dict[str, Any] = dict(values)
        for key in ('laser_noise', 'radar_noise'):
            if key in kwargs:
                matrix = np.array(kwargs[key], dtype=float)
                kwargs[key] = np.diag(matrix) if matrix.ndim == 1 else matrix
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'laser_noise': self.laser_noise.tolist(),
            'radar_noise': self.radar_noise.tolist(),
            'initial_covariance_diag': self.initial_covariance_diag.tolist(),
            'noise_ax': self.noise_ax,
            'noise_ay': self.noise_ay,
            'min_dt': self.min_dt,
            'init_epsilon': self.init_epsilon,
            'degenerate_threshold': self.degenerate_threshold,
            'use_range_rate': self.use_range_rate,
        }
