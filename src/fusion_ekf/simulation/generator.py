"""
Synthetic laser/radar measurement streams with ground truth.

Trajectories are closed-form so that ground-truth velocities are exact:

    linear:   p(t) = p0 + v·t
    circle:   p(t) = c + R·[cos ωt, sin ωt]
    figure8:  p(t) = c + R·[sin ωt, sin 2ωt / 2]

with ω = 2π/T. Sensors alternate laser, radar, laser, ... at a fixed
interval. Each reading is the exact measurement model of the true state
plus zero-mean Gaussian noise drawn from the configured covariance:

    z_laser = [px, py] + v,                     v ~ N(0, R_laser)
    z_radar = [ρ, φ, ρ̇] + v,                    v ~ N(0, R_radar)
"""

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

import numpy as np

from ..config import FusionConfig
from ..fusion.jacobian import normalize_angle, predict_radar_measurement
from ..sensors.measurement import GroundTruthPackage, MeasurementPackage, SensorType

logger = logging.getLogger(__name__)


@dataclass
class TrajectoryParameters:
    """Trajectory shape and sampling parameters with validation."""

    trajectory_type: str = "figure8"   # "linear", "circle" or "figure8"
    start: Tuple[float, float] = (5.0, 5.0)     # Start point (linear) or centre [m]
    velocity: Tuple[float, float] = (2.0, 1.0)  # Constant velocity (linear) [m/s]
    radius: float = 10.0               # Circle / figure-8 radius [m]
    period: float = 30.0               # Time for one loop [s]
    interval_us: int = 50000           # Time between measurements [µs]
    start_timestamp: int = 1477010443000000

    def __post_init__(self):
        if self.trajectory_type not in ("linear", "circle", "figure8"):
            raise ValueError(f"Unknown trajectory type: {self.trajectory_type}")
        if self.radius <= 0:
            raise ValueError(f"Trajectory radius must be positive, got {self.radius}")
        if self.period <= 0:
            raise ValueError(f"Period must be positive, got {self.period}")
        if self.interval_us <= 0:
            raise ValueError(f"Measurement interval must be positive, got {self.interval_us}")


class MeasurementSimulator:
    """
    Generates a noisy alternating laser/radar stream along a trajectory.

    Attributes:
        params: Trajectory and sampling parameters
        config: Sensor configuration providing the noise covariances
    """

    def __init__(self, params: Optional[TrajectoryParameters] = None,
                 config: Optional[FusionConfig] = None, seed: Optional[int] = None,
                 sensors: Tuple[SensorType, ...] = (SensorType.LASER, SensorType.RADAR)):
        if not sensors:
            raise ValueError("At least one sensor type is required")
        self.params = params or TrajectoryParameters()
        self.config = config or FusionConfig()
        self.sensors = tuple(sensors)
        self._rng = np.random.default_rng(seed)
        self._omega = 2 * np.pi / self.params.period

    def true_state(self, t: float) -> np.ndarray:
        """True state [px, py, vx, vy] at time t seconds after the start."""
        cx, cy = self.params.start
        R, w = self.params.radius, self._omega

        if self.params.trajectory_type == "linear":
            vx, vy = self.params.velocity
            return np.array([cx + vx * t, cy + vy * t, vx, vy])

        if self.params.trajectory_type == "circle":
            return np.array([
                cx + R * np.cos(w * t),
                cy + R * np.sin(w * t),
                -R * w * np.sin(w * t),
                R * w * np.cos(w * t),
            ])

        return np.array([
            cx + R * np.sin(w * t),
            cy + R * np.sin(2 * w * t) / 2,
            R * w * np.cos(w * t),
            R * w * np.cos(2 * w * t),
        ])

    def measure(self, sensor_type: SensorType, state: np.ndarray, timestamp: int) -> MeasurementPackage:
        """Noisy reading of `state` by the given sensor."""
        if sensor_type is SensorType.LASER:
            noise = self._rng.multivariate_normal(np.zeros(2), self.config.laser_noise)
            return MeasurementPackage(sensor_type, timestamp, state[:2] + noise)

        noise = self._rng.multivariate_normal(np.zeros(3), self.config.radar_noise)
        z = predict_radar_measurement(state, with_range_rate=True) + noise
        z[1] = normalize_angle(z[1])
        return MeasurementPackage(sensor_type, timestamp, z)

    def stream(self, count: int) -> Iterator[Tuple[MeasurementPackage, GroundTruthPackage]]:
        """
        Yield `count` measurements with their ground truth.

        Raises:
            ValueError: If count is negative
        """
        if count < 0:
            raise ValueError(f"Measurement count must be non-negative, got {count}")

        for k in range(count):
            t = k * self.params.interval_us / 1e6
            timestamp = self.params.start_timestamp + k * self.params.interval_us
            state = self.true_state(t)
            sensor_type = self.sensors[k % len(self.sensors)]
            yield self.measure(sensor_type, state, timestamp), GroundTruthPackage(timestamp, state)

    def generate(self, count: int) -> List[Tuple[MeasurementPackage, GroundTruthPackage]]:
        records = list(self.stream(count))
        logger.debug(f"Generated {len(records)} {self.params.trajectory_type} measurements")
        return records
