"""
Measurement containers for the laser and radar sensors.

Laser Measurement Model:
    z_laser = [px, py]ᵀ + v,            v ~ N(0, R_laser)

Radar Measurement Model:
    z_radar = [ρ, φ, ρ̇]ᵀ + v,           v ~ N(0, R_radar)

    ρ  = √(px² + py²)                   range [m]
    φ  = atan2(py, px)                   bearing [rad]
    ρ̇  = (px·vx + py·vy) / ρ            range-rate [m/s]

Timestamps are integer microseconds, as produced by the recording hardware.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import numpy as np


class SensorType(Enum):
    """Sensor types, valued by their tag in recorded measurement files."""
    LASER = "L"
    RADAR = "R"


# Accepted raw measurement lengths per sensor
MEASUREMENT_SIZES = {
    SensorType.LASER: (2,),
    SensorType.RADAR: (2, 3),
}


@dataclass
class MeasurementPackage:
    """
    A single timestamped sensor reading.

    Attributes:
        sensor_type: Which sensor produced the reading
        timestamp: Measurement time in microseconds
        raw_measurements: (x, y) for laser, (range, bearing[, range-rate]) for radar
    """
    sensor_type: SensorType
    timestamp: int
    raw_measurements: np.ndarray

    def __post_init__(self):
        if not isinstance(self.sensor_type, SensorType):
            self.sensor_type = SensorType(self.sensor_type)
        self.timestamp = int(self.timestamp)
        self.raw_measurements = np.asarray(self.raw_measurements, dtype=float).reshape(-1)

        allowed = MEASUREMENT_SIZES[self.sensor_type]
        if len(self.raw_measurements) not in allowed:
            raise ValueError(
                f"{self.sensor_type.name} measurement must have {' or '.join(map(str, allowed))} "
                f"elements, got {len(self.raw_measurements)}"
            )
        if not np.all(np.isfinite(self.raw_measurements)):
            raise ValueError("Measurement contains NaN or infinite values")

    @property
    def has_range_rate(self) -> bool:
        return self.sensor_type is SensorType.RADAR and len(self.raw_measurements) == 3

    def to_cartesian(self) -> Tuple[float, float]:
        """
        Position implied by the measurement alone.

        Radar readings are converted from polar coordinates:
            px = ρ·cos(φ), py = ρ·sin(φ)

        Returns:
            Tuple of (px, py) in meters
        """
        if self.sensor_type is SensorType.RADAR:
            rho, phi = self.raw_measurements[0], self.raw_measurements[1]
            return float(rho * np.cos(phi)), float(rho * np.sin(phi))
        return float(self.raw_measurements[0]), float(self.raw_measurements[1])


@dataclass
class GroundTruthPackage:
    """True state (px, py, vx, vy) paired with a measurement."""
    timestamp: int
    values: np.ndarray

    def __post_init__(self):
        self.timestamp = int(self.timestamp)
        self.values = np.asarray(self.values, dtype=float).reshape(-1)
        if len(self.values) != 4:
            raise ValueError(f"Ground truth must have 4 elements, got {len(self.values)}")
