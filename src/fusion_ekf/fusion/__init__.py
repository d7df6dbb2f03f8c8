"""
Sensor fusion algorithms for laser/radar tracking.

This module implements the Kalman filter core, the radar measurement
linearization and the orchestrator that fuses both sensors into a single
state estimate.
"""

from .kalman import KalmanFilter
from .jacobian import (
    JacobianLinearizer,
    compute_jacobian,
    predict_radar_measurement,
    normalize_angle,
)
from .orchestrator import FusionEKF, FilterOutput, LoggingObserver, process_noise

__all__ = [
    "KalmanFilter",
    "JacobianLinearizer",
    "compute_jacobian",
    "predict_radar_measurement",
    "normalize_angle",
    "FusionEKF",
    "FilterOutput",
    "LoggingObserver",
    "process_noise"
]
