"""
Fusion EKF: Laser/Radar Object Tracking with an Extended Kalman Filter

A scientific Python package that estimates the position and velocity of a
moving object from an asynchronous stream of laser (Cartesian position) and
radar (range, bearing, range-rate) measurements.

This package implements:
- Kalman filter core with linear and linearized (EKF) updates
- Radar measurement model and Jacobian with degenerate-state guards
- Fusion orchestration with per-sample process model refresh
- Measurement file IO, RMSE and NIS evaluation
- Synthetic measurement simulation and trajectory plotting
"""

from .config import FusionConfig
from .exceptions import (
    FusionError,
    DegenerateStateError,
    UninitializedFilterError,
    SingularInnovationError,
    MeasurementFormatError,
)
from .fusion.kalman import KalmanFilter
from .fusion.jacobian import JacobianLinearizer
from .fusion.orchestrator import FusionEKF, FilterOutput
from .sensors.measurement import SensorType, MeasurementPackage, GroundTruthPackage
from .evaluation.metrics import AccuracyAccumulator, calculate_rmse
from .simulation.generator import MeasurementSimulator, TrajectoryParameters

# Optional visualization import (graceful failure if not available)
try:
    from .visualization.plotter import plot_trajectory
    _has_visualization = True
except ImportError:
    plot_trajectory = None
    _has_visualization = False

__version__ = "1.0.0"
__author__ = "Fusion EKF Team"

__all__ = [
    "FusionConfig",
    "FusionError",
    "DegenerateStateError",
    "UninitializedFilterError",
    "SingularInnovationError",
    "MeasurementFormatError",
    "KalmanFilter",
    "JacobianLinearizer",
    "FusionEKF",
    "FilterOutput",
    "SensorType",
    "MeasurementPackage",
    "GroundTruthPackage",
    "AccuracyAccumulator",
    "calculate_rmse",
    "MeasurementSimulator",
    "TrajectoryParameters"
]

# Add visualization to __all__ only if available
if _has_visualization:
    __all__.append("plot_trajectory")
