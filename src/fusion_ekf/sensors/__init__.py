"""
Sensor data for laser/radar fusion.

This module contains the measurement containers for both sensor types and
readers/writers for recorded measurement files.
"""

from .measurement import SensorType, MeasurementPackage, GroundTruthPackage
from .reader import parse_line, iter_measurements, read_measurements, format_row, write_estimations

__all__ = [
    "SensorType",
    "MeasurementPackage",
    "GroundTruthPackage",
    "parse_line",
    "iter_measurements",
    "read_measurements",
    "format_row",
    "write_estimations"
]
