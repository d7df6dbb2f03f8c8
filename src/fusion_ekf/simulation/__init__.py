"""
Simulation components for laser/radar fusion.

Generates synthetic measurement streams with exact ground truth for testing
and demonstrating the filter.
"""

from .generator import MeasurementSimulator, TrajectoryParameters

__all__ = [
    "MeasurementSimulator",
    "TrajectoryParameters"
]
