"""
Visualization components for laser/radar fusion.

This module provides trajectory and estimation-error plots.
"""

from .plotter import plot_trajectory, plot_errors, confidence_ellipse

__all__ = [
    "plot_trajectory",
    "plot_errors",
    "confidence_ellipse"
]
