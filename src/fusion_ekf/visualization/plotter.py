"""
Trajectory and error plots for fusion runs.

Functions:
    plot_trajectory: Estimated path against ground truth and raw measurements,
        with optional position confidence ellipses
    plot_errors: Per-component estimation error over time

Figures are returned to the caller; when a path is given the figure is
saved and closed.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import matplotlib.pyplot as plt
import numpy as np
import scipy.stats
from matplotlib.patches import Ellipse

logger = logging.getLogger(__name__)

COMPONENT_LABELS = ('px (m)', 'py (m)', 'vx (m/s)', 'vy (m/s)')


def _finish(figure, path: Optional[Union[str, Path]]):
    if path is not None:
        figure.savefig(path, dpi=100, bbox_inches='tight')
        plt.close(figure)
        logger.info(f"Saved figure to {path}")
    return figure


def confidence_ellipse(center: np.ndarray, covariance: np.ndarray,
                       confidence_level: float = 0.95, **kwargs) -> Ellipse:
    """
    Ellipse containing `confidence_level` of a 2D Gaussian position estimate.

    Args:
        center: Ellipse centre [x, y]
        covariance: 2x2 position covariance (larger matrices are cropped)
        confidence_level: Probability mass inside the ellipse
    """
    cov_2d = np.asarray(covariance)[:2, :2]
    eigenvals, eigenvecs = np.linalg.eigh(cov_2d)
    eigenvals = np.maximum(eigenvals, 0.0)

    chi2_val = scipy.stats.chi2.ppf(confidence_level, df=2)
    width = 2 * np.sqrt(eigenvals[1] * chi2_val)
    height = 2 * np.sqrt(eigenvals[0] * chi2_val)
    angle = np.degrees(np.arctan2(eigenvecs[1, 1], eigenvecs[0, 1]))

    kwargs.setdefault('facecolor', 'red')
    kwargs.setdefault('alpha', 0.15)
    return Ellipse((center[0], center[1]), width, height, angle=angle, **kwargs)


def plot_trajectory(estimates: Sequence[np.ndarray],
                    ground_truth: Optional[Sequence[np.ndarray]] = None,
                    measurements: Optional[Sequence[np.ndarray]] = None,
                    covariances: Optional[Sequence[np.ndarray]] = None,
                    path: Optional[Union[str, Path]] = None,
                    ellipse_every: int = 10):
    """
    Plot the estimated XY path.

    Args:
        estimates: State vectors [px, py, vx, vy]
        ground_truth: Optional true state vectors
        measurements: Optional raw Cartesian positions [px, py]
        covariances: Optional 4x4 covariances aligned with estimates
        path: Save the figure here and close it
        ellipse_every: Draw a confidence ellipse every N estimates

    Returns:
        matplotlib Figure
    """
    estimated = np.asarray(estimates, dtype=float).reshape(-1, 4)
    figure, ax = plt.subplots(figsize=(8, 8))

    if measurements is not None and len(measurements) > 0:
        measured = np.asarray(measurements, dtype=float).reshape(-1, 2)
        ax.scatter(measured[:, 0], measured[:, 1], s=6, color='gray', alpha=0.5, label='Measurements')

    if ground_truth is not None and len(ground_truth) > 0:
        truth = np.asarray(ground_truth, dtype=float).reshape(-1, 4)
        ax.plot(truth[:, 0], truth[:, 1], color='green', linewidth=2, label='Ground truth')

    ax.plot(estimated[:, 0], estimated[:, 1], color='blue', linewidth=1.5, label='EKF estimate')

    if covariances is not None and ellipse_every > 0:
        for i in range(0, min(len(covariances), len(estimated)), ellipse_every):
            ax.add_patch(confidence_ellipse(estimated[i, :2], covariances[i]))

    ax.set_xlabel('X Position (m)')
    ax.set_ylabel('Y Position (m)')
    ax.set_title('Laser/Radar Fusion Trajectory')
    ax.grid(True, alpha=0.3)
    ax.legend()
    ax.set_aspect('equal', adjustable='datalim')

    return _finish(figure, path)


def plot_errors(estimates: Sequence[np.ndarray], ground_truth: Sequence[np.ndarray],
                timestamps: Optional[Sequence[int]] = None,
                path: Optional[Union[str, Path]] = None):
    """
    Plot estimate minus ground truth for each state component.

    Raises:
        ValueError: If estimates and ground truth differ in length
    """
    estimated = np.asarray(estimates, dtype=float).reshape(-1, 4)
    truth = np.asarray(ground_truth, dtype=float).reshape(-1, 4)
    if len(estimated) != len(truth):
        raise ValueError(f"Length mismatch: {len(estimated)} estimates, {len(truth)} ground truth")

    if timestamps is None:
        t = np.arange(len(estimated))
        x_label = 'Sample'
    else:
        stamps = np.asarray(timestamps, dtype=float)
        t = (stamps - stamps[0]) / 1e6 if len(stamps) else stamps
        x_label = 'Time (s)'

    errors = estimated - truth
    figure, axes = plt.subplots(2, 2, figsize=(12, 8), sharex=True)
    for index, ax in enumerate(axes.flat):
        ax.plot(t, errors[:, index], linewidth=1)
        ax.axhline(0.0, color='black', linewidth=0.5)
        ax.set_ylabel(COMPONENT_LABELS[index])
        ax.grid(True, alpha=0.3)
    for ax in axes[1]:
        ax.set_xlabel(x_label)
    figure.suptitle('Estimation Error')

    return _finish(figure, path)
