"""
Accuracy and consistency metrics for fusion runs.

Accuracy:
    Root-mean-square error per state component over N estimates:

        RMSE_j = √( (1/N) Σ_k (x̂_k,j - x_k,j)² )

Consistency:
    The normalized innovation squared of each update,

        ε = yᵀ S⁻¹ y,

    follows a χ² distribution with dim(z) degrees of freedom when the
    filter's noise models match the data. The share of samples above the
    χ² quantile should be close to 1 - confidence.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

import numpy as np
import scipy.stats

from ..sensors.measurement import GroundTruthPackage, SensorType

logger = logging.getLogger(__name__)

# Measurement dimension per sensor, the χ² degrees of freedom
MEASUREMENT_DIMENSIONS = {
    SensorType.LASER: 2,
    SensorType.RADAR: 3,
}


def calculate_rmse(estimations: Sequence[np.ndarray], ground_truth: Sequence[np.ndarray]) -> np.ndarray:
    """
    Per-component RMSE between estimates and ground truth.

    Args:
        estimations: Sequence of state vectors
        ground_truth: Sequence of true state vectors of the same shape

    Returns:
        RMSE vector [px, py, vx, vy]

    Raises:
        ValueError: If the inputs are empty or of different sizes
    """
    if len(estimations) == 0 or len(estimations) != len(ground_truth):
        raise ValueError(
            f"Invalid estimation or ground truth data: {len(estimations)} estimates, "
            f"{len(ground_truth)} ground truth values"
        )

    estimated = np.asarray(estimations, dtype=float)
    truth = np.asarray(ground_truth, dtype=float)
    if estimated.shape != truth.shape:
        raise ValueError(f"Shape mismatch: {estimated.shape} vs {truth.shape}")

    return np.sqrt(np.mean((estimated - truth) ** 2, axis=0))


class AccuracyAccumulator:
    """Collects estimate/ground-truth pairs over a run and reports RMSE."""

    def __init__(self):
        self.estimations: List[np.ndarray] = []
        self.ground_truth: List[np.ndarray] = []

    @property
    def count(self) -> int:
        return len(self.estimations)

    def add(self, estimate: np.ndarray, truth: np.ndarray) -> None:
        self.estimations.append(np.asarray(estimate, dtype=float).copy())
        self.ground_truth.append(np.asarray(truth, dtype=float).copy())

    def observe(self, output, truth: Optional[GroundTruthPackage]) -> None:
        """Record a FilterOutput when ground truth is available."""
        if output is None or truth is None:
            return
        self.add(output.state, truth.values)

    def rmse(self) -> np.ndarray:
        return calculate_rmse(self.estimations, self.ground_truth)

    def reset(self) -> None:
        self.estimations.clear()
        self.ground_truth.clear()


def nis(innovation: np.ndarray, innovation_covariance: np.ndarray) -> float:
    """Normalized innovation squared yᵀ S⁻¹ y."""
    y = np.asarray(innovation, dtype=float)
    return float(y @ np.linalg.solve(innovation_covariance, y))


def chi2_threshold(degrees_of_freedom: int, confidence: float = 0.95) -> float:
    """χ² quantile used as the NIS consistency bound."""
    if not 0.0 < confidence < 1.0:
        raise ValueError(f"Confidence must be in (0, 1), got {confidence}")
    return float(scipy.stats.chi2.ppf(confidence, degrees_of_freedom))


class NISMonitor:
    """
    Tracks NIS values per sensor type.

    Each value is kept with the dimension of the innovation it came from, so
    radar updates with and without range-rate are judged against χ²(3) and
    χ²(2) respectively.

    Attributes:
        values: Mapping of sensor type to the NIS values recorded for it
        dimensions: Mapping of sensor type to the innovation dimension of each value
    """

    def __init__(self):
        self.values: Dict[SensorType, List[float]] = defaultdict(list)
        self.dimensions: Dict[SensorType, List[int]] = defaultdict(list)

    def observe(self, output) -> None:
        if output is None or output.nis is None:
            return
        dimension = output.innovation_dimension or MEASUREMENT_DIMENSIONS[output.sensor_type]
        self.values[output.sensor_type].append(output.nis)
        self.dimensions[output.sensor_type].append(dimension)

    def fraction_above(self, sensor_type: SensorType, confidence: float = 0.95,
                       degrees_of_freedom: Optional[int] = None) -> float:
        """
        Share of recorded NIS values above the χ² bound.

        Args:
            sensor_type: Sensor whose updates to evaluate
            confidence: Confidence level of the bound
            degrees_of_freedom: Overrides the recorded innovation dimensions

        Returns:
            Fraction in [0, 1]; 0.0 when nothing was recorded
        """
        recorded = self.values.get(sensor_type, [])
        if not recorded:
            return 0.0
        if degrees_of_freedom is not None:
            dofs = [degrees_of_freedom] * len(recorded)
        else:
            dofs = self.dimensions[sensor_type]
        thresholds = np.array([chi2_threshold(dof, confidence) for dof in dofs])
        return float(np.mean(np.asarray(recorded) > thresholds))

    def summary(self, confidence: float = 0.95) -> Dict[str, Dict[str, float]]:
        report = {}
        for sensor_type, recorded in self.values.items():
            report[sensor_type.name] = {
                'count': len(recorded),
                'mean': float(np.mean(recorded)),
                'fraction_above': self.fraction_above(sensor_type, confidence),
            }
        return report
