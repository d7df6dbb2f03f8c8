"""
Evaluation of fusion runs: RMSE accuracy and NIS consistency.
"""

from .metrics import AccuracyAccumulator, NISMonitor, calculate_rmse, chi2_threshold, nis

__all__ = [
    "AccuracyAccumulator",
    "NISMonitor",
    "calculate_rmse",
    "chi2_threshold",
    "nis"
]
