"""
Exception hierarchy for the laser/radar fusion filter.

Recoverable conditions (DegenerateStateError) are handled by the fusion
orchestrator, while programming errors (UninitializedFilterError) and
numerical faults (SingularInnovationError) propagate to the caller.
"""


class FusionError(Exception):
    """Base class for all filter errors."""


class DegenerateStateError(FusionError):
    """Raised when the radar model is evaluated too close to the sensor origin."""

    def __init__(self, radius_squared: float, threshold: float):
        self.radius_squared = radius_squared
        self.threshold = threshold
        super().__init__(
            f"Degenerate state: px^2 + py^2 = {radius_squared:.3e} below threshold {threshold:.1e}"
        )


class UninitializedFilterError(FusionError):
    """Raised when predict/update is called before the filter has been initialized."""


class SingularInnovationError(FusionError):
    """Raised when the innovation covariance S cannot be inverted."""

    def __init__(self, message: str, condition_number: float = float('inf')):
        self.condition_number = condition_number
        super().__init__(message)


class MeasurementFormatError(FusionError, ValueError):
    """Raised when a measurement record cannot be parsed."""

    def __init__(self, message: str, line_number: int = 0):
        self.line_number = line_number
        if line_number:
            message = f"line {line_number}: {message}"
        super().__init__(message)
