"""
Laser/radar fusion orchestration.

FusionEKF drives one KalmanFilter from an ordered stream of measurement
packages. It is a two-state machine:

    Uninitialized ──(first usable sample)──▶ Tracking

Seeding converts the first sample into a position (radar polar readings via
px = ρ·cos φ, py = ρ·sin φ) with zero velocity. Every later sample advances
the constant-velocity model by the elapsed time and applies the sensor
specific update:

    dt = (t_k - t_{k-1}) / 10⁶                           [s]

    F = [1 0 dt 0 ]      Q = [dt⁴/4·σ²ax  0           dt³/2·σ²ax  0          ]
        [0 1 0  dt]          [0           dt⁴/4·σ²ay  0           dt³/2·σ²ay ]
        [0 0 1  0 ]          [dt³/2·σ²ax  0           dt²·σ²ax    0          ]
        [0 0 0  1 ]          [0           dt³/2·σ²ay  0           dt²·σ²ay   ]

F and Q are rebuilt only when dt exceeds min_dt; shorter intervals predict
with the matrices left by the previous refresh.

    LASER: linear update with the fixed H_laser, R_laser
    RADAR: linearized update with Hj(x̂) and R_radar

Posterior estimates are handed to registered observers after each tracked
sample; the filter itself performs no formatting or printing.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .jacobian import JacobianLinearizer
from .kalman import KalmanFilter, STATE_SIZE
from ..config import FusionConfig
from ..evaluation.metrics import nis
from ..exceptions import DegenerateStateError, UninitializedFilterError
from ..sensors.measurement import MeasurementPackage, SensorType

logger = logging.getLogger(__name__)

# Laser measures px and py directly
H_LASER = np.array([
    [1.0, 0.0, 0.0, 0.0],
    [0.0, 1.0, 0.0, 0.0],
])

MICROSECONDS_PER_SECOND = 1e6


@dataclass
class FilterOutput:
    """
    Posterior estimate emitted after a tracked sample.

    Attributes:
        timestamp: Measurement timestamp in microseconds
        sensor_type: Sensor that produced the measurement
        state: Posterior state [px, py, vx, vy]
        covariance: Posterior 4x4 covariance
        nis: Normalized innovation squared of the update (None if skipped)
        innovation_dimension: Size of the update innovation, the NIS degrees of freedom
        update_skipped: True when only the prediction was applied
    """
    timestamp: int
    sensor_type: SensorType
    state: np.ndarray
    covariance: np.ndarray
    nis: Optional[float] = None
    innovation_dimension: Optional[int] = None
    update_skipped: bool = False


Observer = Callable[[MeasurementPackage, FilterOutput], None]


class LoggingObserver:
    """Observer that logs each posterior estimate."""

    def __init__(self, level: int = logging.DEBUG, log: Optional[logging.Logger] = None):
        self.level = level
        self.log = log or logger

    def __call__(self, measurement: MeasurementPackage, output: FilterOutput) -> None:
        self.log.log(self.level, f"[{output.timestamp}] {output.sensor_type.name} x_ = {output.state}")
        self.log.log(self.level, f"P_ =\n{output.covariance}")


class FusionEKF:
    """
    Extended Kalman Filter fusing laser and radar measurements of one object.

    Each instance is an independent context: it owns its filter, its sensor
    matrices and its timestamp bookkeeping, so several objects can be
    tracked side by side with separate instances.

    Attributes:
        config: Sensor and filter configuration
        ekf: Underlying KalmanFilter
        linearizer: Radar measurement model and Jacobian
    """

    def __init__(self, config: Optional[FusionConfig] = None,
                 observers: Optional[List[Observer]] = None):
        """
        Create an uninitialized fusion filter.

        Args:
            config: Sensor configuration; defaults to FusionConfig()
            observers: Callables invoked with (measurement, output) after
                every tracked sample
        """
        self.config = config or FusionConfig()
        self.ekf = KalmanFilter()
        self.linearizer = JacobianLinearizer(
            threshold=self.config.degenerate_threshold,
            with_range_rate=self.config.use_range_rate,
        )

        self.H_laser = H_LASER.copy()
        self.R_laser = self.config.laser_noise.copy()
        self.R_radar = self.config.radar_noise.copy()

        self._observers: List[Observer] = list(observers or [])
        self._is_initialized = False
        self._previous_timestamp = 0

        self._processed_count = 0
        self._skipped_updates = 0

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    @property
    def previous_timestamp(self) -> int:
        return self._previous_timestamp

    @property
    def state(self) -> np.ndarray:
        self._require_tracking()
        return self.ekf.x.copy()

    @property
    def covariance(self) -> np.ndarray:
        self._require_tracking()
        return self.ekf.P.copy()

    @property
    def filter(self) -> KalmanFilter:
        """Underlying KalmanFilter, for inspection of F, Q, H and R."""
        return self.ekf

    @property
    def skipped_updates(self) -> int:
        return self._skipped_updates

    def _require_tracking(self) -> None:
        if not self._is_initialized:
            raise UninitializedFilterError("No estimate available before the first accepted measurement")

    def add_observer(self, observer: Observer) -> None:
        self._observers.append(observer)

    def process_measurement(self, measurement: MeasurementPackage) -> Optional[FilterOutput]:
        """
        Consume one measurement package.

        Args:
            measurement: Next measurement in timestamp order

        Returns:
            Posterior estimate for tracked samples, None while seeding

        Raises:
            SingularInnovationError: If the update's innovation covariance
                cannot be inverted
        """
        if not self._is_initialized:
            self._initialize(measurement)
            return None

        dt = (measurement.timestamp - self._previous_timestamp) / MICROSECONDS_PER_SECOND
        self._previous_timestamp = measurement.timestamp

        self._refresh_process_model(dt)
        self.ekf.predict()

        nis_value = None
        innovation_dimension = None
        update_skipped = False
        if measurement.sensor_type is SensorType.RADAR:
            try:
                self._update_radar(measurement)
            except DegenerateStateError as err:
                update_skipped = True
                self._skipped_updates += 1
                logger.warning(f"Radar update skipped at t={measurement.timestamp}: {err}")
        else:
            self._update_laser(measurement)

        if not update_skipped:
            nis_value = self._current_nis()
            innovation_dimension = len(self.ekf.last_innovation)

        self._processed_count += 1
        output = FilterOutput(
            timestamp=measurement.timestamp,
            sensor_type=measurement.sensor_type,
            state=self.ekf.x.copy(),
            covariance=self.ekf.P.copy(),
            nis=nis_value,
            innovation_dimension=innovation_dimension,
            update_skipped=update_skipped,
        )
        for observer in self._observers:
            observer(measurement, output)
        return output

    def _initialize(self, measurement: MeasurementPackage) -> None:
        """Seed the state from the first usable measurement."""
        px, py = measurement.to_cartesian()
        eps = self.config.init_epsilon
        if abs(px) < eps and abs(py) < eps:
            logger.warning(
                f"Seeding sample at t={measurement.timestamp} rejected: position ({px:.2e}, {py:.2e}) too close to origin"
            )
            return

        self.ekf.init(
            x0=np.array([px, py, 0.0, 0.0]),
            P0=self.config.initial_covariance,
            F0=np.eye(STATE_SIZE),
            H0=self.H_laser,
            R0=self.R_laser,
            Q0=np.zeros((STATE_SIZE, STATE_SIZE)),
        )
        self._previous_timestamp = measurement.timestamp
        self._is_initialized = True
        logger.info(f"EKF initialized from {measurement.sensor_type.name} at t={measurement.timestamp}: "
                    f"px={px:.4f}, py={py:.4f}")

    def _refresh_process_model(self, dt: float) -> None:
        """Write dt into F and rebuild Q; intervals at or below min_dt keep the previous F and Q."""
        if dt <= self.config.min_dt:
            logger.debug(f"Elapsed time {dt:.2e}s below threshold, keeping previous process model")
            return

        self.ekf.set_transition(dt)
        self.ekf.Q = process_noise(dt, self.config.noise_ax, self.config.noise_ay)

    def _update_laser(self, measurement: MeasurementPackage) -> None:
        self.ekf.H = self.H_laser
        self.ekf.R = self.R_laser
        self.ekf.update_linear(measurement.raw_measurements)

    def _update_radar(self, measurement: MeasurementPackage) -> None:
        with_range_rate = measurement.has_range_rate and self.config.use_range_rate
        z = measurement.raw_measurements if with_range_rate else measurement.raw_measurements[:2]
        size = len(z)

        # Raises DegenerateStateError before H and R are touched
        Hj = self.linearizer.compute(self.ekf.x, with_range_rate)

        self.ekf.H = Hj
        self.ekf.R = self.R_radar[:size, :size]
        self.ekf.update_nonlinear(
            z,
            lambda x: self.linearizer.predict_measurement(x, with_range_rate),
            Hj,
        )

    def _current_nis(self) -> Optional[float]:
        y = self.ekf.last_innovation
        S = self.ekf.last_innovation_covariance
        if y is None or S is None:
            return None
        return nis(y, S)

    def get_statistics(self) -> Dict[str, Any]:
        return {
            'initialized': self._is_initialized,
            'processed_count': self._processed_count,
            'skipped_updates': self._skipped_updates,
            'previous_timestamp': self._previous_timestamp,
        }


def process_noise(dt: float, noise_ax: float, noise_ay: float) -> np.ndarray:
    """
    Discretized process noise for a constant-velocity model driven by
    white acceleration noise.

    Args:
        dt: Elapsed time in seconds
        noise_ax: Acceleration noise variance along x
        noise_ay: Acceleration noise variance along y

    Returns:
        4x4 process noise covariance Q
    """
    dt2 = dt * dt
    dt3 = dt2 * dt
    dt4 = dt3 * dt

    return np.array([
        [dt4 / 4 * noise_ax, 0.0, dt3 / 2 * noise_ax, 0.0],
        [0.0, dt4 / 4 * noise_ay, 0.0, dt3 / 2 * noise_ay],
        [dt3 / 2 * noise_ax, 0.0, dt2 * noise_ax, 0.0],
        [0.0, dt3 / 2 * noise_ay, 0.0, dt2 * noise_ay],
    ])
