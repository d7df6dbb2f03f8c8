import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from fusion_ekf.fusion import KalmanFilter, predict_radar_measurement, compute_jacobian, process_noise
from fusion_ekf.exceptions import SingularInnovationError, UninitializedFilterError


H_LASER = np.array([[1.0, 0.0, 0.0, 0.0],
                    [0.0, 1.0, 0.0, 0.0]])


def make_filter(x0=(0.0, 0.0, 0.0, 0.0), P0=None, dt=0.1, R0=None, Q0=None):
    """Build an initialized filter with a constant-velocity F"""
    kf = KalmanFilter()
    F = np.eye(4)
    F[0, 2] = dt
    F[1, 3] = dt
    kf.init(
        x0=np.array(x0, dtype=float),
        P0=np.eye(4) if P0 is None else P0,
        F0=F,
        H0=H_LASER,
        R0=np.eye(2) * 0.0225 if R0 is None else R0,
        Q0=np.zeros((4, 4)) if Q0 is None else Q0,
    )
    return kf


class TestKalmanFilterLifecycle:
    """Test initialization and use-before-init handling"""

    def test_new_filter_is_uninitialized(self):
        """Test a fresh filter reports itself uninitialized"""
        kf = KalmanFilter()
        assert not kf.is_initialized
        assert kf.x is None

    def test_predict_before_init_raises(self):
        """Test predict() before init() is a programming error"""
        with pytest.raises(UninitializedFilterError):
            KalmanFilter().predict()

    def test_updates_before_init_raise(self):
        """Test both update variants refuse to run before init()"""
        kf = KalmanFilter()
        with pytest.raises(UninitializedFilterError):
            kf.update_linear(np.array([1.0, 1.0]))
        with pytest.raises(UninitializedFilterError):
            kf.update_nonlinear(np.array([1.0, 0.0, 0.0]), lambda x: np.zeros(3), np.zeros((3, 4)))

    def test_init_copies_inputs(self):
        """Test init() stores copies, not references to caller arrays"""
        x0 = np.array([1.0, 2.0, 3.0, 4.0])
        P0 = np.eye(4)
        kf = make_filter(x0=x0, P0=P0)

        x0[0] = 100.0
        P0[0, 0] = 100.0

        np.testing.assert_allclose(kf.x, [1.0, 2.0, 3.0, 4.0])
        assert kf.P[0, 0] == 1.0
        assert kf.is_initialized

    def test_invalid_condition_limit_rejected(self):
        """Test the singularity threshold must exceed one"""
        with pytest.raises(ValueError):
            KalmanFilter(max_condition_number=0.5)


class TestPrediction:
    """Test the constant-velocity prediction step"""

    @pytest.mark.parametrize("dt", [0.0, 0.05, 1.0, 12.5])
    def test_zero_velocity_state_unchanged(self, dt):
        """Test prediction leaves a stationary state in place for any dt"""
        kf = make_filter(x0=(3.0, -2.0, 0.0, 0.0), dt=dt)
        kf.predict()
        np.testing.assert_allclose(kf.x, [3.0, -2.0, 0.0, 0.0])

    def test_position_integrates_velocity(self):
        """Test x ← F·x moves position by velocity·dt"""
        kf = make_filter(x0=(1.0, 2.0, 3.0, 4.0), dt=0.5)
        kf.predict()
        np.testing.assert_allclose(kf.x, [2.5, 4.0, 3.0, 4.0])

    def test_covariance_propagation(self):
        """Test P ← F·P·Fᵀ + Q"""
        Q = process_noise(0.1, 9.0, 9.0)
        P0 = np.diag([1.0, 1.0, 1000.0, 1000.0])
        kf = make_filter(P0=P0, dt=0.1, Q0=Q)
        F = kf.F.copy()

        kf.predict()

        np.testing.assert_allclose(kf.P, F @ P0 @ F.T + Q)
        np.testing.assert_allclose(kf.P, kf.P.T)

    def test_set_transition(self):
        """Test set_transition writes dt into both coupling terms"""
        kf = make_filter(dt=0.1)
        kf.set_transition(0.25)
        assert kf.F[0, 2] == 0.25
        assert kf.F[1, 3] == 0.25
        np.testing.assert_allclose(np.diag(kf.F), np.ones(4))


class TestLinearUpdate:
    """Test the laser (linear) update"""

    def test_known_posterior(self):
        """Test update against a hand-computed posterior"""
        kf = make_filter(R0=np.eye(2))
        kf.update_linear(np.array([2.0, 2.0]))

        # S = 2I, K = [[0.5, 0], [0, 0.5], [0, 0], [0, 0]]
        np.testing.assert_allclose(kf.x, [1.0, 1.0, 0.0, 0.0])
        np.testing.assert_allclose(np.diag(kf.P), [0.5, 0.5, 1.0, 1.0])

    def test_trace_reduced(self):
        """Test the posterior trace is below the prior trace"""
        P0 = np.diag([1.0, 1.0, 1000.0, 1000.0])
        kf = make_filter(P0=P0, Q0=process_noise(0.1, 9.0, 9.0))
        kf.predict()
        prior_trace = np.trace(kf.P)

        kf.update_linear(np.array([0.3, -0.1]))

        assert np.trace(kf.P) < prior_trace

    def test_covariance_stays_symmetric_psd(self):
        """Test repeated updates keep P symmetric and positive semi-definite"""
        rng = np.random.default_rng(7)
        kf = make_filter(P0=np.diag([1.0, 1.0, 1000.0, 1000.0]), Q0=process_noise(0.05, 9.0, 9.0), dt=0.05)

        for _ in range(200):
            kf.predict()
            kf.update_linear(rng.normal(0.0, 0.15, 2))

        np.testing.assert_allclose(kf.P, kf.P.T, atol=1e-12)
        assert np.min(np.linalg.eigvalsh(kf.P)) >= -1e-12

    def test_innovation_retained(self):
        """Test the last innovation and its covariance are kept for diagnostics"""
        kf = make_filter(R0=np.eye(2))
        kf.update_linear(np.array([2.0, -1.0]))

        np.testing.assert_allclose(kf.last_innovation, [2.0, -1.0])
        np.testing.assert_allclose(kf.last_innovation_covariance, np.eye(2) * 2.0)

    def test_singular_innovation_covariance_raises(self):
        """Test a singular S fails loudly and leaves the state untouched"""
        kf = make_filter(x0=(1.0, 1.0, 0.0, 0.0), P0=np.zeros((4, 4)), R0=np.zeros((2, 2)))

        with pytest.raises(SingularInnovationError):
            kf.update_linear(np.array([2.0, 2.0]))

        np.testing.assert_allclose(kf.x, [1.0, 1.0, 0.0, 0.0])
        np.testing.assert_allclose(kf.P, np.zeros((4, 4)))

    def test_non_finite_innovation_covariance_raises(self):
        """Test NaN in S is reported instead of propagated"""
        kf = make_filter(R0=np.array([[np.nan, 0.0], [0.0, 1.0]]))
        with pytest.raises(SingularInnovationError):
            kf.update_linear(np.array([1.0, 1.0]))
        assert np.all(np.isfinite(kf.x))


class TestNonlinearUpdate:
    """Test the radar (linearized) update"""

    def test_matches_linear_update_for_linear_model(self):
        """Test update_nonlinear with h(x) = H·x reproduces update_linear"""
        H = np.array([[1.0, 0.0, 0.0, 0.0],
                      [0.0, 1.0, 0.0, 0.0],
                      [0.0, 0.0, 1.0, 0.0]])
        R = np.eye(3) * 0.1
        z = np.array([0.4, 0.2, -0.3])

        linear = make_filter(x0=(0.1, 0.1, 0.0, 0.0))
        linear.H = H
        linear.R = R
        linear.update_linear(z)

        nonlinear = make_filter(x0=(0.1, 0.1, 0.0, 0.0))
        nonlinear.R = R
        nonlinear.update_nonlinear(z, lambda x: H @ x, H)

        np.testing.assert_allclose(nonlinear.x, linear.x)
        np.testing.assert_allclose(nonlinear.P, linear.P)

    def test_bearing_innovation_wrapped(self):
        """Test a bearing residual across ±π is wrapped before correction"""
        # Object just above the negative x axis, measured just below it
        x0 = np.array([-5.0, 0.01, 0.0, 0.0])
        kf = make_filter(x0=x0, R0=np.diag([0.09, 0.0009, 0.09]))

        z = np.array([5.0, -np.pi + 0.002, 0.0])
        Hj = compute_jacobian(kf.x)
        kf.update_nonlinear(z, predict_radar_measurement, Hj)

        # Unwrapped, the ~2π residual would throw py tens of meters away
        assert abs(kf.x[0] + 5.0) < 0.1
        assert abs(kf.x[1]) < 0.1
        assert -np.pi < kf.last_innovation[1] <= np.pi
        assert abs(kf.last_innovation[1]) < 0.01

    def test_radar_update_pulls_toward_measurement(self):
        """Test a radar reading at larger range increases the estimated range"""
        kf = make_filter(x0=(3.0, 4.0, 0.0, 0.0), R0=np.diag([0.09, 0.0009, 0.09]))
        z = np.array([6.0, np.arctan2(4.0, 3.0), 0.0])

        kf.update_nonlinear(z, predict_radar_measurement, compute_jacobian(kf.x))

        assert np.hypot(kf.x[0], kf.x[1]) > 5.0
