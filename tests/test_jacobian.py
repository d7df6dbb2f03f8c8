import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from fusion_ekf.fusion import (
    JacobianLinearizer,
    compute_jacobian,
    predict_radar_measurement,
    normalize_angle,
)
from fusion_ekf.exceptions import DegenerateStateError


def numerical_jacobian(x, with_range_rate=True, eps=1e-6):
    """Central-difference Jacobian of the radar measurement function"""
    rows = 3 if with_range_rate else 2
    J = np.zeros((rows, 4))
    for j in range(4):
        step = np.zeros(4)
        step[j] = eps
        plus = predict_radar_measurement(x + step, with_range_rate)
        minus = predict_radar_measurement(x - step, with_range_rate)
        J[:, j] = (plus - minus) / (2 * eps)
    return J


class TestComputeJacobian:
    """Test the radar measurement Jacobian"""

    def test_golden_value_on_x_axis(self):
        """Test the closed-form Jacobian at (1, 0, 0, 0)"""
        Hj = compute_jacobian(np.array([1.0, 0.0, 0.0, 0.0]))
        expected = np.array([[1.0, 0.0, 0.0, 0.0],
                             [0.0, 1.0, 0.0, 0.0],
                             [0.0, 0.0, 1.0, 0.0]])
        np.testing.assert_allclose(Hj, expected, atol=1e-12)

    def test_known_value(self):
        """Test the Jacobian at a 3-4-5 position with nonzero velocity"""
        Hj = compute_jacobian(np.array([3.0, 4.0, 1.0, 2.0]))
        expected = np.array([[0.6, 0.8, 0.0, 0.0],
                             [-0.16, 0.12, 0.0, 0.0],
                             [-0.064, 0.048, 0.6, 0.8]])
        np.testing.assert_allclose(Hj, expected, atol=1e-12)

    @pytest.mark.parametrize("x", [
        [3.0, 4.0, 1.0, 2.0],
        [-2.0, 0.5, -1.0, 3.0],
        [0.3, -7.0, 5.0, 0.0],
    ])
    def test_matches_finite_differences(self, x):
        """Test the analytic Jacobian against central differences"""
        x = np.array(x)
        np.testing.assert_allclose(compute_jacobian(x), numerical_jacobian(x), atol=1e-6)

    def test_two_row_variant(self):
        """Test the range/bearing-only Jacobian drops the range-rate row"""
        x = np.array([3.0, 4.0, 1.0, 2.0])
        Hj = compute_jacobian(x, with_range_rate=False)
        assert Hj.shape == (2, 4)
        np.testing.assert_allclose(Hj, compute_jacobian(x)[:2])

    @pytest.mark.parametrize("vx, vy", [(0.0, 0.0), (1.0, -1.0), (100.0, 3.0)])
    def test_origin_is_degenerate(self, vx, vy):
        """Test evaluation at the sensor origin fails instead of returning NaN/Inf"""
        with pytest.raises(DegenerateStateError):
            compute_jacobian(np.array([0.0, 0.0, vx, vy]))

    def test_near_origin_is_degenerate(self):
        """Test positions inside the threshold radius are rejected"""
        with pytest.raises(DegenerateStateError) as excinfo:
            compute_jacobian(np.array([0.005, 0.005, 1.0, 1.0]))
        assert excinfo.value.radius_squared < excinfo.value.threshold

    def test_just_outside_threshold_is_finite(self):
        """Test the Jacobian is finite just outside the threshold"""
        Hj = compute_jacobian(np.array([0.011, 0.0, 1.0, 1.0]))
        assert np.all(np.isfinite(Hj))


class TestPredictRadarMeasurement:
    """Test the Cartesian to polar forward mapping"""

    def test_known_value(self):
        """Test range, bearing and range-rate at a known state"""
        z = predict_radar_measurement(np.array([3.0, 4.0, 1.0, 2.0]))
        np.testing.assert_allclose(z, [5.0, np.arctan2(4.0, 3.0), 2.2])

    def test_bearing_quadrants(self):
        """Test bearing uses atan2 and covers all quadrants"""
        assert predict_radar_measurement(np.array([-1.0, 0.0, 0.0, 0.0]))[1] == pytest.approx(np.pi)
        assert predict_radar_measurement(np.array([0.0, -2.0, 0.0, 0.0]))[1] == pytest.approx(-np.pi / 2)

    def test_two_element_output(self):
        """Test range-rate can be omitted"""
        z = predict_radar_measurement(np.array([3.0, 4.0, 1.0, 2.0]), with_range_rate=False)
        np.testing.assert_allclose(z, [5.0, np.arctan2(4.0, 3.0)])

    def test_origin_is_degenerate(self):
        """Test the forward mapping shares the degeneracy guard"""
        with pytest.raises(DegenerateStateError):
            predict_radar_measurement(np.array([0.0, 0.0, 1.0, 1.0]))


class TestNormalizeAngle:
    """Test wrapping of angles into (-π, π]"""

    @pytest.mark.parametrize("angle, expected", [
        (0.0, 0.0),
        (np.pi / 2, np.pi / 2),
        (3 * np.pi / 2, -np.pi / 2),
        (-3 * np.pi / 2, np.pi / 2),
        (2 * np.pi + 0.1, 0.1),
        (-2 * np.pi - 0.1, -0.1),
        (np.pi, np.pi),
    ])
    def test_wrapping(self, angle, expected):
        """Test angles map to their canonical representative"""
        assert normalize_angle(angle) == pytest.approx(expected, abs=1e-12)

    def test_negative_pi_maps_to_pi(self):
        """Test the interval is closed at +π and open at -π"""
        assert normalize_angle(-np.pi) == pytest.approx(np.pi)

    def test_range(self):
        """Test many angles land inside (-π, π]"""
        for angle in np.linspace(-20.0, 20.0, 401):
            wrapped = normalize_angle(angle)
            assert -np.pi < wrapped <= np.pi
            assert np.cos(wrapped) == pytest.approx(np.cos(angle), abs=1e-9)


class TestJacobianLinearizer:
    """Test the configured linearizer"""

    def test_defaults_follow_module_functions(self):
        """Test compute/predict_measurement match the module functions"""
        linearizer = JacobianLinearizer()
        x = np.array([3.0, 4.0, 1.0, 2.0])
        np.testing.assert_allclose(linearizer.compute(x), compute_jacobian(x))
        np.testing.assert_allclose(linearizer.predict_measurement(x), predict_radar_measurement(x))

    def test_range_rate_flag(self):
        """Test the configured dimension and per-call override"""
        linearizer = JacobianLinearizer(with_range_rate=False)
        x = np.array([3.0, 4.0, 1.0, 2.0])
        assert linearizer.compute(x).shape == (2, 4)
        assert linearizer.compute(x, with_range_rate=True).shape == (3, 4)

    def test_custom_threshold(self):
        """Test a larger threshold widens the degenerate region"""
        linearizer = JacobianLinearizer(threshold=1.0)
        with pytest.raises(DegenerateStateError):
            linearizer.compute(np.array([0.5, 0.5, 0.0, 0.0]))

    def test_invalid_threshold(self):
        """Test the threshold must be positive"""
        with pytest.raises(ValueError):
            JacobianLinearizer(threshold=0.0)
