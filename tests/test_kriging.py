"""
Tests for variograms and the kriging interpolators.
"""

import numpy as np
import pytest

from gridforge.core.validation import ValidationError
from gridforge.interpolation import (
    OrdinaryKrigingInterpolator,
    SimpleKrigingInterpolator,
    UniversalKrigingInterpolator,
    VariogramModel,
    VariogramParams,
    estimate_variogram_params,
    ordinary_kriging_weights,
    variogram,
)


PARAMS = VariogramParams(sill=4.0, range=10.0, nugget=0.5)


class TestVariogram:
    """Tests for the semivariogram models."""

    @pytest.mark.parametrize("model", list(VariogramModel))
    def test_zero_lag_is_zero(self, model):
        assert variogram(0.0, model, PARAMS) == 0.0

    @pytest.mark.parametrize("model", list(VariogramModel))
    def test_non_decreasing(self, model):
        h = np.linspace(0.01, 30, 200)
        gamma = variogram(h, model, PARAMS)
        assert np.all(np.diff(gamma) >= -1e-12)

    def test_spherical_reaches_sill_at_range(self):
        assert variogram(10.0, VariogramModel.SPHERICAL, PARAMS) == pytest.approx(4.5)
        assert variogram(25.0, VariogramModel.SPHERICAL, PARAMS) == pytest.approx(4.5)

    def test_exponential_practical_range(self):
        """About 95% of the sill is reached at the range."""
        gamma = variogram(10.0, VariogramModel.EXPONENTIAL, PARAMS)
        assert gamma == pytest.approx(0.5 + 4.0 * (1 - np.exp(-3)))

    def test_linear_plateau(self):
        assert variogram(5.0, VariogramModel.LINEAR, PARAMS) == pytest.approx(2.5)
        assert variogram(50.0, VariogramModel.LINEAR, PARAMS) == pytest.approx(4.5)

    def test_array_input_keeps_shape(self):
        gamma = variogram(np.zeros((3, 2)), VariogramModel.GAUSSIAN, PARAMS)
        assert gamma.shape == (3, 2)


class TestVariogramEstimation:
    """Tests for automatic sill, range and nugget."""

    def test_sill_is_variance(self, random_points):
        params = estimate_variogram_params(random_points)
        assert params.sill == pytest.approx(np.var(random_points[:, 2]))
        assert params.nugget == pytest.approx(params.sill * 0.01)
        assert params.range > 0

    def test_single_sample_defaults(self):
        params = estimate_variogram_params([[1.0, 2.0, 3.0]])
        assert params == VariogramParams(sill=0.01, range=1.0, nugget=1e-6)

    def test_coincident_samples(self):
        params = estimate_variogram_params([[1.0, 1.0, 2.0], [1.0, 1.0, 4.0]])
        assert params.range == 1.0
        assert params.sill == pytest.approx(1.0)

    def test_flat_data_has_floor_sill(self, random_points):
        flat = random_points.copy()
        flat[:, 2] = 7.0
        assert estimate_variogram_params(flat).sill == 0.01


class TestOrdinaryKrigingWeights:
    """Tests for the ordinary kriging system."""

    def test_weights_sum_to_one(self):
        neighbors = [(0.0, 0.0), (4.0, 0.0), (0.0, 4.0), (4.0, 4.0), (2.0, 5.0)]
        w = ordinary_kriging_weights(neighbors, (1.5, 2.0), VariogramModel.SPHERICAL, PARAMS)
        assert w is not None
        assert len(w) == 5
        assert w.sum() == pytest.approx(1.0)

    def test_symmetric_layout_gives_equal_weights(self):
        neighbors = [(0.0, 0.0), (2.0, 0.0), (2.0, 2.0), (0.0, 2.0)]
        w = ordinary_kriging_weights(neighbors, (1.0, 1.0), VariogramModel.EXPONENTIAL, PARAMS)
        np.testing.assert_allclose(w, 0.25, atol=1e-9)

    def test_no_neighbors(self):
        assert ordinary_kriging_weights(np.zeros((0, 2)), (0, 0), VariogramModel.LINEAR, PARAMS) is None


class TestKrigingInterpolators:
    """Tests for the three kriging variants."""

    def test_ordinary_between_sample_extremes(self, random_points):
        lattice = OrdinaryKrigingInterpolator().interpolate(
            random_points, [30.0, 50.0, 70.0], [30.0, 50.0, 70.0]
        )
        assert np.isfinite(lattice.values).all()
        assert lattice.value_at(1, 1) == pytest.approx(2 * 50 + 0.5 * 50 + 10, rel=0.05)

    def test_universal_recovers_trend(self, random_points):
        lattice = UniversalKrigingInterpolator(drift_order=1).interpolate(
            random_points, [40.0, 60.0], [40.0, 60.0]
        )
        assert lattice.value_at(1, 0) == pytest.approx(2 * 60 + 0.5 * 40 + 10, rel=0.05)

    def test_simple_kriging_empty_input_uses_mean(self):
        interpolator = SimpleKrigingInterpolator(known_mean=3.5)
        lattice = interpolator.interpolate(np.zeros((0, 3)), [0.0, 1.0], [0.0, 1.0])
        np.testing.assert_allclose(lattice.values, 3.5)

    def test_overrides_replace_estimates(self, random_points):
        interpolator = OrdinaryKrigingInterpolator(sill=2.0, nugget=0.0)
        params = interpolator.variogram_params(random_points)
        assert params.sill == 2.0
        assert params.nugget == 0.0
        assert params.range == estimate_variogram_params(random_points).range

    def test_model_from_string(self):
        assert OrdinaryKrigingInterpolator(model="gaussian").model is VariogramModel.GAUSSIAN

    def test_small_neighbourhood_warns(self):
        with pytest.warns(UserWarning, match="poorly constrained"):
            OrdinaryKrigingInterpolator(max_neighbors=2)

    def test_invalid_parameters(self):
        with pytest.raises(ValidationError, match="drift_order"):
            UniversalKrigingInterpolator(drift_order=3)
        with pytest.raises(ValidationError, match="nugget"):
            OrdinaryKrigingInterpolator(nugget=-1.0)
        with pytest.raises(ValidationError):
            OrdinaryKrigingInterpolator(sill=0.0)
