"""
Tests for settings records.
"""

import pytest

from gridforge.config import ContourMethod, ContourSettings, GridSettings
from gridforge.core.validation import ValidationError
from gridforge.interpolation import InterpolationMethod
from gridforge.interpolation.kriging import VariogramModel


class TestGridSettings:
    """Tests for GridSettings defaults, coercion and serialization."""

    def test_defaults(self):
        settings = GridSettings()
        assert settings.method is InterpolationMethod.IDW
        assert settings.resolution == 50
        assert settings.padding == 5.0
        assert settings.max_neighbors == 16
        assert settings.search_radius is None

    def test_string_enums_are_coerced(self):
        settings = GridSettings(method="kriging_ord", variogram_model="gaussian")
        assert settings.method is InterpolationMethod.KRIGING_ORDINARY
        assert settings.variogram_model is VariogramModel.GAUSSIAN

    def test_unknown_method_lists_choices(self):
        with pytest.raises(ValidationError, match="Choose one of"):
            GridSettings(method="splines")

    def test_dict_round_trip(self):
        """to_dict writes enum values that from_dict reads back."""
        original = GridSettings(method=InterpolationMethod.RBF, resolution=80, rbf_shape=2.5)
        data = original.to_dict()
        assert data["method"] == "rbf"
        assert GridSettings.from_dict(data) == original

    def test_unknown_keys_warn(self):
        with pytest.warns(UserWarning, match="colour_ramp"):
            settings = GridSettings.from_dict({"resolution": 30, "colour_ramp": "viridis"})
        assert settings.resolution == 30

    def test_search_radius_must_be_positive(self):
        with pytest.raises(ValidationError, match="search_radius"):
            GridSettings(search_radius=-5)


class TestContourSettings:
    """Tests for ContourSettings."""

    def test_defaults(self):
        settings = ContourSettings()
        assert settings.interval is None
        assert settings.method is ContourMethod.GRID
        assert settings.smoothing == 0.0
        assert settings.filled

    def test_method_from_string(self):
        assert ContourSettings(method="tin").method is ContourMethod.TIN

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            ContourSettings(interval=0)
        with pytest.raises(ValidationError):
            ContourSettings(smoothing=-0.1)
        with pytest.raises(ValidationError, match="grid"):
            ContourSettings(method="spline")

    def test_dict_round_trip(self):
        settings = ContourSettings(interval=2.5, method=ContourMethod.TIN, smoothing=0.3)
        assert ContourSettings.from_dict(settings.to_dict()) == settings
