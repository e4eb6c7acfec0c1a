"""
Tests for lattice construction, sampling and raster operations.
"""

import math

import numpy as np
import pytest

from gridforge.core.lattice import NODATA_VALUE, Lattice, build_grid_axes
from gridforge.core.validation import GridSizeError, ResolutionError, ValidationError


@pytest.fixture
def plane():
    """3 x 3 lattice of z = x + 2y over [0, 2] x [0, 2]."""
    axis = np.array([0.0, 1.0, 2.0])
    gx, gy = np.meshgrid(axis, axis)
    return Lattice(axis, axis.copy(), (gx + 2 * gy).ravel())


class TestGridAxes:
    """Tests for lattice axis construction."""

    def test_unpadded_axes(self):
        grid_x, grid_y = build_grid_axes((0, 0, 100, 50), resolution=11)
        np.testing.assert_allclose(grid_x, np.arange(0, 101, 10))
        np.testing.assert_allclose(grid_y, np.arange(0, 51, 10))

    def test_padding_extends_both_sides(self):
        grid_x, grid_y = build_grid_axes((0, 0, 100, 50), resolution=11, padding=10)
        assert grid_x[0] == pytest.approx(-10.0)
        assert grid_x[-1] == pytest.approx(110.0)
        assert grid_y[0] == pytest.approx(-5.0)
        assert len(grid_y) == 6

    def test_degenerate_extent(self):
        grid_x, grid_y = build_grid_axes((5, 5, 5, 5), resolution=4)
        assert len(grid_x) == 4
        assert len(grid_y) == 4
        assert grid_x[0] == pytest.approx(4.5)
        assert grid_x[-1] == pytest.approx(5.5)

    def test_thin_extent_keeps_two_rows(self):
        _, grid_y = build_grid_axes((0, 0, 1000, 1), resolution=10)
        assert len(grid_y) >= 2

    def test_invalid_resolution(self):
        with pytest.raises(ResolutionError):
            build_grid_axes((0, 0, 1, 1), resolution=1)


class TestLatticeBasics:
    """Tests for construction and lookup."""

    def test_layout_is_row_major(self, plane):
        assert plane.shape == (3, 3)
        assert plane.value_at(2, 0) == 2.0
        assert plane.value_at(0, 2) == 4.0
        assert plane.as_array()[1, 2] == 4.0

    def test_bounds_and_spacing(self, plane):
        assert plane.bounds == (0.0, 0.0, 2.0, 2.0)
        assert plane.dx == 1.0 and plane.dy == 1.0

    def test_filled(self):
        lattice = Lattice.filled([0.0, 1.0], [0.0, 1.0, 2.0], value=3.0, crs="EPSG:32633")
        assert lattice.values.tolist() == [3.0] * 6
        assert lattice.crs == "EPSG:32633"

    def test_wrong_buffer_length(self):
        with pytest.raises(GridSizeError, match="values"):
            Lattice([0.0, 1.0], [0.0, 1.0], [1.0, 2.0, 3.0])

    def test_with_values_keeps_axes(self, plane):
        other = plane.with_values(np.zeros(9))
        np.testing.assert_array_equal(other.grid_x, plane.grid_x)
        assert plane.values.sum() > 0


class TestSampling:
    """Tests for bilinear sampling."""

    def test_plane_is_reproduced(self, plane):
        assert plane.sample(0.5, 1.5) == pytest.approx(3.5)
        assert plane.sample(2.0, 2.0) == pytest.approx(6.0)

    def test_outside_is_nan(self, plane):
        assert math.isnan(plane.sample(-0.1, 1.0))
        assert math.isnan(plane.sample(1.0, 2.5))

    def test_empty_corner_is_nan(self, plane):
        values = plane.values.copy()
        values[0] = np.nan
        lattice = plane.with_values(values)
        assert math.isnan(lattice.sample(0.5, 0.5))
        assert lattice.sample(1.5, 1.5) == pytest.approx(4.5)


class TestStatistics:
    """Tests for summary statistics."""

    def test_statistics(self, plane):
        values = plane.values.copy()
        values[4] = np.nan
        stats = plane.with_values(values).statistics()
        assert stats["count"] == 8
        assert stats["null_count"] == 1
        assert stats["min"] == 0.0
        assert stats["max"] == 6.0
        assert stats["mean"] == pytest.approx(3.0)
        assert stats["cells"] == 9

    def test_all_empty(self):
        stats = Lattice.filled([0.0, 1.0], [0.0, 1.0]).statistics()
        assert stats["count"] == 0
        assert math.isnan(stats["min"])
        assert stats["mean"] == 0.0


class TestHillshade:
    """Tests for shaded relief."""

    def test_flat_surface(self):
        axis = np.arange(5, dtype=float)
        lattice = Lattice.filled(axis, axis, 10.0)
        shade = lattice.hillshade(altitude=45.0)
        assert shade.shape == (25,)
        np.testing.assert_allclose(shade, 255 * math.sin(math.radians(45)))

    def test_small_lattice_is_zero(self):
        lattice = Lattice.filled([0.0, 1.0], [0.0, 1.0], 1.0)
        assert not lattice.hillshade().any()

    def test_lit_slope_is_brighter(self):
        axis = np.arange(5, dtype=float)
        gx, _ = np.meshgrid(axis, axis)
        facing_west = Lattice(axis, axis, gx.ravel())
        facing_east = Lattice(axis, axis, (-gx).ravel())
        # Default light comes from the north-west
        assert facing_west.hillshade()[12] > facing_east.hillshade()[12]

    def test_range(self, plane):
        shade = plane.hillshade(z_factor=5.0)
        assert shade.min() >= 0 and shade.max() <= 255


class TestGridOperations:
    """Tests for combine, resample and smooth."""

    def test_add_and_subtract(self, plane):
        doubled = plane.combine(plane, "add")
        np.testing.assert_allclose(doubled.values, 2 * plane.values)
        assert not plane.combine(plane, "subtract").values.any()

    def test_divide_by_zero_is_nan(self, plane):
        result = plane.combine(np.zeros(9), "divide")
        assert np.isnan(result.values).all()
        ratio = plane.combine(np.full(9, 2.0), "divide")
        np.testing.assert_allclose(ratio.values, plane.values / 2)

    def test_multiply(self, plane):
        np.testing.assert_allclose(plane.combine(plane, "multiply").values, plane.values ** 2)

    def test_shape_mismatch(self, plane):
        with pytest.raises(GridSizeError):
            plane.combine(np.zeros(4), "add")

    def test_unknown_operation(self, plane):
        with pytest.raises(ValidationError, match="Unknown grid operation"):
            plane.combine(plane, "power")

    def test_resample_plane(self, plane):
        fine = plane.resample(5, 5)
        assert fine.shape == (5, 5)
        gx, gy = np.meshgrid(fine.grid_x, fine.grid_y)
        np.testing.assert_allclose(fine.values, (gx + 2 * gy).ravel())

    def test_resample_invalid_size(self, plane):
        with pytest.raises(ResolutionError, match="new_nx"):
            plane.resample(1, 5)

    def test_smooth_keeps_empty_nodes(self, plane):
        values = plane.values.copy()
        values[0] = np.nan
        smoothed = plane.with_values(values).smooth(sigma=1.0)
        assert np.isnan(smoothed.values[0])
        assert np.isfinite(smoothed.values[1:]).all()

    def test_smooth_constant(self):
        lattice = Lattice.filled(np.arange(4.0), np.arange(4.0), 7.0)
        np.testing.assert_allclose(lattice.smooth(2.0).values, 7.0)

    def test_smooth_all_empty(self):
        lattice = Lattice.filled([0.0, 1.0], [0.0, 1.0])
        assert np.isnan(lattice.smooth().values).all()


@pytest.mark.requires_rasterio
class TestGeoTiff:
    """Tests for GeoTIFF export."""

    def test_roundtrip_orientation(self, plane, tmp_path):
        import rasterio

        values = plane.values.copy()
        values[0] = np.nan
        path = tmp_path / "surface.tif"
        plane.with_values(values).to_geotiff(str(path))

        with rasterio.open(path) as src:
            data = src.read(1)
            assert src.nodata == NODATA_VALUE
            assert src.width == 3 and src.height == 3
        # First raster row is the northernmost lattice row
        np.testing.assert_allclose(data[0], [4.0, 5.0, 6.0])
        assert data[-1, 0] == NODATA_VALUE
