"""
Tests for contour levels, marching squares, TIN contours and chaining.
"""

import math

import numpy as np
import pytest

from gridforge.analysis.contours import (
    Contour,
    Polyline,
    cell_segments,
    chain_segments,
    contour_levels,
    filled_contours,
    grid_contours,
    smooth_contours,
    tin_contours,
)
from gridforge.core.lattice import Lattice
from gridforge.core.triangulation import triangulate
from gridforge.core.validation import ValidationError


def _ramp_lattice(nx=6, ny=4):
    """Lattice whose value equals the X coordinate."""
    grid_x = np.arange(nx, dtype=float)
    grid_y = np.arange(ny, dtype=float)
    gx, _ = np.meshgrid(grid_x, grid_y)
    return Lattice(grid_x, grid_y, gx.ravel())


def _cone_lattice(n=21):
    """Distance from the centre of a 20 x 20 square."""
    axis = np.linspace(0.0, 20.0, n)
    gx, gy = np.meshgrid(axis, axis)
    return Lattice(axis, axis, np.hypot(gx - 10, gy - 10).ravel())


class TestContourLevels:
    """Tests for level generation."""

    def test_multiples_of_interval(self):
        assert contour_levels(0.0, 10.0, 2.5) == [0.0, 2.5, 5.0, 7.5, 10.0]

    def test_first_level_rounds_up(self):
        assert contour_levels(1.2, 4.9, 1.0) == [2.0, 3.0, 4.0]

    def test_negative_range(self):
        assert contour_levels(-3.5, -1.0, 1.0) == [-3.0, -2.0, -1.0]

    def test_no_level_in_range(self):
        assert contour_levels(0.3, 0.9, 1.0) == []

    def test_non_finite_range(self):
        assert contour_levels(math.nan, 5.0, 1.0) == []

    def test_levels_are_rounded(self):
        levels = contour_levels(0.0, 1.0, 0.1)
        assert levels[3] == 0.3
        assert len(levels) == 11

    def test_invalid_interval(self):
        with pytest.raises(ValidationError):
            contour_levels(0.0, 10.0, 0.0)

    def test_too_many_levels(self):
        with pytest.raises(ValidationError, match="more than"):
            contour_levels(0.0, 1e9, 1.0)


class TestCellSegments:
    """Tests for single-cell marching squares."""

    def test_uniform_cell_has_no_segment(self):
        assert cell_segments((1, 2, 3, 4), 0, 1, 0, 1, 10.0) == []
        assert cell_segments((11, 12, 13, 14), 0, 1, 0, 1, 10.0) == []

    def test_single_corner_above(self):
        segments = cell_segments((10.0, 0.0, 0.0, 0.0), 0, 1, 0, 1, 5.0)
        assert len(segments) == 1
        assert set(segments[0]) == {(0.5, 0.0), (0.0, 0.5)}

    def test_level_equal_to_corner_counts_as_above(self):
        segments = cell_segments((0.0, 1.0, 1.0, 1.0), 0, 1, 0, 1, 1.0)
        assert len(segments) == 1
        assert set(segments[0]) == {(1.0, 0.0), (0.0, 1.0)}

    def test_vertical_crossing(self):
        segments = cell_segments((0.0, 4.0, 4.0, 0.0), 0, 2, 0, 2, 1.0)
        assert set(segments[0]) == {(0.5, 0.0), (0.5, 2.0)}

    def test_near_flat_edges_cross_at_midpoint(self):
        above = math.nextafter(1.0, 2.0)
        segments = cell_segments((1.0, above, above, 1.0), 0, 2, 0, 2, above)
        assert len(segments) == 1
        assert set(segments[0]) == {(1.0, 0.0), (1.0, 2.0)}

    def test_saddle_with_centre_above(self):
        segments = cell_segments((2.0, 0.0, 2.0, 0.0), 0, 1, 0, 1, 0.5)
        assert {frozenset(s) for s in segments} == {
            frozenset({(0.75, 0.0), (0.0, 0.75)}),
            frozenset({(0.25, 1.0), (1.0, 0.25)}),
        }

    def test_saddle_with_centre_below(self):
        segments = cell_segments((1.0, 0.0, 1.0, 0.0), 0, 1, 0, 1, 0.75)
        assert {frozenset(s) for s in segments} == {
            frozenset({(0.25, 0.0), (1.0, 0.75)}),
            frozenset({(0.75, 1.0), (0.0, 0.25)}),
        }

    def test_saddle_centre_on_level_takes_upper_branch(self):
        segments = cell_segments((0.0, 1.0, 0.0, 1.0), 0, 1, 0, 1, 0.5)
        assert {frozenset(s) for s in segments} == {
            frozenset({(0.5, 0.0), (1.0, 0.5)}),
            frozenset({(0.5, 1.0), (0.0, 0.5)}),
        }


class TestGridContours:
    """Tests for contours over a lattice."""

    def test_ramp_gives_straight_line(self):
        contours = grid_contours(_ramp_lattice(), [2.5])
        assert len(contours) == 1
        contour = contours[0]
        assert contour.level == 2.5
        assert len(contour.polylines) == 1
        line = contour.polylines[0]
        assert not line.closed
        assert len(line) == 4
        np.testing.assert_allclose(line.to_array()[:, 0], 2.5)

    def test_cone_gives_closed_ring(self):
        contours = grid_contours(_cone_lattice(), [5.5])
        ring = contours[0].polylines
        assert len(ring) == 1 and ring[0].closed
        radii = np.hypot(ring[0].to_array()[:, 0] - 10, ring[0].to_array()[:, 1] - 10)
        np.testing.assert_allclose(radii, 5.5, atol=0.15)

    def test_level_through_nodes_leaves_stubs(self):
        """Nodes exactly on the level add zero-length pieces beside the ring."""
        polylines = grid_contours(_cone_lattice(), [5.0])[0].polylines
        assert sum(p.closed for p in polylines) == 1
        for stub in (p for p in polylines if not p.closed):
            assert len(stub) == 2
            np.testing.assert_allclose(stub.points[0], stub.points[1])

    def test_levels_without_crossings_are_omitted(self):
        contours = grid_contours(_ramp_lattice(), [2.5, 100.0])
        assert [c.level for c in contours] == [2.5]

    def test_empty_cells_are_skipped(self):
        lattice = _ramp_lattice()
        values = lattice.values.copy()
        values[2] = np.nan
        contours = grid_contours(lattice.with_values(values), [2.5])
        # The cells next to the empty node on the first row drop out
        assert len(contours[0].segments) == 2

    def test_segment_endpoints_match_polylines(self):
        contour = grid_contours(_cone_lattice(), [7.0])[0]
        assert len(contour.segments) == sum(len(p.segments()) for p in contour.polylines)

    def test_tiny_lattice(self):
        lattice = Lattice([0.0], [0.0, 1.0], [1.0, 2.0])
        assert grid_contours(lattice, [1.5]) == []


class TestTinContours:
    """Tests for contours traced over triangles."""

    def test_square_corner_line(self, unit_square):
        tin = triangulate(unit_square)
        contours = tin_contours(tin, [5.0])
        assert len(contours) == 1
        polylines = contours[0].polylines
        assert len(polylines) == 1
        ends = {tuple(np.round(p, 9)) for p in (polylines[0].points[0], polylines[0].points[-1])}
        assert ends == {(0.5, 0.0), (0.0, 0.5)}

    def test_planar_surface(self, random_points):
        tin = triangulate(random_points)
        contour = tin_contours(tin, [110.0])[0]
        for polyline in contour.polylines:
            pts = polyline.to_array()
            np.testing.assert_allclose(2 * pts[:, 0] + 0.5 * pts[:, 1] + 10, 110.0)
        # A plane crossing the hull produces a single open line
        assert len(contour.polylines) == 1

    def test_empty_tin(self):
        tin = triangulate(np.zeros((0, 3)))
        assert tin_contours(tin, [1.0]) == []


class TestChaining:
    """Tests for joining segments into polylines."""

    def test_square_closes(self):
        segments = [
            ((1.0, 0.0), (1.0, 1.0)),
            ((0.0, 0.0), (1.0, 0.0)),
            ((0.0, 1.0), (0.0, 0.0)),
            ((1.0, 1.0), (0.0, 1.0)),
        ]
        polylines = chain_segments(segments)
        assert len(polylines) == 1
        assert polylines[0].closed
        assert len(polylines[0]) == 4

    def test_open_chain_extends_both_ways(self):
        segments = [
            ((1.0, 0.0), (2.0, 0.0)),
            ((0.0, 0.0), (1.0, 0.0)),
            ((2.0, 0.0), (3.0, 0.0)),
        ]
        polylines = chain_segments(segments)
        assert len(polylines) == 1
        line = polylines[0]
        assert not line.closed
        assert [p[0] for p in line.points] == [0.0, 1.0, 2.0, 3.0]

    def test_disjoint_pieces(self):
        segments = [((0.0, 0.0), (1.0, 0.0)), ((5.0, 5.0), (6.0, 5.0))]
        assert len(chain_segments(segments)) == 2

    def test_every_segment_used_once(self):
        contour = grid_contours(_cone_lattice(), [3.0, 8.0])
        for c in contour:
            endpoints = sorted(p for s in c.segments for p in s)
            rebuilt = sorted(p for pl in c.polylines for s in pl.segments() for p in s)
            np.testing.assert_allclose(np.array(rebuilt), np.array(endpoints), atol=1e-9)

    def test_empty(self):
        assert chain_segments([]) == []


class TestSmoothing:
    """Tests for Chaikin smoothing."""

    def test_closed_ring_point_count(self):
        ring = Polyline(points=[(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)], closed=True)
        smoothed = smooth_contours([Contour(level=1.0, polylines=[ring])], factor=0.5)
        assert len(smoothed[0].polylines[0]) == 16
        assert smoothed[0].polylines[0].closed
        assert len(smoothed[0].segments) == 16

    def test_open_line_point_count(self):
        line = Polyline(points=[(0.0, 0.0), (1.0, 0.0), (2.0, 1.0)])
        smoothed = smooth_contours([Contour(level=1.0, polylines=[line])], factor=0.25)
        assert len(smoothed[0].polylines[0]) == 4

    def test_short_lines_unchanged(self):
        line = Polyline(points=[(0.0, 0.0), (1.0, 0.0)])
        smoothed = smooth_contours([Contour(level=2.0, polylines=[line])])
        assert smoothed[0].polylines[0].points == line.points

    def test_smoothing_stays_inside_ring(self):
        """Corner cutting never moves points outside the convex ring."""
        ring = Polyline(points=[(0.0, 0.0), (4.0, 0.0), (4.0, 4.0), (0.0, 4.0)], closed=True)
        pts = smooth_contours([Contour(level=0.0, polylines=[ring])], factor=1.0)[0].polylines[0].to_array()
        assert pts.min() >= 0.0 and pts.max() <= 4.0


class TestFilledContours:
    """Tests for filled bands."""

    def test_band_membership(self):
        axis = np.arange(3, dtype=float)
        lattice = Lattice(axis, axis, np.arange(9, dtype=float))
        bands = filled_contours(lattice, [2.0, 5.0])

        assert [(b.level_min, b.level_max) for b in bands] == [(1.0, 2.0), (2.0, 5.0), (5.0, 6.0)]
        assert [len(b.cells) for b in bands] == [2, 3, 4]
        assert sum(len(b.cells) for b in bands) == 9
        np.testing.assert_allclose(bands[0].cells[:, 2:], 1.0)

    def test_empty_nodes_excluded(self):
        axis = np.arange(2, dtype=float)
        lattice = Lattice(axis, axis, [0.0, np.nan, 3.0, 4.0])
        bands = filled_contours(lattice, [1.0])
        assert sum(len(b.cells) for b in bands) == 3

    def test_no_levels(self):
        assert filled_contours(_ramp_lattice(), []) == []
