"""
Tests for point set loading and synthetic sample generation.
"""

import dataclasses

import numpy as np
import pytest

from gridforge.core.validation import EmptyResultError, ValidationError
from gridforge.io.point_set import PointSet, PointSetLoader, generate_sample_points


def _write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text)
    return path


class TestPointSet:
    """Tests for the PointSet container."""

    def test_is_read_only(self):
        points = PointSet(xyz=[[0, 0, 1], [1, 2, 3]])
        assert not points.xyz.flags.writeable
        with pytest.raises(dataclasses.FrozenInstanceError):
            points.crs = "EPSG:4326"

    def test_source_array_is_copied(self):
        source = np.array([[0.0, 0.0, 1.0]])
        points = PointSet(xyz=source)
        source[0, 2] = 99.0
        assert points.z[0] == 1.0

    def test_columns_and_bounds(self):
        points = PointSet(xyz=[[0, 5, 1], [4, 2, 3]])
        np.testing.assert_array_equal(points.x, [0, 4])
        assert points.extent == (0.0, 2.0, 4.0, 5.0)
        assert points.summary()["max_z"] == 3.0

    def test_wrong_shape(self):
        with pytest.raises(ValidationError, match="N x 3"):
            PointSet(xyz=[[0, 1], [2, 3]])

    def test_empty_has_no_bounds(self):
        points = PointSet(xyz=np.zeros((0, 3)))
        assert len(points) == 0
        with pytest.raises(EmptyResultError):
            points.bounds


class TestCSVLoading:
    """Tests for comma-separated input."""

    def test_with_header(self, tmp_path):
        path = _write(tmp_path, "a.csv", "x,y,z\n1,2,3\n4,5,6\n")
        points = PointSetLoader.load(path)
        np.testing.assert_array_equal(points.xyz, [[1, 2, 3], [4, 5, 6]])
        assert points.metadata["header"] is True

    def test_without_header(self, tmp_path):
        path = _write(tmp_path, "a.csv", "1.5,2.5,3.5\n4,5,6\n")
        points = PointSetLoader.load(path)
        assert len(points) == 2
        assert points.metadata["header"] is False

    def test_named_columns(self, tmp_path):
        path = _write(tmp_path, "a.csv", "id,Easting,Northing,Elevation,code\n7,100.5,200.5,12.25,3\n")
        points = PointSetLoader.load(path)
        np.testing.assert_array_equal(points.xyz, [[100.5, 200.5, 12.25]])

    def test_point_number_column(self, tmp_path):
        path = _write(tmp_path, "a.csv", "1,10.5,20.5,3.25\n2,11.5,21.5,4.25\n")
        points = PointSetLoader.load(path)
        np.testing.assert_array_equal(points.xyz[0], [10.5, 20.5, 3.25])

    def test_unmatched_header_uses_first_columns(self, tmp_path, caplog):
        path = _write(tmp_path, "a.csv", "a,b,c\n1,2,3\n")
        points = PointSetLoader.load(path)
        np.testing.assert_array_equal(points.xyz, [[1, 2, 3]])
        assert "Could not match" in caplog.text

    def test_blank_lines_ignored(self, tmp_path):
        path = _write(tmp_path, "a.csv", "x,y,z\n\n1,2,3\n\n")
        assert len(PointSetLoader.load(path)) == 1

    def test_empty_file(self, tmp_path):
        with pytest.raises(EmptyResultError):
            PointSetLoader.load(_write(tmp_path, "a.csv", ""))

    def test_header_only(self, tmp_path):
        with pytest.raises(EmptyResultError, match="no data rows"):
            PointSetLoader.load(_write(tmp_path, "a.csv", "x,y,z\n"))

    def test_malformed_row(self, tmp_path):
        with pytest.raises(ValidationError, match="Could not parse"):
            PointSetLoader.load(_write(tmp_path, "a.csv", "1,2,3\n4,5,abc\n"))

    def test_exported_samples_roundtrip(self, sample_csv, sample_points):
        points = PointSetLoader.load(sample_csv)
        np.testing.assert_allclose(points.xyz, sample_points.xyz)


class TestTextLoading:
    """Tests for whitespace-separated input."""

    def test_xyz(self, tmp_path):
        path = _write(tmp_path, "a.xyz", "1 2 3\n4 5 6\n")
        points = PointSetLoader.load(path)
        assert points.metadata["format"] == "xyz"
        np.testing.assert_array_equal(points.z, [3, 6])

    def test_extra_columns_ignored(self, tmp_path):
        path = _write(tmp_path, "a.txt", "1 2 3 9\n4 5 6 9\n")
        np.testing.assert_array_equal(PointSetLoader.load(path).z, [3, 6])

    def test_skip_header(self, tmp_path):
        path = _write(tmp_path, "a.txt", "X Y Z\n1 2 3\n")
        assert len(PointSetLoader.load(path, skip_header=1)) == 1

    def test_too_few_columns(self, tmp_path):
        with pytest.raises(ValidationError, match="3 columns"):
            PointSetLoader.load(_write(tmp_path, "a.xyz", "1 2\n3 4\n"))


class TestLoaderErrors:
    """Tests for format dispatch failures."""

    def test_unsupported_extension(self, tmp_path):
        with pytest.raises(ValidationError, match="Unsupported format"):
            PointSetLoader.load(_write(tmp_path, "a.dat", "1 2 3\n"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            PointSetLoader.load(tmp_path / "missing.csv")


@pytest.mark.requires_laspy
class TestLASLoading:
    """Tests for LAS input."""

    def test_load_las(self, tmp_path):
        import laspy

        header = laspy.LasHeader(point_format=3, version="1.2")
        header.offsets = [0.0, 0.0, 0.0]
        header.scales = [0.01, 0.01, 0.01]
        las = laspy.LasData(header)
        las.x = np.array([1.0, 2.0, 3.0])
        las.y = np.array([4.0, 5.0, 6.0])
        las.z = np.array([7.0, 8.0, 9.0])
        las.classification = np.array([2, 2, 1], dtype=np.uint8)
        path = tmp_path / "survey.las"
        las.write(path)

        points = PointSetLoader.load(path)
        np.testing.assert_allclose(points.xyz, [[1, 4, 7], [2, 5, 8], [3, 6, 9]])
        assert points.metadata["format"] == "las"
        assert points.metadata["classes"] == [1, 2]
        assert points.crs is None


class TestSampleGeneration:
    """Tests for synthetic survey generation."""

    def test_reproducible(self):
        a = generate_sample_points(50, seed=3)
        b = generate_sample_points(50, seed=3)
        np.testing.assert_array_equal(a.xyz, b.xyz)

    def test_seeds_differ(self):
        a = generate_sample_points(50, seed=3)
        b = generate_sample_points(50, seed=4)
        assert not np.array_equal(a.xyz, b.xyz)

    def test_extent_and_rounding(self):
        points = generate_sample_points(200, seed=1)
        assert points.x.min() >= 0 and points.x.max() <= 1000
        np.testing.assert_allclose(points.xyz, np.round(points.xyz, 2))
        assert 10 < points.z.min() and points.z.max() < 200

    def test_zero_and_negative_count(self):
        assert len(generate_sample_points(0)) == 0
        with pytest.raises(ValidationError):
            generate_sample_points(-1)
