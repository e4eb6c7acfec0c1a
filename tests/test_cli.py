"""
CLI command tests using Click's test runner.
"""

import json

import pytest

from gridforge.cli import main
from gridforge.io.point_set import PointSetLoader


class TestCLIInfo:
    """Test 'info' command."""

    def test_info_csv(self, cli_runner, sample_csv):
        """Test info command on a CSV survey."""
        result = cli_runner.invoke(main, ['info', str(sample_csv)])

        assert result.exit_code == 0
        assert 'POINT SET INFO' in result.output
        assert 'Points:         120' in result.output
        assert 'Bounds:' in result.output

    def test_info_missing_file(self, cli_runner):
        """Test info command with missing file."""
        result = cli_runner.invoke(main, ['info', 'nonexistent.csv'])

        assert result.exit_code != 0

    def test_info_malformed_file(self, cli_runner, tmp_path):
        """Parse errors are reported without a traceback."""
        path = tmp_path / "bad.csv"
        path.write_text("1,2,3\n4,5,abc\n")
        result = cli_runner.invoke(main, ['info', str(path)])

        assert result.exit_code == 1
        assert 'Error: loading file' in result.output


class TestCLIGrid:
    """Test 'grid' command."""

    def test_grid_to_ascii_with_summary(self, cli_runner, sample_csv, tmp_output_dir):
        output = tmp_output_dir / "surface.asc"
        summary = tmp_output_dir / "summary.json"

        result = cli_runner.invoke(main, [
            'grid', str(sample_csv),
            '--resolution', '15',
            '--output', str(output),
            '--summary', str(summary),
        ])

        assert result.exit_code == 0
        assert 'Grid size: 15 x' in result.output
        assert output.read_text().startswith("ncols 15\n")

        data = json.loads(summary.read_text())
        assert data['method'] == 'idw'
        assert data['settings']['resolution'] == 15

    def test_grid_method_and_config(self, cli_runner, sample_csv, tmp_output_dir):
        """Command-line options override the JSON config."""
        summary = tmp_output_dir / "summary.json"
        result = cli_runner.invoke(main, [
            'grid', str(sample_csv),
            '--config', '{"resolution": 12, "method": "idw"}',
            '--method', 'nearest',
            '--summary', str(summary),
        ])

        assert result.exit_code == 0
        data = json.loads(summary.read_text())
        assert data['method'] == 'nearest'
        assert data['nx'] == 12

    def test_grid_csv_output(self, cli_runner, sample_csv, tmp_output_dir):
        output = tmp_output_dir / "grid.csv"
        result = cli_runner.invoke(main, ['grid', str(sample_csv), '-r', '10', '-o', str(output)])

        assert result.exit_code == 0
        assert output.read_text().splitlines()[0] == "X,Y,Z"

    def test_grid_with_boundary_and_breakline(self, cli_runner, sample_csv, tmp_output_dir):
        summary = tmp_output_dir / "summary.json"
        result = cli_runner.invoke(main, [
            'grid', str(sample_csv), '-r', '12',
            '--boundary', '[[100,100],[900,100],[900,900],[100,900]]',
            '--breakline', '[[200,500,150],[800,500,150]]',
            '--summary', str(summary),
        ])

        assert result.exit_code == 0
        assert json.loads(summary.read_text())['null_count'] > 0

    def test_boundary_from_file(self, cli_runner, sample_csv, tmp_output_dir):
        boundary = tmp_output_dir / "site.json"
        boundary.write_text(json.dumps([[0, 0], [500, 0], [500, 500], [0, 500]]))
        result = cli_runner.invoke(main, ['grid', str(sample_csv), '-r', '10', '--boundary', str(boundary)])

        assert result.exit_code == 0

    def test_invalid_resolution(self, cli_runner, sample_csv):
        result = cli_runner.invoke(main, ['grid', str(sample_csv), '--resolution', '1'])

        assert result.exit_code == 1
        assert 'Error:' in result.output

    def test_invalid_boundary_json(self, cli_runner, sample_csv):
        result = cli_runner.invoke(main, ['grid', str(sample_csv), '--boundary', '[[0,0],'])

        assert result.exit_code == 1
        assert 'Could not parse boundary' in result.output

    def test_output_directory_missing(self, cli_runner, sample_csv, tmp_output_dir):
        output = tmp_output_dir / "missing" / "surface.asc"
        result = cli_runner.invoke(main, ['grid', str(sample_csv), '-r', '10', '-o', str(output)])

        assert result.exit_code == 1
        assert 'does not exist' in result.output

    def test_unknown_method(self, cli_runner, sample_csv):
        result = cli_runner.invoke(main, ['grid', str(sample_csv), '--method', 'spline'])

        assert result.exit_code == 2


class TestCLIContours:
    """Test 'contours' command."""

    def test_contours_geojson(self, cli_runner, sample_csv, tmp_output_dir):
        output = tmp_output_dir / "contours.geojson"
        result = cli_runner.invoke(main, [
            'contours', str(sample_csv), '-i', '20', '-r', '20', '-o', str(output),
        ])

        assert result.exit_code == 0
        assert 'Traced' in result.output
        data = json.loads(output.read_text())
        assert data['type'] == 'FeatureCollection'
        assert data['features']
        assert all(f['properties']['level'] % 20 == 0 for f in data['features'])

    def test_contours_over_tin(self, cli_runner, sample_csv):
        result = cli_runner.invoke(main, [
            'contours', str(sample_csv), '-i', '25', '--source', 'tin', '--smoothing', '0.3',
        ])

        assert result.exit_code == 0

    def test_invalid_interval(self, cli_runner, sample_csv):
        result = cli_runner.invoke(main, ['contours', str(sample_csv), '-i', '0'])

        assert result.exit_code == 1


class TestCLITin:
    """Test 'tin' command."""

    def test_tin_export(self, cli_runner, sample_csv, tmp_output_dir):
        prefix = tmp_output_dir / "mesh"
        result = cli_runner.invoke(main, ['tin', str(sample_csv), '-o', str(prefix)])

        assert result.exit_code == 0
        assert 'Triangulated 120 points' in result.output
        assert (tmp_output_dir / "mesh_vertices.csv").exists()
        assert (tmp_output_dir / "mesh_faces.csv").exists()

    def test_tin_with_breakline(self, cli_runner, sample_csv):
        result = cli_runner.invoke(main, [
            'tin', str(sample_csv), '--breakline', '[[100,100,120],[900,900,140]]',
        ])

        assert result.exit_code == 0
        assert 'Constrained: 0' not in result.output


class TestCLIGenerateSample:
    """Test 'generate-sample' command."""

    def test_generate_csv(self, cli_runner, tmp_output_dir):
        output = tmp_output_dir / "sample.csv"
        result = cli_runner.invoke(main, ['generate-sample', '-o', str(output), '-n', '40', '--seed', '1'])

        assert result.exit_code == 0
        assert 'Generated 40 points' in result.output
        assert len(PointSetLoader.load(output)) == 40

    def test_generate_xyz(self, cli_runner, tmp_output_dir):
        output = tmp_output_dir / "sample.xyz"
        result = cli_runner.invoke(main, ['generate-sample', '-o', str(output), '-n', '25'])

        assert result.exit_code == 0
        assert len(PointSetLoader.load(output)) == 25

    def test_requires_output(self, cli_runner):
        result = cli_runner.invoke(main, ['generate-sample'])

        assert result.exit_code != 0


class TestCLIGlobal:
    """Tests for group-level options."""

    def test_version(self, cli_runner):
        result = cli_runner.invoke(main, ['--version'])

        assert result.exit_code == 0
        assert '0.1.0' in result.output

    def test_verbose(self, cli_runner, sample_csv):
        result = cli_runner.invoke(main, ['--verbose', 'info', str(sample_csv)])

        assert result.exit_code == 0


@pytest.mark.requires_matplotlib
class TestCLIPlots:
    """Tests for --plot outputs."""

    def test_grid_plot(self, cli_runner, sample_csv, tmp_output_dir):
        plot = tmp_output_dir / "surface.png"
        result = cli_runner.invoke(main, ['grid', str(sample_csv), '-r', '10', '--plot', str(plot)])

        assert result.exit_code == 0
        assert plot.exists()

    def test_contour_and_tin_plots(self, cli_runner, sample_csv, tmp_output_dir):
        contours_png = tmp_output_dir / "contours.png"
        tin_png = tmp_output_dir / "tin.png"

        assert cli_runner.invoke(main, ['contours', str(sample_csv), '-r', '10', '--plot', str(contours_png)]).exit_code == 0
        assert cli_runner.invoke(main, ['tin', str(sample_csv), '--plot', str(tin_png)]).exit_code == 0
        assert contours_png.exists() and tin_png.exists()
