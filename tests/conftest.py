"""
Shared pytest fixtures and configuration for gridforge tests.
"""

import logging

import numpy as np
import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "requires_laspy: requires laspy to be installed"
    )
    config.addinivalue_line(
        "markers", "requires_matplotlib: requires matplotlib to be installed"
    )
    config.addinivalue_line(
        "markers", "requires_rasterio: requires rasterio for GeoTIFF tests"
    )


def pytest_collection_modifyitems(config, items):
    """Auto-skip tests based on missing dependencies."""
    try:
        import laspy
        laspy_available = True
    except ImportError:
        laspy_available = False

    try:
        import matplotlib
        matplotlib.use("Agg")
        matplotlib_available = True
    except ImportError:
        matplotlib_available = False

    try:
        import rasterio
        rasterio_available = True
    except ImportError:
        rasterio_available = False

    for item in items:
        if "requires_laspy" in item.keywords and not laspy_available:
            item.add_marker(pytest.mark.skip(reason="laspy not installed"))
        if "requires_matplotlib" in item.keywords and not matplotlib_available:
            item.add_marker(pytest.mark.skip(reason="matplotlib not installed"))
        if "requires_rasterio" in item.keywords and not rasterio_available:
            item.add_marker(pytest.mark.skip(reason="rasterio not installed"))


@pytest.fixture
def sample_points():
    """Small reproducible synthetic survey for fast tests."""
    from gridforge.io.point_set import generate_sample_points

    return generate_sample_points(count=120, seed=42)


@pytest.fixture
def unit_square():
    """Corners of the unit square with values 0, 10, 20, 10."""
    return np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 10.0],
        [1.0, 1.0, 20.0],
        [0.0, 1.0, 10.0],
    ])


@pytest.fixture
def random_points():
    """
    Octagon of radius 50 around (50, 50) with 60 random samples inside a
    disc of radius 40, on a planar trend. The hull is exactly the octagon.
    """
    rng = np.random.default_rng(7)
    angles = np.arange(8) * np.pi / 4
    ring = np.column_stack([50 + 50 * np.cos(angles), 50 + 50 * np.sin(angles)])
    r = 40 * np.sqrt(rng.random(60))
    theta = rng.random(60) * 2 * np.pi
    inner = np.column_stack([50 + r * np.cos(theta), 50 + r * np.sin(theta)])
    xy = np.vstack([ring, inner])
    z = 2.0 * xy[:, 0] + 0.5 * xy[:, 1] + 10.0
    return np.column_stack([xy, z])


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo CLI logging setup so caplog sees package records."""
    yield
    logger = logging.getLogger("gridforge")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def sample_csv(tmp_path, sample_points):
    """Synthetic survey written as a CSV file with a header."""
    from gridforge.io.exporters import export_points_csv

    path = tmp_path / "survey.csv"
    export_points_csv(sample_points, path)
    return path


@pytest.fixture
def tmp_output_dir(tmp_path):
    """Temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def cli_runner():
    """Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
