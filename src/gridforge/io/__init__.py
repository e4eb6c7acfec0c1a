"""I/O modules for loading samples and saving results."""

from .point_set import PointSet, PointSetLoader, generate_sample_points
from .exporters import (
    export_contours_geojson,
    export_esri_ascii,
    export_grid_points_csv,
    export_points_csv,
    export_summary_json,
    export_tin_csv,
)

__all__ = [
    "PointSet",
    "PointSetLoader",
    "generate_sample_points",
    "export_contours_geojson",
    "export_esri_ascii",
    "export_grid_points_csv",
    "export_points_csv",
    "export_summary_json",
    "export_tin_csv",
]
