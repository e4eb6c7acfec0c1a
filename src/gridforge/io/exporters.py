"""
Export utilities for gridding results.

Provides ESRI ASCII grids, CSV, GeoJSON and JSON exports.
Uses only standard library for CSV/JSON to avoid dependencies.
"""

from __future__ import annotations

import csv
import json
import math
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple, Union

from ..core.lattice import NODATA_VALUE
from ..core.validation import validate_output_path

if TYPE_CHECKING:
    from ..analysis.contours import Contour
    from ..core.lattice import Lattice
    from ..core.triangulation import TIN


def export_esri_ascii(lattice: 'Lattice', filepath: Union[str, Path]) -> None:
    """
    Export a lattice as an ESRI ASCII grid.

    Rows are written north to south; empty nodes become -9999. The cell
    size is taken from the X spacing.

    Args:
        lattice: Lattice to export
        filepath: Output .asc file path
    """
    filepath = validate_output_path(filepath, "ESRI ASCII grid")
    cellsize = lattice.dx if lattice.nx > 1 else 1.0
    grid = lattice.as_array()

    with open(filepath, 'w', encoding='utf-8') as f:
        f.write(f"ncols {lattice.nx}\n")
        f.write(f"nrows {lattice.ny}\n")
        f.write(f"xllcorner {lattice.grid_x[0]}\n")
        f.write(f"yllcorner {lattice.grid_y[0]}\n")
        f.write(f"cellsize {cellsize}\n")
        f.write(f"NODATA_value {NODATA_VALUE:g}\n")
        for j in range(lattice.ny - 1, -1, -1):
            row = [
                f"{NODATA_VALUE:g}" if math.isnan(v) else f"{v:.4f}"
                for v in grid[j].tolist()
            ]
            f.write(" ".join(row) + "\n")


def export_grid_points_csv(
    lattice: 'Lattice',
    filepath: Union[str, Path],
    include_header: bool = True,
) -> None:
    """
    Export lattice nodes as X,Y,Z rows, skipping empty nodes.

    Args:
        lattice: Lattice to export
        filepath: Output CSV file path
        include_header: Whether to include the "X,Y,Z" header row
    """
    filepath = validate_output_path(filepath, "grid points CSV")
    grid = lattice.as_array()

    with open(filepath, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        if include_header:
            writer.writerow(['X', 'Y', 'Z'])
        for j, y in enumerate(lattice.grid_y.tolist()):
            for i, x in enumerate(lattice.grid_x.tolist()):
                v = grid[j, i]
                if not math.isnan(v):
                    writer.writerow([x, y, f"{v:.4f}"])


def export_points_csv(points, filepath: Union[str, Path]) -> None:
    """Export samples (PointSet or N x 3 array) as x,y,z rows."""
    filepath = validate_output_path(filepath, "points CSV")
    xyz = getattr(points, "xyz", points)

    with open(filepath, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(['x', 'y', 'z'])
        for x, y, z in xyz.tolist():
            writer.writerow([x, y, z])


def contours_to_geojson(contours: Sequence['Contour'], crs: Optional[str] = None) -> Dict[str, Any]:
    """
    Build a GeoJSON FeatureCollection with one LineString per polyline.

    Closed polylines repeat their first coordinate at the end. Each feature
    carries its ``level`` as a property.
    """
    features: List[Dict[str, Any]] = []
    for contour in contours:
        for polyline in contour.polylines:
            coords = [[x, y] for x, y in polyline.points]
            if polyline.closed and coords:
                coords.append(coords[0])
            features.append({
                "type": "Feature",
                "geometry": {"type": "LineString", "coordinates": coords},
                "properties": {"level": contour.level},
            })

    geojson: Dict[str, Any] = {"type": "FeatureCollection", "features": features}

    # CRS as a foreign member, as in the 2008 GeoJSON format
    if crs:
        geojson["crs"] = {"type": "name", "properties": {"name": crs}}
    return geojson


def export_contours_geojson(
    contours: Sequence['Contour'],
    filepath: Union[str, Path],
    crs: Optional[str] = None,
) -> None:
    """
    Export contour polylines to GeoJSON.

    Args:
        contours: Contours to export
        filepath: Output GeoJSON file path
        crs: Optional CRS string (added as foreign member)
    """
    filepath = validate_output_path(filepath, "contour GeoJSON")
    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(contours_to_geojson(contours, crs), f, indent=2)


def export_tin_csv(
    tin: 'TIN',
    vertices_path: Union[str, Path],
    faces_path: Union[str, Path],
) -> Tuple[Path, Path]:
    """
    Export a triangulation as two CSV files.

    The vertex file has columns id,x,y,z; the face file has id,v0,v1,v2
    referring to vertex ids.

    Returns:
        (vertices_path, faces_path)
    """
    vertices_path = validate_output_path(vertices_path, "TIN vertices CSV")
    faces_path = validate_output_path(faces_path, "TIN faces CSV")

    with open(vertices_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(['id', 'x', 'y', 'z'])
        for i, (x, y, z) in enumerate(zip(tin.x.tolist(), tin.y.tolist(), tin.z.tolist())):
            writer.writerow([i, x, y, z])

    with open(faces_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(['id', 'v0', 'v1', 'v2'])
        for i, (a, b, c) in enumerate(tin.triangles.tolist()):
            writer.writerow([i, a, b, c])

    return vertices_path, faces_path


def _json_safe(value):
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def export_summary_json(
    summary: Dict[str, Any],
    filepath: Union[str, Path],
    indent: int = 2,
) -> None:
    """
    Export a run summary to JSON.

    Non-finite floats (NaN statistics of an empty lattice) are written as
    null.

    Args:
        summary: Dictionary to write, e.g. ``GridResult.summary()``
        filepath: Output JSON file path
        indent: JSON indentation level (default: 2)
    """
    filepath = validate_output_path(filepath, "summary JSON")
    with open(filepath, 'w', encoding='utf-8') as f:
        json.dump(_json_safe(summary), f, indent=indent)
