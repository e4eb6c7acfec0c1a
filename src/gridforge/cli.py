"""
Command Line Interface for gridforge

Usage:
    gridforge info <input>
    gridforge grid <input> --method idw --output surface.asc
    gridforge contours <input> --interval 5 --output contours.geojson
    gridforge tin <input> --output-prefix mesh
    gridforge generate-sample --output sample.csv
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from .analysis.boundaries import Boundary, BoundaryType
from .analysis.breaklines import Breakline, BreaklineType, merge_breakline_points
from .analysis.gridding import contour_grid, grid_points
from .config import ContourMethod, ContourSettings, GridSettings
from .core.triangulation import triangulate
from .core.validation import ValidationError
from .interpolation import InterpolationMethod
from .io.exporters import (
    export_contours_geojson,
    export_esri_ascii,
    export_grid_points_csv,
    export_points_csv,
    export_summary_json,
    export_tin_csv,
)
from .io.point_set import PointSetLoader, generate_sample_points
from .logging_config import setup_logging

METHOD_CHOICES = [m.value for m in InterpolationMethod]

# Errors reported to the user instead of a traceback
USER_ERRORS = (ValidationError, OSError, ImportError)


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _load_json(text_or_path: str, what: str):
    """Parse inline JSON, or the contents of a file when given a path."""
    path = Path(text_or_path)
    try:
        if path.suffix.lower() == ".json" and path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
        return json.loads(text_or_path)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Could not parse {what} as JSON: {e}") from e


def _boundaries(outer: Tuple[str, ...], inner: Tuple[str, ...]):
    result = [Boundary(_load_json(b, "boundary"), BoundaryType.OUTER) for b in outer]
    result += [Boundary(_load_json(b, "hole"), BoundaryType.INNER) for b in inner]
    return result


def _breaklines(specs: Tuple[str, ...], kind: str):
    return [Breakline(_load_json(s, "breakline"), BreaklineType(kind)) for s in specs]


def _grid_settings(config: Optional[str], **overrides) -> GridSettings:
    data = _load_json(config, "config") if config else {}
    if not isinstance(data, dict):
        raise ValidationError("Config must be a JSON object of GridSettings fields")
    data.update({k: v for k, v in overrides.items() if v is not None})
    return GridSettings.from_dict(data)


def _write_lattice(lattice, output: str) -> None:
    suffix = Path(output).suffix.lower()
    if suffix in (".tif", ".tiff"):
        lattice.to_geotiff(output)
    elif suffix == ".csv":
        export_grid_points_csv(lattice, output)
    else:
        export_esri_ascii(lattice, output)


@click.group()
@click.version_option(version="0.1.0")
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
def main(verbose: bool):
    """gridforge - scattered point gridding and contouring

    Interpolate survey samples onto regular grids, build Delaunay
    triangulations and trace contours.
    """
    setup_logging(logging.DEBUG if verbose else logging.WARNING)


@main.command()
@click.argument('input_file', type=click.Path(exists=True))
def info(input_file: str):
    """Display information about a point file."""
    try:
        points = PointSetLoader.load(input_file)
        summary = points.summary()
    except USER_ERRORS as e:
        _fail(f"loading file: {e}")

    click.echo("\n" + "=" * 50)
    click.echo("POINT SET INFO")
    click.echo("=" * 50)
    click.echo(f"File:           {input_file}")
    click.echo(f"Points:         {summary['num_points']:,}")
    click.echo("")
    click.echo("Bounds:")
    click.echo(f"  X:            {summary['min_x']:.2f} to {summary['max_x']:.2f}")
    click.echo(f"  Y:            {summary['min_y']:.2f} to {summary['max_y']:.2f}")
    click.echo(f"  Z:            {summary['min_z']:.2f} to {summary['max_z']:.2f}")
    click.echo("")
    click.echo("Extent:")
    click.echo(f"  Width:        {summary['max_x'] - summary['min_x']:.2f}")
    click.echo(f"  Height:       {summary['max_y'] - summary['min_y']:.2f}")
    click.echo(f"  Z Range:      {summary['max_z'] - summary['min_z']:.2f}")
    if points.crs:
        click.echo(f"CRS:            {points.crs[:60]}")
    click.echo("=" * 50)


@main.command()
@click.argument('input_file', type=click.Path(exists=True))
@click.option('--method', '-m', type=click.Choice(METHOD_CHOICES), help='Interpolation method (default: idw)')
@click.option('--resolution', '-r', type=int, help='Nodes along X (default: 50)')
@click.option('--padding', type=float, help='Extent padding in percent (default: 5)')
@click.option('--power', type=float, help='IDW power (default: 2)')
@click.option('--max-neighbors', type=int, help='Neighbours for IDW/kriging (default: 16)')
@click.option('--search-radius', type=float, help='Search radius (default: unlimited)')
@click.option('--config', type=str, help='GridSettings as a JSON object or .json file')
@click.option('--boundary', multiple=True, help='Outer boundary as JSON [[x,y],...] or .json file')
@click.option('--hole', multiple=True, help='Inner boundary as JSON [[x,y],...] or .json file')
@click.option('--breakline', multiple=True, help='Breakline as JSON [[x,y,z],...] or .json file')
@click.option('--breakline-type', type=click.Choice([t.value for t in BreaklineType]),
              default='standard', help='Type of all --breakline arguments')
@click.option('--output', '-o', type=click.Path(), help='Output grid (.asc, .csv or .tif)')
@click.option('--summary', type=click.Path(), help='Write run summary JSON')
@click.option('--plot', type=click.Path(), help='Save a plot of the surface (PNG)')
def grid(
    input_file: str,
    method: Optional[str],
    resolution: Optional[int],
    padding: Optional[float],
    power: Optional[float],
    max_neighbors: Optional[int],
    search_radius: Optional[float],
    config: Optional[str],
    boundary: Tuple[str, ...],
    hole: Tuple[str, ...],
    breakline: Tuple[str, ...],
    breakline_type: str,
    output: Optional[str],
    summary: Optional[str],
    plot: Optional[str],
):
    """Interpolate samples onto a regular grid.

    Examples:

        gridforge grid survey.csv -m kriging_ord -r 100 -o surface.asc

        gridforge grid survey.xyz --boundary "[[0,0],[100,0],[100,80],[0,80]]"
    """
    try:
        points = PointSetLoader.load(input_file)
        settings = _grid_settings(
            config,
            method=method,
            resolution=resolution,
            padding=padding,
            power=power,
            max_neighbors=max_neighbors,
            search_radius=search_radius,
        )
        boundaries = _boundaries(boundary, hole)
        breaklines = _breaklines(breakline, breakline_type)

        click.echo(f"Gridding {len(points):,} points with {settings.method.value}...")
        result = grid_points(points, settings, boundaries=boundaries, breaklines=breaklines)
        stats = result.statistics

        click.echo(f"  Grid size: {stats['nx']} x {stats['ny']} ({stats['null_count']:,} empty nodes)")
        click.echo(f"  Range:     {stats['min']:.3f} to {stats['max']:.3f}")
        click.echo(f"  Time:      {result.elapsed:.2f}s")

        if output:
            _write_lattice(result.lattice, output)
            click.echo(f"Grid saved to: {output}")
        if summary:
            export_summary_json({**result.summary(), "settings": settings.to_dict()}, summary)
            click.echo(f"Summary saved to: {summary}")
        if plot:
            from .utils.visualization import plot_lattice, save_figure
            fig = plot_lattice(result.lattice, hillshade=result.hillshade, boundaries=boundaries)
            save_figure(fig, plot)
            click.echo(f"Plot saved to: {plot}")
    except USER_ERRORS as e:
        _fail(str(e))


@main.command()
@click.argument('input_file', type=click.Path(exists=True))
@click.option('--interval', '-i', type=float, help='Contour interval (default: range / 10)')
@click.option('--source', type=click.Choice([m.value for m in ContourMethod]), default='grid',
              help='Trace over the grid or a triangulation of the samples')
@click.option('--smoothing', type=float, default=0.0, help='Chaikin smoothing factor 0-1')
@click.option('--method', '-m', type=click.Choice(METHOD_CHOICES), default='idw',
              help='Interpolation method for the grid')
@click.option('--resolution', '-r', type=int, default=50, help='Nodes along X')
@click.option('--output', '-o', type=click.Path(), help='Output GeoJSON file')
@click.option('--plot', type=click.Path(), help='Save a plot of the contours (PNG)')
def contours(
    input_file: str,
    interval: Optional[float],
    source: str,
    smoothing: float,
    method: str,
    resolution: int,
    output: Optional[str],
    plot: Optional[str],
):
    """Trace contour lines through the samples.

    Example:
        gridforge contours survey.csv -i 5 --source tin -o contours.geojson
    """
    try:
        points = PointSetLoader.load(input_file)
        settings = GridSettings(method=InterpolationMethod(method), resolution=resolution)
        contour_settings = ContourSettings(
            interval=interval, method=ContourMethod(source), smoothing=smoothing, filled=False,
        )

        result = grid_points(points, settings)
        traced = contour_grid(result, contour_settings, points=points)
        click.echo(f"Traced {traced.n_polylines:,} polylines on {len(traced.levels)} levels")

        if output:
            export_contours_geojson(traced.contours, output, crs=points.crs)
            click.echo(f"Contours saved to: {output}")
        if plot:
            from .utils.visualization import plot_contours, save_figure
            save_figure(plot_contours(traced.contours), plot)
            click.echo(f"Plot saved to: {plot}")
    except USER_ERRORS as e:
        _fail(str(e))


@main.command()
@click.argument('input_file', type=click.Path(exists=True))
@click.option('--output-prefix', '-o', type=str, help='Write <prefix>_vertices.csv and <prefix>_faces.csv')
@click.option('--breakline', multiple=True, help='Breakline as JSON [[x,y,z],...] or .json file')
@click.option('--plot', type=click.Path(), help='Save a plot of the triangulation (PNG)')
def tin(
    input_file: str,
    output_prefix: Optional[str],
    breakline: Tuple[str, ...],
    plot: Optional[str],
):
    """Build a Delaunay triangulation of the samples.

    Breaklines are densified and enforced as constrained edges.
    """
    try:
        points = PointSetLoader.load(input_file)
        breaklines = _breaklines(breakline, 'standard')
        xyz, edges = points.xyz, None
        if breaklines:
            min_x, min_y, max_x, max_y = points.extent
            spacing = max(max_x - min_x, max_y - min_y) / 50 or 1.0
            xyz, edges = merge_breakline_points(points, breaklines, spacing)

        mesh = triangulate(xyz, edges)
        click.echo(f"Triangulated {mesh.n_points:,} points into {mesh.n_triangles:,} triangles")
        click.echo(f"  Edges: {len(mesh.edges()):,}  Constrained: {len(mesh.constrained_edges):,}")

        if output_prefix:
            vertices, faces = export_tin_csv(
                mesh, f"{output_prefix}_vertices.csv", f"{output_prefix}_faces.csv"
            )
            click.echo(f"TIN saved to: {vertices}, {faces}")
        if plot:
            from .utils.visualization import plot_tin, save_figure
            save_figure(plot_tin(mesh), plot)
            click.echo(f"Plot saved to: {plot}")
    except USER_ERRORS as e:
        _fail(str(e))


@main.command()
@click.option('--output', '-o', required=True, type=click.Path(),
              help='Output file path (.csv or .xyz)')
@click.option('--count', '-n', default=500, help='Number of points (default: 500)')
@click.option('--seed', type=int, default=None, help='Random seed')
def generate_sample(output: str, count: int, seed: Optional[int]):
    """Generate a synthetic survey for testing.

    Example:
        gridforge generate-sample -o sample.csv -n 1000 --seed 7
    """
    try:
        points = generate_sample_points(count, seed)
        if Path(output).suffix.lower() == ".csv":
            export_points_csv(points, output)
        else:
            with open(output, 'w', encoding='utf-8') as f:
                for x, y, z in points.xyz.tolist():
                    f.write(f"{x:.2f} {y:.2f} {z:.2f}\n")
    except USER_ERRORS as e:
        _fail(str(e))
    click.echo(f"Generated {len(points):,} points")
    click.echo(f"Saved to: {output}")


if __name__ == '__main__':
    main()
