"""
Basic Gridding Example

This example demonstrates:
1. Generating (or loading) scattered survey samples
2. Gridding them with several interpolation methods
3. Clipping the grid to a site boundary
4. Tracing contours and exporting them
5. Editing the triangulation by hand
6. Visualizing results

Run from the project root:
    python examples/basic_gridding.py
"""

import sys
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gridforge import (
    ContourSettings,
    EditableMesh,
    GridSettings,
    contour_grid,
    grid_points,
    triangulate,
)
from gridforge.analysis.boundaries import Boundary, BoundaryType
from gridforge.analysis.breaklines import Breakline
from gridforge.io.exporters import export_contours_geojson, export_esri_ascii
from gridforge.io.point_set import generate_sample_points

OUTPUT_DIR = Path(__file__).parent


def main():
    print("=" * 60)
    print("GRIDFORGE - EXAMPLE")
    print("=" * 60)

    # =========================================================================
    # Step 1: Generate or load samples
    # =========================================================================
    print("\n[1] Generating sample survey...")

    # Replace with PointSetLoader.load("survey.csv") for real data
    points = generate_sample_points(count=800, seed=42)

    summary = points.summary()
    print(f"   Points: {summary['num_points']:,}")
    print(f"   X range: {summary['min_x']:.1f} to {summary['max_x']:.1f}")
    print(f"   Y range: {summary['min_y']:.1f} to {summary['max_y']:.1f}")
    print(f"   Z range: {summary['min_z']:.1f} to {summary['max_z']:.1f}")

    # =========================================================================
    # Step 2: Compare interpolation methods
    # =========================================================================
    print("\n[2] Gridding with several methods...")

    for method in ("idw", "tin", "kriging_ord", "rbf", "mincurv"):
        result = grid_points(points, GridSettings(method=method, resolution=60))
        stats = result.statistics
        print(
            f"   {method:<12} {result.elapsed:6.2f}s  "
            f"range {stats['min']:7.2f} to {stats['max']:7.2f}  "
            f"empty nodes {stats['null_count']:,}"
        )

    # =========================================================================
    # Step 3: Clip to the site with a pond cut out, plus a road breakline
    # =========================================================================
    print("\n[3] Gridding the site...")

    site = Boundary([(100, 100), (900, 100), (900, 900), (100, 900)], BoundaryType.OUTER)
    pond = Boundary([(400, 400), (600, 400), (600, 550), (400, 550)], BoundaryType.INNER)
    road = Breakline([(150, 200, 110.0), (850, 800, 125.0)])

    result = grid_points(
        points,
        GridSettings(method="idw", resolution=80, power=2.0, max_neighbors=12),
        boundaries=[site, pond],
        breaklines=[road],
    )
    print(f"   Grid size: {result.lattice.nx} x {result.lattice.ny}")
    print(f"   Valid nodes: {result.statistics['count']:,}")

    grid_path = OUTPUT_DIR / "surface.asc"
    export_esri_ascii(result.lattice, grid_path)
    print(f"   Grid saved to: {grid_path}")

    # =========================================================================
    # Step 4: Contours
    # =========================================================================
    print("\n[4] Tracing contours...")

    contours = contour_grid(result, ContourSettings(interval=10.0, smoothing=0.25))
    print(f"   Levels: {len(contours.levels)}")
    print(f"   Polylines: {contours.n_polylines:,}")
    print(f"   Filled bands: {len(contours.filled)}")

    contour_path = OUTPUT_DIR / "contours.geojson"
    export_contours_geojson(contours.contours, contour_path)
    print(f"   Contours saved to: {contour_path}")

    # =========================================================================
    # Step 5: Hand edits on the triangulation
    # =========================================================================
    print("\n[5] Editing the triangulation...")

    mesh = EditableMesh.from_tin(triangulate(points))
    before = mesh.stats()
    new_vertex = mesh.insert_point(500.0, 500.0, 90.0)
    mesh.modify_vertex_z(new_vertex, 85.0)
    print(f"   Triangles: {before.triangles:,} -> {mesh.stats().triangles:,}")

    mesh.undo()
    print(f"   After undo, vertex z = {mesh.vertex(new_vertex)[2]:.1f}")

    # =========================================================================
    # Step 6: Visualization (if matplotlib available)
    # =========================================================================
    print("\n[6] Generating visualization...")

    try:
        import matplotlib.pyplot as plt

        from gridforge.utils.visualization import plot_contours, plot_lattice

        fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(16, 7))
        plot_lattice(result.lattice, ax=ax1, hillshade=result.hillshade, boundaries=[site, pond])
        plot_contours(contours.contours, ax=ax2, label_every=2)

        output_path = OUTPUT_DIR / "gridding_report.png"
        fig.savefig(output_path, dpi=150, bbox_inches='tight')
        print(f"   Report saved to: {output_path}")

        plt.show()

    except ImportError:
        print("   (matplotlib not available - skipping visualization)")

    print("\n" + "=" * 60)
    print("Gridding complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
