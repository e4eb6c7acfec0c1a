"""
Visualization Utilities

Plotting functions for lattices, contours and triangulations.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Sequence, Tuple

import numpy as np

try:
    import matplotlib.pyplot as plt
    from matplotlib.tri import Triangulation
    HAS_MATPLOTLIB = True
except ImportError:
    HAS_MATPLOTLIB = False

if TYPE_CHECKING:
    from ..analysis.boundaries import Boundary
    from ..analysis.contours import Contour
    from ..core.lattice import Lattice
    from ..core.triangulation import TIN

logger = logging.getLogger(__name__)


def require_matplotlib():
    if not HAS_MATPLOTLIB:
        raise ImportError("matplotlib is required. Install with: pip install gridforge[plot]")


def _axes(ax, figsize):
    if ax is None:
        return plt.subplots(figsize=figsize)
    return ax.figure, ax


def plot_lattice(
    lattice: 'Lattice',
    ax: Optional[plt.Axes] = None,
    title: str = "Gridded Surface",
    cmap: str = "terrain",
    hillshade: Optional[np.ndarray] = None,
    boundaries: Optional[Sequence['Boundary']] = None,
    figsize: Tuple[int, int] = (10, 8),
) -> plt.Figure:
    """
    Plot a lattice as a 2D heatmap.

    Args:
        lattice: Lattice to plot; empty nodes are left blank
        ax: Optional matplotlib axes (creates new figure if None)
        title: Plot title
        cmap: Colormap name
        hillshade: Optional flat hillshade array blended over the colours
        boundaries: Optional boundary polygons to outline
        figsize: Figure size if creating new figure

    Returns:
        matplotlib Figure
    """
    require_matplotlib()
    fig, ax = _axes(ax, figsize)

    data = np.ma.masked_invalid(lattice.as_array())
    min_x, min_y, max_x, max_y = lattice.bounds
    extent = [min_x, max_x, min_y, max_y]

    im = ax.imshow(data, extent=extent, origin='lower', cmap=cmap, aspect='equal')
    plt.colorbar(im, ax=ax, label='Value')

    if hillshade is not None:
        shade = np.ma.masked_array(
            np.asarray(hillshade, dtype=np.float64).reshape(lattice.ny, lattice.nx),
            mask=data.mask,
        )
        ax.imshow(shade, extent=extent, origin='lower', cmap='gray', alpha=0.35, aspect='equal')

    for boundary in boundaries or ():
        x, y = boundary.polygon.exterior.xy
        style = 'r-' if boundary.kind.value == "outer" else 'k--'
        ax.plot(x, y, style, linewidth=1.5)

    ax.set_xlabel('X')
    ax.set_ylabel('Y')
    ax.set_title(title)

    return fig


def plot_contours(
    contours: Sequence['Contour'],
    ax: Optional[plt.Axes] = None,
    title: str = "Contours",
    cmap: str = "viridis",
    label_every: int = 0,
    figsize: Tuple[int, int] = (10, 8),
) -> plt.Figure:
    """
    Plot contour polylines coloured by level.

    Args:
        contours: Contours to draw
        ax: Optional matplotlib axes
        title: Plot title
        cmap: Colormap used to colour levels
        label_every: Label every Nth level at its first polyline (0 disables)
        figsize: Figure size if creating new figure

    Returns:
        matplotlib Figure
    """
    require_matplotlib()
    fig, ax = _axes(ax, figsize)

    colormap = plt.get_cmap(cmap)
    n = max(len(contours) - 1, 1)
    for k, contour in enumerate(contours):
        color = colormap(k / n)
        for polyline in contour.polylines:
            pts = polyline.to_array()
            if polyline.closed and len(pts):
                pts = np.vstack([pts, pts[:1]])
            ax.plot(pts[:, 0], pts[:, 1], color=color, linewidth=0.8)
        if label_every and k % label_every == 0 and contour.polylines:
            x, y = contour.polylines[0].points[len(contour.polylines[0]) // 2]
            ax.annotate(f"{contour.level:g}", (x, y), fontsize=7, ha='center')

    ax.set_aspect('equal')
    ax.set_xlabel('X')
    ax.set_ylabel('Y')
    ax.set_title(title)

    return fig


def plot_tin(
    tin: 'TIN',
    ax: Optional[plt.Axes] = None,
    title: str = "Triangulation",
    show_constrained: bool = True,
    figsize: Tuple[int, int] = (10, 8),
) -> plt.Figure:
    """
    Plot a triangulation as a wireframe over its vertex values.

    Constrained edges are highlighted in red.
    """
    require_matplotlib()
    fig, ax = _axes(ax, figsize)

    if tin.n_triangles:
        tri = Triangulation(tin.x, tin.y, tin.triangles)
        ax.triplot(tri, color='0.4', linewidth=0.4)
    sc = ax.scatter(tin.x, tin.y, c=tin.z, s=6, cmap='terrain', zorder=3)
    if tin.n_points:
        plt.colorbar(sc, ax=ax, label='Value')

    if show_constrained:
        for a, b in tin.constrained_edges:
            ax.plot([tin.x[a], tin.x[b]], [tin.y[a], tin.y[b]], 'r-', linewidth=1.5, zorder=4)

    ax.set_aspect('equal')
    ax.set_xlabel('X')
    ax.set_ylabel('Y')
    ax.set_title(title)

    return fig


def save_figure(
    figure: plt.Figure,
    filepath: str,
    dpi: int = 150,
) -> None:
    """Save figure to file."""
    from ..core.validation import validate_output_path

    filepath = validate_output_path(filepath, "figure")
    figure.savefig(filepath, dpi=dpi, bbox_inches='tight')
    logger.info("Figure saved to: %s", filepath)
