import logging
from typing import Any, Optional

import matplotlib.pyplot as plt
import numpy as np
from mpl_toolkits.mplot3d.art3d import Line3DCollection, Poly3DCollection

from geometry.triangulation import Triangulation

logger = logging.getLogger("flipmesh")

# Per-node quantities that can colour the faces.
NODE_FIELDS = ("area", "volume", "unit_bending_energy")


def _face_values(trg: Triangulation, triangles: np.ndarray, field: str) -> np.ndarray:
    if field not in NODE_FIELDS:
        raise ValueError(f"Cannot colour by '{field}'; choose one of {NODE_FIELDS}.")
    per_node = np.array([getattr(node, field) for node in trg.nodes], dtype=float)
    return per_node[triangles].mean(axis=1)


def plot_triangulation(
    trg: Triangulation,
    ax=None,
    *,
    show_indices: bool = False,
    scatter: bool = False,
    transparent: bool = False,
    draw_faces: bool = True,
    draw_edges: bool = True,
    face_color: Any = None,
    edge_color: str = "k",
    color_by: Optional[str] = None,
    cmap: str = "viridis",
    highlight_boundary: bool = True,
    no_axes: bool = False,
    title: Optional[str] = None,
    show: bool = True,
):
    """
    Draw a triangulation in 3D using Matplotlib.

    Parameters
    ----------
    trg :
        The :class:`~geometry.triangulation.Triangulation` to draw.
    ax : mpl_toolkits.mplot3d.Axes3D, optional
        Axis to draw on. A new figure and axis are created if omitted.
    show_indices : bool, optional
        Annotate every node with its id.
    scatter : bool, optional
        Draw nodes as red points.
    transparent : bool, optional
        Draw faces semi-transparent.
    draw_faces, draw_edges : bool, optional
        Toggle the filled triangles and the bond wire frame.
    color_by : str, optional
        Colour faces by the mean of a per-node quantity over their corners
        (``"area"``, ``"volume"`` or ``"unit_bending_energy"``).
    highlight_boundary : bool, optional
        Mark the fixed boundary nodes of a planar sheet in blue.
    show : bool, optional
        Call :func:`matplotlib.pyplot.show` after drawing. Pass ``False``
        with non-interactive backends or when saving the figure.

    Returns
    -------
    The axis that was drawn on.
    """
    if len(trg) == 0:
        logger.warning("Triangulation has no nodes to visualize.")
        return ax

    if ax is None:
        fig = plt.figure()
        ax = fig.add_subplot(111, projection="3d")

    positions = trg.nodes.positions_array()
    triangles = np.array(trg.triangles(), dtype=int).reshape(-1, 3)

    if draw_faces and len(triangles):
        alpha = 0.4 if transparent else 1.0
        tri_collection = Poly3DCollection(
            list(positions[triangles]),
            alpha=alpha,
            edgecolor=edge_color if draw_edges else "none",
            linewidths=0.5 if draw_edges else 0.0,
        )
        if color_by is not None:
            values = _face_values(trg, triangles, color_by)
            tri_collection.set_array(values)
            tri_collection.set_cmap(cmap)
            ax.figure.colorbar(tri_collection, ax=ax, shrink=0.6, label=color_by)
        else:
            tri_collection.set_facecolor(face_color if face_color is not None else (0.6, 0.8, 1.0))
        ax.add_collection3d(tri_collection)
    elif draw_edges:
        bonds = {
            (min(node.id, nn_id), max(node.id, nn_id))
            for node in trg.nodes
            for nn_id in node.neighbor_ids
        }
        if bonds:
            segments = positions[np.array(sorted(bonds))]
            ax.add_collection3d(Line3DCollection(list(segments), colors=edge_color, linewidths=0.5))

    if scatter:
        ax.scatter(positions[:, 0], positions[:, 1], positions[:, 2], color="r", s=20)

    if highlight_boundary and trg.boundary_ids:
        rim = positions[sorted(trg.boundary_ids)]
        ax.scatter(rim[:, 0], rim[:, 1], rim[:, 2], color="b", s=12)

    if show_indices:
        for node in trg.nodes:
            ax.text(*node.position, f"{node.id}", color="k", fontsize=8)

    ax.set_xlabel("X")
    ax.set_ylabel("Y")
    ax.set_zlabel("Z")
    ax.set_title(title if title is not None else f"{trg.triangulation_type.value} triangulation")

    # Equal aspect ratio
    lo = positions.min(axis=0)
    hi = positions.max(axis=0)
    max_range = max(float((hi - lo).max()), 1e-12)
    mid = (hi + lo) * 0.5
    ax.set_xlim(mid[0] - max_range / 2, mid[0] + max_range / 2)
    ax.set_ylim(mid[1] - max_range / 2, mid[1] + max_range / 2)
    ax.set_zlim(mid[2] - max_range / 2, mid[2] + max_range / 2)

    if no_axes:
        ax.set_axis_off()

    plt.tight_layout()

    if show:
        plt.show()
    return ax
