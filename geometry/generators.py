"""Seed meshes for triangulations.

Both generators build an oriented triangle list first and derive each node's
ring by chaining the triangle fan around it. Rings are ordered so that for
consecutive entries ``(a, b)`` the triangle ``(node, a, b)`` has its normal
``(a - node) x (b - node)`` pointing outwards (sphere) or along ``+z``
(plane).
"""

from __future__ import annotations

import itertools
import logging
from typing import Dict, FrozenSet, Iterable, List, Sequence, Tuple

import numpy as np

from core.exceptions import TopologyError
from geometry.nodes import NodeCollection
from geometry.vector3 import DEFAULT_DTYPE, fast_cross

logger = logging.getLogger("flipmesh")

N_ICOSA_NODES = 12
N_ICOSA_EDGES = 30
N_ICOSA_FACES = 20


def rings_from_triangles(n_nodes: int, triangles: Iterable[Sequence[int]]) -> List[List[int]]:
    """Return the ordered neighbour ring of every node.

    ``triangles`` must be consistently oriented. Interior nodes get a closed
    cycle, nodes on a mesh boundary an open fan running from the first to the
    last neighbour.
    """
    fans: List[Dict[int, int]] = [dict() for _ in range(n_nodes)]
    for tri in triangles:
        a, b, c = (int(v) for v in tri)
        for v, x, y in ((a, b, c), (b, c, a), (c, a, b)):
            if x in fans[v]:
                raise TopologyError(
                    f"Directed edge ({v}, {x}) is used by more than one triangle; "
                    "triangles are not consistently oriented.",
                    node_id=v,
                )
            fans[v][x] = y

    rings = []
    for v, fan in enumerate(fans):
        if not fan:
            raise TopologyError(f"Node {v} is not part of any triangle.", node_id=v)
        starts = set(fan) - set(fan.values())
        if len(starts) > 1:
            raise TopologyError(
                f"Node {v} has a non-manifold neighbourhood ({len(starts)} open fans).",
                node_id=v,
            )
        closed = not starts
        start = min(fan) if closed else starts.pop()
        expected = len(fan) if closed else len(fan) + 1

        ring = [start]
        current = start
        while current in fan and len(ring) <= expected:
            current = fan[current]
            if current == start:
                break
            ring.append(current)
        if len(ring) != expected:
            raise TopologyError(
                f"Node {v} has a non-manifold neighbourhood (ring does not close).",
                node_id=v,
            )
        rings.append(ring)
    return rings


def icosahedron_corners() -> Tuple[np.ndarray, List[Tuple[int, int, int]]]:
    """Vertices and outward oriented faces of a regular icosahedron."""
    phi = (1.0 + 5.0**0.5) / 2.0
    corners = []
    for s1, s2 in itertools.product((-1.0, 1.0), repeat=2):
        corners.append((0.0, s1, s2 * phi))
        corners.append((s1, s2 * phi, 0.0))
        corners.append((s2 * phi, 0.0, s1))
    corners = np.array(corners, dtype=float)

    diff = corners[:, None, :] - corners[None, :, :]
    adjacent = np.isclose(np.einsum("ijk,ijk->ij", diff, diff), 4.0)

    faces = []
    for i, j, k in itertools.combinations(range(len(corners)), 3):
        if adjacent[i, j] and adjacent[j, k] and adjacent[i, k]:
            normal = fast_cross(corners[j] - corners[i], corners[k] - corners[i])
            if normal.dot(corners[i] + corners[j] + corners[k]) < 0:
                j, k = k, j
            faces.append((i, j, k))
    return corners, faces


def icosahedron_triangles(n_iter: int) -> Tuple[np.ndarray, List[Tuple[int, int, int]]]:
    """Subdivide every icosahedron face with ``n_iter`` new nodes per edge.

    Returns unit-sphere positions and the oriented triangle list. Ids
    ``0..11`` are the icosahedron corners.
    """
    if n_iter < 0:
        raise ValueError("n_iter must be non-negative")
    corners, faces = icosahedron_corners()
    freq = n_iter + 1

    ids: Dict[tuple, int] = {}
    points: List[np.ndarray] = []

    def point_id(weights) -> int:
        key = tuple(sorted((c, w) for c, w in weights if w > 0))
        if key not in ids:
            ids[key] = len(points)
            points.append(sum(w * corners[c] for c, w in key) / freq)
        return ids[key]

    for corner in range(N_ICOSA_NODES):
        point_id(((corner, freq),))

    triangles = []
    for a, b, c in faces:

        def p(i, j):
            return point_id(((a, freq - i - j), (b, i), (c, j)))

        for i in range(freq):
            for j in range(freq - i):
                triangles.append((p(i, j), p(i + 1, j), p(i, j + 1)))
                if i + j <= freq - 2:
                    triangles.append((p(i + 1, j), p(i + 1, j + 1), p(i, j + 1)))

    positions = np.array(points)
    positions /= np.linalg.norm(positions, axis=1)[:, None]
    return positions, triangles


def icosahedron_nodes(n_iter: int, radius: float = 1.0, dtype=DEFAULT_DTYPE) -> NodeCollection:
    """Nodes of a subdivided icosahedron on a sphere of ``radius``."""
    positions, triangles = icosahedron_triangles(n_iter)
    n_nodes = len(positions)
    n_bulk = n_iter * (n_iter - 1) // 2
    expected = N_ICOSA_NODES + N_ICOSA_EDGES * n_iter + N_ICOSA_FACES * n_bulk
    if n_nodes != expected:
        raise TopologyError(
            f"Subdivision with n_iter={n_iter} produced {n_nodes} nodes, expected {expected}."
        )
    logger.debug(
        "Generated icosahedron subdivision: n_iter=%d, %d nodes, %d triangles",
        n_iter,
        n_nodes,
        len(triangles),
    )
    return NodeCollection.from_triangles(radius * positions, triangles, dtype=dtype)


def planar_grid_triangles(n_length: int, n_width: int) -> List[Tuple[int, int, int]]:
    triangles = []
    for i in range(n_width - 1):
        for j in range(n_length - 1):
            a = i * n_length + j
            b = a + 1
            c = a + n_length + 1
            d = a + n_length
            triangles.append((a, b, c))
            triangles.append((a, c, d))
    return triangles


def planar_grid_nodes(
    n_length: int,
    n_width: int,
    length: float,
    width: float,
    dtype=DEFAULT_DTYPE,
) -> Tuple[NodeCollection, FrozenSet[int]]:
    """Nodes of a flat rectangular sheet and the ids of its rim.

    Node ``i * n_length + j`` sits at ``(j * length / (n_length - 1),
    i * width / (n_width - 1), 0)``.
    """
    if n_length < 2 or n_width < 2:
        raise ValueError("A planar grid needs at least 2 nodes in each direction.")
    dx = length / (n_length - 1)
    dy = width / (n_width - 1)

    positions = []
    boundary = set()
    for i in range(n_width):
        for j in range(n_length):
            positions.append((j * dx, i * dy, 0.0))
            if i in (0, n_width - 1) or j in (0, n_length - 1):
                boundary.add(i * n_length + j)

    triangles = planar_grid_triangles(n_length, n_width)
    nodes = NodeCollection.from_triangles(positions, triangles, dtype=dtype)
    logger.debug(
        "Generated planar grid %dx%d with %d boundary nodes",
        n_length,
        n_width,
        len(boundary),
    )
    return nodes, frozenset(boundary)
