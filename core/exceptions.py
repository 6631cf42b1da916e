"""Custom exception types for flipmesh."""

from __future__ import annotations


class FlipMeshError(Exception):
    """Base class for domain-specific errors."""


class NeighborLookupError(FlipMeshError):
    """Raised when a neighbour relation is dereferenced that does not exist.

    This is a usage error on the unchecked fast path. The library never
    catches it; a mesh that triggers it is not safe to keep simulating.
    """

    def __init__(self, node_id: int, nn_id: int, message: str | None = None) -> None:
        if message is None:
            message = (
                f"Node {nn_id} is not a next neighbour of node {node_id}."
            )
        super().__init__(message)
        self.node_id = node_id
        self.nn_id = nn_id


class DegenerateTriangleError(FlipMeshError):
    """Raised by diagnostic geometry checks when a face normal vanishes."""

    def __init__(self, node_id: int, face_normal_norm: float) -> None:
        super().__init__(
            f"A triangle face around node {node_id} is degenerate "
            f"(face normal norm {face_normal_norm:.3e})."
        )
        self.node_id = node_id
        self.face_normal_norm = face_normal_norm


class TopologyError(FlipMeshError):
    """Raised when neighbour rings are inconsistent or not manifold."""

    def __init__(self, message: str, *, node_id: int | None = None) -> None:
        super().__init__(message)
        self.node_id = node_id


class TriangulationTypeError(FlipMeshError):
    """Raised when an operation is not supported by the triangulation variant."""


__all__ = [
    "FlipMeshError",
    "NeighborLookupError",
    "DegenerateTriangleError",
    "TopologyError",
    "TriangulationTypeError",
]
