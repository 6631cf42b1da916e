# nodes.py

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

import numpy as np

from core.exceptions import NeighborLookupError
from geometry.vector3 import DEFAULT_DTYPE, Vector3, check_real_dtype

logger = logging.getLogger("flipmesh")


def _empty_distances(dtype=DEFAULT_DTYPE) -> np.ndarray:
    return np.zeros((0, 3), dtype=dtype)


@dataclass(eq=False)
class Node:
    """One mesh vertex together with its ring and cached local geometry."""

    id: int
    position: Vector3
    neighbor_ids: List[int] = field(default_factory=list)
    neighbor_distances: np.ndarray = field(default_factory=_empty_distances)
    verlet_list: List[int] = field(default_factory=list)
    area: float = 0.0
    volume: float = 0.0
    unit_bending_energy: float = 0.0
    curvature_vector: Optional[Vector3] = None

    def __post_init__(self):
        self.position = np.asarray(self.position)
        if not np.issubdtype(self.position.dtype, np.floating):
            self.position = self.position.astype(DEFAULT_DTYPE)
        if self.curvature_vector is None:
            self.curvature_vector = np.zeros(3, dtype=self.position.dtype)

    def __eq__(self, other):
        if not isinstance(other, Node):
            return NotImplemented
        return (
            self.id == other.id
            and self.neighbor_ids == other.neighbor_ids
            and self.verlet_list == other.verlet_list
            and self.area == other.area
            and self.volume == other.volume
            and self.unit_bending_energy == other.unit_bending_energy
            and np.array_equal(self.position, other.position)
            and np.array_equal(self.curvature_vector, other.curvature_vector)
            and np.array_equal(self.neighbor_distances, other.neighbor_distances)
        )

    def copy(self) -> "Node":
        return Node(
            self.id,
            self.position.copy(),
            self.neighbor_ids[:],
            self.neighbor_distances.copy(),
            self.verlet_list[:],
            self.area,
            self.volume,
            self.unit_bending_energy,
            self.curvature_vector.copy(),
        )

    def pop_neighbor(self, nn_id: int) -> None:
        """Remove ``nn_id`` and its distance vector from the ring, if present."""
        try:
            slot = self.neighbor_ids.index(nn_id)
        except ValueError:
            return
        del self.neighbor_ids[slot]
        self.neighbor_distances = np.delete(self.neighbor_distances, slot, axis=0)

    def emplace_neighbor(self, nn_id: int, nn_position: Vector3, slot: int) -> None:
        """Insert ``nn_id`` in front of ring slot ``slot``.

        Nothing happens when ``slot`` is not a valid ring slot.
        """
        if 0 <= slot < len(self.neighbor_ids):
            self.neighbor_ids.insert(slot, nn_id)
            self.neighbor_distances = np.insert(
                self.neighbor_distances, slot, nn_position - self.position, axis=0
            )

    def find_distance_to(self, nn_id: int) -> Optional[Vector3]:
        """Checked lookup of the cached distance vector to a ring neighbour."""
        try:
            slot = self.neighbor_ids.index(nn_id)
        except ValueError:
            return None
        return self.neighbor_distances[slot]

    def distance_to(self, nn_id: int) -> Vector3:
        """Cached distance vector to a ring neighbour.

        Asking for a node that is not in the ring is a programming error and
        raises :class:`NeighborLookupError`.
        """
        try:
            slot = self.neighbor_ids.index(nn_id)
        except ValueError:
            raise NeighborLookupError(self.id, nn_id) from None
        return self.neighbor_distances[slot]

    def to_dict(self) -> dict:
        return {
            "area": float(self.area),
            "volume": float(self.volume),
            "unit_bending_energy": float(self.unit_bending_energy),
            "pos": [float(c) for c in self.position],
            "curvature_vec": [float(c) for c in self.curvature_vector],
            "nn_ids": [int(i) for i in self.neighbor_ids],
            "verlet_list": [int(i) for i in self.verlet_list],
        }

    def __str__(self):
        return (
            f"node: {self.id}\n"
            f"area: {self.area}\n"
            f"volume: {self.volume}\n"
            f"unit_bending_energy: {self.unit_bending_energy}\n"
            f"curvature_vec: {self.curvature_vector}\n"
            f"pos: {self.position}\n"
            f"nn_ids: {' '.join(str(i) for i in self.neighbor_ids)}\n"
        )


class NodeCollection:
    """Owner of all nodes of a triangulation.

    Ids are dense, ``0..N-1``, and a node's id equals its index. The node
    count is fixed at construction; only the rings change afterwards.
    """

    def __init__(self, nodes: Sequence[Node] = (), dtype=DEFAULT_DTYPE):
        self.dtype = check_real_dtype(dtype)
        self.data: List[Node] = list(nodes)
        for expected_id, node in enumerate(self.data):
            if node.id != expected_id:
                raise ValueError(
                    f"Node ids must be contiguous from 0; found id {node.id} at index {expected_id}."
                )
            node.position = np.asarray(node.position, dtype=self.dtype)
            node.curvature_vector = np.asarray(node.curvature_vector, dtype=self.dtype)
            node.neighbor_distances = np.asarray(
                node.neighbor_distances, dtype=self.dtype
            ).reshape(-1, 3)

    @classmethod
    def from_positions_and_rings(
        cls,
        positions: Iterable[Sequence[float]],
        rings: Iterable[Sequence[int]],
        dtype=DEFAULT_DTYPE,
    ) -> "NodeCollection":
        dt = check_real_dtype(dtype)
        nodes = [
            Node(
                idx,
                np.array(pos, dtype=dt),
                [int(i) for i in ring],
                np.zeros((len(ring), 3), dtype=dt),
            )
            for idx, (pos, ring) in enumerate(zip(positions, rings))
        ]
        return cls(nodes, dtype=dt)

    @classmethod
    def from_triangles(cls, positions, triangles, dtype=DEFAULT_DTYPE) -> "NodeCollection":
        """Build nodes from vertex positions and consistently oriented triangles."""
        from geometry.generators import rings_from_triangles

        positions = np.asarray(positions)
        rings = rings_from_triangles(len(positions), triangles)
        return cls.from_positions_and_rings(positions, rings, dtype=dtype)

    @classmethod
    def from_dict(cls, node_dict: Dict[str, dict], dtype=DEFAULT_DTYPE) -> "NodeCollection":
        """Rebuild nodes from snapshot records keyed by stringified id.

        Distance vectors are not part of a snapshot; they come back as zero
        vectors sized to the ring and must be refreshed by the caller.
        Malformed records raise ``KeyError``/``TypeError``/``ValueError``.
        """
        dt = check_real_dtype(dtype)
        by_id: Dict[int, Node] = {}
        for key, record in node_dict.items():
            node_id = int(key)
            nn_ids = [int(i) for i in record["nn_ids"]]
            raw_pos = record["pos"]
            raw_curv = record["curvature_vec"]
            by_id[node_id] = Node(
                id=node_id,
                position=np.array([raw_pos[0], raw_pos[1], raw_pos[2]], dtype=dt),
                neighbor_ids=nn_ids,
                neighbor_distances=np.zeros((len(nn_ids), 3), dtype=dt),
                verlet_list=[int(i) for i in record["verlet_list"]],
                area=float(record["area"]),
                volume=float(record["volume"]),
                unit_bending_energy=float(record["unit_bending_energy"]),
                curvature_vector=np.array([raw_curv[0], raw_curv[1], raw_curv[2]], dtype=dt),
            )
        if sorted(by_id) != list(range(len(by_id))):
            raise ValueError("Snapshot node ids must be contiguous from 0 to N-1.")
        return cls([by_id[i] for i in range(len(by_id))], dtype=dt)

    def to_dict(self) -> Dict[str, dict]:
        """Serialize all nodes to snapshot records keyed by stringified id."""
        return {str(node.id): node.to_dict() for node in self.data}

    def __len__(self) -> int:
        return len(self.data)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.data)

    def __getitem__(self, node_id: int) -> Node:
        return self.data[node_id]

    def __eq__(self, other):
        if not isinstance(other, NodeCollection):
            return NotImplemented
        return self.data == other.data

    # Position block
    def position(self, node_id: int) -> Vector3:
        return self.data[node_id].position

    def set_position(self, node_id: int, new_position) -> None:
        self.data[node_id].position = np.asarray(new_position, dtype=self.dtype).copy()

    def displace(self, node_id: int, displacement) -> None:
        node = self.data[node_id]
        node.position = node.position + displacement

    # Curvature vector block
    def curvature_vector(self, node_id: int) -> Vector3:
        return self.data[node_id].curvature_vector

    def set_curvature_vector(self, node_id: int, new_cv) -> None:
        self.data[node_id].curvature_vector = new_cv

    # Scalar blocks
    def area(self, node_id: int) -> float:
        return self.data[node_id].area

    def set_area(self, node_id: int, new_area: float) -> None:
        self.data[node_id].area = new_area

    def volume(self, node_id: int) -> float:
        return self.data[node_id].volume

    def set_volume(self, node_id: int, new_volume: float) -> None:
        self.data[node_id].volume = new_volume

    def unit_bending_energy(self, node_id: int) -> float:
        return self.data[node_id].unit_bending_energy

    def set_unit_bending_energy(self, node_id: int, new_ube: float) -> None:
        self.data[node_id].unit_bending_energy = new_ube

    # Ring block
    def neighbor_ids(self, node_id: int) -> List[int]:
        return self.data[node_id].neighbor_ids

    def set_neighbor_ids(self, node_id: int, new_ids: Sequence[int]) -> None:
        node = self.data[node_id]
        node.neighbor_ids = [int(i) for i in new_ids]
        node.neighbor_distances = np.zeros((len(node.neighbor_ids), 3), dtype=self.dtype)

    def neighbor_id(self, node_id: int, slot: int) -> int:
        return self.data[node_id].neighbor_ids[slot]

    def set_neighbor_id(self, node_id: int, slot: int, nn_id: int) -> None:
        self.data[node_id].neighbor_ids[slot] = nn_id

    def insert_neighbor_before(self, node_id: int, new_id: int, slot: int) -> None:
        """Insert ``new_id`` in front of ``slot`` in the ring of ``node_id``."""
        self.data[node_id].emplace_neighbor(new_id, self.data[new_id].position, slot)

    def remove_neighbor(self, node_id: int, nn_id: int) -> None:
        self.data[node_id].pop_neighbor(nn_id)

    def neighbor_distances(self, node_id: int) -> np.ndarray:
        return self.data[node_id].neighbor_distances

    def set_neighbor_distance(self, node_id: int, slot: int, distance) -> None:
        self.data[node_id].neighbor_distances[slot] = distance

    def distance_between(self, node_id: int, nn_id: int) -> Vector3:
        return self.data[node_id].distance_to(nn_id)

    def find_distance_between(self, node_id: int, nn_id: int) -> Optional[Vector3]:
        return self.data[node_id].find_distance_to(nn_id)

    def positions_array(self) -> np.ndarray:
        """Return an ``(N, 3)`` copy of all positions."""
        if not self.data:
            return np.zeros((0, 3), dtype=self.dtype)
        return np.vstack([node.position for node in self.data])
