# triangulation.py

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple

import numpy as np

from core.exceptions import (
    DegenerateTriangleError,
    NeighborLookupError,
    TopologyError,
    TriangulationTypeError,
)
from geometry.aggregate import Geometry
from geometry.generators import icosahedron_nodes, planar_grid_nodes
from geometry.nodes import NodeCollection
from geometry.vector3 import DEFAULT_DTYPE, Vector3, fast_cross, norm, norm_square, row_dot

logger = logging.getLogger("flipmesh")

# A node needs more than this many bonds to be allowed to donate one in a flip.
BOND_DONATION_CUTOFF = 4

# Face normal norms below this are treated as degenerate triangles by the
# diagnostic geometry checks.
DEGENERATE_FACE_NORM = 1e-10


def _truthy_env(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes", "on"}


class TriangulationType(str, Enum):
    SPHERICAL = "spherical"
    PLANAR = "planar"


@dataclass(frozen=True)
class BondFlipOutcome:
    """Result of a flip attempt.

    ``common_nn_0`` and ``common_nn_1`` are the endpoints of the newly created
    bond. They are ``None`` whenever ``flipped`` is false.
    """

    flipped: bool = False
    common_nn_0: Optional[int] = None
    common_nn_1: Optional[int] = None


@dataclass(frozen=True)
class Neighbors:
    """Ring entries directly before (``j_m_1``) and after (``j_p_1``) a neighbour."""

    j_m_1: int
    j_p_1: int

    @staticmethod
    def plus_one(j: int, ring_size: int) -> int:
        return j + 1 if j < ring_size - 1 else 0

    @staticmethod
    def minus_one(j: int, ring_size: int) -> int:
        return ring_size - 1 if j == 0 else j - 1


def mixed_area(lij, lij_p_1, triangle_area, cot_at_j, cot_at_j_p_1):
    """Share of the triangle ``(i, j, j+1)`` that belongs to node ``i``.

    Voronoi area when the triangle is not obtuse, half the triangle when it is
    obtuse at ``i`` and a quarter when it is obtuse at ``j`` or ``j+1``
    (Meyer et al. 2003). Works elementwise on ``(n, 3)`` edge arrays.
    """
    voronoi = (cot_at_j_p_1 * norm_square(lij) + cot_at_j * norm_square(lij_p_1)) / 8.0
    acute_at_rim = (cot_at_j > 0.0) & (cot_at_j_p_1 > 0.0)
    acute_at_node = row_dot(lij, lij_p_1) > 0.0
    return np.where(
        acute_at_rim,
        np.where(acute_at_node, voronoi, triangle_area / 2.0),
        triangle_area / 4.0,
    )


class _ClosedSurface:
    """Boundary free surface: every node is a bulk node."""

    boundary_ids: FrozenSet[int] = frozenset()

    def __init__(self, triangulation: "Triangulation"):
        self.trg = triangulation

    def update_node_geometry(self, node_id: int) -> None:
        self.trg.update_bulk_node_geometry(node_id)

    def flip_allowed(self, node_id: int, nn_id: int, common_nns: Neighbors) -> bool:
        return True


class _OpenSurface:
    """Surface with a fixed rim whose nodes carry no geometry."""

    def __init__(self, triangulation: "Triangulation", boundary_ids: FrozenSet[int]):
        self.trg = triangulation
        self.boundary_ids = boundary_ids

    def update_node_geometry(self, node_id: int) -> None:
        if node_id in self.boundary_ids:
            self.trg.update_boundary_node_geometry(node_id)
        else:
            self.trg.update_bulk_node_geometry(node_id)

    def flip_allowed(self, node_id: int, nn_id: int, common_nns: Neighbors) -> bool:
        boundary = self.boundary_ids
        return not (
            node_id in boundary
            or nn_id in boundary
            or common_nns.j_m_1 in boundary
            or common_nns.j_p_1 in boundary
        )


class Triangulation:
    """Dynamically triangulated surface.

    Owns the nodes, the global :class:`Geometry` and, for planar sheets, the
    set of boundary node ids. Positions change only through
    :meth:`move_node` and topology only through bond flips; both keep the
    global geometry current by folding the change of the touched patch into
    it.

    Use :meth:`spherical`, :meth:`planar` or :meth:`from_snapshot` to build
    one.
    """

    def __init__(
        self,
        nodes: NodeCollection,
        *,
        triangulation_type=TriangulationType.SPHERICAL,
        boundary_ids: Iterable[int] = (),
        verlet_radius: float = 0.0,
        debug_checks: Optional[bool] = None,
    ):
        self.nodes_ = nodes
        self.triangulation_type = TriangulationType(triangulation_type)
        boundary = frozenset(int(i) for i in boundary_ids)
        if self.triangulation_type is TriangulationType.SPHERICAL:
            if boundary:
                raise TriangulationTypeError(
                    "Spherical triangulations are closed and cannot have boundary nodes."
                )
            self._surface = _ClosedSurface(self)
        else:
            self._surface = _OpenSurface(self, boundary)
        self.bulk_nodes_ids: List[int] = [
            node.id for node in nodes if node.id not in boundary
        ]
        if debug_checks is None:
            debug_checks = _truthy_env("FLIPMESH_DEBUG_GEOMETRY")
        self.debug_checks = bool(debug_checks)
        self.R_initial: Optional[float] = None

        self.global_geometry_ = Geometry()
        self.set_verlet_radius(verlet_radius)
        self.initiate_advanced_geometry()
        logger.debug(
            "Initialized %s triangulation: %d nodes (%d boundary), area=%.6g, volume=%.6g",
            self.triangulation_type.value,
            len(nodes),
            len(boundary),
            self.global_geometry_.area,
            self.global_geometry_.volume,
        )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def spherical(
        cls,
        n_iter: int,
        radius: float,
        verlet_radius: float,
        *,
        dtype=DEFAULT_DTYPE,
        debug_checks: Optional[bool] = None,
    ) -> "Triangulation":
        """Subdivided icosahedron of the given radius."""
        nodes = icosahedron_nodes(n_iter, radius, dtype=dtype)
        trg = cls(
            nodes,
            triangulation_type=TriangulationType.SPHERICAL,
            verlet_radius=verlet_radius,
            debug_checks=debug_checks,
        )
        trg.R_initial = radius
        return trg

    @classmethod
    def planar(
        cls,
        n_length: int,
        n_width: int,
        length: float,
        width: float,
        verlet_radius: float,
        *,
        dtype=DEFAULT_DTYPE,
        debug_checks: Optional[bool] = None,
    ) -> "Triangulation":
        """Flat rectangular sheet whose rim nodes form the fixed boundary."""
        nodes, boundary = planar_grid_nodes(n_length, n_width, length, width, dtype=dtype)
        return cls(
            nodes,
            triangulation_type=TriangulationType.PLANAR,
            boundary_ids=boundary,
            verlet_radius=verlet_radius,
            debug_checks=debug_checks,
        )

    @classmethod
    def from_snapshot(
        cls,
        node_dict: dict,
        verlet_radius: float,
        *,
        dtype=DEFAULT_DTYPE,
        debug_checks: Optional[bool] = None,
        initial_radius: Optional[float] = None,
    ) -> "Triangulation":
        """Rebuild a closed triangulation from :meth:`to_dict` output.

        Distance vectors, the global geometry and the Verlet list are
        recomputed from the stored positions and rings. ``R_initial`` is
        ``initial_radius`` when given, otherwise the mean distance of the
        nodes from their mass center.
        """
        nodes = NodeCollection.from_dict(node_dict, dtype=dtype)
        trg = cls(
            nodes,
            triangulation_type=TriangulationType.SPHERICAL,
            verlet_radius=verlet_radius,
            debug_checks=debug_checks,
        )
        if initial_radius is None:
            positions = nodes.positions_array()
            initial_radius = float(norm(positions - positions.mean(axis=0)).mean())
        trg.R_initial = float(initial_radius)
        return trg

    def initiate_advanced_geometry(self) -> None:
        self.initiate_distance_vectors()
        self.make_global_geometry()
        self.make_verlet_list()

    def initiate_distance_vectors(self) -> None:
        for node in self.nodes_:
            self.update_nn_distance_vectors(node.id)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self.nodes_)

    def size(self) -> int:
        return len(self.nodes_)

    def __getitem__(self, node_id: int):
        if not 0 <= node_id < len(self.nodes_):
            raise IndexError(f"Node id {node_id} out of range [0, {len(self.nodes_)}).")
        return self.nodes_.data[node_id]

    @property
    def nodes(self) -> NodeCollection:
        return self.nodes_

    @property
    def global_geometry(self) -> Geometry:
        return self.global_geometry_

    @property
    def boundary_ids(self) -> FrozenSet[int]:
        return self._surface.boundary_ids

    def is_boundary(self, node_id: int) -> bool:
        return node_id in self._surface.boundary_ids

    def to_dict(self) -> dict:
        """Snapshot of all nodes, see :meth:`NodeCollection.to_dict`."""
        return self.nodes_.to_dict()

    def mass_center(self) -> Vector3:
        return self.nodes_.positions_array().mean(axis=0)

    def triangles(self) -> List[Tuple[int, int, int]]:
        """Oriented triangles, each listed once, recovered from the rings."""
        result = []
        boundary = self._surface.boundary_ids
        for node in self.nodes_:
            ring = node.neighbor_ids
            n = len(ring)
            pairs = n if node.id not in boundary else n - 1
            for k in range(pairs):
                a, b = ring[k], ring[Neighbors.plus_one(k, n)]
                if node.id < a and node.id < b:
                    result.append((node.id, a, b))
        return result

    # ------------------------------------------------------------------
    # Verlet list
    # ------------------------------------------------------------------
    def set_verlet_radius(self, radius: float) -> None:
        self.verlet_radius = float(radius)
        self.verlet_radius_squared = self.verlet_radius * self.verlet_radius

    def make_verlet_list(self) -> None:
        """Rebuild every node's Verlet list with an all-pairs distance scan."""
        positions = self.nodes_.positions_array()
        for node in self.nodes_:
            d2 = norm_square(positions - node.position)
            close = d2 < self.verlet_radius_squared
            close[node.id] = False
            node.verlet_list = np.flatnonzero(close).tolist()

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------
    def update_nn_distance_vectors(self, node_id: int) -> None:
        node = self.nodes_.data[node_id]
        if node.neighbor_ids:
            nn_positions = np.array([self.nodes_.data[i].position for i in node.neighbor_ids])
            node.neighbor_distances = nn_positions - node.position
        else:
            node.neighbor_distances = np.zeros((0, 3), dtype=self.nodes_.dtype)

    def update_bulk_node_geometry(self, node_id: int) -> None:
        """Recompute distances, area, volume, curvature and bending energy of a node."""
        self.update_nn_distance_vectors(node_id)
        node = self.nodes_.data[node_id]

        lij = node.neighbor_distances
        lij_p_1 = np.roll(lij, -1, axis=0)
        ljj_p_1 = lij_p_1 - lij

        face_normal = fast_cross(lij, lij_p_1)
        face_normal_norm = norm(face_normal)
        if self.debug_checks:
            smallest = float(face_normal_norm.min())
            if not smallest >= DEGENERATE_FACE_NORM:
                raise DegenerateTriangleError(node_id, smallest)

        with np.errstate(divide="ignore", invalid="ignore"):
            # |lij x ljj_p_1| == |lij_p_1 x ljj_p_1| == |lij x lij_p_1|
            cot_at_j = -row_dot(lij, ljj_p_1) / face_normal_norm
            cot_at_j_p_1 = row_dot(lij_p_1, ljj_p_1) / face_normal_norm

            face_area = mixed_area(
                lij, lij_p_1, 0.5 * face_normal_norm, cot_at_j, cot_at_j_p_1
            )
            area_sum = face_area.sum()
            face_normal_sum = ((face_area / face_normal_norm)[:, None] * face_normal).sum(axis=0)
            local_curvature_vec = -(
                cot_at_j_p_1[:, None] * lij + cot_at_j[:, None] * lij_p_1
            ).sum(axis=0)

            node.area = float(area_sum)
            node.volume = float(node.position.dot(face_normal_sum) / 3.0)
            node.curvature_vector = -local_curvature_vec / (2.0 * area_sum)
            node.unit_bending_energy = float(
                local_curvature_vec.dot(local_curvature_vec) / (8.0 * area_sum)
            )

    def update_boundary_node_geometry(self, node_id: int) -> None:
        """Boundary nodes only track distances; their geometry stays zero."""
        self.update_nn_distance_vectors(node_id)

    def update_node_geometry(self, node_id: int) -> None:
        self._surface.update_node_geometry(node_id)

    def update_two_ring_geometry(self, node_id: int) -> None:
        update = self._surface.update_node_geometry
        update(node_id)
        for nn_id in self.nodes_.data[node_id].neighbor_ids:
            update(nn_id)

    def update_diamond_geometry(self, node_id: int, nn_id: int, cnn_0: int, cnn_1: int) -> None:
        update = self._surface.update_node_geometry
        update(node_id)
        update(nn_id)
        update(cnn_0)
        update(cnn_1)

    def two_ring_geometry(self, node_id: int) -> Geometry:
        data = self.nodes_.data
        trg = Geometry.from_node(data[node_id])
        for nn_id in data[node_id].neighbor_ids:
            trg.add_node(data[nn_id])
        return trg

    def diamond_geometry(self, node_id: int, nn_id: int, cnn_0: int, cnn_1: int) -> Geometry:
        data = self.nodes_.data
        return Geometry.from_nodes((data[node_id], data[nn_id], data[cnn_0], data[cnn_1]))

    def update_global_geometry(self, lg_old: Geometry, lg_new: Geometry) -> None:
        self.global_geometry_ = self.global_geometry_ + (lg_new - lg_old)

    def make_global_geometry(self) -> None:
        """Recompute every node and sum the global geometry from scratch."""
        self.global_geometry_ = Geometry()
        for node in self.nodes_:
            self._surface.update_node_geometry(node.id)
        self.global_geometry_ = self.compute_global_geometry()

    def compute_global_geometry(self) -> Geometry:
        """Sum of the current per-node geometry, without touching any state."""
        return Geometry.from_nodes(self.nodes_)

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------
    def move_node(self, node_id: int, displacement) -> None:
        """Displace a node and update all geometry that depends on its position.

        ``move_node(node_id, -displacement)`` undoes the move up to round-off.
        """
        pre_update_geometry = self.two_ring_geometry(node_id)
        self.nodes_.displace(node_id, displacement)
        self.update_two_ring_geometry(node_id)
        post_update_geometry = self.two_ring_geometry(node_id)
        self.update_global_geometry(pre_update_geometry, post_update_geometry)

    def translate_all_nodes(self, translation_vector) -> None:
        for node_id in range(len(self.nodes_)):
            self.move_node(node_id, translation_vector)

    def scale_node_coordinates(self, x_stretch: float, y_stretch: float = 1.0, z_stretch: float = 1.0) -> None:
        """Stretch or squeeze the mesh along the coordinate axes."""
        factors = np.array([x_stretch - 1.0, y_stretch - 1.0, z_stretch - 1.0])
        for node in self.nodes_:
            self.move_node(node.id, node.position * factors)

    def scale_all_nodes_to_R_init(self) -> None:
        """Project every node radially onto the sphere of radius ``R_initial``.

        The sphere is centred on the mass center taken before any node moves.
        """
        if self.triangulation_type is not TriangulationType.SPHERICAL:
            raise TriangulationTypeError(
                "Rescaling to the initial radius is only defined for closed surfaces."
            )
        if self.R_initial is None:
            raise ValueError("Triangulation has no initial radius to rescale to.")
        mass_center = self.mass_center()
        for node in self.nodes_:
            diff = node.position - mass_center
            target = mass_center + diff * (self.R_initial / np.linalg.norm(diff))
            self.move_node(node.id, target - node.position)

    # ------------------------------------------------------------------
    # Ring queries
    # ------------------------------------------------------------------
    def common_neighbours(self, node_id_0: int, node_id_1: int) -> List[int]:
        nn_ids1 = set(self.nodes_.data[node_id_1].neighbor_ids)
        return sorted(set(self.nodes_.data[node_id_0].neighbor_ids) & nn_ids1)

    def two_common_neighbours(self, node_id_0: int, node_id_1: int) -> Tuple[Optional[int], Optional[int]]:
        """First two ring entries of ``node_id_0`` that neighbour ``node_id_1``."""
        found: List[Optional[int]] = []
        nn_ids1 = self.nodes_.data[node_id_1].neighbor_ids
        for n0_nn_id in self.nodes_.data[node_id_0].neighbor_ids:
            if n0_nn_id in nn_ids1:
                found.append(n0_nn_id)
                if len(found) == 2:
                    break
        found.extend([None] * (2 - len(found)))
        return found[0], found[1]

    def previous_and_next_neighbour_local_ids(self, node_id: int, nn_id: int) -> Neighbors:
        nn_ids = self.nodes_.data[node_id].neighbor_ids
        try:
            local_nn_id = nn_ids.index(nn_id)
        except ValueError:
            raise NeighborLookupError(node_id, nn_id) from None
        nn_number = len(nn_ids)
        return Neighbors(
            j_m_1=Neighbors.minus_one(local_nn_id, nn_number),
            j_p_1=Neighbors.plus_one(local_nn_id, nn_number),
        )

    def previous_and_next_neighbour_global_ids(self, node_id: int, nn_id: int) -> Neighbors:
        nn_ids = self.nodes_.data[node_id].neighbor_ids
        local = self.previous_and_next_neighbour_local_ids(node_id, nn_id)
        return Neighbors(j_m_1=nn_ids[local.j_m_1], j_p_1=nn_ids[local.j_p_1])

    def order_neighbour_ids(self, node_id: int) -> List[int]:
        """Return the ring of ``node_id`` sorted into a geometric cycle.

        Only the adjacency between ring members is used, so the result may
        run in either direction.
        """
        nn_ids = self.nodes_.data[node_id].neighbor_ids
        first = nn_ids[0]
        before, after = self.two_common_neighbours(node_id, first)
        if before is None or after is None:
            raise TopologyError(
                f"Node {node_id} and {first} do not share two neighbours.", node_id=node_id
            )
        ordered = [before, first, after]
        while len(ordered) < len(nn_ids):
            cnn_0, cnn_1 = self.two_common_neighbours(node_id, ordered[-1])
            ordered.append(cnn_1 if cnn_0 in ordered else cnn_0)
        return ordered

    def orient_surface_of_a_sphere(self) -> None:
        """Re-order all rings of a closed surface so that face normals point outwards."""
        if self.triangulation_type is not TriangulationType.SPHERICAL:
            raise TriangulationTypeError(
                "Ring orientation by the mass center is only defined for closed surfaces."
            )
        mass_center = self.mass_center()
        for node in self.nodes_:
            nn_ids_temp = self.order_neighbour_ids(node.id)
            li0 = self.nodes_.position(nn_ids_temp[0]) - node.position
            li1 = self.nodes_.position(nn_ids_temp[1]) - node.position
            if fast_cross(li0, li1).dot(node.position - mass_center) < 0:
                nn_ids_temp.reverse()
            self.nodes_.set_neighbor_ids(node.id, nn_ids_temp)
        self.initiate_distance_vectors()
        self.make_global_geometry()

    # ------------------------------------------------------------------
    # Bond flips
    # ------------------------------------------------------------------
    def emplace_before(self, center_node_id: int, anchor_id: int, new_value: int) -> None:
        """Insert ``new_value`` in front of ``anchor_id`` in the ring of ``center_node_id``.

        Nothing is inserted if ``anchor_id`` is not in the ring.
        """
        try:
            anchor_pos = self.nodes_.data[center_node_id].neighbor_ids.index(anchor_id)
        except ValueError:
            return
        self.nodes_.insert_neighbor_before(center_node_id, new_value, anchor_pos)

    def delete_connection_between_nodes_of_old_edge(self, old_node_id0: int, old_node_id1: int) -> None:
        self.nodes_.remove_neighbor(old_node_id0, old_node_id1)
        self.nodes_.remove_neighbor(old_node_id1, old_node_id0)

    def flip_bond_unchecked(
        self, node_id: int, nn_id: int, common_nn_j_m_1: int, common_nn_j_p_1: int
    ) -> BondFlipOutcome:
        """Rewire the quadrilateral ``j_m_1 - node - j_p_1 - nn`` without any checks.

        Replaces bond ``(node_id, nn_id)`` by ``(common_nn_j_m_1,
        common_nn_j_p_1)``. Geometry is not updated. Wrong input silently
        corrupts the rings.
        """
        self.emplace_before(common_nn_j_m_1, node_id, common_nn_j_p_1)
        self.emplace_before(common_nn_j_p_1, nn_id, common_nn_j_m_1)
        self.delete_connection_between_nodes_of_old_edge(node_id, nn_id)
        return BondFlipOutcome(True, common_nn_j_m_1, common_nn_j_p_1)

    def flip_bond(
        self,
        node_id: int,
        nn_id: int,
        min_bond_length_square: float,
        max_bond_length_square: float,
    ) -> BondFlipOutcome:
        """Try to flip the bond between ``node_id`` and its neighbour ``nn_id``.

        The flip is declined, leaving the mesh untouched, when either node has
        ``BOND_DONATION_CUTOFF`` or fewer bonds, when it touches the boundary
        of a planar sheet, when the new bond's squared length is not strictly
        between the two bounds, or when the bond or the new bond would not be
        shared by exactly two triangles.
        """
        data = self.nodes_.data
        if (
            len(data[node_id].neighbor_ids) <= BOND_DONATION_CUTOFF
            or len(data[nn_id].neighbor_ids) <= BOND_DONATION_CUTOFF
        ):
            return BondFlipOutcome()
        common_nns = self.previous_and_next_neighbour_global_ids(node_id, nn_id)
        if not self._surface.flip_allowed(node_id, nn_id, common_nns):
            return BondFlipOutcome()
        return self.flip_bond_in_quadrilateral(
            node_id, nn_id, common_nns, min_bond_length_square, max_bond_length_square
        )

    def flip_bond_in_quadrilateral(
        self,
        node_id: int,
        nn_id: int,
        common_nns: Neighbors,
        min_bond_length_square: float,
        max_bond_length_square: float,
    ) -> BondFlipOutcome:
        cnn_0, cnn_1 = common_nns.j_m_1, common_nns.j_p_1
        bond = self.nodes_.position(cnn_0) - self.nodes_.position(cnn_1)
        bond_length_square = float(bond.dot(bond))
        if not (min_bond_length_square < bond_length_square < max_bond_length_square):
            return BondFlipOutcome()
        if len(self.common_neighbours(node_id, nn_id)) != 2:
            return BondFlipOutcome()

        pre_update_geometry = self.diamond_geometry(node_id, nn_id, cnn_0, cnn_1)
        saved_rings = {
            i: (self.nodes_.data[i].neighbor_ids[:], self.nodes_.data[i].neighbor_distances)
            for i in (node_id, nn_id, cnn_0, cnn_1)
        }
        outcome = self.flip_bond_unchecked(node_id, nn_id, cnn_0, cnn_1)
        if len(self.common_neighbours(cnn_0, cnn_1)) != 2:
            for i, (nn_ids, nn_distances) in saved_rings.items():
                self.nodes_.data[i].neighbor_ids = nn_ids
                self.nodes_.data[i].neighbor_distances = nn_distances
            logger.debug(
                "Flip of bond (%d, %d) reverted: new bond (%d, %d) would not be manifold",
                node_id,
                nn_id,
                cnn_0,
                cnn_1,
            )
            return BondFlipOutcome()

        self.update_diamond_geometry(node_id, nn_id, cnn_0, cnn_1)
        post_update_geometry = self.diamond_geometry(node_id, nn_id, cnn_0, cnn_1)
        self.update_global_geometry(pre_update_geometry, post_update_geometry)
        return outcome

    def unflip_bond(self, node_id: int, nn_id: int, outcome: BondFlipOutcome) -> None:
        """Undo the flip of ``(node_id, nn_id)`` that just returned ``outcome``.

        No validation is performed.
        """
        cnn_0, cnn_1 = outcome.common_nn_0, outcome.common_nn_1
        pre_update_geometry = self.diamond_geometry(node_id, nn_id, cnn_0, cnn_1)
        self.flip_bond_unchecked(cnn_0, cnn_1, nn_id, node_id)
        self.update_diamond_geometry(node_id, nn_id, cnn_0, cnn_1)
        post_update_geometry = self.diamond_geometry(node_id, nn_id, cnn_0, cnn_1)
        self.update_global_geometry(pre_update_geometry, post_update_geometry)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def validate(self) -> None:
        """Raise :class:`TopologyError` if any ring invariant is violated."""
        data = self.nodes_.data
        boundary = self._surface.boundary_ids
        for node in data:
            ring = node.neighbor_ids
            if len(ring) != len(node.neighbor_distances):
                raise TopologyError(
                    f"Node {node.id} has {len(ring)} neighbours but "
                    f"{len(node.neighbor_distances)} distance vectors.",
                    node_id=node.id,
                )
            if len(set(ring)) != len(ring):
                raise TopologyError(f"Node {node.id} lists a neighbour twice.", node_id=node.id)
            for nn_id in ring:
                if node.id not in data[nn_id].neighbor_ids:
                    raise TopologyError(
                        f"Node {node.id} lists {nn_id} as neighbour but not vice versa.",
                        node_id=node.id,
                    )
            if node.id in boundary:
                continue
            n = len(ring)
            for k in range(n):
                a, b = ring[k], ring[Neighbors.plus_one(k, n)]
                if b not in data[a].neighbor_ids:
                    raise TopologyError(
                        f"Ring of node {node.id} is not a cycle: {a} and {b} are not bonded.",
                        node_id=node.id,
                    )
