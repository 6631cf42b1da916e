import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from geometry.nodes import NodeCollection
from geometry.triangulation import BondFlipOutcome, Triangulation
from sample_meshes import icosahedron, same_cycle, snapshot_rings

INF = float("inf")


def _flip_some_bond(trg, node_id):
    """Flip the first bond of ``node_id`` that can be flipped."""
    for nn_id in list(trg[node_id].neighbor_ids):
        outcome = trg.flip_bond(node_id, nn_id, 0.0, INF)
        if outcome.flipped:
            return nn_id, outcome
    pytest.fail(f"No bond of node {node_id} could be flipped")


def _check_ring_symmetry(trg):
    for node in trg.nodes:
        for nn_id in node.neighbor_ids:
            assert node.id in trg[nn_id].neighbor_ids


def test_icosahedron_flip_scenario():
    trg = icosahedron()
    node_id = 0
    nn_id = trg[0].neighbor_ids[0]
    common = trg.previous_and_next_neighbour_global_ids(node_id, nn_id)
    degrees = [len(node.neighbor_ids) for node in trg.nodes]

    outcome = trg.flip_bond(node_id, nn_id, 0.0, INF)

    assert outcome.flipped
    assert {outcome.common_nn_0, outcome.common_nn_1} == {common.j_m_1, common.j_p_1}
    assert len(trg) == 12
    assert len(trg[node_id].neighbor_ids) == degrees[node_id] - 1
    assert len(trg[nn_id].neighbor_ids) == degrees[nn_id] - 1
    assert len(trg[common.j_m_1].neighbor_ids) == degrees[common.j_m_1] + 1
    assert len(trg[common.j_p_1].neighbor_ids) == degrees[common.j_p_1] + 1
    assert nn_id not in trg[node_id].neighbor_ids
    assert common.j_p_1 in trg[common.j_m_1].neighbor_ids
    assert trg.global_geometry.area == pytest.approx(
        trg.compute_global_geometry().area, rel=1e-9
    )
    _check_ring_symmetry(trg)
    trg.validate()


def test_flip_keeps_distance_vectors_aligned_with_rings():
    trg = Triangulation.spherical(1, 1.0, 0.0)
    node_id = 12
    nn_id, outcome = _flip_some_bond(trg, node_id)
    for i in (node_id, nn_id, outcome.common_nn_0, outcome.common_nn_1):
        node = trg[i]
        assert len(node.neighbor_distances) == len(node.neighbor_ids)
        for j, dist in zip(node.neighbor_ids, node.neighbor_distances):
            assert np.allclose(dist, trg[j].position - node.position)


def test_flip_then_unflip_restores_rings_and_geometry():
    trg = Triangulation.spherical(1, 1.0, 0.0)
    rings = snapshot_rings(trg)
    geometry = trg.global_geometry
    areas = [node.area for node in trg.nodes]

    node_id = 20
    nn_id, outcome = _flip_some_bond(trg, node_id)
    trg.unflip_bond(node_id, nn_id, outcome)

    for node, ring in zip(trg.nodes, rings):
        assert same_cycle(node.neighbor_ids, ring)
    assert trg.global_geometry.isclose(geometry, rel_tol=1e-9, abs_tol=1e-12)
    for node, area in zip(trg.nodes, areas):
        assert node.area == pytest.approx(area, rel=1e-9)
    trg.validate()


def test_flip_rejected_for_low_degree():
    trg = icosahedron()
    # Flip one bond so two nodes drop to four neighbours.
    nn_id = trg[0].neighbor_ids[0]
    assert trg.flip_bond(0, nn_id, 0.0, INF).flipped
    assert len(trg[0].neighbor_ids) == 4

    rings = snapshot_rings(trg)
    other = trg[0].neighbor_ids[0]
    outcome = trg.flip_bond(0, other, 0.0, INF)
    assert outcome == BondFlipOutcome()
    assert outcome.common_nn_0 is None and outcome.common_nn_1 is None
    assert snapshot_rings(trg) == rings


@pytest.mark.parametrize("bounds", [(0.0, 0.5), (10.0, INF)])
def test_flip_rejected_by_length_bounds(bounds):
    trg = icosahedron()
    rings = snapshot_rings(trg)
    geometry = trg.global_geometry
    nn_id = trg[0].neighbor_ids[0]
    min_len, max_len = bounds
    outcome = trg.flip_bond(0, nn_id, min_len**2, max_len**2)
    assert not outcome.flipped
    assert snapshot_rings(trg) == rings
    assert trg.global_geometry == geometry


def test_flip_length_bounds_are_strict():
    trg = icosahedron()
    nn_id = trg[0].neighbor_ids[0]
    common = trg.previous_and_next_neighbour_global_ids(0, nn_id)
    new_bond = trg[common.j_m_1].position - trg[common.j_p_1].position
    length_square = float(new_bond.dot(new_bond))
    assert not trg.flip_bond(0, nn_id, 0.0, length_square).flipped
    assert not trg.flip_bond(0, nn_id, length_square, INF).flipped
    assert trg.flip_bond(0, nn_id, 0.0, length_square * 1.0001).flipped


# Eight nodes: 0, 2, 3 form a separating triangle. Bond (0, 1) is flanked by
# 2 and 3, which are already bonded on the far side.
SEPARATING_TRIANGLE_MESH = [
    (1, 0, 2),
    (1, 2, 4),
    (1, 4, 5),
    (1, 5, 3),
    (1, 3, 0),
    (2, 5, 4),
    (5, 2, 3),
    (2, 0, 6),
    (6, 0, 7),
    (0, 3, 7),
    (2, 6, 7),
    (3, 2, 7),
]


def test_flip_creating_double_bond_is_reverted():
    positions = np.random.default_rng(4).normal(size=(8, 3))
    trg = Triangulation(NodeCollection.from_triangles(positions, SEPARATING_TRIANGLE_MESH))
    trg.validate()
    common = trg.previous_and_next_neighbour_global_ids(0, 1)
    assert {common.j_m_1, common.j_p_1} == {2, 3}
    assert 3 in trg[2].neighbor_ids

    rings = snapshot_rings(trg)
    distances = [node.neighbor_distances.copy() for node in trg.nodes]
    geometry = trg.global_geometry

    outcome = trg.flip_bond(0, 1, 0.0, INF)

    assert not outcome.flipped
    assert snapshot_rings(trg) == rings
    for node, dist in zip(trg.nodes, distances):
        assert np.array_equal(node.neighbor_distances, dist)
    assert trg.global_geometry == geometry
    trg.validate()


def test_planar_boundary_blocks_flips():
    trg = Triangulation.planar(4, 4, 3.0, 3.0, 0.0)
    rings = snapshot_rings(trg)
    # 5 and 6 are interior with six bonds each, but the bond is flanked by rim node 1
    common = trg.previous_and_next_neighbour_global_ids(5, 6)
    assert 1 in (common.j_m_1, common.j_p_1)
    assert not trg.flip_bond(5, 6, 0.0, INF).flipped
    assert snapshot_rings(trg) == rings


def test_random_flips_keep_mesh_valid():
    trg = Triangulation.spherical(2, 1.0, 0.0)
    rng = np.random.default_rng(2)
    flipped = 0
    for _ in range(300):
        node_id = int(rng.integers(0, len(trg)))
        ring = trg[node_id].neighbor_ids
        nn_id = ring[int(rng.integers(0, len(ring)))]
        flipped += trg.flip_bond(node_id, nn_id, 0.0, INF).flipped
    assert flipped > 0
    trg.validate()
    assert trg.global_geometry.isclose(trg.compute_global_geometry(), rel_tol=1e-9, abs_tol=1e-10)
    assert len(trg.triangles()) == 2 * len(trg) - 4
