import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from geometry.triangulation import Triangulation
from modules.energy import bending
from parameters.global_parameters import GlobalParameters
from runtime.monte_carlo import MonteCarloUpdater
from sample_meshes import icosahedron, same_cycle, snapshot_rings


class StubRng:
    """Stands in for ``numpy.random.Generator`` with scripted draws."""

    def __init__(self, uniform=0.5, integer=0):
        self.uniform = uniform
        self.integer = integer
        self.random_calls = 0

    def random(self):
        self.random_calls += 1
        return self.uniform

    def integers(self, low, high):
        return self.integer


def zero_energy(node, trg, params):
    return 0.0


def scripted_energy(values):
    """Energy function that returns ``values`` in order."""
    it = iter(values)

    def energy(node, trg, params):
        return next(it)

    return energy


def bending_energy(node, trg, params):
    return bending.compute_energy(node, trg, params)


def make_updater(trg=None, energy=zero_energy, rng=None, **kwargs):
    trg = trg if trg is not None else Triangulation.spherical(1, 1.0, 0.0)
    rng = rng if rng is not None else StubRng()
    return MonteCarloUpdater(trg, energy, rng, params=GlobalParameters(), **kwargs)


def test_greedy_metropolis():
    updater = make_updater(temperature=0.0)
    assert updater.move_needs_undoing(0.0, 1.0)
    assert not updater.move_needs_undoing(1.0, 0.0)
    assert not updater.move_needs_undoing(1.0, 1.0)
    assert updater.rng.random_calls == 0


def test_metropolis_uses_boltzmann_factor():
    rng = StubRng(uniform=0.5)
    updater = make_updater(rng=rng, temperature=1.0)
    # exp(-1) ~ 0.37 < 0.5 -> undo
    assert updater.move_needs_undoing(0.0, 1.0)
    # exp(-0.5) ~ 0.61 > 0.5 -> keep
    assert not updater.move_needs_undoing(0.0, 0.5)
    # downhill never consults the draw
    calls = rng.random_calls
    assert not updater.move_needs_undoing(1.0, 0.0)
    assert rng.random_calls == calls
    assert updater.e_diff == pytest.approx(1.0)


def test_temperature_is_mutable():
    updater = make_updater(rng=StubRng(uniform=0.5), temperature=1.0)
    assert not updater.move_needs_undoing(0.0, 0.5)
    updater.temperature = 0.0
    assert updater.temperature == 0.0
    assert updater.move_needs_undoing(0.0, 0.5)
    updater.temperature = 100
    assert updater.temperature == 100.0
    assert not updater.move_needs_undoing(0.0, 0.5)


def test_accepted_move_keeps_displacement():
    updater = make_updater(energy=scripted_energy([1.0, 0.5]))
    trg = updater.triangulation
    before = trg[3].position.copy()
    d = np.array([0.01, 0.0, 0.0])
    assert updater.move_node(3, d)
    assert np.allclose(trg[3].position, before + d)
    assert updater.move_attempt_count == 1
    assert updater.move_back_count == 0


def test_rejected_move_is_rolled_back():
    updater = make_updater(energy=scripted_energy([0.0, 1.0]), temperature=0.0)
    trg = updater.triangulation
    before = trg[3].position.copy()
    geometry = trg.global_geometry
    assert not updater.move_node(3, np.array([0.0, 0.02, 0.0]))
    assert np.allclose(trg[3].position, before, rtol=0, atol=1e-15)
    assert trg.global_geometry.isclose(geometry)
    assert updater.move_back_count == 1


def test_move_rejected_by_max_bond_length_skips_energy():
    calls = []

    def energy(node, trg, params):
        calls.append(node.id)
        return 0.0

    trg = icosahedron()
    edge = np.linalg.norm(trg[0].neighbor_distances[0])
    updater = make_updater(trg, energy=energy, max_bond_length=edge * 1.05)
    away = trg[0].position / np.linalg.norm(trg[0].position) * 0.5
    assert not updater.move_node(0, away)
    assert updater.bond_length_move_rejection_count == 1
    assert calls == []
    assert np.allclose(trg[0].position, icosahedron()[0].position)


def test_move_rejected_by_min_bond_length():
    trg = icosahedron()
    edge = np.linalg.norm(trg[0].neighbor_distances[0])
    updater = make_updater(trg, min_bond_length=edge * 0.9)
    towards = trg[0].neighbor_distances[0] * 0.5
    assert not updater.move_node(0, towards)
    assert updater.bond_length_move_rejection_count == 1


def test_bonds_already_out_of_range_may_stay_there():
    trg = icosahedron()
    edge = np.linalg.norm(trg[0].neighbor_distances[0])
    # every bond is already longer than max; a small move keeps it that way
    updater = make_updater(trg, max_bond_length=edge * 0.5)
    assert updater.move_node(0, np.array([0.001, 0.0, 0.0]))
    assert updater.bond_length_move_rejection_count == 0


def test_verlet_neighbours_block_moves_into_them():
    trg = Triangulation.spherical(1, 1.0, 1.5)
    node = trg[0]
    far = max(node.verlet_list, key=lambda i: np.linalg.norm(trg[i].position - node.position))
    assert far not in node.neighbor_ids
    updater = make_updater(trg, min_bond_length=0.2)
    towards = (trg[far].position - node.position) * 0.95
    assert not updater.new_verlet_neighbour_distances_are_between_min_and_max_length(node, towards)
    assert updater.new_verlet_neighbour_distances_are_between_min_and_max_length(node, towards * 0.01)


def test_boundary_nodes_are_fixed():
    trg = Triangulation.planar(4, 4, 3.0, 3.0, 0.0)
    updater = make_updater(trg)
    before = trg[0].position.copy()
    assert not updater.move_node(0, np.array([0.0, 0.0, 0.1]))
    assert np.array_equal(trg[0].position, before)
    assert updater.move_attempt_count == 0
    assert updater.bond_length_move_rejection_count == 0


def test_flip_accepted_and_counted():
    trg = icosahedron()
    updater = make_updater(trg, energy=scripted_energy([1.0, 0.0]), temperature=0.0)
    nn_id = trg[0].neighbor_ids[0]
    assert updater.flip_bond(0, nn_id)
    assert nn_id not in trg[0].neighbor_ids
    assert updater.flip_attempt_count == 1
    assert updater.flip_back_count == 0


def test_rejected_flip_is_unflipped():
    trg = Triangulation.spherical(1, 1.0, 0.0)
    rings = snapshot_rings(trg)
    geometry = trg.global_geometry
    rng = StubRng(integer=0)
    updater = make_updater(trg, energy=scripted_energy([0.0, 5.0]), rng=rng, temperature=0.0)
    assert not updater.flip_bond(12)
    assert updater.flip_back_count == 1
    for node, ring in zip(trg.nodes, rings):
        assert same_cycle(node.neighbor_ids, ring)
    assert trg.global_geometry.isclose(geometry)


def test_flip_topology_rejection():
    trg = icosahedron()
    updater = make_updater(trg, max_bond_length=0.5)
    assert not updater.flip_bond(0)
    assert updater.bond_length_flip_rejection_count == 1
    assert updater.flip_back_count == 0


def test_statistics():
    trg = icosahedron()
    updater = make_updater(trg, max_bond_length=0.5)
    assert updater.statistics()["failed_move_fraction"] == 0.0
    updater.flip_bond(0)
    updater.flip_bond(1)
    stats = updater.statistics()
    assert stats["flip_attempts"] == 2
    assert stats["bond_length_flip_rejections"] == 2
    assert stats["failed_flip_fraction"] == 1.0


def test_greedy_run_never_increases_bending_energy():
    trg = Triangulation.spherical(1, 1.0, 0.0)
    rng = np.random.default_rng(1)
    params = GlobalParameters({"bending_modulus": 1.0})
    updater = MonteCarloUpdater(
        trg,
        bending_energy,
        rng,
        params=params,
        min_bond_length=0.2,
        max_bond_length=1.0,
        temperature=0.0,
    )
    energy = trg.global_geometry.unit_bending_energy
    for _ in range(3):
        for node_id in range(len(trg)):
            updater.move_node(node_id, rng.uniform(-0.02, 0.02, 3))
            updater.flip_bond(node_id)
            new_energy = trg.global_geometry.unit_bending_energy
            assert new_energy <= energy + 1e-9
            energy = new_energy
    trg.validate()
