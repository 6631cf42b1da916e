import math
import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from geometry.triangulation import Triangulation
from sample_meshes import unit_square


def _pairs(trg):
    return {
        (min(node.id, other), max(node.id, other))
        for node in trg.nodes
        for other in node.verlet_list
    }


SIDES = {(0, 1), (0, 2), (1, 3), (2, 3)}
DIAGONALS = {(0, 3), (1, 2)}


def test_unit_square_without_diagonals():
    trg = unit_square(1.2)
    assert _pairs(trg) == SIDES


def test_unit_square_with_diagonals():
    trg = unit_square(1.5)
    assert _pairs(trg) == SIDES | DIAGONALS


def test_cutoff_is_strict():
    trg = unit_square(1.0)
    assert _pairs(trg) == set()
    trg.set_verlet_radius(math.sqrt(2.0) + 1e-9)
    trg.make_verlet_list()
    assert _pairs(trg) == SIDES | DIAGONALS


def test_verlet_list_is_symmetric_and_excludes_self():
    trg = Triangulation.spherical(2, 1.0, 0.6)
    for node in trg.nodes:
        assert node.id not in node.verlet_list
        for other in node.verlet_list:
            assert node.id in trg[other].verlet_list


def test_verlet_list_is_not_updated_until_rebuilt():
    trg = unit_square(1.2)
    stale = [list(node.verlet_list) for node in trg.nodes]
    trg.nodes.set_position(3, [5.0, 5.0, 0.0])
    assert [node.verlet_list for node in trg.nodes] == stale
    trg.make_verlet_list()
    assert _pairs(trg) == {(0, 1), (0, 2)}


def test_zero_radius_gives_empty_lists():
    trg = Triangulation.spherical(1, 1.0, 0.0)
    assert all(node.verlet_list == [] for node in trg.nodes)
    assert trg.verlet_radius_squared == 0.0


def test_verlet_list_matches_brute_force():
    trg = Triangulation.spherical(1, 2.0, 1.3)
    positions = trg.nodes.positions_array()
    for node in trg.nodes:
        d2 = np.sum((positions - node.position) ** 2, axis=1)
        expected = [i for i in range(len(trg)) if i != node.id and d2[i] < 1.3**2]
        assert node.verlet_list == expected
