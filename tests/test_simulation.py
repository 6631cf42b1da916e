import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from geometry.geom_io import parse_simulation_input
from runtime.energy_manager import EnergyModuleManager, resolve_target_geometry
from runtime.monte_carlo import MonteCarloUpdater
from runtime.simulation import annealing_temperature, run_simulation, sweep
from sample_meshes import PLANAR_INPUT, SAMPLE_INPUT


def build(data):
    trg, params = parse_simulation_input(data)
    resolve_target_geometry(params, trg)
    energy = EnergyModuleManager(params.energy_modules).build_energy_function()
    rng = np.random.default_rng(params.seed)
    updater = MonteCarloUpdater(
        trg,
        energy,
        rng,
        params=params,
        min_bond_length=params.min_bond_length,
        max_bond_length=params.max_bond_length,
        temperature=params.temperature,
    )
    return trg, params, updater, rng, energy


def test_annealing_schedule():
    assert annealing_temperature(0, 100, 2.0) == 2.0
    assert annealing_temperature(50, 100, 2.0) == 2.0
    assert annealing_temperature(75, 100, 2.0) == pytest.approx(1.0)
    assert annealing_temperature(100, 100, 2.0) == pytest.approx(0.0)
    assert annealing_temperature(5, 0, 2.0) == 2.0


def test_sweep_attempts_every_bulk_node():
    trg, params, updater, rng, _ = build(PLANAR_INPUT)
    sweep(trg, updater, rng, params.displacement)
    assert updater.move_attempt_count == len(trg.bulk_nodes_ids)
    assert updater.flip_attempt_count == len(trg.bulk_nodes_ids)


def test_run_simulation_keeps_mesh_consistent(caplog):
    trg, params, updater, rng, energy = build(SAMPLE_INPUT)
    with caplog.at_level("INFO", logger="flipmesh"):
        stats = run_simulation(trg, updater, params, rng, energy_function=energy)

    assert stats["move_attempts"] == params.mc_steps * len(trg)
    assert stats["flip_attempts"] == params.mc_steps * len(trg)
    assert "Sweep 2/4" in caplog.text
    assert "Finished" in caplog.text
    trg.validate()
    assert trg.global_geometry.isclose(trg.compute_global_geometry(), rel_tol=1e-8, abs_tol=1e-10)
    for node in trg.nodes:
        for d in node.neighbor_distances:
            assert params.min_bond_length <= np.linalg.norm(d) <= params.max_bond_length


def test_run_simulation_is_reproducible():
    results = []
    for _ in range(2):
        trg, params, updater, rng, _ = build(SAMPLE_INPUT)
        run_simulation(trg, updater, params, rng, steps=2)
        results.append(trg.nodes.positions_array())
    assert np.array_equal(results[0], results[1])


def test_run_simulation_anneals_to_low_temperature():
    trg, params, updater, rng, _ = build(SAMPLE_INPUT)
    params.anneal = True
    run_simulation(trg, updater, params, rng, steps=4)
    assert updater.temperature == pytest.approx(annealing_temperature(3, 4, params.temperature))
    assert updater.temperature < params.temperature


def test_run_simulation_writes_xyz_frames(tmp_path):
    trg, params, updater, rng, _ = build(PLANAR_INPUT)
    params.xyz_interval = 1
    path = tmp_path / "traj.xyz"
    run_simulation(trg, updater, params, rng, steps=2, xyz_path=str(path))
    lines = path.read_text().splitlines()
    assert len(lines) == 3 * (len(trg) + 2)


def test_boundary_stays_put_during_run():
    trg, params, updater, rng, _ = build(PLANAR_INPUT)
    rim = {i: trg[i].position.copy() for i in trg.boundary_ids}
    run_simulation(trg, updater, params, rng)
    for i, pos in rim.items():
        assert np.array_equal(trg[i].position, pos)
