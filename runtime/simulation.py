# runtime/simulation.py

import logging
from typing import Optional

import numpy as np

from geometry.geom_io import append_xyz_frame
from runtime.monte_carlo import MonteCarloUpdater

logger = logging.getLogger("flipmesh")


def annealing_temperature(step: int, steps: int, initial_temperature: float) -> float:
    """Temperature at ``step`` of a run that cools linearly to zero.

    The first half runs at ``initial_temperature``; over the second half
    ``T = T0 * (1 - 2 * (step / steps - 1/2))``.
    """
    if steps <= 0:
        return initial_temperature
    fraction = step / steps
    if fraction <= 0.5:
        return initial_temperature
    return max(0.0, initial_temperature * (1.0 - 2.0 * (fraction - 0.5)))


def sweep(trg, updater: MonteCarloUpdater, rng: np.random.Generator, displacement: float) -> None:
    """One Monte Carlo sweep: move every bulk node, then one flip attempt per node.

    Both passes visit the nodes in a freshly shuffled order.
    """
    bulk_ids = np.array(trg.bulk_nodes_ids, dtype=int)
    rng.shuffle(bulk_ids)
    for node_id in bulk_ids:
        updater.move_node(int(node_id), rng.uniform(-displacement, displacement, 3))

    node_ids = np.arange(len(trg))
    rng.shuffle(node_ids)
    for node_id in node_ids:
        if trg.is_boundary(int(node_id)):
            continue
        updater.flip_bond(int(node_id))


def run_simulation(
    trg,
    updater: MonteCarloUpdater,
    params,
    rng: np.random.Generator,
    *,
    steps: Optional[int] = None,
    xyz_path: Optional[str] = None,
    energy_function=None,
) -> dict:
    """Run ``steps`` sweeps and return the final updater statistics.

    ``params`` supplies ``displacement``, ``verlet_rebuild_interval``,
    ``anneal``, ``log_interval`` and ``xyz_interval``. With ``xyz_path`` set
    and a positive ``xyz_interval`` a trajectory frame is appended before
    the first sweep and then every ``xyz_interval`` sweeps.
    """
    steps = int(params.get("mc_steps") if steps is None else steps)
    displacement = float(params.get("displacement"))
    rebuild_interval = int(params.get("verlet_rebuild_interval") or 0)
    log_interval = int(params.get("log_interval") or 0)
    xyz_interval = int(params.get("xyz_interval") or 0)
    anneal = bool(params.get("anneal"))
    initial_temperature = updater.temperature

    logger.info(
        "Starting %d sweeps on %d nodes at T=%.4g%s",
        steps,
        len(trg),
        initial_temperature,
        " with annealing" if anneal else "",
    )
    if xyz_path and xyz_interval > 0:
        append_xyz_frame(trg, xyz_path)

    for step in range(steps):
        if anneal:
            updater.temperature = annealing_temperature(step, steps, initial_temperature)
        sweep(trg, updater, rng, displacement)

        if rebuild_interval > 0 and (step + 1) % rebuild_interval == 0:
            trg.make_verlet_list()
        if xyz_path and xyz_interval > 0 and (step + 1) % xyz_interval == 0:
            append_xyz_frame(trg, xyz_path)
        if log_interval > 0 and (step + 1) % log_interval == 0:
            geometry = trg.global_geometry
            energy = ""
            if energy_function is not None:
                energy = f" E={energy_function(trg[0], trg, params):.6g}"
            logger.info(
                "Sweep %d/%d: T=%.4g A=%.6g V=%.6g ube=%.6g%s",
                step + 1,
                steps,
                updater.temperature,
                geometry.area,
                geometry.volume,
                geometry.unit_bending_energy,
                energy,
            )

    stats = updater.statistics()
    logger.info(
        "Finished: moves %d (rejected %d by bond length, %d by energy), "
        "flips %d (rejected %d by topology, %d by energy)",
        stats["move_attempts"],
        stats["bond_length_move_rejections"],
        stats["move_backs"],
        stats["flip_attempts"],
        stats["bond_length_flip_rejections"],
        stats["flip_backs"],
    )
    return stats
