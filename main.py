import argparse
import logging
import os
import sys

import matplotlib.pyplot as plt
import numpy as np

from flipmesh import __version__
from geometry.geom_io import load_data, parse_simulation_input, save_snapshot
from runtime.energy_manager import EnergyModuleManager, resolve_target_geometry
from runtime.logging_config import setup_logging
from runtime.monte_carlo import MonteCarloUpdater
from runtime.simulation import run_simulation

logger = logging.getLogger("flipmesh")


def resolve_input_path(path: str) -> str:
    """Return a valid input path, allowing the path without extension."""
    if os.path.isfile(path):
        return path
    for ext in (".json", ".yaml", ".yml"):
        alt = path + ext
        if os.path.isfile(alt):
            return alt
    raise FileNotFoundError(f"Cannot find file '{path}' (also tried .json/.yaml/.yml)")


def print_properties(trg, energy_function, global_params) -> None:
    geometry = trg.global_geometry
    print(f"Triangulation type: {trg.triangulation_type.value}")
    print(f"Nodes: {len(trg)} ({len(trg.boundary_ids)} boundary)")
    print(f"Triangles: {len(trg.triangles())}")
    print(f"Area: {geometry.area:.10g}")
    print(f"Volume: {geometry.volume:.10g}")
    print(f"Unit bending energy: {geometry.unit_bending_energy:.10g}")
    print(f"Energy: {energy_function(trg[0], trg, global_params):.10g}")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Flipmesh Monte Carlo Simulation Driver")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-i", "--input", help="Input JSON/YAML file")
    parser.add_argument("-o", "--output", default=None, help="Output snapshot JSON file")
    parser.add_argument(
        "--compact-output-json",
        action="store_true",
        help="Write the output snapshot in compact (single-line) form.",
    )
    parser.add_argument(
        "--steps", type=int, default=None, help="Number of sweeps (overrides mc_steps)"
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="Random seed (overrides seed)"
    )
    parser.add_argument(
        "--xyz",
        default=None,
        help="Append trajectory frames in extended XYZ format to PATH.",
    )
    parser.add_argument(
        "--viz-save",
        default=None,
        help="Save a plot of the final triangulation to PATH.",
    )
    parser.add_argument("--log", default=None, help="Optional log file")
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Suppress console output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable verbose debug logging"
    )
    parser.add_argument(
        "--properties",
        action="store_true",
        help="Print area, volume and energy of the initial triangulation and exit",
    )
    return parser


def main(argv=None):
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.input:
        print("No input file provided (use -i).", file=sys.stderr)
        sys.exit(1)
    try:
        args.input = resolve_input_path(args.input)
    except FileNotFoundError as exc:
        print(exc, file=sys.stderr)
        sys.exit(1)

    global logger
    logger = setup_logging(args.log, quiet=args.quiet, debug=args.debug)

    data = load_data(args.input)
    trg, global_params = parse_simulation_input(
        data, base_dir=os.path.dirname(os.path.abspath(args.input))
    )
    if args.steps is not None:
        global_params.set("mc_steps", args.steps)
    if args.seed is not None:
        global_params.set("seed", args.seed)

    resolve_target_geometry(global_params, trg)
    energy_manager = EnergyModuleManager(global_params.get("energy_modules"))
    energy_function = energy_manager.build_energy_function()

    if args.properties:
        print_properties(trg, energy_function, global_params)
        return

    rng = np.random.default_rng(global_params.get("seed"))
    updater = MonteCarloUpdater(
        trg,
        energy_function,
        rng,
        params=global_params,
        min_bond_length=float(global_params.get("min_bond_length")),
        max_bond_length=float(global_params.get("max_bond_length")),
        temperature=float(global_params.get("temperature")),
    )
    run_simulation(
        trg,
        updater,
        global_params,
        rng,
        xyz_path=args.xyz,
        energy_function=energy_function,
    )

    if args.viz_save:
        from visualization.plotting import plot_triangulation

        plot_triangulation(trg, show=False)
        fig = plt.gcf()
        fig.savefig(args.viz_save, bbox_inches="tight")
        plt.close(fig)
        logger.info("Saved visualization to %s", args.viz_save)

    if args.output:
        save_snapshot(trg, args.output, compact=args.compact_output_json)
        logger.info(f"Simulation complete. Output saved to {args.output}")
    else:
        logger.info("Simulation complete. No output file written.")


if __name__ == "__main__":
    main()
