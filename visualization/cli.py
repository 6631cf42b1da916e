import argparse
import logging
import os
from typing import Optional, Sequence

import matplotlib.pyplot as plt

from geometry.geom_io import load_data, parse_simulation_input
from geometry.triangulation import Triangulation
from runtime.logging_config import setup_logging
from visualization.plotting import NODE_FIELDS, plot_triangulation

logger = logging.getLogger("flipmesh")


def create_parser() -> argparse.ArgumentParser:
    """
    Create an argument parser for the visualization command-line interface.
    """
    parser = argparse.ArgumentParser(
        description="Visualize triangulations from snapshot or simulation input files."
    )
    parser.add_argument(
        "input",
        help="Snapshot JSON written by main.py -o, or a simulation input file.",
    )
    parser.add_argument("--no-faces", action="store_true", help="Disable drawing of faces.")
    parser.add_argument("--no-edges", action="store_true", help="Disable drawing of bonds.")
    parser.add_argument(
        "--scatter",
        action="store_true",
        help="Draw nodes as red scatter points.",
    )
    parser.add_argument(
        "--show-indices",
        action="store_true",
        help="Annotate nodes with their ids.",
    )
    parser.add_argument(
        "--transparent",
        action="store_true",
        help="Render faces semi-transparent.",
    )
    parser.add_argument(
        "--color-by",
        choices=NODE_FIELDS,
        default=None,
        help="Colour faces by a per-node quantity.",
    )
    parser.add_argument(
        "--save",
        metavar="PATH",
        help="Save the rendered figure to PATH instead of only showing it.",
    )
    parser.add_argument("--no-axes", action="store_true", help="Removes axes from plot")
    return parser


def load_triangulation(path: str) -> Triangulation:
    """Load either a bare snapshot or a full simulation input file."""
    data = load_data(path)
    if "triangulation" in data:
        trg, _ = parse_simulation_input(data, base_dir=os.path.dirname(os.path.abspath(path)))
        return trg
    return Triangulation.from_snapshot(data, 0.0)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Entry point for the visualization CLI.

    Parameters
    ----------
    argv :
        Optional sequence of command-line arguments. When ``None``, the
        arguments are taken from ``sys.argv``.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging()

    if not os.path.isfile(args.input):
        raise FileNotFoundError(f"Input file '{args.input}' not found!")

    trg = load_triangulation(args.input)

    # Do not block on an interactive window when only saving.
    show = args.save is None

    plot_triangulation(
        trg,
        show_indices=args.show_indices,
        scatter=args.scatter,
        transparent=args.transparent,
        draw_faces=not args.no_faces,
        draw_edges=not args.no_edges,
        color_by=args.color_by,
        no_axes=args.no_axes,
        show=show,
    )

    if args.save:
        fig = plt.gcf()
        fig.savefig(args.save, bbox_inches="tight")
        logger.info("Saved visualization to %s", args.save)


if __name__ == "__main__":
    main()
