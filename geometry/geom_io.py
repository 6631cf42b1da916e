# geom_io.py
import json
import logging
import os
from typing import Iterable, Optional, Tuple

import yaml

from geometry.triangulation import Triangulation, TriangulationType
from parameters.global_parameters import GlobalParameters

logger = logging.getLogger("flipmesh")

# Floats that YAML may hand back as strings (e.g. "1e-3" without a dot).
_FLOAT_PARAMS = (
    "bending_modulus",
    "area_modulus",
    "target_area",
    "volume_modulus",
    "target_volume",
    "temperature",
    "min_bond_length",
    "max_bond_length",
    "verlet_radius",
    "displacement",
)


def load_data(filename):
    """Load a JSON or YAML document chosen by file extension."""
    filename_str = str(filename)
    with open(filename_str, "r") as f:
        if filename_str.endswith((".yaml", ".yml")):
            data = yaml.safe_load(f)
        elif filename_str.endswith(".json"):
            data = json.load(f)
        else:
            logger.error(f"Unsupported file format for: {filename_str}")
            raise ValueError(f"Unsupported file format for: {filename_str}")

    return data


def save_snapshot(trg: Triangulation, path, *, compact: bool = False) -> None:
    """Write every node record of ``trg`` to ``path`` as JSON.

    Records are keyed by the stringified node id and carry ``area``,
    ``volume``, ``unit_bending_energy``, ``pos``, ``curvature_vec``,
    ``nn_ids`` and ``verlet_list``.
    """
    data = trg.to_dict()
    with open(path, "w") as f:
        if compact:
            json.dump(data, f, separators=(",", ":"), ensure_ascii=False)
        else:
            json.dump(data, f, indent=4, ensure_ascii=False)
    logger.debug("Saved snapshot with %d nodes to %s", len(trg), path)


def load_snapshot(path, verlet_radius: float, **kwargs) -> Triangulation:
    """Rebuild a closed triangulation from a file written by :func:`save_snapshot`."""
    data = load_data(path)
    trg = Triangulation.from_snapshot(data, verlet_radius, **kwargs)
    logger.info("Loaded snapshot with %d nodes from %s", len(trg), path)
    return trg


def _coerce_float_params(global_params: GlobalParameters) -> None:
    for key in _FLOAT_PARAMS:
        val = global_params.get(key)
        if isinstance(val, str):
            try:
                global_params.set(key, float(val))
            except ValueError:
                raise ValueError(f"global_parameters.{key} should be numeric; got {val!r}") from None


def parse_simulation_input(data: dict, base_dir: Optional[str] = None) -> Tuple[Triangulation, GlobalParameters]:
    """Build the starting triangulation and parameters of a run.

    Expected layout (JSON or YAML)::

        triangulation:
          type: spherical        # or planar, snapshot
          n_iter: 3              # spherical
          radius: 10.0           # spherical
          n_length: 10           # planar
          n_width: 10            # planar
          length: 9.0            # planar
          width: 9.0             # planar
          path: start.json       # snapshot, relative to base_dir
        global_parameters:
          bending_modulus: 20.0
          ...

    ``verlet_radius`` is taken from ``global_parameters``.
    """
    global_params = GlobalParameters(data.get("global_parameters") or {})
    _coerce_float_params(global_params)
    global_params.validate()

    section = data.get("triangulation")
    if not section:
        raise ValueError("Input is missing the 'triangulation' section.")
    kind = str(section.get("type", TriangulationType.SPHERICAL.value)).lower()
    verlet_radius = float(global_params.get("verlet_radius"))
    debug_checks = section.get("debug_checks")

    if kind == TriangulationType.SPHERICAL.value:
        trg = Triangulation.spherical(
            int(section["n_iter"]),
            float(section["radius"]),
            verlet_radius,
            debug_checks=debug_checks,
        )
    elif kind == TriangulationType.PLANAR.value:
        trg = Triangulation.planar(
            int(section["n_length"]),
            int(section["n_width"]),
            float(section["length"]),
            float(section["width"]),
            verlet_radius,
            debug_checks=debug_checks,
        )
    elif kind == "snapshot":
        path = section["path"]
        if base_dir and not os.path.isabs(path):
            path = os.path.join(base_dir, path)
        trg = load_snapshot(path, verlet_radius, debug_checks=debug_checks)
    else:
        raise ValueError(
            f"Unknown triangulation type '{kind}'; expected spherical, planar or snapshot."
        )

    logger.info(
        "Built %s triangulation with %d nodes (%d boundary)",
        kind,
        len(trg),
        len(trg.boundary_ids),
    )
    return trg, global_params


def append_xyz_frame(trg: Triangulation, path, highlight: Optional[Iterable[int]] = None) -> None:
    """Append the node positions of ``trg`` as one extended XYZ frame.

    Nodes are written with species ``C``; ids in ``highlight`` are written
    as ``O`` so they stand out in a viewer.
    """
    marked = set(highlight) if highlight is not None else set()
    geometry = trg.global_geometry
    lines = [
        str(len(trg)),
        'Properties=species:S:1:pos:R:3 area={:.10g} volume={:.10g} unit_bending_energy={:.10g}'.format(
            geometry.area, geometry.volume, geometry.unit_bending_energy
        ),
    ]
    for node in trg.nodes:
        species = "O" if node.id in marked else "C"
        x, y, z = node.position
        lines.append(f"{species} {x:.10g} {y:.10g} {z:.10g}")
    with open(path, "a") as f:
        f.write("\n".join(lines) + "\n")
