# modules/energy/bending.py

import logging

logger = logging.getLogger("flipmesh")


def compute_energy(node, triangulation, global_params) -> float:
    """Helfrich bending energy of the whole surface.

    The triangulation keeps the unit-rigidity bending energy (zero spontaneous
    curvature, zero Gaussian modulus) as part of its global geometry, so the
    energy is just that total scaled by the bending modulus ``kappa``.
    """
    kappa = global_params.get("bending_modulus", 1.0)
    return kappa * triangulation.global_geometry.unit_bending_energy
