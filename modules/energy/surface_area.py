# modules/energy/surface_area.py
# Quadratic penalty that keeps the total area close to a target value.

import logging

logger = logging.getLogger("flipmesh")


def compute_energy(node, triangulation, global_params) -> float:
    """
    E = K_A * (A - A_t)^2 / A_t
    where:
    - A is the current total area of the triangulation
    - A_t is ``target_area``
    - K_A is ``area_modulus``
    """
    k_a = global_params.get("area_modulus", 0.0)
    if not k_a:
        return 0.0
    target = global_params.get("target_area")
    if not target:
        raise ValueError("surface_area energy needs a positive 'target_area'.")
    d_area = triangulation.global_geometry.area - target
    return k_a * d_area * d_area / target
