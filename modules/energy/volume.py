# modules/energy/volume.py
# Soft volume constraint for closed surfaces.

import logging

logger = logging.getLogger("flipmesh")


def compute_energy(node, triangulation, global_params) -> float:
    """
    Compute volume energy as a soft quadratic penalty:
        E = K_V * (V - V_t)^2 / V_t
    where:
    - V is the current enclosed volume
    - V_t is ``target_volume``
    - K_V is ``volume_modulus``
    """
    k_v = global_params.get("volume_modulus", 0.0)
    if not k_v:
        return 0.0
    target = global_params.get("target_volume")
    if not target:
        raise ValueError("volume energy needs a non-zero 'target_volume'.")
    d_volume = triangulation.global_geometry.volume - target
    return k_v * d_volume * d_volume / target
