# runtime/energy_manager.py

import importlib
import logging
from collections import Counter
from typing import Callable

logger = logging.getLogger("flipmesh")

EnergyFunction = Callable[[object, object, object], float]


class EnergyModuleManager:
    """Load energy modules from ``modules.energy`` by name.

    Every module provides ``compute_energy(node, triangulation, params)``.
    """

    def __init__(self, module_names):
        self.modules = {}
        counted = Counter(module_names)
        for name, count in counted.items():
            if count > 1:
                logger.warning(f"Energy module '{name}' specified {count} times; using only one instance.")

            try:
                self.modules[name] = importlib.import_module(f"modules.energy.{name}")
                logger.info(f"Loaded energy module: {name}")
            except ImportError as e:
                logger.error(f"Could not load energy module '{name}': {e}")
                raise

    def get_module(self, mod):
        """
        Retrieve a loaded energy module by name.
        """
        if mod in self.modules.keys():
            return self.modules[mod]
        raise KeyError(f"Energy module '{mod}' not found.")

    def build_energy_function(self) -> EnergyFunction:
        """Return one callable that sums the energies of all loaded modules."""
        terms = [module.compute_energy for module in self.modules.values()]

        def energy_function(node, triangulation, params) -> float:
            return sum(term(node, triangulation, params) for term in terms)

        return energy_function


def resolve_target_geometry(global_params, triangulation) -> None:
    """Fill unset ``target_area``/``target_volume`` from the current mesh."""
    geometry = triangulation.global_geometry
    if global_params.get("target_area") is None:
        global_params.set("target_area", geometry.area)
        logger.info("target_area not given; using initial area %.6g", geometry.area)
    if global_params.get("target_volume") is None:
        global_params.set("target_volume", geometry.volume)
        logger.info("target_volume not given; using initial volume %.6g", geometry.volume)
