# global_parameters.py


class GlobalParameters:
    def __init__(self, initial_params=None):
        """
        all parameters are defined with underscore, _, instead of spaces
        """
        # Use a dictionary to store all parameters
        self._params = {
            # Energy modules summed into the Monte Carlo energy function.
            "energy_modules": ["bending"],
            # Bending rigidity (kappa) in units of kBT.
            "bending_modulus": 1.0,
            # Quadratic area penalty K_A (A - A_t)^2 / A_t; disabled at 0.
            "area_modulus": 0.0,
            # Target area A_t. ``None`` means "the area of the initial mesh".
            "target_area": None,
            # Quadratic volume penalty K_V (V - V_t)^2 / V_t; disabled at 0.
            "volume_modulus": 0.0,
            "target_volume": None,
            # Metropolis temperature; 0 makes the updater greedy.
            "temperature": 1.0,
            # Linear cooling towards 0 over the second half of the run.
            "anneal": False,
            # Bond length bounds enforced on moves and flips.
            "min_bond_length": 0.0,
            "max_bond_length": float("inf"),
            # Cutoff of the proximity (Verlet) list and how often it is
            # rebuilt, in sweeps.
            "verlet_radius": 0.0,
            "verlet_rebuild_interval": 10,
            # Side length of the cube from which move displacements are drawn
            # is 2 * displacement.
            "displacement": 0.05,
            "mc_steps": 1000,
            "log_interval": 100,
            "xyz_interval": 0,
            "seed": None,
        }
        # Load initial parameters if provided
        if initial_params:
            self.update(initial_params)

    def __getattr__(self, name):
        """Attribute access for known parameter keys.

        Energy modules read parameters as attributes
        (e.g. ``params.bending_modulus``) while the canonical storage is the
        internal ``_params`` dict.
        """
        params = self.__dict__.get("_params")
        if params is not None and name in params:
            return params[name]
        raise AttributeError(
            f"{type(self).__name__!s} object has no attribute {name!r}"
        )

    def __setattr__(self, name, value):
        """Attribute assignment for known parameter keys."""
        if name == "_params":
            object.__setattr__(self, name, value)
            return
        params = self.__dict__.get("_params")
        if params is not None and name in params:
            params[name] = value
            return
        object.__setattr__(self, name, value)

    def get(self, key, default=None):
        """Retrieve a parameter value, or return a default if not found."""
        return self._params.get(key, default)

    def set(self, key, value):
        """Set or update a parameter."""
        self._params[key] = value

    def update(self, params):
        """Update multiple parameters at once."""
        self._params.update(params)

    def __contains__(self, key):
        """Check if a parameter exists."""
        return key in self._params

    def __repr__(self):
        """String representation for debugging."""
        return f"GlobalParameters({self._params})"

    def to_dict(self):
        """Convert the parameters to a dictionary for serialization."""
        return self._params

    def validate(self):
        """Raise ValueError for settings the Monte Carlo driver cannot run with."""
        p = self._params
        if not 0.0 <= p["min_bond_length"] < p["max_bond_length"]:
            raise ValueError(
                f"Need 0 <= min_bond_length < max_bond_length, got "
                f"{p['min_bond_length']} and {p['max_bond_length']}."
            )
        for key in ("verlet_radius", "displacement", "area_modulus", "volume_modulus"):
            if p[key] < 0:
                raise ValueError(f"{key} must be non-negative, got {p[key]}.")
        for key in ("mc_steps", "verlet_rebuild_interval", "log_interval", "xyz_interval"):
            if int(p[key]) != p[key] or p[key] < 0:
                raise ValueError(f"{key} must be a non-negative integer, got {p[key]}.")
        if isinstance(p["energy_modules"], str):
            p["energy_modules"] = [p["energy_modules"]]
