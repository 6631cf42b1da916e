# runtime/monte_carlo.py

import logging
import math
from typing import Callable, Optional

import numpy as np

from geometry.triangulation import Triangulation

logger = logging.getLogger("flipmesh")


class MonteCarloUpdater:
    """Metropolis-Hastings moves and bond flips on a :class:`Triangulation`.

    Every proposal runs PROPOSE -> PRECHECK -> APPLY -> EVALUATE and then
    either keeps the change or rolls it back before returning. A move is
    undone by moving the node back, a flip by ``unflip_bond``.

    Parameters
    ----------
    triangulation :
        The mesh that is updated in place.
    energy_function :
        ``energy_function(node, triangulation, params) -> float``. It is
        called once before and once after each applied proposal and must only
        read mesh state.
    rng :
        A ``numpy.random.Generator``. The updater draws from it but does not
        own it.
    params :
        Opaque bundle handed to ``energy_function``.
    min_bond_length, max_bond_length :
        Bonds may not be pushed out of this range by a move or created
        outside it by a flip.
    temperature :
        kBT of the Metropolis criterion. ``0`` gives a greedy updater.
    """

    def __init__(
        self,
        triangulation: Triangulation,
        energy_function: Callable,
        rng: np.random.Generator,
        *,
        params=None,
        min_bond_length: float = 0.0,
        max_bond_length: float = math.inf,
        temperature: float = 1.0,
    ):
        self.triangulation = triangulation
        self.energy_function = energy_function
        self.rng = rng
        self.params = params
        self.min_bond_length_square = min_bond_length * min_bond_length
        self.max_bond_length_square = max_bond_length * max_bond_length
        self.temperature = temperature
        self.e_diff = 0.0

        self.move_attempt = 0
        self.bond_length_move_rejection = 0
        self.move_back = 0
        self.flip_attempt = 0
        self.bond_length_flip_rejection = 0
        self.flip_back = 0

    @property
    def temperature(self) -> float:
        return self._kBT

    @temperature.setter
    def temperature(self, kBT: float) -> None:
        self._kBT = float(kBT)

    def move_needs_undoing(self, e_old: float, e_new: float) -> bool:
        """Metropolis criterion: True if the proposal has to be rolled back."""
        self.e_diff = e_old - e_new
        if self._kBT > 0:
            return self.e_diff < 0 and self.rng.random() > math.exp(self.e_diff / self._kBT)
        return self.e_diff < 0

    # ------------------------------------------------------------------
    # Bond length prechecks
    # ------------------------------------------------------------------
    def new_neighbour_distances_are_between_min_and_max_length(self, node, displacement) -> bool:
        return self.new_next_neighbour_distances_are_between_min_and_max_length(
            node, displacement
        ) and self.new_verlet_neighbour_distances_are_between_min_and_max_length(
            node, displacement
        )

    def new_next_neighbour_distances_are_between_min_and_max_length(self, node, displacement) -> bool:
        """Check that no bond is stretched past the max or squeezed past the min length.

        Bonds that already violate a bound are tolerated as long as the move
        does not make them cross it.
        """
        nn_dist = node.neighbor_distances
        distance_square_old = np.einsum("ij,ij->i", nn_dist, nn_dist)
        shifted = nn_dist - displacement
        distance_square_new = np.einsum("ij,ij->i", shifted, shifted)
        max_sq = self.max_bond_length_square
        min_sq = self.min_bond_length_square
        if np.any((distance_square_new > max_sq) & (distance_square_old < max_sq)):
            return False
        if np.any((distance_square_old > min_sq) & (distance_square_new < min_sq)):
            return False
        return True

    def new_verlet_neighbour_distances_are_between_min_and_max_length(self, node, displacement) -> bool:
        """Check that the move does not push the node into any Verlet neighbour."""
        if not node.verlet_list:
            return True
        positions = self.triangulation.nodes
        old = np.array([positions.position(i) for i in node.verlet_list]) - node.position
        new = old - displacement
        distance_square_old = np.einsum("ij,ij->i", old, old)
        distance_square_new = np.einsum("ij,ij->i", new, new)
        min_sq = self.min_bond_length_square
        return not np.any((distance_square_new < min_sq) & (distance_square_old > min_sq))

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------
    def move_node(self, node_id: int, displacement) -> bool:
        """Propose displacing ``node_id``; return True if the move was kept.

        Boundary nodes of a planar sheet are fixed and never moved.
        """
        trg = self.triangulation
        if trg.is_boundary(node_id):
            return False
        self.move_attempt += 1
        displacement = np.asarray(displacement, dtype=trg.nodes.dtype)
        node = trg[node_id]
        if not self.new_neighbour_distances_are_between_min_and_max_length(node, displacement):
            self.bond_length_move_rejection += 1
            return False

        e_old = self.energy_function(node, trg, self.params)
        trg.move_node(node_id, displacement)
        e_new = self.energy_function(node, trg, self.params)
        if self.move_needs_undoing(e_old, e_new):
            trg.move_node(node_id, -displacement)
            self.move_back += 1
            return False
        return True

    def flip_bond(self, node_id: int, nn_id: Optional[int] = None) -> bool:
        """Propose flipping a bond of ``node_id``; return True if the flip was kept.

        Without ``nn_id`` the partner is drawn uniformly from the node's ring.
        """
        trg = self.triangulation
        self.flip_attempt += 1
        node = trg[node_id]
        e_old = self.energy_function(node, trg, self.params)
        if nn_id is None:
            nn_ids = node.neighbor_ids
            nn_id = nn_ids[int(self.rng.integers(0, len(nn_ids)))]
        outcome = trg.flip_bond(
            node_id, nn_id, self.min_bond_length_square, self.max_bond_length_square
        )
        if not outcome.flipped:
            self.bond_length_flip_rejection += 1
            return False

        e_new = self.energy_function(node, trg, self.params)
        if self.move_needs_undoing(e_old, e_new):
            trg.unflip_bond(node_id, nn_id, outcome)
            self.flip_back += 1
            return False
        return True

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------
    @property
    def move_attempt_count(self) -> int:
        return self.move_attempt

    @property
    def bond_length_move_rejection_count(self) -> int:
        return self.bond_length_move_rejection

    @property
    def move_back_count(self) -> int:
        return self.move_back

    @property
    def flip_attempt_count(self) -> int:
        return self.flip_attempt

    @property
    def bond_length_flip_rejection_count(self) -> int:
        return self.bond_length_flip_rejection

    @property
    def flip_back_count(self) -> int:
        return self.flip_back

    def statistics(self) -> dict:
        """Counters plus the fraction of failed moves and flips."""
        failed_moves = self.move_back + self.bond_length_move_rejection
        failed_flips = self.flip_back + self.bond_length_flip_rejection
        return {
            "move_attempts": self.move_attempt,
            "bond_length_move_rejections": self.bond_length_move_rejection,
            "move_backs": self.move_back,
            "flip_attempts": self.flip_attempt,
            "bond_length_flip_rejections": self.bond_length_flip_rejection,
            "flip_backs": self.flip_back,
            "failed_move_fraction": failed_moves / self.move_attempt if self.move_attempt else 0.0,
            "failed_flip_fraction": failed_flips / self.flip_attempt if self.flip_attempt else 0.0,
        }
