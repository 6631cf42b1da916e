"""Additive geometric aggregate used for patches and for the whole mesh."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass
class Geometry:
    """Area, volume and unit bending energy of a set of nodes.

    Geometries form an additive group with ``Geometry()`` as identity, so
    a patch delta ``after - before`` can be folded into a global total.
    """

    area: float = 0.0
    volume: float = 0.0
    unit_bending_energy: float = 0.0

    @classmethod
    def from_node(cls, node) -> "Geometry":
        return cls(float(node.area), float(node.volume), float(node.unit_bending_energy))

    @classmethod
    def from_nodes(cls, nodes) -> "Geometry":
        geometry = cls()
        for node in nodes:
            geometry.add_node(node)
        return geometry

    def add_node(self, node) -> None:
        self.area += node.area
        self.volume += node.volume
        self.unit_bending_energy += node.unit_bending_energy

    def __add__(self, other: "Geometry") -> "Geometry":
        return Geometry(
            self.area + other.area,
            self.volume + other.volume,
            self.unit_bending_energy + other.unit_bending_energy,
        )

    def __sub__(self, other: "Geometry") -> "Geometry":
        return Geometry(
            self.area - other.area,
            self.volume - other.volume,
            self.unit_bending_energy - other.unit_bending_energy,
        )

    def __neg__(self) -> "Geometry":
        return Geometry(-self.area, -self.volume, -self.unit_bending_energy)

    def isclose(self, other: "Geometry", rel_tol: float = 1e-9, abs_tol: float = 1e-12) -> bool:
        return all(
            math.isclose(a, b, rel_tol=rel_tol, abs_tol=abs_tol)
            for a, b in zip(self.as_tuple(), other.as_tuple())
        )

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.area, self.volume, self.unit_bending_energy)

    def to_dict(self) -> dict:
        return {
            "area": self.area,
            "volume": self.volume,
            "unit_bending_energy": self.unit_bending_energy,
        }
