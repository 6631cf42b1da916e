"""Package metadata for flipmesh.

The simulation code lives in top-level packages like `geometry/`,
`modules/` and `runtime/`. This package only exposes the installed version.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("flipmesh")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
