"""Small 3D vector helpers used by the node and triangulation code.

A Vector3 is a plain ``numpy`` array of shape ``(3,)``. Addition,
subtraction and scaling are numpy operators; the helpers below cover the
products and norms, and also work row-wise on ``(n, 3)`` arrays.
"""

from __future__ import annotations

import numpy as np

Vector3 = np.ndarray

DEFAULT_DTYPE = np.float64


def check_real_dtype(dtype) -> np.dtype:
    """Return ``dtype`` as a numpy dtype, rejecting non floating-point types."""
    dt = np.dtype(dtype)
    if not np.issubdtype(dt, np.floating):
        raise TypeError(f"Coordinate dtype must be floating point, got {dt}.")
    return dt


def vec3(x: float, y: float, z: float, dtype=DEFAULT_DTYPE) -> Vector3:
    return np.array([x, y, z], dtype=dtype)


def zero_vec3(dtype=DEFAULT_DTYPE) -> Vector3:
    return np.zeros(3, dtype=dtype)


def fast_cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    Compute cross product of two arrays of 3D vectors along the last axis.
    Avoids np.cross overhead for single vectors and short rings.
    """
    x = a[..., 1] * b[..., 2] - a[..., 2] * b[..., 1]
    y = a[..., 2] * b[..., 0] - a[..., 0] * b[..., 2]
    z = a[..., 0] * b[..., 1] - a[..., 1] * b[..., 0]

    out = np.empty(x.shape + (3,), dtype=x.dtype)
    out[..., 0] = x
    out[..., 1] = y
    out[..., 2] = z
    return out


def row_dot(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Dot product along the last axis."""
    return np.einsum("...i,...i->...", a, b)


def norm_square(v: np.ndarray):
    return row_dot(v, v)


def norm(v: np.ndarray):
    return np.sqrt(row_dot(v, v))
