import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from geometry.vector3 import (
    check_real_dtype,
    fast_cross,
    norm,
    norm_square,
    row_dot,
    vec3,
    zero_vec3,
)


def test_fast_cross_matches_numpy_for_single_and_rows():
    rng = np.random.default_rng(0)
    a = rng.normal(size=(6, 3))
    b = rng.normal(size=(6, 3))
    assert np.allclose(fast_cross(a, b), np.cross(a, b))
    assert np.allclose(fast_cross(a[0], b[0]), np.cross(a[0], b[0]))


def test_row_dot_and_norms():
    v = np.array([[3.0, 4.0, 0.0], [1.0, 2.0, 2.0]])
    assert np.allclose(row_dot(v, v), [25.0, 9.0])
    assert np.allclose(norm_square(v), [25.0, 9.0])
    assert np.allclose(norm(v), [5.0, 3.0])
    assert norm(vec3(0.0, 0.0, 2.0)) == pytest.approx(2.0)


def test_zero_vec3_honours_dtype():
    z = zero_vec3(np.float32)
    assert z.dtype == np.float32
    assert not z.any()


def test_check_real_dtype_rejects_integers():
    assert check_real_dtype(np.float32) == np.dtype(np.float32)
    with pytest.raises(TypeError):
        check_real_dtype(np.int64)
