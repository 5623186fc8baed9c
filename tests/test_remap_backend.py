from __future__ import annotations

import numpy as np
import pytest

from photoresidual.api import PhotoError
from photoresidual.config import MAX_REMAP_DIM, PhotoErrorConfig
from photoresidual.core.remap import build_remap_maps, remap_tile_shape
from photoresidual.errors import SizeMismatchError


def _P_pixel() -> np.ndarray:
    return np.array([[1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0]], dtype=np.float32)


def _ramp(rows: int, cols: int) -> np.ndarray:
    yy, xx = np.meshgrid(np.arange(rows), np.arange(cols), indexing="ij")
    return (3.0 * xx + 5.0 * yy).astype(np.float32)


def test_maps_are_tiled_and_padded():
    x = np.arange(10, dtype=np.float32) + 0.5
    valid = np.ones(10, dtype=bool)
    valid[3] = False
    maps = build_remap_maps(x, x, valid, tile_cols=4, fixed_point=False)
    assert maps.map1.shape == (3, 4)
    assert maps.num_points == 10
    assert maps.map1[0, 3] == -1.0
    assert maps.map1[2, 2] == -1.0
    assert maps.map1[2, 1] == 9.5


@pytest.mark.parametrize("fixed_point", [True, False])
def test_remap_matches_interp_on_grid_points(fixed_point):
    rows, cols = 24, 32
    rng = np.random.default_rng(0)
    # Coordinates on the 1/32 pixel grid are exact for the OpenCV interpolation table.
    x = rng.integers(0, (cols - 1) * 32, size=100) / 32.0
    y = rng.integers(0, (rows - 1) * 32, size=100) / 32.0
    X = np.stack([x, y, np.ones_like(x), np.ones_like(x)], axis=-1).astype(np.float32)
    X = np.concatenate([X, np.array([[-5.0, 2.0, 1.0, 1.0], [3.0, 3.0, 0.0, 1.0]], dtype=np.float32)])
    reference = rng.uniform(0.0, 100.0, size=X.shape[0]).astype(np.float32)
    target = _ramp(rows, cols)

    interp = PhotoError()
    remap = PhotoError(PhotoErrorConfig(backend="remap", remap_tile_cols=16, remap_fixed_point=fixed_point))
    v1 = interp.init(_P_pixel(), X, rows=rows, cols=cols)
    v2 = remap.init(_P_pixel(), X, rows=rows, cols=cols)
    np.testing.assert_array_equal(v1, v2)
    assert remap.backend_name == "remap"

    r1 = interp.run(reference, target)
    r2 = remap.run(reference, target)
    np.testing.assert_allclose(r2, r1, atol=1e-3)
    assert r2[-1] == 0.0
    assert r2[-2] == 0.0


def test_remap_close_to_interp_off_grid():
    rows, cols = 40, 50
    rng = np.random.default_rng(1)
    x = rng.uniform(0.0, cols - 1.01, size=500)
    y = rng.uniform(0.0, rows - 1.01, size=500)
    X = np.stack([x, y, np.ones_like(x), np.ones_like(x)], axis=-1).astype(np.float32)
    reference = np.zeros(500, dtype=np.float32)
    target = _ramp(rows, cols)

    interp = PhotoError()
    remap = PhotoError(PhotoErrorConfig(backend="remap"))
    interp.init(_P_pixel(), X, rows=rows, cols=cols)
    remap.init(_P_pixel(), X, rows=rows, cols=cols)
    # 1/32 pixel quantization on a ramp with slopes (3, 5).
    np.testing.assert_allclose(remap.run(reference, target), interp.run(reference, target), atol=0.15)


def test_remap_accepts_any_stride():
    rows, cols = 10, 12
    target = _ramp(rows, cols)
    padded = np.zeros((rows, 20), dtype=np.float32)
    padded[:, :cols] = target
    X = np.array([[2.5, 3.5, 1.0, 1.0]], dtype=np.float32)
    pe = PhotoError(PhotoErrorConfig(backend="remap"))
    pe.init(_P_pixel(), X, rows=rows, cols=cols)
    r = pe.run(np.zeros(1, dtype=np.float32), padded[:, :cols])
    assert r[0] == pytest.approx(3.0 * 2.5 + 5.0 * 3.5, abs=1e-3)


def test_tile_shape_stays_within_opencv_limits():
    assert remap_tile_shape(10, 4) == (3, 4)
    assert remap_tile_shape(0, 1024) == (1, 1)
    n = MAX_REMAP_DIM * 2000
    tiles, cols = remap_tile_shape(n, 1024)
    assert cols == 2000
    assert tiles == MAX_REMAP_DIM
    with pytest.raises(SizeMismatchError):
        remap_tile_shape(MAX_REMAP_DIM * MAX_REMAP_DIM + 1, 1024)
