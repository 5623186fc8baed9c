from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from photoresidual.config import MAX_REMAP_DIM
from photoresidual.errors import SizeMismatchError


@dataclass(frozen=True)
class RemapMaps:
    """
    Per-point sampling maps laid out as a (tiles, tile_cols) image for `cv2.remap`.

    Point i sits at map cell (i // tile_cols, i % tile_cols). Cells of invalid
    points and the padding after the last point hold (-1, -1), which is outside
    the image and samples the constant border value 0.
    """

    map1: np.ndarray
    map2: np.ndarray
    num_points: int


def remap_tile_shape(n: int, tile_cols: int) -> tuple[int, int]:
    """
    Map shape (tiles, tile_cols) holding n points. Tiles are widened beyond the
    requested width when needed so that both dimensions stay within OpenCV limits.
    """
    n = int(n)
    tile_cols = max(1, min(int(tile_cols), n)) if n else 1
    tile_cols = max(tile_cols, -(-n // MAX_REMAP_DIM))
    if tile_cols > MAX_REMAP_DIM:
        raise SizeMismatchError(
            f"{n} points exceed the remap capacity of {MAX_REMAP_DIM * MAX_REMAP_DIM}; use the interp backend"
        )
    return max(1, -(-n // tile_cols)), tile_cols


def build_remap_maps(
    x: np.ndarray,
    y: np.ndarray,
    valid: np.ndarray,
    *,
    tile_cols: int = 1024,
    fixed_point: bool = True,
) -> RemapMaps:
    x = np.asarray(x, dtype=np.float32).reshape(-1)
    y = np.asarray(y, dtype=np.float32).reshape(-1)
    valid = np.asarray(valid, dtype=bool).reshape(-1)
    n = int(x.shape[0])

    tiles, tile_cols = remap_tile_shape(n, tile_cols)
    map_x = np.full((tiles * tile_cols,), -1.0, dtype=np.float32)
    map_y = np.full((tiles * tile_cols,), -1.0, dtype=np.float32)
    map_x[:n] = np.where(valid, x, np.float32(-1.0))
    map_y[:n] = np.where(valid, y, np.float32(-1.0))
    map_x = map_x.reshape(tiles, tile_cols)
    map_y = map_y.reshape(tiles, tile_cols)

    if fixed_point:
        map1, map2 = cv2.convertMaps(map_x, map_y, cv2.CV_16SC2)
        return RemapMaps(map1=map1, map2=map2, num_points=n)
    return RemapMaps(map1=map_x, map2=map_y, num_points=n)


def remap_sample(image: np.ndarray, maps: RemapMaps) -> np.ndarray:
    """Bilinear samples of `image` at every mapped point, shape (N,) float32."""
    if maps.num_points == 0:
        return np.zeros((0,), dtype=np.float32)
    image = np.ascontiguousarray(image, dtype=np.float32)
    dst = cv2.remap(
        image,
        maps.map1,
        maps.map2,
        interpolation=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=0,
    )
    return np.asarray(dst, dtype=np.float32).reshape(-1)[: maps.num_points]
