from __future__ import annotations

import numpy as np

DOT_ORDERS = ("dp", "hadd")


def bilinear_coefficients(
    x: np.ndarray, y: np.ndarray, valid: np.ndarray, stride: int
) -> tuple[np.ndarray, np.ndarray]:
    """
    Bilinear weights and base pixel index for each projected point.

    Returns (coeffs, inds):
      coeffs: (N,4) float32 rows (w00, w10, w01, w11), matching the samples at
              (idx, idx+1, idx+stride, idx+stride+1)
      inds:   (N,) int64, floor(y) * stride + floor(x)

    Invalid rows get zero weights and index 0.
    """
    x = np.asarray(x, dtype=np.float32).reshape(-1)
    y = np.asarray(y, dtype=np.float32).reshape(-1)
    valid = np.asarray(valid, dtype=bool).reshape(-1)
    n = x.shape[0]

    coeffs = np.zeros((n, 4), dtype=np.float32)
    inds = np.zeros((n,), dtype=np.int64)
    if n == 0:
        return coeffs, inds

    xv = x[valid]
    yv = y[valid]
    x0 = np.floor(xv)
    y0 = np.floor(yv)
    fx = xv - x0
    fy = yv - y0
    one = np.float32(1.0)

    coeffs[valid, 0] = (one - fx) * (one - fy)
    coeffs[valid, 1] = fx * (one - fy)
    coeffs[valid, 2] = (one - fx) * fy
    coeffs[valid, 3] = fx * fy
    inds[valid] = y0.astype(np.int64) * int(stride) + x0.astype(np.int64)
    return coeffs, inds


def dot4(coeffs: np.ndarray, samples: np.ndarray, order: str = "dp") -> np.ndarray:
    """
    Row-wise 4-tap dot product in float32 with a fixed summation order.

    `dp` sums sequentially, `hadd` sums pairwise (multiply then two horizontal adds).
    """
    if order not in DOT_ORDERS:
        raise ValueError(f"unknown dot order: {order}")
    prod = np.multiply(coeffs, samples, dtype=np.float32)
    if order == "dp":
        return ((prod[:, 0] + prod[:, 1]) + prod[:, 2]) + prod[:, 3]
    return (prod[:, 0] + prod[:, 1]) + (prod[:, 2] + prod[:, 3])


def dot4_scalar(c: np.ndarray, s: np.ndarray, order: str = "dp") -> np.float32:
    """Single-point `dot4` on float32 scalars; bit-identical to the vectorized form."""
    if order not in DOT_ORDERS:
        raise ValueError(f"unknown dot order: {order}")
    p0 = np.float32(c[0]) * np.float32(s[0])
    p1 = np.float32(c[1]) * np.float32(s[1])
    p2 = np.float32(c[2]) * np.float32(s[2])
    p3 = np.float32(c[3]) * np.float32(s[3])
    if order == "dp":
        return ((p0 + p1) + p2) + p3
    return (p0 + p1) + (p2 + p3)
