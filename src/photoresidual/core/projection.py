from __future__ import annotations

import numpy as np

from photoresidual.errors import SizeMismatchError


def as_projection_matrix(P: np.ndarray) -> np.ndarray:
    P = np.asarray(P, dtype=np.float32)
    if P.shape != (3, 4):
        raise SizeMismatchError(f"projection matrix must be (3,4), got {P.shape}")
    return P


def as_homogeneous_points(X: np.ndarray) -> np.ndarray:
    """
    Points as an (N,4) float32 array. (N,3) inputs get a unit homogeneous coordinate.
    """
    X = np.asarray(X, dtype=np.float32)
    if X.ndim == 1 and X.size == 0:
        return np.zeros((0, 4), dtype=np.float32)
    if X.ndim != 2 or X.shape[1] not in (3, 4):
        raise SizeMismatchError(f"points must be (N,3) or (N,4), got {X.shape}")
    if X.shape[1] == 3:
        X = np.concatenate([X, np.ones((X.shape[0], 1), dtype=np.float32)], axis=1)
    return X


def project_points(
    P: np.ndarray,
    X: np.ndarray,
    rows: int,
    cols: int,
    depth_eps: float = 1e-6,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Project homogeneous 3D points through a 3x4 matrix into pixel coordinates.

    Returns (valid, x, y), each of length N. A point is valid iff its depth is
    above `depth_eps` and floor(x) in [0, cols-2], floor(y) in [0, rows-2], which
    keeps the whole 2x2 bilinear footprint inside the image.

    Degenerate depths (zero, negative or non-finite) are marked invalid and get
    coordinates (0, 0); they never produce Inf/NaN.
    """
    P = as_projection_matrix(P)
    X = as_homogeneous_points(X)
    rows = int(rows)
    cols = int(cols)

    with np.errstate(invalid="ignore", over="ignore"):
        p = X @ P.T  # (N,3)
        z = p[:, 2]
        ok = np.isfinite(z) & (z > np.float32(depth_eps))

        w = np.zeros_like(z)
        np.divide(np.float32(1.0), z, out=w, where=ok)
        x = np.where(ok, w * p[:, 0], np.float32(0.0)).astype(np.float32)
        y = np.where(ok, w * p[:, 1], np.float32(0.0)).astype(np.float32)

    # Comparisons in float so huge coordinates cannot overflow an integer cast; NaN compares False.
    x0 = np.floor(x)
    y0 = np.floor(y)
    valid = ok & (x0 >= 0) & (x0 < cols - 1) & (y0 >= 0) & (y0 < rows - 1)

    x[~valid] = 0.0
    y[~valid] = 0.0
    return valid, x, y
