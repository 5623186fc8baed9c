from __future__ import annotations

import numpy as np

from photoresidual.core.buffer import ImageBuffer2D
from photoresidual.core.interpolation import dot4, dot4_scalar

_ALIGNMENT = 16


def is_aligned(arr: np.ndarray, alignment: int = _ALIGNMENT) -> bool:
    return (
        arr.dtype == np.float32
        and arr.flags.c_contiguous
        and arr.ctypes.data % alignment == 0
    )


def _predict_block(
    coeffs: np.ndarray,
    inds: np.ndarray,
    valid: np.ndarray,
    target: ImageBuffer2D,
    order: str,
) -> np.ndarray:
    pred = np.zeros((coeffs.shape[0],), dtype=np.float32)
    if not valid.any():
        return pred
    samples = target.gather4(inds[valid])
    pred[valid] = dot4(coeffs[valid], samples, order)
    return pred


def _predict_point(
    coeffs: np.ndarray,
    inds: np.ndarray,
    valid: np.ndarray,
    target: ImageBuffer2D,
    i: int,
    order: str,
) -> np.float32:
    if not valid[i]:
        return np.float32(0.0)
    return dot4_scalar(coeffs[i], target.gather1(inds[i]), order)


def evaluate_residuals(
    coeffs: np.ndarray,
    inds: np.ndarray,
    valid: np.ndarray,
    reference: np.ndarray,
    target: ImageBuffer2D,
    out: np.ndarray,
    *,
    block_size: int = 8,
    order: str = "dp",
) -> None:
    """
    Write r_i = dot(coeffs_i, footprint_i(target)) - reference_i into `out[:N]`.

    Invalid points get r_i = 0 and their footprint is never read. The first
    N - N % block_size points go through the vectorized block path, the tail
    through a scalar loop; both use the same float32 summation order.

    Footprints are read through `ImageBuffer2D`, so an index past the margin
    raises `SizeMismatchError` instead of wrapping into the next row. Reference
    and output lengths are checked by `PhotoError.run`.
    """
    n = coeffs.shape[0]
    if n == 0:
        return

    n_blocks = n - n % block_size
    if n_blocks:
        pred = _predict_block(coeffs[:n_blocks], inds[:n_blocks], valid[:n_blocks], target, order)
        ref = reference[:n_blocks]
        if is_aligned(out) and is_aligned(reference):
            np.subtract(pred, ref, out=out[:n_blocks])
        else:
            out[:n_blocks] = pred - np.asarray(ref, dtype=np.float32)
        out[:n_blocks][~valid[:n_blocks]] = 0.0

    for i in range(n_blocks, n):
        if valid[i]:
            out[i] = _predict_point(coeffs, inds, valid, target, i, order) - np.float32(reference[i])
        else:
            out[i] = 0.0


def evaluate_residuals_reference(
    coeffs: np.ndarray,
    inds: np.ndarray,
    valid: np.ndarray,
    reference: np.ndarray,
    target: ImageBuffer2D,
    *,
    order: str = "dp",
) -> np.ndarray:
    """Pure scalar per-point evaluation. Slow; used to check the blocked kernel."""
    n = coeffs.shape[0]
    out = np.zeros((n,), dtype=np.float32)
    for i in range(n):
        if valid[i]:
            out[i] = _predict_point(coeffs, inds, valid, target, i, order) - np.float32(reference[i])
    return out
