from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from photoresidual.errors import SizeMismatchError


@dataclass(frozen=True)
class ImageBuffer2D:
    """
    Single-channel float32 image stored as a flat row-major buffer with a row stride.

    Pixel (x, y) lives at `data[y * stride + x]`. Only the first `cols` entries of
    each row are part of the image; the `stride - cols` trailing entries are padding
    and are never read.

    Gathers touch exactly the 2x2 footprint {idx, idx+1, idx+stride, idx+stride+1},
    so no extra padding row or column is required: the buffer only has to hold
    `(rows - 1) * stride + cols` elements.
    """

    data: np.ndarray  # (L,) float32
    rows: int
    cols: int
    stride: int

    def __post_init__(self) -> None:
        self.check()

    @classmethod
    def from_array(cls, img: np.ndarray) -> "ImageBuffer2D":
        """
        Wrap a 2D array. Row padding of strided views is kept (no copy) when the
        array is float32 with a contiguous inner axis; anything else is copied.
        """
        img = np.asarray(img)
        if img.ndim != 2:
            raise SizeMismatchError(f"expected a single-channel 2D image, got shape {img.shape}")
        rows, cols = (int(s) for s in img.shape)

        itemsize = np.dtype(np.float32).itemsize
        row_step = int(img.strides[0])
        zero_copy = (
            img.dtype == np.float32
            and rows > 0
            and cols > 0
            and int(img.strides[1]) == itemsize
            and row_step % itemsize == 0
            and row_step >= cols * itemsize
        )
        if not zero_copy:
            img = np.ascontiguousarray(img, dtype=np.float32)
            return cls(data=img.reshape(-1), rows=rows, cols=cols, stride=cols)

        stride = row_step // itemsize
        n = (rows - 1) * stride + cols
        flat = np.lib.stride_tricks.as_strided(img, shape=(n,), strides=(itemsize,), writeable=False)
        return cls(data=flat, rows=rows, cols=cols, stride=stride)

    @classmethod
    def from_flat(cls, data: np.ndarray, rows: int, cols: int, stride: int | None = None) -> "ImageBuffer2D":
        data = np.ascontiguousarray(data, dtype=np.float32).reshape(-1)
        return cls(data=data, rows=int(rows), cols=int(cols), stride=int(cols if stride is None else stride))

    @property
    def min_length(self) -> int:
        if self.rows == 0 or self.cols == 0:
            return 0
        return (self.rows - 1) * self.stride + self.cols

    def check(self) -> None:
        if self.rows < 0 or self.cols < 0:
            raise SizeMismatchError("rows and cols must be >= 0")
        if self.stride < self.cols:
            raise SizeMismatchError(f"stride {self.stride} is smaller than cols {self.cols}")
        if self.data.dtype != np.float32:
            raise SizeMismatchError(f"image data must be float32, got {self.data.dtype}")
        if self.data.ndim != 1:
            raise SizeMismatchError("image data must be a flat buffer")
        if self.data.shape[0] > 1 and self.data.strides[0] != self.data.itemsize:
            raise SizeMismatchError("image data must be contiguous")
        if self.data.shape[0] < self.min_length:
            raise SizeMismatchError(
                f"image buffer holds {self.data.shape[0]} values, needs {self.min_length} "
                f"for {self.rows}x{self.cols} with stride {self.stride}"
            )

    def offset(self, x: np.ndarray | int, y: np.ndarray | int) -> np.ndarray:
        return np.asarray(y, dtype=np.int64) * self.stride + np.asarray(x, dtype=np.int64)

    def footprint(self, idx: np.ndarray | int) -> np.ndarray:
        """The 4 flat addresses read for a 2x2 bilinear sample at base index `idx`. Shape (..., 4)."""
        idx = np.asarray(idx, dtype=np.int64)
        taps = np.array([0, 1, self.stride, self.stride + 1], dtype=np.int64)
        return idx[..., None] + taps

    def footprint_in_bounds(self, idx: np.ndarray | int) -> np.ndarray:
        idx = np.asarray(idx, dtype=np.int64)
        x0 = idx % self.stride if self.stride > 0 else np.zeros_like(idx)
        y0 = idx // self.stride if self.stride > 0 else np.zeros_like(idx)
        return (idx >= 0) & (x0 < self.cols - 1) & (y0 < self.rows - 1)

    def gather4(self, idx: np.ndarray) -> np.ndarray:
        """
        Samples (I00, I10, I01, I11) for each base index, shape (N,4) float32.

        Raises `SizeMismatchError` if any footprint leaves the logical image.
        """
        idx = np.asarray(idx, dtype=np.int64).reshape(-1)
        if idx.size and not np.all(self.footprint_in_bounds(idx)):
            raise SizeMismatchError("2x2 footprint outside the image")
        return self.data[self.footprint(idx)]

    def gather1(self, idx: int) -> tuple[np.float32, np.float32, np.float32, np.float32]:
        """Single-point `gather4` returning the 4 samples as float32 scalars."""
        idx = int(idx)
        if idx < 0 or self.stride <= 0 or idx % self.stride >= self.cols - 1 or idx // self.stride >= self.rows - 1:
            raise SizeMismatchError(f"2x2 footprint at index {idx} outside the image")
        s = self.data
        return s[idx], s[idx + 1], s[idx + self.stride], s[idx + self.stride + 1]

    def as_array(self) -> np.ndarray:
        """Read-only (rows, cols) view sharing memory with `data`."""
        itemsize = self.data.itemsize
        if self.min_length == 0:
            return np.zeros((self.rows, self.cols), dtype=np.float32)
        return np.lib.stride_tricks.as_strided(
            self.data,
            shape=(self.rows, self.cols),
            strides=(self.stride * itemsize, itemsize),
            writeable=False,
        )
