from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from photoresidual.config import PhotoErrorConfig
from photoresidual.core.buffer import ImageBuffer2D
from photoresidual.core.interpolation import bilinear_coefficients
from photoresidual.core.projection import project_points
from photoresidual.core.remap import RemapMaps, build_remap_maps, remap_sample
from photoresidual.core.residual import evaluate_residuals
from photoresidual.errors import GeometryMismatchError, SizeMismatchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Geometry:
    """Projected point set for one (P, X, image size) triple."""

    valid: np.ndarray  # (N,) bool
    x: np.ndarray  # (N,) float32
    y: np.ndarray  # (N,) float32
    rows: int
    cols: int
    stride: int

    @property
    def num_points(self) -> int:
        return int(self.valid.shape[0])


class InterpBackend:
    """Bilinear coefficients + pixel indices, evaluated by the blocked residual kernel."""

    name = "interp"
    uses_stride = True

    def __init__(self, config: PhotoErrorConfig) -> None:
        self._config = config
        self._coeffs = np.zeros((0, 4), dtype=np.float32)
        self._inds = np.zeros((0,), dtype=np.int64)

    def build(self, geom: Geometry) -> None:
        self._coeffs, self._inds = bilinear_coefficients(geom.x, geom.y, geom.valid, geom.stride)

    def coefficients(self, geom: Geometry) -> tuple[np.ndarray, np.ndarray]:
        return self._coeffs, self._inds

    def evaluate(self, geom: Geometry, reference: np.ndarray, target: ImageBuffer2D, out: np.ndarray) -> None:
        evaluate_residuals(
            self._coeffs,
            self._inds,
            geom.valid,
            reference,
            target,
            out,
            block_size=self._config.block_size,
            order=self._config.dot_order,
        )


class RemapBackend:
    """OpenCV `remap` over the projected coordinates."""

    name = "remap"
    uses_stride = False

    def __init__(self, config: PhotoErrorConfig) -> None:
        self._config = config
        self._maps: RemapMaps | None = None

    def build(self, geom: Geometry) -> None:
        self._maps = build_remap_maps(
            geom.x,
            geom.y,
            geom.valid,
            tile_cols=self._config.remap_tile_cols,
            fixed_point=self._config.remap_fixed_point,
        )

    def coefficients(self, geom: Geometry) -> tuple[np.ndarray, np.ndarray]:
        # Not needed for sampling; derived on request.
        return bilinear_coefficients(geom.x, geom.y, geom.valid, geom.stride)

    def evaluate(self, geom: Geometry, reference: np.ndarray, target: ImageBuffer2D, out: np.ndarray) -> None:
        if self._maps is None:
            raise RuntimeError("remap maps not built; call init() first")
        n = geom.num_points
        if n == 0:
            return
        pred = remap_sample(target.as_array(), self._maps)
        ref = np.asarray(reference[:n], dtype=np.float32)
        out[:n] = np.where(geom.valid, pred - ref, np.float32(0.0))


_BACKENDS = {
    "interp": InterpBackend,
    "remap": RemapBackend,
}


class PhotoError:
    """
    Photometric residuals r_i = I1(pi(P X_i)) - I0_i for a fixed point set.

    `init` projects the points and caches the sampling geometry; `run` can then
    be called any number of times while P, the points and the image size stay
    the same. Neither call is reentrant on one instance.
    """

    def __init__(self, config: PhotoErrorConfig | None = None) -> None:
        self._config = config if config is not None else PhotoErrorConfig()
        self._backend = _BACKENDS[self._config.backend](self._config)
        self._geom: Geometry | None = None

    @property
    def config(self) -> PhotoErrorConfig:
        return self._config

    @property
    def backend_name(self) -> str:
        return self._backend.name

    def init(
        self,
        P: np.ndarray,
        X: np.ndarray,
        rows: int,
        cols: int,
        stride: int | None = None,
    ) -> np.ndarray:
        """
        Rebuild the geometry for projection `P` (3,4) and points `X` (N,4) or (N,3)
        on a rows x cols image with row `stride` (defaults to cols).

        Returns a copy of the validity mask (N,) bool.
        """
        rows = int(rows)
        cols = int(cols)
        stride = cols if stride is None else int(stride)
        if rows < 0 or cols < 0:
            raise SizeMismatchError("rows and cols must be >= 0")
        if stride < cols:
            raise SizeMismatchError(f"stride {stride} is smaller than cols {cols}")

        valid, x, y = project_points(P, X, rows, cols, depth_eps=self._config.depth_eps)
        geom = Geometry(valid=valid, x=x, y=y, rows=rows, cols=cols, stride=stride)
        self._backend.build(geom)
        self._geom = geom

        logger.debug(
            "photo error init: %d points, %d valid, %dx%d stride %d, backend=%s",
            geom.num_points,
            int(np.count_nonzero(valid)),
            rows,
            cols,
            stride,
            self._backend.name,
        )
        return valid.copy()

    def _require_geometry(self) -> Geometry:
        if self._geom is None:
            raise RuntimeError("init() must be called before run()")
        return self._geom

    @property
    def num_points(self) -> int:
        return self._require_geometry().num_points

    @property
    def num_valid(self) -> int:
        return int(np.count_nonzero(self._require_geometry().valid))

    @property
    def valid(self) -> np.ndarray:
        return self._require_geometry().valid.copy()

    @property
    def image_size(self) -> tuple[int, int]:
        geom = self._require_geometry()
        return geom.rows, geom.cols

    @property
    def stride(self) -> int:
        return self._require_geometry().stride

    @property
    def projected(self) -> np.ndarray:
        """Projected pixel coordinates (N,2); (0,0) for invalid points."""
        geom = self._require_geometry()
        return np.stack([geom.x, geom.y], axis=-1)

    @property
    def coefficients(self) -> np.ndarray:
        """Bilinear weights (N,4) as (w00, w10, w01, w11); zero rows for invalid points."""
        coeffs, _ = self._backend.coefficients(self._require_geometry())
        return coeffs.copy()

    @property
    def pixel_indices(self) -> np.ndarray:
        """Flat base index floor(y) * stride + floor(x) (N,); 0 for invalid points."""
        _, inds = self._backend.coefficients(self._require_geometry())
        return inds.copy()

    def _as_target(self, geom: Geometry, target: ImageBuffer2D | np.ndarray) -> ImageBuffer2D:
        buf = target if isinstance(target, ImageBuffer2D) else ImageBuffer2D.from_array(target)
        if (buf.rows, buf.cols) != (geom.rows, geom.cols):
            raise GeometryMismatchError(
                f"target image is {buf.rows}x{buf.cols}, geometry was built for {geom.rows}x{geom.cols}"
            )
        if self._backend.uses_stride and buf.stride != geom.stride:
            raise GeometryMismatchError(
                f"target stride {buf.stride} differs from geometry stride {geom.stride}; call init() again"
            )
        return buf

    def run(
        self,
        reference: np.ndarray,
        target: ImageBuffer2D | np.ndarray,
        out: np.ndarray | None = None,
    ) -> np.ndarray:
        """
        Evaluate residuals at the current geometry.

        `reference` holds the N reference intensities, `target` the second image.
        If `out` is given it must be a 1D float buffer with at least N entries;
        its first N entries are overwritten. Returns the (N,) residual array.
        """
        geom = self._require_geometry()
        n = geom.num_points
        target_buf = self._as_target(geom, target)

        reference = np.asarray(reference)
        if reference.ndim != 1:
            reference = reference.reshape(-1)
        if reference.shape[0] < n:
            raise SizeMismatchError(f"reference has {reference.shape[0]} values, expected at least {n}")
        if not np.issubdtype(reference.dtype, np.floating):
            reference = reference.astype(np.float32)

        if out is None:
            out = np.empty((n,), dtype=np.float32)
        else:
            if not isinstance(out, np.ndarray) or out.ndim != 1:
                raise SizeMismatchError("out must be a 1D numpy array")
            if out.shape[0] < n:
                raise SizeMismatchError(f"out has {out.shape[0]} entries, expected at least {n}")
            if not np.issubdtype(out.dtype, np.floating):
                raise SizeMismatchError(f"out must have a floating dtype, got {out.dtype}")

        self._backend.evaluate(geom, reference, target_buf, out)
        return out[:n]
