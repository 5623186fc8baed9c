from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Literal

from photoresidual.core.interpolation import DOT_ORDERS

Backend = Literal["interp", "remap"]
DotOrder = Literal["auto", "dp", "hadd"]

BACKENDS = ("interp", "remap")

# OpenCV remap asserts map dimensions below SHRT_MAX.
MAX_REMAP_DIM = 32766


class ConfigError(ValueError):
    pass


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigError(msg)


@dataclass(frozen=True)
class PhotoErrorConfig:
    """
    Static configuration of a `PhotoError` engine.

    `backend` selects the implementation behind `init`/`run`:
      interp: projection + bilinear coefficients + blocked residual kernel
      remap:  OpenCV `remap` on the projected coordinates

    `dot` fixes the summation order of the 4-tap bilinear dot product:
      dp:   ((p0 + p1) + p2) + p3
      hadd: (p0 + p1) + (p2 + p3)

    Invalid values raise `ConfigError` on construction.
    """

    backend: Backend = "interp"
    dot: DotOrder = "auto"
    block_size: int = 8
    depth_eps: float = 1e-6
    remap_tile_cols: int = 1024
    remap_fixed_point: bool = True

    def __post_init__(self) -> None:
        _require(self.backend in BACKENDS, f"backend must be {'|'.join(BACKENDS)}")
        _require(self.dot == "auto" or self.dot in DOT_ORDERS, f"dot must be auto|{'|'.join(DOT_ORDERS)}")
        _require(
            isinstance(self.block_size, int) and not isinstance(self.block_size, bool) and self.block_size >= 1,
            "block_size must be an integer >= 1",
        )
        _require(
            isinstance(self.depth_eps, (int, float)) and not isinstance(self.depth_eps, bool) and self.depth_eps >= 0.0,
            "depth_eps must be a number >= 0",
        )
        _require(
            isinstance(self.remap_tile_cols, int)
            and not isinstance(self.remap_tile_cols, bool)
            and 1 <= self.remap_tile_cols <= MAX_REMAP_DIM,
            f"remap_tile_cols must be an integer in [1, {MAX_REMAP_DIM}]",
        )
        _require(isinstance(self.remap_fixed_point, bool), "remap_fixed_point must be a boolean")

    @property
    def dot_order(self) -> str:
        return "dp" if self.dot == "auto" else self.dot


def parse_config(data: dict[str, Any]) -> PhotoErrorConfig:
    _require(isinstance(data, dict), "config must be an object")
    known = set(PhotoErrorConfig.__dataclass_fields__)
    unknown = sorted(set(data) - known)
    _require(not unknown, f"unknown config keys: {unknown}")

    kwargs: dict[str, Any] = dict(data)
    try:
        for key, cast in (("block_size", int), ("depth_eps", float), ("remap_tile_cols", int)):
            if key in kwargs and not isinstance(kwargs[key], bool):
                kwargs[key] = cast(kwargs[key])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid numeric config value: {e}") from e
    return PhotoErrorConfig(**kwargs)


def load_config(path: str | Path) -> PhotoErrorConfig:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return parse_config(data)


def config_to_dict(cfg: PhotoErrorConfig) -> dict[str, Any]:
    return asdict(cfg)
