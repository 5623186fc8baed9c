from __future__ import annotations

import json
from pathlib import Path

import pytest

from photoresidual.config import ConfigError, PhotoErrorConfig, config_to_dict, load_config, parse_config


def test_defaults():
    cfg = PhotoErrorConfig()
    assert cfg.backend == "interp"
    assert cfg.block_size == 8
    assert cfg.dot_order == "dp"


def test_parse_config_ok():
    cfg = parse_config({"backend": "remap", "dot": "hadd", "block_size": 4, "remap_tile_cols": 64})
    assert cfg.backend == "remap"
    assert cfg.dot_order == "hadd"
    assert cfg.block_size == 4
    assert cfg.remap_tile_cols == 64
    assert cfg.remap_fixed_point is True


@pytest.mark.parametrize(
    "data",
    [
        {"backend": "gpu"},
        {"dot": "fma"},
        {"block_size": 0},
        {"depth_eps": -1.0},
        {"remap_tile_cols": 40000},
        {"remap_fixed_point": "yes"},
        {"bogus": 1},
    ],
)
def test_parse_config_rejects_bad_values(data):
    with pytest.raises(ConfigError):
        parse_config(data)


def test_load_config_roundtrip(tmp_path: Path) -> None:
    cfg = PhotoErrorConfig(backend="remap", dot="hadd", block_size=16, depth_eps=1e-3)
    p = tmp_path / "photo_error.json"
    p.write_text(json.dumps(config_to_dict(cfg)), encoding="utf-8")
    assert load_config(p) == cfg


@pytest.mark.parametrize(
    "kwargs",
    [
        {"backend": "gpu"},
        {"dot": "fma"},
        {"block_size": 0},
        {"block_size": 2.5},
        {"depth_eps": -1.0},
        {"remap_tile_cols": 0},
        {"remap_fixed_point": 1},
    ],
)
def test_direct_construction_is_validated(kwargs):
    with pytest.raises(ConfigError):
        PhotoErrorConfig(**kwargs)


def test_engine_rejects_bad_config_up_front():
    from photoresidual.api import PhotoError

    with pytest.raises(ConfigError):
        PhotoError(PhotoErrorConfig(block_size=0))
    with pytest.raises(ConfigError):
        PhotoError(PhotoErrorConfig(backend="gpu"))  # type: ignore[arg-type]
