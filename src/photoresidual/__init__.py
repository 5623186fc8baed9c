from photoresidual.api import PhotoError
from photoresidual.config import ConfigError, PhotoErrorConfig, load_config, parse_config
from photoresidual.core.buffer import ImageBuffer2D
from photoresidual.errors import GeometryMismatchError, PhotoErrorContractError, SizeMismatchError

__all__ = [
    "PhotoError",
    "PhotoErrorConfig",
    "ConfigError",
    "load_config",
    "parse_config",
    "ImageBuffer2D",
    "PhotoErrorContractError",
    "SizeMismatchError",
    "GeometryMismatchError",
]
