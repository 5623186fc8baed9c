from photoresidual.api.photo_error import Geometry, InterpBackend, PhotoError, RemapBackend

__all__ = [
    "PhotoError",
    "Geometry",
    "InterpBackend",
    "RemapBackend",
]
