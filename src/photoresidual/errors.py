from __future__ import annotations


class PhotoErrorContractError(ValueError):
    pass


class SizeMismatchError(PhotoErrorContractError):
    pass


class GeometryMismatchError(PhotoErrorContractError):
    pass
