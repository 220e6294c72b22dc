"""Maintain a separate module for the version to avoid circular imports."""

import importlib.metadata


__all__ = ["__version__", "get_version"]

__version__: str

try:
    __version__ = importlib.metadata.version("hnytrace")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"


def get_version() -> str:
    return __version__
