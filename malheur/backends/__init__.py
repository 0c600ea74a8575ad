"""Storage backends for prototypes and analysis results."""

from . import io_store

__all__ = ["io_store"]
