"""
Exception types raised by the malheur core.
"""


class MalheurError(Exception):
    """Base class for all errors that abort a malheur task."""


class ConfigurationError(MalheurError, ValueError):
    """Invalid configuration detected before any report is processed."""


class ResourceError(MalheurError, MemoryError):
    """An allocation for a feature vector or kernel matrix cannot be satisfied."""


class InputError(MalheurError, OSError):
    """An unreadable, malformed or empty report input."""
