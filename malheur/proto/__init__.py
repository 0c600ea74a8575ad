"""Prototype extraction."""

from .extract import Prototype, PrototypeSet, PrototypeExtractor

__all__ = ["Prototype", "PrototypeSet", "PrototypeExtractor"]
