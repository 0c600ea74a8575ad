"""Visualization utilities."""

from .plots import kernel_heatmap, prototype_sizes

__all__ = ["kernel_heatmap", "prototype_sizes"]
