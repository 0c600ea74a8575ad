"""Kernel functions and kernel matrices."""

from .engine import KernelEngine, KernelMatrix

__all__ = ["KernelEngine", "KernelMatrix"]
