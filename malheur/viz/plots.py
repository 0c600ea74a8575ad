"""
Plots of kernel matrices and prototype sets.
"""

import numpy as np
import matplotlib.pyplot as plt
from typing import Optional, Sequence

from ..kernel.engine import KernelMatrix
from ..proto.extract import PrototypeSet


def kernel_heatmap(
    matrix: KernelMatrix,
    labels: Optional[Sequence[str]] = None,
    pset: Optional[PrototypeSet] = None,
    figsize: tuple = (8, 7),
    path: Optional[str] = None
) -> plt.Figure:
    """
    Heatmap of a kernel matrix.

    Args:
        matrix: Kernel matrix to plot
        labels: Tick labels for rows and columns (omitted above 50 entries)
        pset: If given, rows and columns are grouped by prototype
        figsize: Figure size
        path: Save the figure here if given

    Returns:
        The matplotlib Figure
    """
    values = matrix.values
    order = np.arange(values.shape[0])

    # Group reports of the same prototype next to each other
    if pset is not None and matrix.symmetric and pset.n_reports == values.shape[0]:
        order = np.argsort(pset.assignment, kind="stable")
        values = values[np.ix_(order, order)]

    fig, ax = plt.subplots(figsize=figsize)
    im = ax.imshow(values, aspect="auto", cmap="YlOrRd", interpolation="nearest")
    fig.colorbar(im, ax=ax, label="Kernel value")

    ax.set_title(f"Kernel Matrix ({values.shape[0]}x{values.shape[1]})")
    ax.set_xlabel("Reports")
    ax.set_ylabel("Reports")

    if labels is not None and len(labels) <= 50:
        ticks = [labels[i] for i in order] if matrix.symmetric else list(labels)
        ax.set_yticks(range(len(ticks)))
        ax.set_yticklabels(ticks, fontsize=7)
        if matrix.symmetric:
            ax.set_xticks(range(len(ticks)))
            ax.set_xticklabels(ticks, rotation=90, fontsize=7)

    fig.tight_layout()
    if path:
        fig.savefig(path, dpi=150)
    return fig


def prototype_sizes(
    pset: PrototypeSet,
    figsize: tuple = (8, 4),
    path: Optional[str] = None
) -> plt.Figure:
    """
    Bar chart of prototype sizes in creation order, with radii overlaid.

    Args:
        pset: Extracted prototypes
        figsize: Figure size
        path: Save the figure here if given

    Returns:
        The matplotlib Figure
    """
    sizes = np.array([p.size for p in pset], dtype=int)
    radii = pset.distances()
    ids = np.arange(len(sizes))

    fig, ax = plt.subplots(figsize=figsize)
    ax.bar(ids, sizes, color="orange", alpha=0.8, label="Members")
    ax.set_xlabel("Prototype")
    ax.set_ylabel("Members")

    ax2 = ax.twinx()
    ax2.plot(ids, radii, color="black", marker="o", markersize=3, linewidth=1, label="Radius")
    ax2.set_ylabel("Radius")

    stats = pset.stats()
    ax.set_title(
        f"{stats['n_prototypes']} prototypes for {pset.n_reports} reports "
        f"(ratio {stats['compression_ratio']:.2f})"
    )

    fig.tight_layout()
    if path:
        fig.savefig(path, dpi=150)
    return fig
