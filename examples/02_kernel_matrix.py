#!/usr/bin/env python3
"""
Example: Compute and plot the kernel matrix of a report collection.
"""

import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
from malheur import make_config, data, kernel, backends, viz


def main():
    """Kernel matrix example."""

    reports_dir = sys.argv[1] if len(sys.argv) > 1 else "reports"
    if not os.path.exists(reports_dir):
        print(f"Report directory not found at {reports_dir}")
        return

    cfg = make_config(kernel={"scheme": "cosine", "n_jobs": os.cpu_count() or 1}, verbose=1)
    fa = data.extract_array(reports_dir, cfg)

    engine = kernel.KernelEngine.from_config(cfg.kernel, verbose=True)
    engine.check_matrix_size(len(fa), len(fa))

    print(f"Computing {len(fa)}x{len(fa)} kernel matrix...")
    km = engine.compute_matrix(fa)
    print(f"Symmetric: {km.is_symmetric()} | mean off-diagonal: "
          f"{(km.values.sum() - np.trace(km.values)) / max(1, len(fa) * (len(fa) - 1)):.4f}")

    backends.io_store.export_kernel("kernel.txt", km, fa)
    viz.kernel_heatmap(km, labels=fa.sources, path="kernel.png")
    print("Saved kernel.txt and kernel.png")


if __name__ == "__main__":
    main()
