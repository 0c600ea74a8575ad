#!/usr/bin/env python3
"""
Example: Extract prototypes from a directory of behavior reports.
"""

import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from malheur import make_config, data, proto, backends, viz
from malheur.features import HashedFeatureSpace


def main():
    """Prototype extraction example."""

    reports_dir = sys.argv[1] if len(sys.argv) > 1 else "reports"
    if not os.path.exists(reports_dir):
        print(f"Report directory not found at {reports_dir}")
        return

    cfg = make_config(
        features={"ngram_len": 2, "normalization": "l2", "lookup_table": True},
        kernel={"scheme": "cosine"},
        prototypes={"metric": "distance", "threshold": 0.65},
        verbose=1,
    )

    # Keep a lookup table to explain prototypes afterwards
    space = HashedFeatureSpace.from_config(cfg.features)

    print("Extracting features...")
    fa = data.extract_array(reports_dir, cfg, space)
    print(f"Loaded {len(fa)} reports with {fa.nnz} features")

    extractor = proto.PrototypeExtractor.from_config(cfg)
    pset = extractor.extract(fa)
    print("Prototype stats:", pset.stats())

    for p in list(pset)[:5]:
        rep = p.representative
        top = rep.index[rep.weight.argmax()] if rep.nnz else None
        tokens = sorted(space.lookup(int(top))) if top is not None else []
        print(f"  #{p.id}: {fa[p.source].src} ({p.size} reports, radius {p.radius:.3f}) {tokens[:3]}")

    backends.io_store.export_prototypes("prototypes.txt", pset, fa, extractor.engine)
    backends.io_store.save_prototypes("prototypes.npz", pset)
    viz.prototype_sizes(pset, path="prototype_sizes.png")
    print("Saved prototypes.txt, prototypes.npz and prototype_sizes.png")


if __name__ == "__main__":
    main()
