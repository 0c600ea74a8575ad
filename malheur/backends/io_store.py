"""
Persistence of prototypes and export of analysis results.
"""

import logging
import os
import tempfile
import zipfile
from contextlib import contextmanager
from typing import IO, Iterator, List, Optional

import numpy as np
import pandas as pd

from .. import __version__
from ..errors import InputError
from ..features.array import FeatureArray
from ..features.vector import FeatureVector
from ..kernel.engine import KernelEngine, KernelMatrix
from ..proto.extract import Prototype, PrototypeSet

logger = logging.getLogger(__name__)

PROTO_KEYS = (
    "rep_indptr", "rep_index", "rep_weight",
    "mem_indptr", "mem_index", "source", "radius", "n_reports",
)


def _ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


@contextmanager
def _atomic_open(path: str, mode: str = "w", **kwargs) -> Iterator[IO]:
    """
    Open a temporary file next to ``path`` and move it into place on success.

    On any error the temporary file is removed and ``path`` is left untouched.
    """
    _ensure_parent(path)
    fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=os.path.dirname(path) or ".")
    try:
        with os.fdopen(fd, mode, **kwargs) as f:
            yield f
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise


def _offsets(lengths: List[int]) -> np.ndarray:
    indptr = np.zeros(len(lengths) + 1, dtype=np.int64)
    np.cumsum(lengths, out=indptr[1:])
    return indptr


def save_prototypes(path: str, pset: PrototypeSet) -> None:
    """
    Save prototypes to a compressed numpy archive.

    Representatives and member lists are stored CSR-style (offsets plus
    concatenated values) so that no pickling is needed.

    Args:
        path: Output file path (written as-is, no suffix added)
        pset: Prototypes to save
    """
    protos = list(pset)

    def concat(arrays, dtype):
        return np.concatenate(arrays).astype(dtype) if arrays else np.empty(0, dtype=dtype)

    arrays = {
        "rep_indptr": _offsets([p.representative.nnz for p in protos]),
        "rep_index": concat([p.representative.index for p in protos], np.int64),
        "rep_weight": concat([p.representative.weight for p in protos], np.float64),
        "mem_indptr": _offsets([p.size for p in protos]),
        "mem_index": concat([np.asarray(p.members, dtype=np.int64) for p in protos], np.int64),
        "source": np.array([p.source for p in protos], dtype=np.int64),
        "radius": np.array([p.radius for p in protos], dtype=np.float64),
        "n_reports": np.array(pset.n_reports, dtype=np.int64),
    }

    with _atomic_open(path, "wb") as f:
        np.savez_compressed(f, **arrays)
    logger.info("Saved %d prototypes to '%s'", len(protos), path)


def load_prototypes(path: str) -> PrototypeSet:
    """
    Load prototypes saved by ``save_prototypes``.

    Args:
        path: Archive path

    Returns:
        PrototypeSet with the same order, representatives and members
    """
    try:
        with np.load(path, allow_pickle=False) as data:
            arrays = {k: data[k] for k in PROTO_KEYS if k in data.files}
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        raise InputError(f"Could not load prototypes from '{path}': {e}") from e

    missing = [k for k in PROTO_KEYS if k not in arrays]
    if missing:
        raise InputError(f"Prototype file '{path}' lacks {missing}")

    rep_indptr, mem_indptr = arrays["rep_indptr"], arrays["mem_indptr"]
    k = len(arrays["source"])
    if len(rep_indptr) != k + 1 or len(mem_indptr) != k + 1 or len(arrays["radius"]) != k:
        raise InputError(f"Inconsistent prototype file '{path}'")

    protos = []
    try:
        for i in range(k):
            r0, r1 = rep_indptr[i], rep_indptr[i + 1]
            m0, m1 = mem_indptr[i], mem_indptr[i + 1]
            protos.append(Prototype(
                id=i,
                representative=FeatureVector(arrays["rep_index"][r0:r1], arrays["rep_weight"][r0:r1]),
                source=int(arrays["source"][i]),
                members=arrays["mem_index"][m0:m1].tolist(),
                radius=float(arrays["radius"][i]),
            ))
        pset = PrototypeSet(n_reports=int(arrays["n_reports"]), prototypes=protos)
    except (TypeError, ValueError) as e:
        raise InputError(f"Corrupt prototype file '{path}': {e}") from e

    logger.info("Loaded %d prototypes from '%s'", len(pset), path)
    return pset


def prototype_table(
    pset: PrototypeSet,
    fa: FeatureArray,
    engine: Optional[KernelEngine] = None
) -> pd.DataFrame:
    """
    Tabulate the report to prototype assignment.

    Args:
        pset: Extracted prototypes
        fa: Feature array the prototypes were extracted from
        engine: Kernel engine for report-to-prototype distances

    Returns:
        DataFrame with one row per report in array order
    """
    if pset.n_reports != len(fa):
        raise ValueError(
            f"Prototypes cover {pset.n_reports} reports but the array has {len(fa)}"
        )
    engine = engine if engine is not None else KernelEngine()
    assign = pset.assignment
    sources = fa.sources

    rows = []
    for i, report in enumerate(fa):
        proto = pset[int(assign[i])]
        rows.append({
            "report": report.src,
            "label": report.label,
            "prototype": proto.id,
            "prototype_report": sources[proto.source] if proto.source >= 0 else "",
            "distance": engine.distance(report.vector, proto.representative),
        })

    return pd.DataFrame(rows, columns=["report", "label", "prototype", "prototype_report", "distance"])


def export_prototypes(
    path: str,
    pset: PrototypeSet,
    fa: FeatureArray,
    engine: Optional[KernelEngine] = None
) -> None:
    """
    Write the report to prototype assignment as tab-separated text.

    Args:
        path: Output file path
        pset: Extracted prototypes
        fa: Feature array the prototypes were extracted from
        engine: Kernel engine for report-to-prototype distances
    """
    df = prototype_table(pset, fa, engine)
    with _atomic_open(path, "w", encoding="utf-8", newline="") as f:
        f.write(f"# MALHEUR ({__version__}) prototypes: {len(pset)} of {len(fa)} reports\n")
        df.to_csv(f, sep="\t", index=False)
    logger.info("Exported prototype assignment to '%s'", path)


def export_kernel(path: str, matrix: KernelMatrix, fa: FeatureArray, fb: Optional[FeatureArray] = None) -> None:
    """
    Write a kernel matrix as tab-separated text labeled by report names.

    Args:
        path: Output file path
        matrix: Kernel matrix [len(fa), len(fb)]
        fa: Row reports
        fb: Column reports; defaults to ``fa``
    """
    fb = fa if fb is None else fb
    if matrix.shape != (len(fa), len(fb)):
        raise ValueError(f"Matrix shape {matrix.shape} does not match reports ({len(fa)}, {len(fb)})")

    df = matrix.to_dataframe(fa.sources, fb.sources)
    with _atomic_open(path, "w", encoding="utf-8", newline="") as f:
        f.write(f"# MALHEUR ({__version__}) kernel matrix: {matrix.shape[0]}x{matrix.shape[1]}\n")
        df.to_csv(f, sep="\t")
    logger.info("Exported kernel matrix to '%s'", path)


def load_table(path: str, index_col: Optional[int] = None) -> pd.DataFrame:
    """Read a table written by one of the exporters."""
    try:
        return pd.read_csv(path, sep="\t", skiprows=1, index_col=index_col)
    except (OSError, ValueError) as e:
        raise InputError(f"Could not read '{path}': {e}") from e
