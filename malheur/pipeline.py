"""
Analysis pipelines behind the command-line tasks.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .backends.io_store import export_kernel, export_prototypes, load_prototypes, save_prototypes
from .config import MalheurConfig
from .data.reports import extract_array
from .errors import ConfigurationError, InputError
from .features.array import FeatureArray
from .features.space import HashedFeatureSpace
from .kernel.engine import KernelEngine, KernelMatrix
from .proto.extract import PrototypeExtractor, PrototypeSet

logger = logging.getLogger(__name__)


class Task(enum.Enum):
    """Analysis tasks."""
    PROTOTYPE = "prototype"
    KERNEL = "kernel"
    CLUSTER = "cluster"

    @classmethod
    def parse(cls, name: str) -> "Task":
        try:
            return cls(name.lower())
        except ValueError:
            raise ConfigurationError(f"Unknown analysis task '{name}'") from None


@dataclass
class PrototypeResult:
    array: FeatureArray
    prototypes: PrototypeSet
    engine: KernelEngine


@dataclass
class KernelResult:
    array: FeatureArray
    matrix: KernelMatrix


def describe_prototypes(
    pset: PrototypeSet,
    fa: FeatureArray,
    space: Optional[HashedFeatureSpace] = None,
    top: int = 3
) -> None:
    """Log every prototype; with a lookup table also its heaviest tokens."""
    for proto in pset:
        src = fa[proto.source].src if proto.source >= 0 else "-"
        logger.debug(
            "Prototype %d: report '%s', %d members, radius %.4f",
            proto.id, src, proto.size, proto.radius
        )
        if space is not None and space.lookup_table and proto.representative.nnz:
            rep = proto.representative
            order = np.argsort(-rep.weight, kind="stable")[:top]
            for j in order:
                idx = int(rep.index[j])
                tokens = sorted(str(t) for t in space.lookup(idx))
                logger.debug("  feature %d (%.4f): %s", idx, rep.weight[j], tokens)


def run_prototype(
    input_path: str,
    cfg: MalheurConfig,
    result_file: Optional[str] = None,
    proto_file: Optional[str] = None,
    load_protos: bool = False,
    space: Optional[HashedFeatureSpace] = None
) -> PrototypeResult:
    """
    Extract prototypes from reports and write the requested outputs.

    Args:
        input_path: Report file or directory
        cfg: Run configuration
        result_file: Where to export the report to prototype assignment
        proto_file: Where to save (or, with ``load_protos``, load) prototype vectors
        load_protos: Load prototypes from ``proto_file`` and assign the reports to
            their representatives instead of extracting new ones
        space: Feature space; created from the configuration if None

    Returns:
        PrototypeResult with the array, prototypes and kernel engine
    """
    if not result_file and not proto_file:
        raise ConfigurationError("No output specified for the prototype task")
    if load_protos and not proto_file:
        raise ConfigurationError("No prototype file to load from")

    if space is None:
        space = HashedFeatureSpace.from_config(cfg.features)
    fa = extract_array(input_path, cfg, space)

    extractor = PrototypeExtractor.from_config(cfg)
    if load_protos:
        loaded = load_prototypes(proto_file)
        try:
            loaded.validate()
            pset = extractor.assign(fa, loaded)
        except ValueError as e:
            raise InputError(f"Invalid prototypes in '{proto_file}': {e}") from e
    else:
        pset = extractor.extract(fa)
    pset.validate(len(fa))

    logger.info("Prototype statistics: %s", pset.stats())
    if cfg.verbose > 1:
        describe_prototypes(pset, fa, space)

    if result_file:
        export_prototypes(result_file, pset, fa, extractor.engine)
    if proto_file and not load_protos:
        save_prototypes(proto_file, pset)

    return PrototypeResult(fa, pset, extractor.engine)


def run_kernel(
    input_path: str,
    cfg: MalheurConfig,
    result_file: str,
    space: Optional[HashedFeatureSpace] = None
) -> KernelResult:
    """
    Compute the kernel matrix of all reports and export it.

    Args:
        input_path: Report file or directory
        cfg: Run configuration
        result_file: Where to export the matrix
        space: Feature space; created from the configuration if None

    Returns:
        KernelResult with the array and matrix
    """
    if not result_file:
        raise ConfigurationError("No output specified for the kernel task")

    fa = extract_array(input_path, cfg, space)
    engine = KernelEngine.from_config(cfg.kernel, verbose=cfg.verbose > 0)

    # Fail before any work if the matrix cannot fit
    engine.check_matrix_size(len(fa), len(fa))
    matrix = engine.compute_matrix(fa)

    export_kernel(result_file, matrix, fa)
    return KernelResult(fa, matrix)


def run_cluster(input_path: str, cfg: MalheurConfig, space: Optional[HashedFeatureSpace] = None) -> None:
    """
    Load reports for clustering.

    Grouping prototypes into clusters is not implemented; the task only
    loads and summarizes the input.
    """
    fa = extract_array(input_path, cfg, space)
    logger.warning("Clustering is not available; loaded %d reports without output", len(fa))
