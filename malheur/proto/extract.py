"""
Single-pass prototype extraction.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

import numpy as np
from tqdm.auto import tqdm

from ..config import MalheurConfig, check_threshold
from ..errors import ConfigurationError
from ..features.array import FeatureArray
from ..features.vector import FeatureVector
from ..kernel.engine import KernelEngine

logger = logging.getLogger(__name__)


@dataclass
class Prototype:
    """
    A representative vector and the reports it stands for.

    The representative is fixed at creation; only the member list and
    the radius grow.
    """
    id: int
    representative: FeatureVector
    source: int  # Index of the report that created the prototype
    members: List[int] = field(default_factory=list)
    radius: float = 0.0

    def absorb(self, report_idx: int, dist: float) -> None:
        self.members.append(report_idx)
        self.radius = max(self.radius, dist)

    @property
    def size(self) -> int:
        return len(self.members)


class PrototypeSet:
    """Prototypes in creation order plus the report assignment."""

    def __init__(self, n_reports: int = 0, prototypes: Optional[List[Prototype]] = None):
        self.n_reports = n_reports
        self.prototypes: List[Prototype] = list(prototypes) if prototypes else []

    def create(self, report_idx: int, vec: FeatureVector) -> Prototype:
        """Open a new prototype seeded by a report."""
        proto = Prototype(
            id=len(self.prototypes),
            representative=vec,
            source=report_idx,
            members=[report_idx],
            radius=0.0,
        )
        self.prototypes.append(proto)
        return proto

    @property
    def assignment(self) -> np.ndarray:
        """Prototype id for every report index (-1 if unassigned)."""
        assign = np.full(self.n_reports, -1, dtype=np.int64)
        for proto in self.prototypes:
            assign[proto.members] = proto.id
        return assign

    def distances(self) -> np.ndarray:
        """Largest radius per prototype, in creation order."""
        return np.array([p.radius for p in self.prototypes], dtype=np.float64)

    def assignment_matrix(self) -> np.ndarray:
        """
        One-hot matrix mapping reports to prototypes.

        Returns:
            Matrix [n_reports, k] where M[i, j] = 1 if report i belongs to prototype j
        """
        M = np.zeros((self.n_reports, len(self.prototypes)), dtype=np.float32)
        for proto in self.prototypes:
            M[proto.members, proto.id] = 1.0
        return M

    def stats(self) -> Dict[str, float]:
        """
        Compute prototype statistics.

        Returns:
            Dictionary with prototype count, size statistics and compression ratio
        """
        if not self.prototypes:
            return {
                "n_prototypes": 0,
                "mean_size": 0.0,
                "max_size": 0,
                "min_size": 0,
                "max_radius": 0.0,
                "compression_ratio": 0.0,
            }

        sizes = np.array([p.size for p in self.prototypes])
        return {
            "n_prototypes": len(self.prototypes),
            "mean_size": float(sizes.mean()),
            "max_size": int(sizes.max()),
            "min_size": int(sizes.min()),
            "max_radius": float(self.distances().max()),
            "compression_ratio": float(len(self.prototypes) / max(1, self.n_reports)),
        }

    def validate(self, n_reports: Optional[int] = None) -> None:
        """
        Check that member lists are disjoint and cover every report.

        Raises:
            ValueError: If the assignment is not total or not disjoint
        """
        n = self.n_reports if n_reports is None else n_reports
        seen = np.zeros(n, dtype=bool)
        for proto in self.prototypes:
            members = np.asarray(proto.members, dtype=np.int64)
            if members.size and (members.min() < 0 or members.max() >= n):
                raise ValueError(f"Prototype {proto.id} has members outside [0, {n})")
            if seen[members].any() or len(np.unique(members)) != members.size:
                raise ValueError(f"Prototype {proto.id} shares members with another prototype")
            seen[members] = True
        if not seen.all():
            missing = np.flatnonzero(~seen)[:10].tolist()
            raise ValueError(f"Reports without prototype: {missing}")

    def __getitem__(self, idx: int) -> Prototype:
        return self.prototypes[idx]

    def __iter__(self) -> Iterator[Prototype]:
        return iter(self.prototypes)

    def __len__(self) -> int:
        return len(self.prototypes)

    def __repr__(self) -> str:
        return f"PrototypeSet(k={len(self)}, n_reports={self.n_reports})"


class PrototypeExtractor:
    """
    Greedy leader-style prototype extraction.

    Reports are visited once in array order. Each report is compared to
    every existing prototype; if the best one (earliest on ties) passes
    the threshold the report joins it, otherwise the report becomes a new
    prototype. The result depends on the input order and is reproducible
    for a fixed order.
    """

    def __init__(
        self,
        engine: KernelEngine,
        threshold: float = 0.65,
        metric: str = "similarity",
        verbose: bool = False
    ):
        try:
            check_threshold(threshold, metric, engine.scheme)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        self.engine = engine
        self.threshold = float(threshold)
        self.metric = metric
        self.verbose = verbose

    @classmethod
    def from_config(
        cls,
        cfg: MalheurConfig,
        engine: Optional[KernelEngine] = None
    ) -> "PrototypeExtractor":
        verbose = cfg.verbose > 0
        engine = engine if engine is not None else KernelEngine.from_config(cfg.kernel, verbose)
        return cls(engine, cfg.prototypes.threshold, cfg.prototypes.metric, verbose)

    def score(self, a: FeatureVector, b: FeatureVector) -> float:
        """Similarity or distance between two vectors, per the metric."""
        if self.metric == "similarity":
            return self.engine.kernel(a, b)
        return self.engine.distance(a, b)

    def _better(self, score: float, best: float) -> bool:
        # Strict comparison keeps the earliest prototype on ties
        return score > best if self.metric == "similarity" else score < best

    def _accepts(self, score: float) -> bool:
        if self.metric == "similarity":
            return score >= self.threshold
        return score <= self.threshold

    def extract(self, fa: FeatureArray) -> PrototypeSet:
        """
        Extract prototypes from a feature array.

        Args:
            fa: Reports in the order they are to be visited

        Returns:
            PrototypeSet with a total, disjoint assignment of all reports
        """
        pset = PrototypeSet(n_reports=len(fa))

        for i, report in enumerate(tqdm(fa, desc="Extracting prototypes", disable=not self.verbose)):
            vec = report.vector
            best: Optional[Prototype] = None
            best_score = 0.0

            for proto in pset:
                s = self.score(vec, proto.representative)
                if best is None or self._better(s, best_score):
                    best, best_score = proto, s

            if best is not None and self._accepts(best_score):
                if self.metric == "similarity":
                    dist = self.engine.similarity_to_distance(best_score, vec, best.representative)
                else:
                    dist = best_score
                best.absorb(i, dist)
            else:
                pset.create(i, vec)

        logger.info(
            "Extracted %d prototypes from %d reports (%s %s %s)",
            len(pset), len(fa), self.metric,
            ">=" if self.metric == "similarity" else "<=", self.threshold
        )
        return pset

    def assign(self, fa: FeatureArray, loaded: PrototypeSet) -> PrototypeSet:
        """
        Assign reports to previously extracted prototypes.

        Every report joins the best scoring representative (earliest on
        ties) without applying the threshold, so the assignment stays
        total. Member lists and radii are rebuilt for ``fa``; a
        prototype's source becomes its member closest to the
        representative, or -1 if no report joined it.

        Args:
            fa: Reports to assign
            loaded: Prototypes with their representatives

        Returns:
            PrototypeSet over ``fa`` with the representatives of ``loaded``
        """
        if len(fa) and not len(loaded):
            raise ValueError("No prototypes to assign reports to")

        protos = [
            Prototype(id=i, representative=p.representative, source=-1)
            for i, p in enumerate(loaded)
        ]
        nearest = [float("inf")] * len(protos)

        for i, report in enumerate(tqdm(fa, desc="Assigning reports", disable=not self.verbose)):
            vec = report.vector
            best: Optional[Prototype] = None
            best_score = 0.0
            for proto in protos:
                s = self.score(vec, proto.representative)
                if best is None or self._better(s, best_score):
                    best, best_score = proto, s

            dist = self.engine.distance(vec, best.representative)
            best.absorb(i, dist)
            if dist < nearest[best.id]:
                nearest[best.id] = dist
                best.source = i

        logger.info("Assigned %d reports to %d loaded prototypes", len(fa), len(protos))
        return PrototypeSet(n_reports=len(fa), prototypes=protos)
