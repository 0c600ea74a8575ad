"""
Ordered collection of per-report feature vectors.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

import numpy as np
from scipy.sparse import csr_matrix

from .space import HashedFeatureSpace
from .vector import FeatureVector, build_vector, normalize_vector
from ..config import FeatureConfig
from ..errors import ResourceError
from ..types import ReportSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Report:
    """A report identity together with its feature vector."""
    src: str
    vector: FeatureVector
    label: str = ""


class FeatureArray:
    """
    Sequence of reports in input order.

    The order is significant: prototype extraction visits reports in
    exactly this order.
    """

    def __init__(self, reports: Optional[Iterable[Report]] = None, dimension: Optional[int] = None):
        self._reports: List[Report] = []
        self.dimension = dimension
        if reports is not None:
            for report in reports:
                self.append(report)

    @classmethod
    def from_reports(cls, reports: Iterable[Report], dimension: Optional[int] = None) -> "FeatureArray":
        """
        Collect already built reports, keeping their order.

        With ``dimension`` set, every feature index must lie below it.
        """
        return cls(reports, dimension=dimension)

    @classmethod
    def from_tokens(
        cls,
        items: ReportSource,
        space: HashedFeatureSpace,
        cfg: Optional[FeatureConfig] = None,
        labels: Optional[Iterable[str]] = None
    ) -> "FeatureArray":
        """
        Build an array from ``(identity, tokens)`` pairs.

        Args:
            items: Order-preserving sequence of report identities and token multisets
            space: Feature space used for hashing
            cfg: Feature configuration (embedding and normalization)
            labels: Optional labels aligned with items

        Returns:
            FeatureArray in the order of ``items``
        """
        cfg = cfg or FeatureConfig(dimension=space.dimension, normalization="none")
        label_iter = iter(labels) if labels is not None else None

        fa = cls(dimension=space.dimension)
        for src, tokens in items:
            vec = build_vector(tokens, space, cfg.embedding)
            vec = normalize_vector(vec, cfg.normalization)
            label = next(label_iter, "") if label_iter is not None else ""
            fa.append(Report(src=str(src), vector=vec, label=label))
        logger.debug("Built %d feature vectors with %d entries", len(fa), fa.nnz)
        return fa

    def append(self, report: Report) -> None:
        """Append a report; amortized O(1)."""
        if self.dimension is not None and report.vector.nnz > 0:
            if report.vector.index[-1] >= self.dimension:
                raise ValueError(
                    f"Report '{report.src}' has feature {report.vector.index[-1]} "
                    f"outside dimension {self.dimension}"
                )
        self._reports.append(report)

    def normalize(self, scheme: str = "l2") -> "FeatureArray":
        """Return a new array with every vector normalized by ``scheme``."""
        return FeatureArray(
            (Report(r.src, normalize_vector(r.vector, scheme), r.label) for r in self._reports),
            dimension=self.dimension,
        )

    @property
    def vectors(self) -> List[FeatureVector]:
        return [r.vector for r in self._reports]

    @property
    def sources(self) -> List[str]:
        return [r.src for r in self._reports]

    @property
    def labels(self) -> List[str]:
        return [r.label for r in self._reports]

    @property
    def nnz(self) -> int:
        """Total number of stored entries across all vectors."""
        return sum(r.vector.nnz for r in self._reports)

    @property
    def memory_bytes(self) -> int:
        return sum(r.vector.nbytes for r in self._reports)

    def vocabulary(self) -> np.ndarray:
        """Sorted unique feature indices used by any report."""
        if not self.nnz:
            return np.empty(0, dtype=np.int64)
        return np.unique(np.concatenate([r.vector.index for r in self._reports]))

    def to_csr(self, vocabulary: Optional[np.ndarray] = None) -> csr_matrix:
        """
        Stack all vectors into a sparse matrix.

        Args:
            vocabulary: Sorted feature indices to use as columns. Must contain
                every index of the array. If None, columns are the full
                feature space (or largest index + 1 without a dimension).

        Returns:
            CSR matrix [n_reports, n_columns] with rows in array order
        """
        n = len(self._reports)
        lengths = np.fromiter((r.vector.nnz for r in self._reports), dtype=np.int64, count=n)
        indptr = np.zeros(n + 1, dtype=np.int64)
        np.cumsum(lengths, out=indptr[1:])

        try:
            if n and indptr[-1] > 0:
                indices = np.concatenate([r.vector.index for r in self._reports])
                data = np.concatenate([r.vector.weight for r in self._reports])
            else:
                indices = np.empty(0, dtype=np.int64)
                data = np.empty(0, dtype=np.float64)
        except MemoryError as e:
            raise ResourceError(f"Could not stack {n} feature vectors") from e

        if vocabulary is not None:
            n_cols = max(len(vocabulary), 1)
            cols = np.searchsorted(vocabulary, indices)
            if indices.size and (cols.max() >= len(vocabulary) or np.any(vocabulary[cols] != indices)):
                raise ValueError("Vocabulary does not cover all feature indices")
            indices = cols
        elif self.dimension is not None:
            n_cols = self.dimension
        else:
            n_cols = int(indices.max()) + 1 if indices.size else 1

        return csr_matrix((data, indices, indptr), shape=(n, n_cols))

    def summary(self) -> dict:
        n = len(self._reports)
        return {
            "n_reports": n,
            "nnz": self.nnz,
            "mean_nnz": float(self.nnz / n) if n else 0.0,
            "memory_bytes": self.memory_bytes,
            "n_labels": len(set(self.labels)),
        }

    def __getitem__(self, idx: int) -> Report:
        return self._reports[idx]

    def __iter__(self) -> Iterator[Report]:
        return iter(self._reports)

    def __len__(self) -> int:
        return len(self._reports)

    def __repr__(self) -> str:
        return f"FeatureArray(n_reports={len(self)}, nnz={self.nnz})"
