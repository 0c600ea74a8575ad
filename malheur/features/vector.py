"""
Sparse feature vectors built from hashed tokens.
"""

import numpy as np
from typing import Iterable, Optional
from sklearn.preprocessing import normalize

from .space import HashedFeatureSpace
from ..types import Token
from ..errors import ConfigurationError, ResourceError

NORMALIZATIONS = ("none", "l1", "l2")
EMBEDDINGS = ("count", "binary")


class FeatureVector:
    """
    Sparse vector of (index, weight) pairs with strictly increasing indices.

    Both arrays are read-only once constructed.
    """

    __slots__ = ("index", "weight")

    def __init__(self, index: np.ndarray, weight: np.ndarray):
        index = np.array(index, dtype=np.int64)
        weight = np.array(weight, dtype=np.float64)

        if index.ndim != 1 or index.shape != weight.shape:
            raise ValueError(
                f"index and weight must be 1-D of equal length, got {index.shape} and {weight.shape}"
            )
        if index.size > 1 and not np.all(index[1:] > index[:-1]):
            raise ValueError("Feature indices must be strictly increasing")

        index.flags.writeable = False
        weight.flags.writeable = False
        self.index = index
        self.weight = weight

    @classmethod
    def empty(cls) -> "FeatureVector":
        """Vector without any features."""
        return cls(np.empty(0, dtype=np.int64), np.empty(0, dtype=np.float64))

    @property
    def nnz(self) -> int:
        """Number of stored entries."""
        return int(self.index.size)

    @property
    def nbytes(self) -> int:
        return int(self.index.nbytes + self.weight.nbytes)

    def is_zero(self) -> bool:
        """True if the vector has no non-zero weight."""
        return not np.any(self.weight)

    def to_dict(self) -> dict:
        return dict(zip(self.index.tolist(), self.weight.tolist()))

    def __len__(self) -> int:
        return self.nnz

    def __eq__(self, other) -> bool:
        if not isinstance(other, FeatureVector):
            return NotImplemented
        return np.array_equal(self.index, other.index) and np.array_equal(self.weight, other.weight)

    def __repr__(self) -> str:
        return f"FeatureVector(nnz={self.nnz})"


def build_vector(
    tokens: Iterable[Token],
    space: HashedFeatureSpace,
    embedding: str = "count"
) -> FeatureVector:
    """
    Build a sparse vector from a token multiset.

    Every token is hashed, counts are accumulated per index and entries
    are emitted in ascending index order. Tokens colliding on one index
    add up their counts.

    Args:
        tokens: Token multiset (any iterable, duplicates count)
        space: Feature space used for hashing
        embedding: "count" for token frequencies, "binary" for presence

    Returns:
        FeatureVector with unique, sorted indices
    """
    if embedding not in EMBEDDINGS:
        raise ConfigurationError(f"Unknown embedding: {embedding}. Use 'count' or 'binary'.")

    indices = space.resolve_all(tokens)
    if not indices:
        return FeatureVector.empty()

    try:
        uniq, counts = np.unique(np.asarray(indices, dtype=np.int64), return_counts=True)
    except MemoryError as e:
        raise ResourceError(f"Could not allocate feature vector with {len(indices)} tokens") from e

    if embedding == "binary":
        weight = np.ones(uniq.size, dtype=np.float64)
    else:
        weight = counts.astype(np.float64)

    return FeatureVector(uniq, weight)


def normalize_vector(vec: FeatureVector, scheme: str = "l2") -> FeatureVector:
    """
    Normalize a vector.

    Args:
        vec: Vector to normalize
        scheme: "l1" (weights sum to 1), "l2" (unit Euclidean norm) or "none"

    Returns:
        Normalized vector; all-zero vectors are returned unchanged
    """
    if scheme not in NORMALIZATIONS:
        raise ConfigurationError(f"Unknown normalization: {scheme}. Use one of {NORMALIZATIONS}.")
    if scheme == "none" or vec.nnz == 0:
        return vec

    weight = normalize(vec.weight.reshape(1, -1), norm=scheme).ravel()
    return FeatureVector(vec.index.copy(), weight)


def vector_from_dict(entries: dict, dimension: Optional[int] = None) -> FeatureVector:
    """
    Build a vector from an ``{index: weight}`` mapping.

    Args:
        entries: Mapping of feature index to weight
        dimension: If given, indices must lie in ``[0, dimension)``

    Returns:
        FeatureVector sorted by index
    """
    if not entries:
        return FeatureVector.empty()

    index = np.fromiter(entries.keys(), dtype=np.int64, count=len(entries))
    weight = np.fromiter(entries.values(), dtype=np.float64, count=len(entries))
    order = np.argsort(index, kind="stable")

    if dimension is not None and (index.min() < 0 or index.max() >= dimension):
        raise ValueError(f"Feature index out of range [0, {dimension})")

    return FeatureVector(index[order], weight[order])
