"""
Hashed feature space mapping behavioral tokens to bounded indices.
"""

import hashlib
from collections import defaultdict
from typing import Dict, Iterable, Set

from ..config import HASH_ALGORITHMS, MAX_DIMENSION, FeatureConfig
from ..errors import ConfigurationError
from ..types import Token


class HashedFeatureSpace:
    """
    Deterministic hashing of tokens into ``[0, dimension)``.

    Distinct tokens that land on the same index are treated as one
    feature. When the lookup table is enabled, every registered token is
    kept under its index so that vectors can be explained afterwards;
    otherwise the space holds no state besides its parameters.
    """

    def __init__(
        self,
        dimension: int = 2 ** 24,
        hash_algorithm: str = "md5",
        lookup_table: bool = False
    ):
        if dimension < 1 or dimension > MAX_DIMENSION or dimension & (dimension - 1):
            raise ConfigurationError(
                f"Feature space dimension must be a power of two, got {dimension}"
            )
        if hash_algorithm not in HASH_ALGORITHMS:
            raise ConfigurationError(
                f"Unknown hash algorithm '{hash_algorithm}'. Use one of {HASH_ALGORITHMS}."
            )

        self.dimension = dimension
        self.hash_algorithm = hash_algorithm
        self.lookup_table = lookup_table
        self._mask = dimension - 1
        self._table: Dict[int, Set[Token]] = defaultdict(set)

    @classmethod
    def from_config(cls, cfg: FeatureConfig) -> "HashedFeatureSpace":
        """Create a feature space from a FeatureConfig."""
        return cls(cfg.dimension, cfg.hash_algorithm, cfg.lookup_table)

    def resolve(self, token: Token) -> int:
        """
        Hash a token to its feature index.

        The first 8 bytes of the digest are read as a little-endian
        integer and masked to the dimension, so the result depends only
        on the token, the algorithm and the dimension.
        """
        data = token.encode("utf-8") if isinstance(token, str) else bytes(token)
        digest = hashlib.new(self.hash_algorithm, data).digest()
        return int.from_bytes(digest[:8], "little") & self._mask

    def register(self, token: Token, index: int) -> None:
        """Record a token under an index if the lookup table is enabled."""
        if self.lookup_table:
            self._table[index].add(token)

    def resolve_all(self, tokens: Iterable[Token]) -> list:
        """Resolve and register a sequence of tokens."""
        indices = []
        for token in tokens:
            idx = self.resolve(token)
            self.register(token, idx)
            indices.append(idx)
        return indices

    def lookup(self, index: int) -> Set[Token]:
        """Return all tokens registered at an index (empty if disabled)."""
        if not self.lookup_table:
            return set()
        return set(self._table.get(index, ()))

    def collisions(self) -> Dict[int, Set[Token]]:
        """Indices holding more than one registered token."""
        return {idx: set(toks) for idx, toks in self._table.items() if len(toks) > 1}

    def clear(self) -> None:
        """Drop all registered tokens."""
        self._table.clear()

    def __len__(self) -> int:
        """Number of indices with at least one registered token."""
        return len(self._table)

    def __repr__(self) -> str:
        return (
            f"HashedFeatureSpace(dimension={self.dimension}, "
            f"hash_algorithm='{self.hash_algorithm}', lookup_table={self.lookup_table})"
        )
