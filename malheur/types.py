"""
Core type definitions for the malheur package.
"""

import numpy as np
from typing import Iterable, Iterator, Protocol, Tuple, Union
from typing_extensions import TypeAlias

# Core data types
Token: TypeAlias = Union[str, bytes]
FeatureIndex: TypeAlias = int            # in [0, D)
Assignment: TypeAlias = np.ndarray       # [N_reports] prototype id per report


class ReportSource(Protocol):
    """Protocol for order-preserving sources of tokenized reports."""

    def __iter__(self) -> Iterator[Tuple[str, Iterable[Token]]]:
        """Yield (identity, token multiset) pairs in input order."""
        ...
