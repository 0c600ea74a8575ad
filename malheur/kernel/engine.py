"""
Kernel functions over sparse feature vectors and arrays.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from tqdm.auto import tqdm

from ..config import KernelConfig
from ..errors import ConfigurationError, ResourceError
from ..features.array import FeatureArray
from ..features.vector import FeatureVector

logger = logging.getLogger(__name__)

KERNEL_SCHEMES = ("linear", "cosine")


class KernelMatrix:
    """
    Dense matrix of kernel values between two feature arrays.

    Owns its buffer; indices are bounds-checked and negative indices are
    rejected instead of wrapping around.
    """

    def __init__(self, values: np.ndarray, symmetric: bool = False):
        if values.ndim != 2:
            raise ValueError(f"Kernel matrix must be 2-D, got shape {values.shape}")
        values.flags.writeable = False
        self._values = values
        self.symmetric = symmetric

    @property
    def shape(self) -> Tuple[int, int]:
        return self._values.shape

    @property
    def values(self) -> np.ndarray:
        """Read-only view of the underlying buffer."""
        return self._values

    @property
    def nbytes(self) -> int:
        return int(self._values.nbytes)

    def __getitem__(self, key: Tuple[int, int]) -> float:
        i, j = key
        n, m = self.shape
        if not (0 <= i < n and 0 <= j < m):
            raise IndexError(f"Index ({i}, {j}) out of range for kernel matrix {n}x{m}")
        return float(self._values[i, j])

    def is_symmetric(self) -> bool:
        """Exact symmetry check, no tolerance."""
        n, m = self.shape
        return n == m and bool(np.array_equal(self._values, self._values.T))

    def to_dataframe(self, rows: Sequence[str], cols: Optional[Sequence[str]] = None) -> pd.DataFrame:
        """Label rows and columns, e.g. with report identities."""
        cols = rows if cols is None else cols
        return pd.DataFrame(self._values, index=list(rows), columns=list(cols))

    def __repr__(self) -> str:
        n, m = self.shape
        return f"KernelMatrix({n}x{m}, symmetric={self.symmetric})"


class KernelEngine:
    """
    Pairwise similarity of sparse feature vectors.

    Supports the linear kernel (dot product) and the cosine kernel. The
    cosine of an all-zero vector with anything is defined as 0.
    """

    def __init__(
        self,
        scheme: str = "cosine",
        n_jobs: int = 1,
        max_matrix_bytes: int = 2 * 1024 ** 3,
        block_size: int = 256,
        verbose: bool = False
    ):
        if scheme not in KERNEL_SCHEMES:
            raise ConfigurationError(f"Unknown kernel scheme: {scheme}. Use 'linear' or 'cosine'.")
        if n_jobs < 1:
            raise ConfigurationError(f"n_jobs must be positive, got {n_jobs}")

        self.scheme = scheme
        self.n_jobs = n_jobs
        self.max_matrix_bytes = max_matrix_bytes
        self.block_size = max(1, block_size)
        self.verbose = verbose

    @classmethod
    def from_config(cls, cfg: KernelConfig, verbose: bool = False) -> "KernelEngine":
        return cls(cfg.scheme, cfg.n_jobs, cfg.max_matrix_bytes, verbose=verbose)

    @staticmethod
    def dot(a: FeatureVector, b: FeatureVector) -> float:
        """
        Sparse dot product.

        Joins the two ascending index sequences and sums the products of
        weights at matching indices.
        """
        if a.nnz == 0 or b.nnz == 0:
            return 0.0
        _, ia, ib = np.intersect1d(a.index, b.index, assume_unique=True, return_indices=True)
        return float(np.dot(a.weight[ia], b.weight[ib]))

    def kernel(self, a: FeatureVector, b: FeatureVector) -> float:
        """Kernel value k(a, b) under the configured scheme."""
        if self.scheme == "linear":
            return self.dot(a, b)

        norm2 = self.dot(a, a) * self.dot(b, b)
        if norm2 <= 0.0:
            return 0.0
        return self.dot(a, b) / math.sqrt(norm2)

    def self_kernel(self, a: FeatureVector) -> float:
        """k(a, a); 1 for non-zero vectors under the cosine kernel."""
        if self.scheme == "linear":
            return self.dot(a, a)
        return 0.0 if a.is_zero() else 1.0

    def distance(self, a: FeatureVector, b: FeatureVector) -> float:
        """
        Kernel-induced Euclidean distance.

        ``sqrt(k(a,a) + k(b,b) - 2 k(a,b))``, clipped at 0 against
        rounding. For the cosine kernel this lies in [0, sqrt(2)].
        """
        d2 = self.self_kernel(a) + self.self_kernel(b) - 2.0 * self.kernel(a, b)
        return math.sqrt(max(d2, 0.0))

    def similarity_to_distance(self, sim: float, a: FeatureVector, b: FeatureVector) -> float:
        """Convert an already computed k(a, b) into the induced distance."""
        d2 = self.self_kernel(a) + self.self_kernel(b) - 2.0 * sim
        return math.sqrt(max(d2, 0.0))

    def check_matrix_size(self, n: int, m: int) -> int:
        """
        Bytes needed for an n x m matrix.

        Raises:
            ResourceError: If the matrix exceeds ``max_matrix_bytes``
        """
        nbytes = n * m * np.dtype(np.float64).itemsize
        if nbytes > self.max_matrix_bytes:
            raise ResourceError(
                f"Kernel matrix {n}x{m} needs {nbytes} bytes, "
                f"limit is {self.max_matrix_bytes} bytes"
            )
        return nbytes

    def compute_matrix(
        self,
        fa: FeatureArray,
        fb: Optional[FeatureArray] = None
    ) -> KernelMatrix:
        """
        Compute the dense kernel matrix between two arrays.

        When ``fb`` is None or the same object as ``fa`` only the upper
        triangle (with diagonal) is computed and then mirrored, so the
        result is exactly symmetric. Row blocks are distributed over
        ``n_jobs`` threads; each writes only its own rows.

        Args:
            fa: Row array [n]
            fb: Column array [m]; defaults to ``fa``

        Returns:
            KernelMatrix [n, m]
        """
        same = fb is None or fb is fa
        fb = fa if same else fb
        n, m = len(fa), len(fb)

        nbytes = self.check_matrix_size(n, m)
        try:
            out = np.zeros((n, m), dtype=np.float64)
        except MemoryError as e:
            raise ResourceError(f"Could not allocate kernel matrix {n}x{m} ({nbytes} bytes)") from e

        if n == 0 or m == 0:
            return KernelMatrix(out, symmetric=same)

        # Shared column space restricted to the features actually used
        vocab = fa.vocabulary() if same else np.union1d(fa.vocabulary(), fb.vocabulary())
        XA = fa.to_csr(vocab)
        XB = XA if same else fb.to_csr(vocab)
        XBT = None if same else XB.T.tocsr()

        if self.scheme == "cosine":
            sq_a = np.asarray(XA.multiply(XA).sum(axis=1)).ravel()
            sq_b = sq_a if same else np.asarray(XB.multiply(XB).sum(axis=1)).ravel()
        else:
            sq_a = sq_b = None

        blocks = _row_blocks(n, self.block_size)

        def work(block: Tuple[int, int]) -> None:
            lo, hi = block
            c0 = lo if same else 0
            if same:
                dots = (XA[lo:hi] @ XB[lo:].T).toarray()
            else:
                dots = (XA[lo:hi] @ XBT).toarray()

            if sq_a is not None:
                denom = np.sqrt(np.outer(sq_a[lo:hi], sq_b[c0:]))
                dots = np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)

            out[lo:hi, c0:] = dots
            if same:
                # Diagonal square: copy upper part onto lower part
                diag = out[lo:hi, lo:hi]
                il = np.tril_indices(hi - lo, -1)
                diag[il] = diag.T[il]

        logger.info(
            "Computing %s kernel matrix %dx%d with %d job(s)", self.scheme, n, m, self.n_jobs
        )
        try:
            with ThreadPoolExecutor(max_workers=self.n_jobs) as executor:
                list(tqdm(
                    executor.map(work, blocks),
                    total=len(blocks),
                    desc="Kernel rows",
                    disable=not self.verbose
                ))
        except MemoryError as e:
            raise ResourceError(f"Out of memory while computing kernel matrix {n}x{m}") from e

        if same:
            for lo, hi in blocks:
                out[lo:hi, :lo] = out[:lo, lo:hi].T

        return KernelMatrix(out, symmetric=same)


def _row_blocks(n: int, block_size: int) -> List[Tuple[int, int]]:
    """Split ``range(n)`` into contiguous ``(lo, hi)`` blocks."""
    return [(lo, min(lo + block_size, n)) for lo in range(0, n, block_size)]
