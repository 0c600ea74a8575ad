"""
Report loading and tokenization.
"""

import logging
import os
import re
from typing import Iterator, List, Optional, Tuple

from tqdm.auto import tqdm

from ..config import MalheurConfig
from ..errors import InputError
from ..features.array import FeatureArray, Report
from ..features.space import HashedFeatureSpace
from ..features.vector import build_vector, normalize_vector

logger = logging.getLogger(__name__)


def tokenize(text: str, ngram_len: int = 2, delim: str = " \t\n\r") -> List[str]:
    """
    Split a report into word n-grams.

    Args:
        text: Report text
        ngram_len: Number of consecutive words per token
        delim: Characters separating words

    Returns:
        List of tokens (words joined by a single space)
    """
    if ngram_len < 1:
        raise ValueError(f"ngram_len must be positive, got {ngram_len}")

    pattern = "[" + re.escape(delim) + "]+"
    words = [w for w in re.split(pattern, text) if w]

    if not words:
        return []
    if len(words) < ngram_len:
        return [" ".join(words)]

    return [
        " ".join(words[i:i + ngram_len])
        for i in range(len(words) - ngram_len + 1)
    ]


def report_label(identity: str) -> str:
    """
    Extract a label from a report name.

    The label is the file-name suffix after the last dot, e.g.
    ``"0a1b2c.allaple"`` is labeled ``"allaple"``.
    """
    name = os.path.basename(identity)
    stem, dot, suffix = name.rpartition(".")
    return suffix if dot and stem else ""


def list_reports(path: str) -> List[str]:
    """
    List report files below a path.

    Args:
        path: A single report file or a directory of reports

    Returns:
        Sorted list of report file paths (hidden files skipped)
    """
    if os.path.isfile(path):
        return [path]
    if not os.path.isdir(path):
        raise InputError(f"Could not access '{path}'")

    files = []
    for root, dirs, names in os.walk(path):
        dirs[:] = sorted(d for d in dirs if not d.startswith("."))
        for name in sorted(names):
            if not name.startswith("."):
                files.append(os.path.join(root, name))
    return files


def read_reports(path: str, encoding: str = "utf-8") -> Iterator[Tuple[str, str]]:
    """
    Lazily read reports in a stable order.

    Args:
        path: A single report file or a directory of reports
        encoding: Text encoding; reports must decode without errors

    Yields:
        (identity, text) pairs, identity being the path relative to ``path``
    """
    base = path if os.path.isdir(path) else os.path.dirname(path)

    for file in list_reports(path):
        try:
            with open(file, "r", encoding=encoding) as f:
                text = f.read()
        except UnicodeDecodeError as e:
            raise InputError(f"Report '{file}' is not valid {encoding}: {e}") from e
        except OSError as e:
            raise InputError(f"Could not read report '{file}': {e}") from e
        yield (os.path.relpath(file, base) if base else file), text


def extract_array(
    path: str,
    cfg: MalheurConfig,
    space: Optional[HashedFeatureSpace] = None
) -> FeatureArray:
    """
    Load reports from disk into a feature array.

    Args:
        path: A single report file or a directory of reports
        cfg: Run configuration
        space: Feature space; created from ``cfg.features`` if None

    Returns:
        FeatureArray in report order
    """
    fcfg = cfg.features
    if space is None:
        space = HashedFeatureSpace.from_config(fcfg)
    files = list_reports(path)
    if not files:
        raise InputError(f"No reports found in '{path}'")

    logger.info("Extracting features from %d reports in '%s'", len(files), path)

    fa = FeatureArray(dimension=space.dimension)
    reports = tqdm(read_reports(path), total=len(files), desc="Extracting features",
                   disable=cfg.verbose == 0)
    for src, text in reports:
        tokens = tokenize(text, fcfg.ngram_len, fcfg.ngram_delim)
        vec = build_vector(tokens, space, fcfg.embedding)
        vec = normalize_vector(vec, fcfg.normalization)
        fa.append(Report(src=src, vector=vec, label=report_label(src)))

    logger.info("Feature array: %s", fa.summary())
    return fa
