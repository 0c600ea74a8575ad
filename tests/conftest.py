"""
Shared fixtures for malheur tests.
"""

import matplotlib
matplotlib.use("Agg")

import pytest

from malheur.features import FeatureArray, HashedFeatureSpace

# Token multisets of the reference scenario, in canonical order
SCENARIO = [
    ("R1", ["a", "a", "b"]),
    ("R2", ["a", "b", "c"]),
    ("R3", ["a", "a", "b"]),
    ("R4", ["z"]),
    ("R5", ["z", "z", "y"]),
]


@pytest.fixture
def space():
    return HashedFeatureSpace(dimension=2 ** 20, hash_algorithm="md5")


@pytest.fixture
def scenario_array(space):
    return FeatureArray.from_tokens(SCENARIO, space)


@pytest.fixture
def report_dir(tmp_path):
    """Directory of plain-text reports matching the reference scenario."""
    d = tmp_path / "reports"
    d.mkdir()
    texts = {
        "r1.alpha": "a a b",
        "r2.alpha": "a b c",
        "r3.alpha": "a a b",
        "r4.beta": "z",
        "r5.beta": "z z y",
    }
    for name, text in texts.items():
        (d / name).write_text(text)
    return d


@pytest.fixture
def config_file(tmp_path):
    """Configuration matching the reference scenario."""
    path = tmp_path / "malheur.json"
    path.write_text(
        '{"features": {"dimension": 1048576, "ngram_len": 1, "normalization": "none"},'
        ' "kernel": {"scheme": "cosine"},'
        ' "prototypes": {"metric": "similarity", "threshold": 0.5}}'
    )
    return path
