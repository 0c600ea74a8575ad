"""
Configuration classes for the malheur package.
"""

import math
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationError

HASH_ALGORITHMS = ("md5", "sha1", "sha256", "blake2b")
MAX_DIMENSION = 2 ** 62


def check_threshold(threshold: float, metric: str, scheme: str) -> float:
    """
    Validate a prototype threshold for a metric and kernel scheme.

    Raises:
        ValueError: If the threshold cannot be met meaningfully
    """
    if metric not in ("similarity", "distance"):
        raise ValueError(f"Unknown metric: {metric}. Use 'similarity' or 'distance'.")
    if not math.isfinite(threshold) or threshold < 0.0:
        raise ValueError(f"threshold must be finite and non-negative, got {threshold}")

    # Cosine similarities of non-negative vectors live in [0, 1]
    if scheme == "cosine":
        upper = 1.0 if metric == "similarity" else math.sqrt(2.0)
        if threshold > upper:
            raise ValueError(
                f"threshold {threshold} out of range [0, {upper:.4f}] for cosine {metric}"
            )
    return threshold


class FeatureConfig(BaseModel):
    """Configuration for feature extraction and hashing."""
    dimension: int = 2 ** 24  # Size D of the hashed feature space
    hash_algorithm: Literal["md5", "sha1", "sha256", "blake2b"] = "md5"
    embedding: Literal["count", "binary"] = "count"
    normalization: Literal["none", "l1", "l2"] = "l2"
    ngram_len: int = Field(default=2, ge=1)
    ngram_delim: str = " \t\n\r%.,;:()[]{}'\"=/\\|"
    lookup_table: bool = False  # Keep tokens per index for diagnostics

    @field_validator("dimension")
    @classmethod
    def _power_of_two(cls, v: int) -> int:
        if v < 1 or v > MAX_DIMENSION or v & (v - 1):
            raise ValueError(f"dimension must be a power of two in [1, 2^62], got {v}")
        return v

    @field_validator("ngram_delim")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("ngram_delim must contain at least one character")
        return v


class KernelConfig(BaseModel):
    """Configuration for kernel computation."""
    scheme: Literal["linear", "cosine"] = "cosine"
    n_jobs: int = Field(default=1, ge=1)  # Worker threads for matrix rows
    max_matrix_bytes: int = Field(default=2 * 1024 ** 3, gt=0)


class PrototypeConfig(BaseModel):
    """Configuration for prototype extraction."""
    metric: Literal["similarity", "distance"] = "similarity"
    threshold: float = 0.65


class MalheurConfig(BaseModel):
    """Complete run configuration."""
    features: FeatureConfig = FeatureConfig()
    kernel: KernelConfig = KernelConfig()
    prototypes: PrototypeConfig = PrototypeConfig()
    verbose: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_threshold(self) -> "MalheurConfig":
        check_threshold(self.prototypes.threshold, self.prototypes.metric, self.kernel.scheme)
        return self


def make_config(**kwargs) -> MalheurConfig:
    """
    Build and validate a configuration.

    Args:
        **kwargs: Sections (``features``, ``kernel``, ``prototypes``) as dicts
            or models, plus ``verbose``

    Returns:
        Validated MalheurConfig

    Raises:
        ConfigurationError: If any value is invalid
    """
    try:
        return MalheurConfig(**kwargs)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


def load_config(path: str) -> MalheurConfig:
    """
    Load a configuration from a JSON file. Missing keys use defaults.

    Args:
        path: Path to JSON configuration file

    Returns:
        Validated MalheurConfig
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise ConfigurationError(f"Could not read configuration '{path}': {e}") from e

    try:
        return MalheurConfig.model_validate_json(text)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration '{path}': {e}") from e
