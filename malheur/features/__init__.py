"""Feature hashing, sparse vectors and feature arrays."""

from .space import HashedFeatureSpace
from .vector import FeatureVector, build_vector, normalize_vector, vector_from_dict
from .array import FeatureArray, Report

__all__ = [
    "HashedFeatureSpace",
    "FeatureVector",
    "build_vector",
    "normalize_vector",
    "vector_from_dict",
    "FeatureArray",
    "Report",
]
