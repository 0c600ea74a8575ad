"""
Malheur: prototype extraction and kernel computation for malware behavior reports
"""

__version__ = "0.1.0"

from . import features, data, kernel, proto, backends, pipeline, viz
from .config import FeatureConfig, KernelConfig, PrototypeConfig, MalheurConfig, make_config, load_config
from .errors import MalheurError, ConfigurationError, ResourceError, InputError
from .types import FeatureIndex, Assignment

__all__ = [
    "features",
    "data",
    "kernel",
    "proto",
    "backends",
    "pipeline",
    "viz",
    "FeatureConfig",
    "KernelConfig",
    "PrototypeConfig",
    "MalheurConfig",
    "make_config",
    "load_config",
    "MalheurError",
    "ConfigurationError",
    "ResourceError",
    "InputError",
    "FeatureIndex",
    "Assignment",
]
