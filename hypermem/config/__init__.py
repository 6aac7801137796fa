"""Configuration module for hypermem."""

from hypermem.config.loader import get_config_path, load_config, save_config
from hypermem.config.schema import Config, DecayConfig, HypergraphConfig, MemoryConfig

__all__ = [
    "Config",
    "MemoryConfig",
    "HypergraphConfig",
    "DecayConfig",
    "load_config",
    "save_config",
    "get_config_path",
]
