"""Configuration module -- exports Settings and load_config."""

from studykb.config.loader import load_config
from studykb.config.settings import Settings

__all__ = ["Settings", "load_config"]
