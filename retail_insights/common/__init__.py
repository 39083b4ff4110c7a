"""
Common utilities for the retail analytics pipeline.
"""

from .config import load_config, DEFAULT_CONFIG
from .data_loader import DataLoader
from .preprocessing import Preprocessor
from .reporting import Reporter

__all__ = ["DataLoader", "Preprocessor", "Reporter", "load_config", "DEFAULT_CONFIG"]
