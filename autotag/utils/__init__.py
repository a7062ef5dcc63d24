"""
Utility modules for configuration, logging, and error handling.
"""

from autotag.utils.errors import (
    AutotagError,
    DecodeError,
    AnalysisError,
    ConfigurationError,
    StoreError,
    TransactionConflictError,
)
from autotag.utils.logging import get_logger, setup_logging, JSONFormatter
from autotag.utils.config import ConfigManager, load_config, get_default_config

__all__ = [
    "AutotagError",
    "DecodeError",
    "AnalysisError",
    "ConfigurationError",
    "StoreError",
    "TransactionConflictError",
    "get_logger",
    "setup_logging",
    "JSONFormatter",
    "ConfigManager",
    "load_config",
    "get_default_config",
]
