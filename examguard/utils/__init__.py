"""Shared utilities"""

from .logging_config import setup_logging, setup_logging_from_settings, get_logger

__all__ = ["setup_logging", "setup_logging_from_settings", "get_logger"]
