"""Utility modules"""

from .logging import format_proctor_event, log_proctor_event

__all__ = ["format_proctor_event", "log_proctor_event"]
