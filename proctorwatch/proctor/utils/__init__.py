"""Utility modules"""

from .logging import log_proctor_event, log_violation

__all__ = ["log_proctor_event", "log_violation"]
