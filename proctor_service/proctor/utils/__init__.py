"""Proctoring utilities"""

from .logging import log_proctor_event

__all__ = ["log_proctor_event"]
