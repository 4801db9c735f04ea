"""
Proctoring Module

Reduces noisy per-frame perception signals into integrity events:
- Face absence (debounced)
- Looking away (optional, debounced)
- Multiple faces
- Phone / book in view

Each accepted event deducts from an Integrity Score (0-100) that only
decreases during a session, and the session ends in an immutable report.
"""

from .api import router
from .session import ProctorSession
from .recorder import SessionReport, SessionState

__all__ = ["router", "ProctorSession", "SessionReport", "SessionState"]
