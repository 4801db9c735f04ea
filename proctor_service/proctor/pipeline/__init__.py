"""Signal-to-event reduction pipeline"""

from .presence import PresenceDebouncer, PresenceState
from .object_filter import ObjectFilter
from .cooldown import CooldownGate, NearMiss

__all__ = [
    "PresenceDebouncer",
    "PresenceState",
    "ObjectFilter",
    "CooldownGate",
    "NearMiss"
]
