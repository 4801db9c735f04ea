"""
Cooldown Gate - Deduplicates event candidates per kind

The only guard against event flooding: upstream components may emit
candidates at any rate.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from ..events import EVENT_POLICIES, CooldownClass, EventKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NearMiss:
    """A candidate suppressed by the gate (audit only, never scored)"""
    kind: EventKind
    timestamp: datetime
    remaining_ms: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "type": self.kind.value,
            "timestamp": self.timestamp.isoformat(),
            "remaining_ms": self.remaining_ms
        }


class CooldownGate:
    """
    Accepts a candidate kind iff it was never accepted before or the
    last acceptance is at least cooldown(kind) old.

    Cooldowns are per cooldown class (face-derived vs object-derived).
    """

    COOLDOWNS_MS: Dict[CooldownClass, int] = {
        CooldownClass.FACE: 5000,
        CooldownClass.OBJECT: 10000
    }

    def __init__(
        self,
        cooldowns_ms: Optional[Dict[CooldownClass, int]] = None,
        audit_near_misses: bool = False
    ):
        """
        Args:
            cooldowns_ms: Optional dict overriding COOLDOWNS_MS
            audit_near_misses: Keep suppressed candidates in a non-scoring audit list
        """
        merged = self.COOLDOWNS_MS.copy()
        if cooldowns_ms:
            merged.update({CooldownClass(k): v for k, v in cooldowns_ms.items()})

        if any(v < 0 for v in merged.values()):
            raise ValueError("Cooldown windows must be non-negative")

        self.cooldowns = {k: timedelta(milliseconds=v) for k, v in merged.items()}
        self.audit_near_misses = audit_near_misses

        # CooldownLedger: kind -> last accepted timestamp
        self.ledger: Dict[EventKind, datetime] = {}
        self.near_misses: List[NearMiss] = []

    def cooldown(self, kind: EventKind) -> timedelta:
        return self.cooldowns[EVENT_POLICIES[kind].cooldown_class]

    def accept(self, kind: EventKind, now: datetime) -> bool:
        """
        Gate one candidate.

        Args:
            kind: Candidate event kind
            now: Candidate time

        Returns:
            True if accepted (and recorded in the ledger)
        """
        last = self.ledger.get(kind)

        if last is not None:
            elapsed = now - last
            window = self.cooldown(kind)
            if elapsed < window:
                if self.audit_near_misses:
                    remaining = int((window - elapsed) / timedelta(milliseconds=1))
                    self.near_misses.append(NearMiss(kind, now, remaining))
                return False

        self.ledger[kind] = now
        return True

    def reset(self):
        self.ledger = {}
        self.near_misses = []
