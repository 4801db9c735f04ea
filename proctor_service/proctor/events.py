"""
Proctoring Events - Event kinds, per-kind policy table and event records

Every per-kind decision (cooldown window, score deduction, severity,
description) is read from EVENT_POLICIES.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional


class EventKind(str, Enum):
    """Closed set of integrity event kinds"""
    FACE_ABSENT = "face_absent"
    LOOKING_AWAY = "looking_away"
    MULTIPLE_FACES = "multiple_faces"
    PHONE_DETECTED = "phone_detected"
    BOOK_DETECTED = "book_detected"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CooldownClass(str, Enum):
    """Which cooldown window a kind falls under"""
    FACE = "face"
    OBJECT = "object"


@dataclass(frozen=True)
class EventPolicy:
    """Static policy for one event kind"""
    cooldown_class: CooldownClass
    deduction: int
    severity: Severity
    description: str


EVENT_POLICIES: Dict[EventKind, EventPolicy] = {
    EventKind.LOOKING_AWAY: EventPolicy(
        CooldownClass.FACE, 5, Severity.MEDIUM, "Candidate looked away from screen"
    ),
    EventKind.FACE_ABSENT: EventPolicy(
        CooldownClass.FACE, 10, Severity.HIGH, "No face detected in frame"
    ),
    EventKind.MULTIPLE_FACES: EventPolicy(
        CooldownClass.FACE, 15, Severity.HIGH, "Multiple faces detected in frame"
    ),
    EventKind.PHONE_DETECTED: EventPolicy(
        CooldownClass.OBJECT, 20, Severity.HIGH, "Mobile phone detected in frame"
    ),
    EventKind.BOOK_DETECTED: EventPolicy(
        CooldownClass.OBJECT, 20, Severity.HIGH, "Book or notes detected in frame"
    ),
}


def parse_kind(value: Any) -> EventKind:
    """Resolve an EventKind from an enum member, its value or its name."""
    if isinstance(value, EventKind):
        return value
    try:
        return EventKind(value)
    except ValueError:
        pass
    try:
        return EventKind[str(value).upper()]
    except KeyError:
        raise ValueError(f"Unknown event kind: {value!r}") from None


@dataclass(frozen=True)
class EventCandidate:
    """A potential event produced upstream of the cooldown gate"""
    kind: EventKind
    timestamp: datetime
    detail: Optional[str] = None

    @property
    def policy(self) -> EventPolicy:
        return EVENT_POLICIES[self.kind]


@dataclass(frozen=True)
class ProctoringEvent:
    """An accepted integrity event. Immutable once created."""
    kind: EventKind
    timestamp: datetime
    severity: Severity
    description: str
    session_id: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def from_candidate(cls, candidate: EventCandidate, session_id: str) -> "ProctoringEvent":
        policy = candidate.policy
        description = policy.description
        if candidate.detail:
            description = f"{description} ({candidate.detail})"
        return cls(
            kind=candidate.kind,
            timestamp=candidate.timestamp,
            severity=policy.severity,
            description=description,
            session_id=session_id
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind.value,
            "timestamp": self.timestamp.isoformat(),
            "severity": self.severity.value,
            "description": self.description,
            "session_id": self.session_id
        }

    def to_store_payload(self) -> Dict[str, Any]:
        """Payload shape expected by the external event store"""
        return {
            "type": self.kind.value,
            "description": self.description,
            "severity": self.severity.value,
            "interviewId": self.session_id,
            "timestamp": self.timestamp.isoformat()
        }
