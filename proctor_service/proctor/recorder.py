"""
Session Recorder - Ordered event log and the terminal session report

State machine: IDLE -> ACTIVE -> ENDED. Nothing leaves ENDED.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .events import EventKind, ProctoringEvent
from .exceptions import SessionStateError
from .metrics import MetricsAggregator
from .pipeline.cooldown import NearMiss
from .scoring import FlagGenerator, IntegrityScorer
from .utils.logging import log_session_end, log_session_start

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    ENDED = "ended"


@dataclass(frozen=True)
class SessionReport:
    """Immutable snapshot handed to the report consumer"""
    session_id: str
    start_time: datetime
    end_time: datetime
    duration_seconds: float
    events: Tuple[ProctoringEvent, ...]
    integrity_score: int
    near_misses: Tuple[NearMiss, ...] = field(default_factory=tuple)

    @property
    def rating(self) -> str:
        return IntegrityScorer.get_rating(self.integrity_score)

    def kind_counts(self) -> Dict[EventKind, int]:
        return dict(MetricsAggregator.from_events(self.session_id, self.events).kind_counts)

    def summary(self) -> Dict[str, Any]:
        return MetricsAggregator.from_events(self.session_id, self.events).get_summary()

    def to_dict(self) -> Dict[str, Any]:
        assessment = FlagGenerator().assess(
            self.kind_counts(), self.integrity_score, self.rating
        )
        return {
            "session_id": self.session_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_seconds": self.duration_seconds,
            "events": [e.to_dict() for e in self.events],
            "integrity_score": self.integrity_score,
            "rating": self.rating,
            "summary": self.summary(),
            "near_misses": [n.to_dict() for n in self.near_misses],
            **assessment
        }

    def to_csv(self) -> str:
        """Event log as CSV, one row per event in log order"""
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(["id", "type", "timestamp", "severity", "description"])
        for event in self.events:
            writer.writerow([
                event.id,
                event.kind.value,
                event.timestamp.isoformat(),
                event.severity.value,
                event.description
            ])
        return buffer.getvalue()


class SessionRecorder:
    """
    Accumulates the ordered event log for one session.

    Log order is acceptance order. Each recorded event is also handed to
    the optional forwarder; forwarding can never fail a record() call.
    """

    def __init__(
        self,
        forwarder=None,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Args:
            forwarder: Optional object with ``submit(event)`` (see store.EventForwarder)
            clock: Time source used when start()/finish() get no explicit time
        """
        self.forwarder = forwarder
        self.clock = clock

        self.state = SessionState.IDLE
        self.session_id: Optional[str] = None
        self.start_time: Optional[datetime] = None
        self._events: List[ProctoringEvent] = []
        self._report: Optional[SessionReport] = None

    def start(self, session_id: str, now: Optional[datetime] = None):
        """IDLE -> ACTIVE. Clears the log and stamps the start time."""
        if self.state is not SessionState.IDLE:
            raise SessionStateError(f"Cannot start session in state {self.state.value}")
        if not session_id:
            raise ValueError("session_id is required")

        self.session_id = session_id
        self.start_time = now or self.clock()
        self._events = []
        self.state = SessionState.ACTIVE

        log_session_start(session_id, self.start_time.isoformat())

    def record(self, event: ProctoringEvent):
        """Append an accepted event (ACTIVE only)."""
        if self.state is not SessionState.ACTIVE:
            raise SessionStateError(f"Cannot record event in state {self.state.value}")

        self._events.append(event)

        if self.forwarder is not None:
            try:
                self.forwarder.submit(event)
            except Exception as e:
                logger.warning(f"Event forwarding could not be scheduled: {e}")

    @property
    def events(self) -> Tuple[ProctoringEvent, ...]:
        return tuple(self._events)

    def finish(
        self,
        integrity_score: int,
        now: Optional[datetime] = None,
        near_misses: Tuple[NearMiss, ...] = ()
    ) -> SessionReport:
        """
        ACTIVE -> ENDED. Freezes the report; must be called exactly once.

        Args:
            integrity_score: Final score from the scorer
            now: End time (defaults to the clock)
            near_misses: Optional non-scoring audit entries

        Returns:
            The immutable session report
        """
        if self.state is not SessionState.ACTIVE:
            raise SessionStateError(f"Cannot finish session in state {self.state.value}")

        end_time = now or self.clock()
        if end_time < self.start_time:
            end_time = self.start_time

        self.state = SessionState.ENDED
        self._report = SessionReport(
            session_id=self.session_id,
            start_time=self.start_time,
            end_time=end_time,
            duration_seconds=(end_time - self.start_time).total_seconds(),
            events=tuple(self._events),
            integrity_score=integrity_score,
            near_misses=tuple(near_misses)
        )

        log_session_end(
            self.session_id,
            integrity_score,
            len(self._events),
            self._report.duration_seconds
        )

        return self._report

    @property
    def report(self) -> Optional[SessionReport]:
        """The frozen report once ENDED, else None"""
        return self._report
