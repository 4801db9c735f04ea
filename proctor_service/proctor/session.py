"""
Proctor Session - Manages a single proctoring session
"""

import asyncio
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..config import Settings, settings as default_settings
from .detectors import Observer
from .events import CooldownClass, EventCandidate, ProctoringEvent
from .exceptions import InvalidObservationError, SessionStateError
from .observations import FaceObservation, ObjectObservation, Observation
from .pipeline import CooldownGate, ObjectFilter, PresenceDebouncer
from .recorder import SessionRecorder, SessionReport, SessionState, utcnow
from .scoring import IntegrityScorer
from .store import EventForwarder, HttpEventStore
from .utils.logging import log_candidate_suppressed, log_event_accepted

logger = logging.getLogger(__name__)


class ProctorSession:
    """
    Manages a single proctoring session.

    Owns all mutable session state (presence timers, cooldown ledger,
    score, event log). Every observation runs debounce/filter -> gate ->
    score -> record as one step under the session lock, so no caller can
    observe a half-applied event.

    Observers can push into an asyncio queue drained by a single consumer
    task (launch()/close()), or callers can feed observations directly
    (process_face()/process_objects()).
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        config: Optional[Settings] = None,
        store=None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize a new proctoring session.

        Args:
            session_id: Optional custom session ID (auto-generated if not provided)
            config: Settings to read thresholds from (defaults to service settings)
            store: Optional event store with ``async save(payload)``; when omitted
                   and EVENT_STORE_URL is set, events are posted there
            clock: Time source (defaults to UTC now)
        """
        self.id = session_id or f"EXM_{uuid.uuid4().hex[:6].upper()}"
        self.config = config or default_settings
        self.clock = clock or utcnow

        if store is None and self.config.EVENT_STORE_URL:
            store = HttpEventStore(self.config.EVENT_STORE_URL, self.config.EVENT_STORE_TIMEOUT)
        self.forwarder: Optional[EventForwarder] = EventForwarder(store) if store is not None else None

        self.recorder = SessionRecorder(forwarder=self.forwarder, clock=self.clock)
        self.gate = CooldownGate(
            cooldowns_ms={
                CooldownClass.FACE: self.config.FACE_EVENT_COOLDOWN_MS,
                CooldownClass.OBJECT: self.config.OBJECT_EVENT_COOLDOWN_MS
            },
            audit_near_misses=self.config.AUDIT_NEAR_MISSES
        )
        self.scorer = IntegrityScorer(self.config.SCORE_DEDUCTIONS)
        self.object_filter = ObjectFilter(
            target_objects=self.config.TARGET_OBJECTS,
            confidence_threshold=self.config.CONFIDENCE_THRESHOLD
        )
        self.presence: Optional[PresenceDebouncer] = None

        self._lock = threading.RLock()
        self._observers: List[Observer] = []
        self._producer_tasks: List[asyncio.Task] = []
        self._consumer_task: Optional[asyncio.Task] = None
        self._queue: Optional[asyncio.Queue] = None

    # ============== Lifecycle ==============

    @property
    def state(self) -> SessionState:
        return self.recorder.state

    @property
    def is_active(self) -> bool:
        return self.recorder.state is SessionState.ACTIVE

    @property
    def started_at(self) -> Optional[datetime]:
        return self.recorder.start_time

    @property
    def score(self) -> int:
        return self.scorer.score

    @property
    def events(self):
        return self.recorder.events

    @property
    def report(self) -> Optional[SessionReport]:
        return self.recorder.report

    def start(self, now: Optional[datetime] = None):
        """Idle -> Active: reset score and ledger, seed presence timers"""
        with self._lock:
            self.recorder.start(self.id, now)
            self.scorer.reset()
            self.gate.reset()
            self.presence = PresenceDebouncer(
                started_at=self.recorder.start_time,
                face_absent_threshold_ms=self.config.FACE_ABSENT_THRESHOLD_MS,
                looking_away_threshold_ms=self.config.LOOKING_AWAY_THRESHOLD_MS,
                looking_away_enabled=self.config.LOOKING_AWAY_ENABLED
            )

        logger.info(f"Proctoring session started: {self.id}")

    def stop(self, now: Optional[datetime] = None) -> SessionReport:
        """
        Active -> Ended. Halts observers and the consumer first, then
        freezes the report. Observations already queued are processed.

        Raises:
            SessionStateError: if the session is not active
        """
        self._halt_observers()
        self._release_queue()

        with self._lock:
            report = self.recorder.finish(
                self.scorer.score,
                now=self._align(now) if now else None,
                near_misses=tuple(self.gate.near_misses)
            )
            # per-session timers are not needed past this point
            self.presence = None
            self.gate.reset()

        if self.forwarder is not None:
            # queued thread deliveries still complete; in-loop ones are drained by close()
            self.forwarder.close()

        logger.info(
            f"Session {self.id} finalized: score={report.integrity_score}, "
            f"events={len(report.events)}"
        )
        return report

    # ============== Pipeline ==============

    def process(self, observation: Observation, now: Optional[datetime] = None) -> List[ProctoringEvent]:
        """Route one observation to its channel"""
        if isinstance(observation, FaceObservation):
            return self.process_face(observation, now)
        if isinstance(observation, ObjectObservation):
            return self.process_objects(observation, now)
        logger.debug(f"Dropping unknown observation type: {type(observation).__name__}")
        return []

    def process_face(self, observation: Any, now: Optional[datetime] = None) -> List[ProctoringEvent]:
        """
        Run one face observation through debounce -> gate -> score -> record.

        Args:
            observation: FaceObservation or raw face payload
            now: Observation time (defaults to its timestamp, then the clock)

        Returns:
            Events accepted for this observation
        """
        with self._lock:
            if not self.is_active:
                logger.debug(f"Session {self.id} not active, face observation discarded")
                return []

            try:
                if not isinstance(observation, FaceObservation):
                    observation = FaceObservation.from_payload(observation)
            except InvalidObservationError as e:
                logger.debug(f"Dropping invalid face observation: {e}")
                return []

            when = self._resolve_time(now, observation.timestamp)
            candidates = self.presence.observe(observation, when)
            return self._admit_all(candidates)

    def process_objects(self, observation: Any, now: Optional[datetime] = None) -> List[ProctoringEvent]:
        """
        Run one classifier batch through filter -> gate -> score -> record.

        Args:
            observation: ObjectObservation, list of detections, or payload dict
            now: Observation time (defaults to its timestamp, then the clock)

        Returns:
            Events accepted for this batch
        """
        with self._lock:
            if not self.is_active:
                logger.debug(f"Session {self.id} not active, object observation discarded")
                return []

            try:
                if not isinstance(observation, ObjectObservation):
                    observation = ObjectObservation.from_payload(observation)
            except InvalidObservationError as e:
                logger.debug(f"Dropping invalid object observation: {e}")
                return []

            when = self._resolve_time(now, observation.timestamp)
            candidates = self.object_filter.candidates(observation.detections, when)
            return self._admit_all(candidates)

    def _admit_all(self, candidates: List[EventCandidate]) -> List[ProctoringEvent]:
        accepted = []
        for candidate in candidates:
            event = self._admit(candidate)
            if event is not None:
                accepted.append(event)
        return accepted

    def _admit(self, candidate: EventCandidate) -> Optional[ProctoringEvent]:
        # caller holds the lock
        if not self.gate.accept(candidate.kind, candidate.timestamp):
            log_candidate_suppressed(self.id, candidate.kind.value)
            return None

        event = ProctoringEvent.from_candidate(candidate, self.id)
        self.recorder.record(event)
        score = self.scorer.apply(event.kind)

        log_event_accepted(self.id, event.kind.value, event.severity.value, score)
        return event

    def _resolve_time(self, now: Optional[datetime], stamped: Optional[datetime]) -> datetime:
        return self._align(now or stamped or self.clock())

    def _align(self, ts: datetime) -> datetime:
        """Match the timezone-awareness of the session start time"""
        start = self.recorder.start_time
        if start is None:
            return ts
        if start.tzinfo is not None and ts.tzinfo is None:
            return ts.replace(tzinfo=timezone.utc)
        if start.tzinfo is None and ts.tzinfo is not None:
            return ts.astimezone(timezone.utc).replace(tzinfo=None)
        return ts

    # ============== Producers / consumer ==============

    def launch(self, *observers: Observer):
        """
        Start producer tasks for observers and the single consumer.

        Must be called from a running event loop. Starts the session if idle.
        """
        loop = asyncio.get_running_loop()

        if self.state is SessionState.IDLE:
            self.start()
        if not self.is_active:
            raise SessionStateError(f"Cannot launch observers in state {self.state.value}")

        if self._queue is None:
            self._queue = asyncio.Queue()
            self._consumer_task = loop.create_task(self._consume())

        for observer in observers:
            observer.session_id = self.id
            self._observers.append(observer)
            self._producer_tasks.append(loop.create_task(observer.run(self._queue.put_nowait)))

    async def _consume(self):
        while True:
            observation = await self._queue.get()
            try:
                self.process(observation)
            except Exception as e:
                logger.exception(f"Observation processing failed in session {self.id}: {e}")
            finally:
                self._queue.task_done()

    def _halt_observers(self):
        for observer in self._observers:
            observer.stop()
        for task in self._producer_tasks:
            task.cancel()
        self._producer_tasks = []

    def _release_queue(self):
        """Process observations already queued, then retire the consumer"""
        if self._queue is not None:
            while not self._queue.empty():
                self.process(self._queue.get_nowait())
                self._queue.task_done()
            self._queue = None

        if self._consumer_task is not None:
            self._consumer_task.cancel()
            self._consumer_task = None

    async def close(self, now: Optional[datetime] = None) -> SessionReport:
        """
        Stop producers, drain observations already queued, then stop().

        Returns:
            The final session report
        """
        producers = list(self._producer_tasks)
        self._halt_observers()
        if producers:
            await asyncio.gather(*producers, return_exceptions=True)

        consumer = self._consumer_task
        self._release_queue()
        if consumer is not None:
            await asyncio.gather(consumer, return_exceptions=True)

        report = self.stop(now)

        if self.forwarder is not None:
            await self.forwarder.drain()

        return report

    # ============== Status ==============

    def get_status(self) -> Dict[str, Any]:
        started = self.recorder.start_time
        if self.report is not None:
            elapsed = self.report.duration_seconds
        elif started is not None:
            elapsed = max(0.0, (self._align(self.clock()) - started).total_seconds())
        else:
            elapsed = 0.0

        return {
            "session_id": self.id,
            "state": self.state.value,
            "is_active": self.is_active,
            "integrity_score": self.scorer.score,
            "event_count": len(self.recorder.events),
            "duration_seconds": elapsed,
            "observers": {
                o.channel: {"running": o.is_running, "disabled": o.disabled, "produced": o.produced}
                for o in self._observers
            }
        }
