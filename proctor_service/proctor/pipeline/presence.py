"""
Presence Debouncer - Turns raw face observations into stable presence candidates

Absence must persist continuously past the threshold before it is surfaced;
a second face is surfaced immediately.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List

from ..events import EventCandidate, EventKind
from ..observations import FaceObservation

logger = logging.getLogger(__name__)


@dataclass
class PresenceState:
    """
    Debouncer timers for one session.

    Both timers start at session start, which gives a full threshold of
    grace while the face observer warms up.
    """
    last_face_seen_at: datetime
    last_attentive_at: datetime

    def mark_face_seen(self, now: datetime):
        # never moves backwards, even for out-of-order observations
        if now > self.last_face_seen_at:
            self.last_face_seen_at = now

    def mark_attentive(self, now: datetime):
        if now > self.last_attentive_at:
            self.last_attentive_at = now


class PresenceDebouncer:
    """
    Debounces face presence and attention.

    - FACE_ABSENT when face_count == 0 and the time since a face was last
      seen strictly exceeds face_absent_threshold_ms
    - MULTIPLE_FACES as soon as face_count > 1
    - LOOKING_AWAY (only if enabled) when the primary face has not been
      attentive for more than looking_away_threshold_ms
    """

    FACE_ABSENT_THRESHOLD_MS = 10000
    LOOKING_AWAY_THRESHOLD_MS = 5000

    def __init__(
        self,
        started_at: datetime,
        face_absent_threshold_ms: int = FACE_ABSENT_THRESHOLD_MS,
        looking_away_threshold_ms: int = LOOKING_AWAY_THRESHOLD_MS,
        looking_away_enabled: bool = False
    ):
        """
        Args:
            started_at: Session start time, seeds both timers
            face_absent_threshold_ms: Continuous absence required before FACE_ABSENT
            looking_away_threshold_ms: Continuous inattention required before LOOKING_AWAY
            looking_away_enabled: Emit LOOKING_AWAY candidates (timers refresh either way)
        """
        if face_absent_threshold_ms < 0 or looking_away_threshold_ms < 0:
            raise ValueError("Debounce thresholds must be non-negative")

        self.face_absent_threshold = timedelta(milliseconds=face_absent_threshold_ms)
        self.looking_away_threshold = timedelta(milliseconds=looking_away_threshold_ms)
        self.looking_away_enabled = looking_away_enabled
        self.state = PresenceState(
            last_face_seen_at=started_at,
            last_attentive_at=started_at
        )

    def observe(self, observation: FaceObservation, now: datetime) -> List[EventCandidate]:
        """
        Feed one face observation.

        Args:
            observation: Parsed face observation
            now: Observation time

        Returns:
            Zero or more candidates for the cooldown gate
        """
        face_count = observation.face_count
        candidates: List[EventCandidate] = []

        if face_count >= 1:
            self.state.mark_face_seen(now)
            if observation.primary_attentive:
                self.state.mark_attentive(now)

        if face_count > 1:
            candidates.append(EventCandidate(
                EventKind.MULTIPLE_FACES, now, detail=f"{face_count} faces"
            ))
            return candidates

        if face_count == 0:
            absent_for = now - self.state.last_face_seen_at
            if absent_for > self.face_absent_threshold:
                logger.debug(
                    f"Face absent for {absent_for.total_seconds():.1f}s "
                    f"(threshold {self.face_absent_threshold.total_seconds():.1f}s)"
                )
                candidates.append(EventCandidate(EventKind.FACE_ABSENT, now))
            return candidates

        if self.looking_away_enabled:
            away_for = now - self.state.last_attentive_at
            if away_for > self.looking_away_threshold:
                candidates.append(EventCandidate(EventKind.LOOKING_AWAY, now))

        return candidates
