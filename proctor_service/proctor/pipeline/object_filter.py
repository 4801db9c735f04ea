"""
Object Filter - Restricts classifier output to concerning objects
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from ..events import EventCandidate, EventKind
from ..exceptions import InvalidObservationError
from ..observations import ObjectDetection

logger = logging.getLogger(__name__)


class ObjectFilter:
    """
    Keeps detections whose class is in the target set and whose
    confidence is at least the threshold.

    Only some target classes map to an event kind; the rest are retained
    (and visible through filter()) but produce no candidate.
    """

    TARGET_OBJECTS: Set[str] = {
        "cell phone",
        "book",
        "laptop",
        "mouse",
        "keyboard"
    }

    EVENT_CLASSES: Dict[str, EventKind] = {
        "cell phone": EventKind.PHONE_DETECTED,
        "book": EventKind.BOOK_DETECTED
    }

    CONFIDENCE_THRESHOLD = 0.6

    def __init__(
        self,
        target_objects: Optional[Iterable[str]] = None,
        confidence_threshold: float = CONFIDENCE_THRESHOLD
    ):
        """
        Args:
            target_objects: Optional class allow-list overriding TARGET_OBJECTS
            confidence_threshold: Minimum confidence (inclusive)
        """
        if not 0.0 <= confidence_threshold <= 1.0:
            raise ValueError(f"Confidence threshold out of range: {confidence_threshold}")

        if target_objects is None:
            self.target_objects = set(self.TARGET_OBJECTS)
        else:
            self.target_objects = {name.lower() for name in target_objects}
        self.confidence_threshold = confidence_threshold

    def filter(self, detections: Iterable[Any]) -> List[ObjectDetection]:
        """
        Validate and filter one batch of raw detections.

        Malformed entries are dropped individually.
        """
        retained = []

        for raw in detections:
            try:
                detection = ObjectDetection.from_payload(raw)
            except InvalidObservationError as e:
                logger.debug(f"Dropping malformed detection: {e}")
                continue

            label = detection.label.lower()
            if label not in self.target_objects:
                continue
            if detection.confidence < self.confidence_threshold:
                continue

            retained.append(detection)

        return retained

    def candidates(self, detections: Iterable[Any], now: datetime) -> List[EventCandidate]:
        """
        Map a batch of detections to event candidates.

        Every qualifying detection yields its own candidate; repeated
        classes are left for the cooldown gate to coalesce.
        """
        result = []

        for detection in self.filter(detections):
            kind = self.EVENT_CLASSES.get(detection.label.lower())
            if kind is None:
                continue
            result.append(EventCandidate(
                kind, now, detail=f"confidence {detection.confidence:.2f}"
            ))

        if result:
            logger.debug(f"Object candidates: {', '.join(c.kind.value for c in result)}")

        return result
