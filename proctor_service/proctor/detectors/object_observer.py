"""
Object Observer - Adapts an object classifier to periodic object observations
"""

import dataclasses
from datetime import datetime
from typing import Any

from ..observations import ObjectObservation
from .base import Observer


class ObjectObserver(Observer):
    """
    Polls an object classifier every interval_ms (default 3 s).

    The classifier returns a list of {class, confidence, bbox} detections,
    possibly empty, or an ObjectObservation.
    """

    channel = "object"
    INTERVAL_MS = 3000

    def to_observation(self, raw: Any, now: datetime) -> ObjectObservation:
        if isinstance(raw, ObjectObservation):
            observation = raw
        else:
            observation = ObjectObservation.from_payload(raw)

        if observation.timestamp is None:
            observation = dataclasses.replace(observation, timestamp=now)
        return observation
