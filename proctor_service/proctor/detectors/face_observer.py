"""
Face Observer - Adapts a face/landmark detector to face observations
"""

import dataclasses
from datetime import datetime
from typing import Any, Mapping, Sequence

from ..exceptions import InvalidObservationError
from ..observations import FaceObservation
from .base import Observer


class FaceObserver(Observer):
    """
    Polls a face detector continuously.

    The detector may return:
    - a FaceObservation
    - a mapping with faceCount / face_count / num_faces and optional
      perFaceAttentive flags
    - a bare face count
    """

    channel = "face"
    INTERVAL_MS = 100

    def to_observation(self, raw: Any, now: datetime) -> FaceObservation:
        if isinstance(raw, FaceObservation):
            observation = raw
        elif isinstance(raw, Mapping):
            observation = FaceObservation.from_payload(raw)
        elif isinstance(raw, int) and not isinstance(raw, bool):
            observation = FaceObservation.from_payload({"faceCount": raw})
        elif isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
            # list of per-face attention flags
            observation = FaceObservation.from_payload({
                "faceCount": len(raw),
                "perFaceAttentive": list(raw)
            })
        else:
            raise InvalidObservationError(f"Unsupported face result: {type(raw).__name__}")

        if observation.timestamp is None:
            observation = dataclasses.replace(observation, timestamp=now)
        return observation
