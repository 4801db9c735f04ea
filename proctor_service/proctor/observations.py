"""
Observations - Raw perceptual records delivered by the face and object observers

Observations are ephemeral: they are parsed, consumed by the pipeline and dropped.
Parsers raise InvalidObservationError on malformed input so the pipeline can
discard it before it reaches the cooldown gate.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

from .exceptions import InvalidObservationError


class ObservationSource(str, Enum):
    FACE = "face"
    OBJECT = "object"


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError as e:
            raise InvalidObservationError(f"Invalid timestamp: {value!r}") from e
    raise InvalidObservationError(f"Invalid timestamp: {value!r}")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


@dataclass(frozen=True)
class FaceObservation:
    """
    Face observer output for one frame.

    attentive holds one flag per detected face; index 0 is the primary face.
    An empty tuple means the detector reported no attention signal.
    """
    face_count: int
    attentive: Tuple[bool, ...] = ()
    timestamp: Optional[datetime] = None

    source = ObservationSource.FACE

    @property
    def primary_attentive(self) -> bool:
        """Primary face attention; faces without an attention signal count as attentive"""
        if self.face_count < 1:
            return False
        if not self.attentive:
            return True
        return bool(self.attentive[0])

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "FaceObservation":
        """
        Parse a face observer payload.

        Accepts ``faceCount`` / ``face_count`` / ``num_faces`` and
        ``perFaceAttentive`` / ``per_face_attentive``.
        """
        if not isinstance(payload, Mapping):
            raise InvalidObservationError("Face payload must be a mapping")

        count = None
        for key in ("faceCount", "face_count", "num_faces"):
            if key in payload:
                count = payload[key]
                break

        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            raise InvalidObservationError(f"Invalid face count: {count!r}")

        flags = payload.get("perFaceAttentive", payload.get("per_face_attentive")) or ()
        if isinstance(flags, (str, bytes)) or not isinstance(flags, Sequence):
            raise InvalidObservationError("perFaceAttentive must be a list of booleans")
        if not all(isinstance(f, bool) for f in flags):
            raise InvalidObservationError("perFaceAttentive must be a list of booleans")

        return cls(
            face_count=count,
            attentive=tuple(flags),
            timestamp=_parse_timestamp(payload.get("timestamp"))
        )


@dataclass(frozen=True)
class ObjectDetection:
    """Single classifier detection; bbox is [x, y, width, height]"""
    label: str
    confidence: float
    bbox: Tuple[float, ...] = ()

    @classmethod
    def from_payload(cls, payload: Union["ObjectDetection", Mapping[str, Any]]) -> "ObjectDetection":
        if isinstance(payload, ObjectDetection):
            payload.validate()
            return payload
        if not isinstance(payload, Mapping):
            raise InvalidObservationError("Detection must be a mapping")

        label = payload.get("class", payload.get("label", payload.get("name")))
        confidence = payload.get("confidence", payload.get("score"))
        bbox = payload.get("bbox") or ()

        if isinstance(bbox, (str, bytes)) or not isinstance(bbox, Sequence):
            raise InvalidObservationError(f"Invalid bbox: {bbox!r}")

        detection = cls(
            label=label,
            confidence=confidence,
            bbox=tuple(bbox)
        )
        detection.validate()
        return detection

    def validate(self):
        if not isinstance(self.label, str) or not self.label.strip():
            raise InvalidObservationError(f"Invalid class label: {self.label!r}")
        if not _is_number(self.confidence) or not 0.0 <= self.confidence <= 1.0:
            raise InvalidObservationError(f"Confidence out of range: {self.confidence!r}")
        if self.bbox and (len(self.bbox) != 4 or not all(_is_number(v) for v in self.bbox)):
            raise InvalidObservationError(f"Invalid bbox: {self.bbox!r}")


@dataclass(frozen=True)
class ObjectObservation:
    """
    One classifier poll. Detections are kept raw; the object filter
    validates and drops malformed entries individually.
    """
    detections: Tuple[Any, ...] = ()
    timestamp: Optional[datetime] = None

    source = ObservationSource.OBJECT

    @classmethod
    def from_payload(cls, payload: Any) -> "ObjectObservation":
        """Accept a bare list of detections or ``{"detections": [...], "timestamp": ...}``"""
        timestamp = None
        if isinstance(payload, Mapping):
            timestamp = _parse_timestamp(payload.get("timestamp"))
            payload = payload.get("detections")
        if payload is None:
            payload = ()
        if isinstance(payload, (str, bytes)) or not isinstance(payload, Sequence):
            raise InvalidObservationError("Detections must be a list")
        return cls(detections=tuple(payload), timestamp=timestamp)


Observation = Union[FaceObservation, ObjectObservation]
