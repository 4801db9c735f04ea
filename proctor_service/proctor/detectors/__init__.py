"""Observation source adapters for proctoring"""

from .base import Observer
from .face_observer import FaceObserver
from .object_observer import ObjectObserver

__all__ = [
    "Observer",
    "FaceObserver",
    "ObjectObserver"
]
