"""
Flag Generator - Generates review flags from a finished session's events
"""

import logging
from typing import Dict, List, Any

from ..events import EventKind

logger = logging.getLogger(__name__)


class FlagGenerator:
    """
    Generates flags for human review from accepted event counts.

    A kind is flagged when it was accepted at least THRESHOLDS[kind] times.
    """

    # Minimum accepted events of a kind before it is flagged
    THRESHOLDS: Dict[EventKind, int] = {
        EventKind.FACE_ABSENT: 1,
        EventKind.LOOKING_AWAY: 3,
        EventKind.MULTIPLE_FACES: 1,
        EventKind.PHONE_DETECTED: 1,
        EventKind.BOOK_DETECTED: 1
    }

    # Critical flags that always require review
    CRITICAL_FLAGS = [
        EventKind.MULTIPLE_FACES,
        EventKind.PHONE_DETECTED,
        EventKind.BOOK_DETECTED
    ]

    # Score threshold below which review is required
    REVIEW_SCORE_THRESHOLD = 60

    RECOMMENDATIONS = {
        "Good": "Interview appears to be conducted with integrity.",
        "Fair": "Some concerns detected. Review events for context.",
        "Poor": "Multiple integrity violations detected. Manual review recommended."
    }

    def __init__(self, thresholds: Dict[EventKind, int] = None):
        """
        Args:
            thresholds: Optional dict overriding default thresholds
        """
        self.thresholds = self.THRESHOLDS.copy()
        if thresholds:
            self.thresholds.update(thresholds)

    def generate(self, counts: Dict[EventKind, int]) -> List[str]:
        """
        Generate flags from event counts.

        Returns:
            List of flagged event types, in kind order
        """
        flags = []

        for kind, threshold in self.thresholds.items():
            count = counts.get(kind, 0)
            if count >= threshold:
                flags.append(kind.value)
                logger.debug(f"Flag triggered: {kind.value} ({count} >= {threshold})")

        return flags

    def requires_review(self, flags: List[str], score: int) -> bool:
        """
        Determine if manual review is required.

        Args:
            flags: List of triggered flags
            score: Integrity score
        """
        critical = {k.value for k in self.CRITICAL_FLAGS}
        if any(f in critical for f in flags):
            return True

        return score < self.REVIEW_SCORE_THRESHOLD

    def recommendation(self, rating: str) -> str:
        return self.RECOMMENDATIONS.get(rating, self.RECOMMENDATIONS["Poor"])

    def assess(self, counts: Dict[EventKind, int], score: int, rating: str) -> Dict[str, Any]:
        """Flags, review decision and recommendation for a report"""
        flags = self.generate(counts)
        return {
            "flags": flags,
            "review_required": self.requires_review(flags, score),
            "recommendation": self.recommendation(rating)
        }
