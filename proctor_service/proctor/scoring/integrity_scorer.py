"""
Integrity Scorer - Maintains the session integrity score
"""

import logging
from typing import Dict, Any, Optional

from ..events import EVENT_POLICIES, EventKind, parse_kind

logger = logging.getLogger(__name__)


class IntegrityScorer:
    """
    Applies a fixed deduction per accepted event.

    Formula:
        new_score = max(0, score - deduction(kind))

    The score starts at 100, never increases and never drops below 0.
    """

    MAX_SCORE = 100
    MIN_SCORE = 0

    # Deduction configuration
    DEDUCTIONS: Dict[EventKind, int] = {
        kind: policy.deduction for kind, policy in EVENT_POLICIES.items()
    }

    def __init__(self, deductions: Optional[Dict[Any, int]] = None):
        """
        Initialize scorer with optional custom deductions.

        Args:
            deductions: Optional dict (kind or kind value -> points) overriding DEDUCTIONS
        """
        self.deductions = self.DEDUCTIONS.copy()
        if deductions:
            for kind, points in deductions.items():
                self.deductions[parse_kind(kind)] = int(points)

        negative = [k.value for k, v in self.deductions.items() if v < 0]
        if negative:
            raise ValueError(f"Deductions must be non-negative: {negative}")

        self.score = self.MAX_SCORE

    @staticmethod
    def deduct(score: int, deduction: int) -> int:
        """Pure score step, clamped to [MIN_SCORE, score]"""
        return max(IntegrityScorer.MIN_SCORE, min(score, score - deduction))

    def deduction(self, kind: EventKind) -> int:
        return self.deductions[kind]

    def apply(self, kind: EventKind) -> int:
        """
        Deduct for one accepted event.

        Args:
            kind: Accepted event kind

        Returns:
            The new score
        """
        previous = self.score
        self.score = self.deduct(previous, self.deduction(kind))

        logger.debug(
            f"Integrity score: {previous} -> {self.score} "
            f"(deducted {self.deduction(kind)} for {kind.value})"
        )
        return self.score

    def reset(self):
        self.score = self.MAX_SCORE

    def compute_breakdown(self, counts: Dict[EventKind, int]) -> Dict[str, Any]:
        """
        Recompute a score from event counts with a per-kind breakdown.

        Args:
            counts: Accepted events per kind

        Returns:
            Dict with score and penalties per kind
        """
        score = self.MAX_SCORE
        penalties = {}

        for kind, deduction in self.deductions.items():
            count = counts.get(kind, 0)
            penalties[kind.value] = {
                "count": count,
                "deduction": deduction,
                "penalty": count * deduction
            }
            for _ in range(count):
                score = self.deduct(score, deduction)

        return {
            "integrity_score": score,
            "penalties": penalties,
            "total_penalty": self.MAX_SCORE - score
        }

    @staticmethod
    def get_rating(score: int) -> str:
        """
        Convert score to a rating label.

        Returns:
            'Good' (>= 80), 'Fair' (>= 60) or 'Poor'
        """
        if score >= 80:
            return "Good"
        elif score >= 60:
            return "Fair"
        else:
            return "Poor"
