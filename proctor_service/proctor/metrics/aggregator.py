"""
Metrics Aggregator - Aggregates accepted events for a session report
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Iterable

from ..events import EventKind, ProctoringEvent, Severity


@dataclass
class MetricsAggregator:
    """
    Counts accepted events per kind and per severity.

    Every kind and severity is present in the output, zeros included.
    """

    session_id: str

    event_count: int = 0
    kind_counts: Dict[EventKind, int] = field(
        default_factory=lambda: {kind: 0 for kind in EventKind}
    )
    severity_counts: Dict[Severity, int] = field(
        default_factory=lambda: {severity: 0 for severity in Severity}
    )

    def update(self, event: ProctoringEvent):
        self.event_count += 1
        self.kind_counts[event.kind] += 1
        self.severity_counts[event.severity] += 1

    @classmethod
    def from_events(cls, session_id: str, events: Iterable[ProctoringEvent]) -> "MetricsAggregator":
        aggregator = cls(session_id=session_id)
        for event in events:
            aggregator.update(event)
        return aggregator

    def get_summary(self) -> Dict[str, Any]:
        """
        Get complete event summary.

        Returns:
            Dict with totals keyed by event type and severity values
        """
        return {
            "session_id": self.session_id,
            "total_events": self.event_count,
            "by_type": {k.value: v for k, v in self.kind_counts.items()},
            "by_severity": {s.value: v for s, v in self.severity_counts.items()}
        }
