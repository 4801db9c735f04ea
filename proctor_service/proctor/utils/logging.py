"""
Proctoring Logger - Logs proctoring events and results
"""

import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


def log_proctor_event(
    session_id: str,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log a proctoring event.

    Args:
        session_id: Proctoring session ID
        event_type: Type of event (session_start, event_accepted, session_end, etc.)
        details: Optional event details
        level: Log level (debug, info, warning, error)
    """
    message = f"[PROCTOR] session={session_id} event={event_type}"

    if details:
        detail_str = " ".join(f"{k}={v}" for k, v in details.items())
        message += f" {detail_str}"

    if level == "debug":
        logger.debug(message)
    elif level == "warning":
        logger.warning(message)
    elif level == "error":
        logger.error(message)
    else:
        logger.info(message)


def log_session_start(session_id: str, started_at: str):
    """Log session start event"""
    log_proctor_event(
        session_id=session_id,
        event_type="session_start",
        details={"started_at": started_at}
    )


def log_session_end(session_id: str, integrity_score: int, events: int, duration_seconds: float):
    """Log session end event"""
    log_proctor_event(
        session_id=session_id,
        event_type="session_end",
        details={
            "integrity_score": integrity_score,
            "events": events,
            "duration_seconds": round(duration_seconds, 2)
        }
    )


def log_event_accepted(session_id: str, event_type: str, severity: str, score: int):
    """Log an accepted integrity event"""
    log_proctor_event(
        session_id=session_id,
        event_type="event_accepted",
        details={
            "type": event_type,
            "severity": severity,
            "score": score
        },
        level="warning" if severity == "high" else "info"
    )


def log_observer_failure(session_id: str, channel: str, error: Exception, disabled: bool):
    """Log a detector failure inside an observer"""
    log_proctor_event(
        session_id=session_id,
        event_type="observer_failure",
        details={
            "channel": channel,
            "error": repr(error),
            "disabled": disabled
        },
        level="warning"
    )


def log_forward_failure(session_id: str, event_type: str, reason: str):
    """Log a failed hand-off to the external event store"""
    log_proctor_event(
        session_id=session_id,
        event_type="forward_failed",
        details={
            "type": event_type,
            "reason": reason
        },
        level="warning"
    )


def log_candidate_suppressed(session_id: str, event_type: str):
    """Log a candidate rejected by the cooldown gate"""
    log_proctor_event(
        session_id=session_id,
        event_type="candidate_suppressed",
        details={"type": event_type},
        level="debug"
    )
