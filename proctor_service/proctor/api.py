"""
Proctoring API - FastAPI endpoints for interview proctoring

Endpoints:
- POST /api/proctor/start - Start a proctoring session
- POST /api/proctor/face - Submit a face observation
- POST /api/proctor/objects - Submit an object classifier batch
- POST /api/proctor/stop - Stop session and get the report
- GET /api/proctor/status/{session_id} - Get session status
- GET /api/proctor/report/{session_id} - Get the final report (JSON or CSV)
- POST/GET /api/proctor/log-event - Event store
"""

import logging
from collections import deque
from typing import Deque, Dict, List, Optional, Any
from datetime import datetime

from fastapi import APIRouter, HTTPException, BackgroundTasks, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from ..config import settings
from .exceptions import SessionStateError
from .session import ProctorSession
from .store import InMemoryEventStore, DEFAULT_INTERVIEW_ID

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/proctor", tags=["Proctoring"])

# In-memory session storage (replace with Redis for production)
_sessions: Dict[str, ProctorSession] = {}

# Ended session ids, oldest first; trimmed to ENDED_SESSION_RETENTION
_ended: Deque[str] = deque()

# Event store backing /log-event
event_store = InMemoryEventStore(max_events=settings.EVENT_STORE_MAX_EVENTS)


# ============== Request/Response Models ==============

class StartSessionRequest(BaseModel):
    """Request to start a proctoring session"""
    session_id: Optional[str] = Field(None, description="Opaque session/interview ID")


class StartSessionResponse(BaseModel):
    """Response after starting a session"""
    session_id: str
    status: str
    message: str


class FaceObservationRequest(BaseModel):
    """Face observer output for one frame"""
    session_id: str
    face_count: int = Field(..., ge=0, description="Number of faces in frame")
    per_face_attentive: List[bool] = Field(default_factory=list)
    timestamp: Optional[datetime] = None


class ObjectObservationRequest(BaseModel):
    """Object classifier output for one poll"""
    session_id: str
    detections: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="List of {class, confidence, bbox}"
    )
    timestamp: Optional[datetime] = None


class EventModel(BaseModel):
    id: str
    type: str
    timestamp: str
    severity: str
    description: str
    session_id: str


class ObservationResponse(BaseModel):
    """Events accepted for one observation"""
    session_id: str
    accepted_events: List[EventModel]
    integrity_score: int


class StopSessionRequest(BaseModel):
    """Request to stop a proctoring session"""
    session_id: str


class SessionReportResponse(BaseModel):
    """Final proctoring report"""
    session_id: str
    start_time: str
    end_time: str
    duration_seconds: float
    events: List[EventModel]
    integrity_score: int
    rating: str
    summary: Dict[str, Any]
    flags: List[str]
    review_required: bool
    recommendation: str
    near_misses: List[Dict[str, Any]]


class SessionStatusResponse(BaseModel):
    """Current session status"""
    session_id: str
    state: str
    is_active: bool
    integrity_score: int
    event_count: int
    duration_seconds: float


# ============== Helpers ==============

def _get_session(session_id: str) -> ProctorSession:
    session = _sessions.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _get_active_session(session_id: str) -> ProctorSession:
    session = _get_session(session_id)
    if not session.is_active:
        raise HTTPException(status_code=400, detail="Session is not active")
    return session


def _retire_session(session_id: str):
    """Keep ended sessions for report retrieval, evicting the oldest past the limit"""
    _ended.append(session_id)
    while len(_ended) > settings.ENDED_SESSION_RETENTION:
        evicted = _ended.popleft()
        _sessions.pop(evicted, None)
        logger.info(f"Evicted ended session: {evicted}")


# ============== API Endpoints ==============

@router.post("/start", response_model=StartSessionResponse)
async def start_session(request: StartSessionRequest):
    """
    Start a new proctoring session.

    Resets the integrity score to 100 and opens an empty event log.
    """
    if request.session_id and request.session_id in _sessions:
        raise HTTPException(status_code=409, detail="Session already exists")

    session = ProctorSession(session_id=request.session_id, store=event_store)
    session.start()
    _sessions[session.id] = session

    logger.info(f"Started proctoring session: {session.id}")

    return StartSessionResponse(
        session_id=session.id,
        status="active",
        message="Proctoring session started successfully"
    )


@router.post("/face", response_model=ObservationResponse)
async def submit_face(request: FaceObservationRequest):
    """
    Submit one face observation.

    Absence is debounced; multiple faces are reported immediately.
    """
    session = _get_active_session(request.session_id)

    events = session.process_face({
        "faceCount": request.face_count,
        "perFaceAttentive": request.per_face_attentive,
        "timestamp": request.timestamp
    })

    return ObservationResponse(
        session_id=session.id,
        accepted_events=[e.to_dict() for e in events],
        integrity_score=session.score
    )


@router.post("/objects", response_model=ObservationResponse)
async def submit_objects(request: ObjectObservationRequest):
    """
    Submit one object classifier batch.

    Malformed or low-confidence detections are dropped silently.
    """
    session = _get_active_session(request.session_id)

    events = session.process_objects({
        "detections": request.detections,
        "timestamp": request.timestamp
    })

    return ObservationResponse(
        session_id=session.id,
        accepted_events=[e.to_dict() for e in events],
        integrity_score=session.score
    )


@router.post("/stop", response_model=SessionReportResponse)
async def stop_session(request: StopSessionRequest, background_tasks: BackgroundTasks):
    """
    Stop a proctoring session and get the final report.
    """
    session = _get_session(request.session_id)

    try:
        report = session.stop()
    except SessionStateError as e:
        raise HTTPException(status_code=400, detail=str(e))

    _retire_session(session.id)

    if session.forwarder is not None:
        background_tasks.add_task(session.forwarder.drain)

    return SessionReportResponse(**report.to_dict())


@router.get("/status/{session_id}", response_model=SessionStatusResponse)
async def get_session_status(session_id: str):
    """
    Get current status of a proctoring session.
    """
    session = _get_session(session_id)
    status = session.get_status()

    return SessionStatusResponse(
        session_id=status["session_id"],
        state=status["state"],
        is_active=status["is_active"],
        integrity_score=status["integrity_score"],
        event_count=status["event_count"],
        duration_seconds=status["duration_seconds"]
    )


@router.get("/report/{session_id}", response_model=SessionReportResponse)
async def get_report(session_id: str):
    """
    Get the final report of an ended session.
    """
    session = _get_session(session_id)

    if session.report is None:
        raise HTTPException(status_code=400, detail="Session has not ended")

    return SessionReportResponse(**session.report.to_dict())


@router.get("/report/{session_id}/csv", response_class=PlainTextResponse)
async def get_report_csv(session_id: str):
    """
    Export the event log of an ended session as CSV.
    """
    session = _get_session(session_id)

    if session.report is None:
        raise HTTPException(status_code=400, detail="Session has not ended")

    return PlainTextResponse(
        session.report.to_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{session_id}.csv"'}
    )


# ============== Event Store Endpoints ==============

@router.post("/log-event")
async def log_event(request: Request):
    """
    Store one proctoring event.

    Request body:
    {
        "type": "face_absent" | "looking_away" | ...,
        "description": "...",
        "severity": "low" | "medium" | "high",
        "interviewId": "optional",
        "timestamp": "optional ISO timestamp"
    }
    """
    content_type = request.headers.get("content-type", "")
    if "application/json" not in content_type:
        raise HTTPException(status_code=400, detail="Content-Type must be application/json")

    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    try:
        return await event_store.save(body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/log-event")
async def list_logged_events(interview_id: str = Query(DEFAULT_INTERVIEW_ID, alias="interviewId")):
    """
    List stored events for an interview.
    """
    return {
        "success": True,
        "events": event_store.list_events(interview_id),
        "interviewId": interview_id
    }


# ============== Health Check ==============

@router.get("/health")
async def health_check():
    """Health check for proctoring module"""
    return {
        "status": "healthy",
        "active_sessions": sum(1 for s in _sessions.values() if s.is_active),
        "module": "proctoring"
    }
