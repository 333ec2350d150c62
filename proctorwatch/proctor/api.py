"""
Proctoring API - FastAPI endpoints for exam proctoring

Endpoints:
- POST /api/proctor/start - Start a proctoring session
- POST /api/proctor/face-frame - Feed a face-mesh result
- POST /api/proctor/object-frame - Feed an object-detection batch
- POST /api/proctor/log - Record an externally observed event
- POST /api/proctor/stop - Stop session and get results
- GET /api/proctor/interviews - List sessions, newest first
- GET /api/proctor/interview/{session_id} - Session detail with integrity score
"""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..config import settings
from .detectors.face_mesh import FaceFrameResult, to_landmark_array
from .detectors.object_detector import ObjectDetection, ObjectFrameResult
from .events import ViolationEvent
from .session import ProctorSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/proctor", tags=["Proctoring"])

# In-memory session storage (replace with Redis for production)
_sessions: Dict[str, ProctorSession] = {}


# ============== Request/Response Models ==============

class StartSessionRequest(BaseModel):
    """Request to start a proctoring session"""
    candidate_name: str = Field(..., min_length=1, description="Name of the candidate")
    assessment_id: Optional[str] = Field(None, description="ID of the assessment or interview")


class StartSessionResponse(BaseModel):
    """Response after starting a session"""
    session_id: str
    status: str
    message: str


class LandmarkModel(BaseModel):
    """Normalized face-mesh landmark"""
    x: float
    y: float = 0.0
    z: float = 0.0


class FaceFrameRequest(BaseModel):
    """One face-mesh result: a landmark list per detected face"""
    session_id: str = Field(..., description="Session ID from /start")
    faces: List[List[LandmarkModel]] = Field(default_factory=list)


class DetectionModel(BaseModel):
    """One object detection"""
    class_name: str = Field(..., description="Detector class label, e.g. 'cell phone'")
    score: float = Field(1.0, ge=0.0, le=1.0)
    bbox: Optional[Tuple[float, float, float, float]] = None


class ObjectFrameRequest(BaseModel):
    """One object-detection batch"""
    session_id: str
    detections: List[DetectionModel] = Field(default_factory=list)


class EventModel(BaseModel):
    """A recorded violation"""
    kind: str
    occurred_at: str


class FrameResponse(BaseModel):
    """Response after feeding a frame"""
    processed: bool
    events: List[EventModel]
    current_score: int


class LogEventRequest(BaseModel):
    """Request to record an event observed outside the detectors"""
    session_id: str
    event_type: str = Field(..., min_length=1)


class LogEventResponse(BaseModel):
    recorded: bool
    event: EventModel


class StopSessionRequest(BaseModel):
    """Request to stop a proctoring session"""
    session_id: str


class StopSessionResponse(BaseModel):
    """Final proctoring results"""
    session_id: str
    integrity_score: int
    grade: str
    flags: List[str]
    review_required: bool
    violations: int
    duration_seconds: float


class SessionSummary(BaseModel):
    session_id: str
    candidate_name: str
    assessment_id: Optional[str] = None
    is_active: bool
    started_at: str
    integrity_score: int


class SessionDetailResponse(BaseModel):
    """Session detail; the score is recomputed from the event log"""
    session_id: str
    candidate_name: str
    assessment_id: Optional[str] = None
    is_active: bool
    started_at: str
    ended_at: Optional[str] = None
    duration_seconds: float
    integrity_score: int
    grade: str
    band: str
    flags: List[str]
    review_required: bool
    review_priority: str
    event_counts: Dict[str, int]
    events: List[EventModel]


def _event_models(events: List[ViolationEvent]) -> List[EventModel]:
    return [EventModel(**e.to_dict()) for e in events]


def _get_session(session_id: str, require_active: bool = True) -> ProctorSession:
    session = _sessions.get(session_id)

    if not session:
        raise HTTPException(status_code=404, detail="Session not found")

    if require_active and not session.is_active:
        raise HTTPException(status_code=400, detail="Session is not active")

    return session


# ============== API Endpoints ==============

@router.post("/start", response_model=StartSessionResponse)
async def start_session(request: StartSessionRequest):
    """
    Start a new proctoring session.

    Creates a session whose reducer turns streamed detector results
    into violation events.
    """
    _expire_idle_sessions()

    try:
        session = ProctorSession(
            candidate_name=request.candidate_name,
            assessment_id=request.assessment_id
        )

        _sessions[session.id] = session

        return StartSessionResponse(
            session_id=session.id,
            status="active",
            message="Proctoring session started successfully"
        )

    except Exception as e:
        logger.error(f"Failed to start proctoring session: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/face-frame", response_model=FrameResponse)
async def face_frame(request: FaceFrameRequest):
    """
    Feed one face-mesh result.

    Returns events emitted by this frame; debounced events (no face,
    looking away) are recorded later when their window elapses.
    """
    session = _get_session(request.session_id)

    faces = [
        to_landmark_array([(p.x, p.y, p.z) for p in face])
        for face in request.faces
    ]
    events = session.process_face_frame(FaceFrameResult(faces=faces))

    return FrameResponse(
        processed=True,
        events=_event_models(events),
        current_score=session.integrity_score
    )


@router.post("/object-frame", response_model=FrameResponse)
async def object_frame(request: ObjectFrameRequest):
    """Feed one object-detection batch"""
    session = _get_session(request.session_id)

    result = ObjectFrameResult(detections=[
        ObjectDetection(class_name=d.class_name, score=d.score, bbox=d.bbox)
        for d in request.detections
    ])
    events = session.process_object_frame(result)

    return FrameResponse(
        processed=True,
        events=_event_models(events),
        current_score=session.integrity_score
    )


@router.post("/log", response_model=LogEventResponse)
async def log_event(request: LogEventRequest):
    """
    Record an event observed outside the detectors.

    Labels are stored as given; unknown labels carry no penalty.
    """
    session = _get_session(request.session_id)
    event = session.record_event(request.event_type)

    return LogEventResponse(recorded=True, event=EventModel(**event.to_dict()))


@router.post("/stop", response_model=StopSessionResponse)
async def stop_session(request: StopSessionRequest):
    """
    Stop a proctoring session and get final results.

    Cancels pending debounce timers before the final score is computed.
    The session stays queryable for SESSION_RETENTION_SECONDS.
    Sessions idle for SESSION_IDLE_TIMEOUT_SECONDS are stopped the same way
    the next time sessions are started or listed.
    """
    session = _get_session(request.session_id, require_active=False)

    try:
        result = session.finalize()
    except Exception as e:
        logger.error(f"Error stopping session: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    _schedule_cleanup(session.id)

    return StopSessionResponse(
        session_id=result["session_id"],
        integrity_score=result["integrity_score"],
        grade=result["grade"],
        flags=result["flags"],
        review_required=result["review_required"],
        violations=len(result["events"]),
        duration_seconds=result["duration_seconds"]
    )


@router.get("/interviews", response_model=List[SessionSummary])
async def list_sessions():
    """All known sessions, newest first"""
    _expire_idle_sessions()
    sessions = sorted(_sessions.values(), key=lambda s: s.started_at, reverse=True)

    return [
        SessionSummary(
            session_id=s.id,
            candidate_name=s.candidate_name,
            assessment_id=s.assessment_id,
            is_active=s.is_active,
            started_at=s.started_at.isoformat(),
            integrity_score=s.integrity_score
        )
        for s in sessions
    ]


@router.get("/interview/{session_id}", response_model=SessionDetailResponse)
async def get_session_detail(session_id: str):
    """Session detail with the integrity score computed on the fly"""
    session = _get_session(session_id, require_active=False)
    report = session.report()

    return SessionDetailResponse(
        session_id=report["session_id"],
        candidate_name=report["candidate_name"],
        assessment_id=report["assessment_id"],
        is_active=report["is_active"],
        started_at=report["started_at"],
        ended_at=report["ended_at"],
        duration_seconds=report["duration_seconds"],
        integrity_score=report["integrity_score"],
        grade=report["grade"],
        band=report["band"],
        flags=report["flags"],
        review_required=report["review_required"],
        review_priority=report["review_priority"],
        event_counts=report["event_counts"],
        events=[EventModel(**e) for e in report["events"]]
    )


# ============== Session cleanup ==============

def _schedule_cleanup(session_id: str):
    """Drop a finalized session after the retention period"""
    loop = asyncio.get_running_loop()
    loop.call_later(settings.SESSION_RETENTION_SECONDS, _cleanup_session, session_id)


def _cleanup_session(session_id: str):
    session = _sessions.get(session_id)
    if session is not None and not session.is_active:
        del _sessions[session_id]
        logger.info(f"Cleaned up session: {session_id}")


def _expire_idle_sessions() -> List[str]:
    """Stop active sessions that have had no input for SESSION_IDLE_TIMEOUT_SECONDS"""
    expired = [
        s for s in _sessions.values()
        if s.is_active and s.idle_seconds() >= settings.SESSION_IDLE_TIMEOUT_SECONDS
    ]

    for session in expired:
        logger.info(f"Stopping idle session {session.id} after {session.idle_seconds():.0f}s")
        session.finalize()
        _schedule_cleanup(session.id)

    return [s.id for s in expired]


# ============== Health Check ==============

@router.get("/health")
async def health_check():
    """Health check for proctoring module"""
    _expire_idle_sessions()
    return {
        "status": "healthy",
        "active_sessions": sum(1 for s in _sessions.values() if s.is_active),
        "module": "proctoring"
    }
