"""
Proctoring API - FastAPI control surface for the local proctoring UI

Endpoints:
- POST /api/proctor/start - Start the camera and the frame loop
- POST /api/proctor/stop - Stop the session and release the camera
- GET /api/proctor/status - Running state and the current alert text
- GET /api/proctor/models-status - Model availability
- GET /api/proctor/health - Health check
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..config import settings
from .session import ProctorSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/proctor", tags=["Proctoring"])

# One camera, one controller per process
_session: Optional[ProctorSession] = None


def get_session() -> ProctorSession:
    """Return the process-wide session, creating it on first use."""
    global _session
    if _session is None:
        _session = ProctorSession(config=settings)
    return _session


def shutdown_session():
    """Stop and drop the process-wide session (app shutdown)."""
    global _session
    if _session is not None:
        _session.stop()
        _session = None


# ============== Request/Response Models ==============

class StartSessionResponse(BaseModel):
    """Response after starting a session"""
    session_id: Optional[str]
    running: bool
    status: str
    alert: str
    message: str


class StopSessionResponse(BaseModel):
    """Session counters at stop time"""
    session_id: Optional[str]
    status: str
    frames_processed: int
    frames_skipped: int
    inference_failures: int
    alerts_emitted: int


class SessionStatusResponse(BaseModel):
    """Current session status"""
    session_id: Optional[str]
    state: str
    running: bool
    alert: str
    frames_processed: int
    frames_skipped: int
    inference_failures: int
    alerts_emitted: int


class ModelStatusResponse(BaseModel):
    """Model availability status"""
    mediapipe: bool
    ultralytics: bool
    yolo_weights: bool


# ============== API Endpoints ==============

@router.post("/start", response_model=StartSessionResponse)
async def start_session(session: ProctorSession = Depends(get_session)):
    """
    Start proctoring.

    Starting an already running session is a no-op. Camera or model
    failures do not raise: the session stays stopped and the reason is
    returned as the current alert.
    """
    try:
        already_running = session.running
        running = await session.start()
    except Exception as e:
        logger.error(f"Failed to start proctoring session: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if already_running:
        message = "Proctoring session already running"
    elif running:
        message = "Proctoring session started successfully"
    else:
        message = "Proctoring session could not be started"

    return StartSessionResponse(
        session_id=session.id,
        running=running,
        status=session.state.value,
        alert=session.alert_text,
        message=message
    )


@router.post("/stop", response_model=StopSessionResponse)
async def stop_session(session: ProctorSession = Depends(get_session)):
    """
    Stop proctoring and release the camera. Safe to call repeatedly.
    """
    try:
        session.stop()
    except Exception as e:
        logger.error(f"Error stopping session: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return StopSessionResponse(
        session_id=session.id,
        status=session.state.value,
        **session.stats.to_dict()
    )


@router.get("/status", response_model=SessionStatusResponse)
async def get_session_status(session: ProctorSession = Depends(get_session)):
    """
    Get current status of the proctoring session (polled by the UI).
    """
    return SessionStatusResponse(**session.status())


@router.get("/models-status", response_model=ModelStatusResponse)
async def get_models_status():
    """
    Check which ML models are available.
    """
    from .models.model_loader import check_models

    status = check_models(settings.OBJECT_MODEL_PATH)

    return ModelStatusResponse(**status)


# ============== Health Check ==============

@router.get("/health")
async def health_check():
    """Health check for proctoring module"""
    return {
        "status": "healthy",
        "session_running": _session.running if _session is not None else False,
        "module": "proctoring"
    }
