"""
ExamGuard Service - FastAPI application hosting the proctoring control surface
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .proctor.api import router as proctor_router, shutdown_session
from .utils.logging_config import setup_logging_from_settings, get_logger

logger = get_logger(__name__)


app = FastAPI(
    title=settings.APP_NAME,
    description="Live exam proctoring: camera, perception models and alerts",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None
)

# The proctoring UI is served from a local page on another port
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Must be False when using wildcard origin
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(proctor_router)


@app.on_event("startup")
async def startup_event():
    """Configure logging and log the active thresholds."""
    setup_logging_from_settings(settings)

    logger.info(f"{settings.APP_NAME} listening on port {settings.PORT}")
    logger.info(
        f"Thresholds: head_turn<{settings.HEAD_TURN_THRESHOLD} "
        f"mouth_open>{settings.MOUTH_OPEN_THRESHOLD} "
        f"hold={settings.HEAD_TURN_HOLD_MS}ms"
    )
    logger.info(f"Camera: index={settings.CAMERA_INDEX} {settings.CAMERA_WIDTH}x{settings.CAMERA_HEIGHT}")


@app.on_event("shutdown")
async def shutdown_event():
    """Release the camera if a session is still running."""
    shutdown_session()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": "1.0.0"
    }


def run():
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run("examguard.main:app", host="127.0.0.1", port=settings.PORT)


if __name__ == "__main__":
    run()
