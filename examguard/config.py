"""
ExamGuard Configuration Settings

All proctoring tunables live here:
- Alert thresholds (head turn, mouth open)
- Debounce and display durations (milliseconds)
- Camera constraints
- Perception engine options (MediaPipe, YOLO)
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Configuration for the ExamGuard service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="EXAMGUARD_",
        case_sensitive=False,
        extra="ignore",
    )

    # API Settings
    APP_NAME: str = "ExamGuard Proctoring Service"
    DEBUG: bool = True
    PORT: int = 8002

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False

    # Signal thresholds
    HEAD_TURN_THRESHOLD: float = 0.2  # cheek distance below this = turned away
    MOUTH_OPEN_THRESHOLD: float = 0.02  # lip gap above this = mouth open

    # Alert timing (ms)
    HEAD_TURN_HOLD_MS: float = 1000.0
    MOUTH_OPEN_DISPLAY_MS: float = 3000.0
    DEFAULT_DISPLAY_MS: float = 2000.0

    # Optional hand-presence alert
    HAND_ALERT_ENABLED: bool = False

    # Camera
    CAMERA_INDEX: int = 0
    CAMERA_WIDTH: int = 640
    CAMERA_HEIGHT: int = 480
    FRAME_POLL_INTERVAL: float = 0.01  # seconds between checks for a new frame

    # Face mesh
    FACE_MAX_NUM_FACES: int = 2
    FACE_REFINE_LANDMARKS: bool = True
    FACE_MIN_DETECTION_CONFIDENCE: float = 0.6
    FACE_MIN_TRACKING_CONFIDENCE: float = 0.6

    # Hands
    HAND_MAX_NUM_HANDS: int = 2
    HAND_MIN_CONFIDENCE: float = 0.5

    # Object detection
    OBJECT_MODEL_PATH: Optional[str] = None
    OBJECT_SCORE_THRESHOLD: float = 0.5


settings = Settings()
