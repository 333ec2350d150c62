"""
Proctoring Service Configuration Settings

Debounce windows are in milliseconds. Object-detection filtering mirrors
the detector call made by the capture client (max boxes, min score).
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Configuration for the proctoring service."""

    # API Settings
    APP_NAME: str = "Proctoring Service"
    DEBUG: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_DIR: str = "logs"

    # Debounce windows
    NO_FACE_WINDOW_MS: int = 10000
    LOOKING_AWAY_WINDOW_MS: int = 5000

    # Object detection filtering
    OBJECT_MIN_CONFIDENCE: float = 0.4
    OBJECT_MAX_DETECTIONS: int = 20

    # Forwarding of violation events to a remote log endpoint (disabled if unset)
    EVENT_SINK_URL: Optional[str] = None
    EVENT_SINK_TIMEOUT_SECONDS: float = 5.0

    # Finalized sessions stay queryable this long before removal
    SESSION_RETENTION_SECONDS: int = 3600

    # Active sessions with no input for this long are stopped
    SESSION_IDLE_TIMEOUT_SECONDS: int = 1800

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
