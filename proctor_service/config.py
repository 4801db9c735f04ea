"""
Proctor Service Configuration Settings

Thresholds, cooldown windows and score deductions for the
signal-to-event reduction engine. All durations are milliseconds.
"""
from pydantic_settings import BaseSettings
from typing import Dict, List, Optional


class Settings(BaseSettings):
    """Configuration for the proctoring service."""

    # API Settings
    APP_NAME: str = "Proctor Service"
    DEBUG: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_DIR: str = "logs"

    # Presence debounce (ms)
    FACE_ABSENT_THRESHOLD_MS: int = 10000
    LOOKING_AWAY_THRESHOLD_MS: int = 5000
    LOOKING_AWAY_ENABLED: bool = False

    # Observation cadence (ms)
    FACE_DETECTION_INTERVAL_MS: int = 100
    OBJECT_DETECTION_INTERVAL_MS: int = 3000
    OBSERVER_MAX_FAILURES: int = 1

    # Object filter
    CONFIDENCE_THRESHOLD: float = 0.6
    TARGET_OBJECTS: List[str] = ["cell phone", "book", "laptop", "mouse", "keyboard"]

    # Event deduplication (ms)
    FACE_EVENT_COOLDOWN_MS: int = 5000
    OBJECT_EVENT_COOLDOWN_MS: int = 10000
    AUDIT_NEAR_MISSES: bool = False

    # Score deductions keyed by event type ("face_absent", ...); empty = defaults
    SCORE_DEDUCTIONS: Dict[str, int] = {}

    # External event store
    EVENT_STORE_URL: Optional[str] = None
    EVENT_STORE_TIMEOUT: float = 5.0
    EVENT_STORE_MAX_EVENTS: int = 10000

    # Ended sessions kept in memory for report retrieval
    ENDED_SESSION_RETENTION: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
