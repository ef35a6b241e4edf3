# vidbrief/core/config.py

import logging
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    """Application settings"""
    # Base App Config
    APP_NAME: str = "Vidbrief API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Direct Database Connection (for SQLAlchemy)
    DATABASE_URL: str = "sqlite:///./vidbrief.db"

    # Mux (video hosting, transcoding and generated subtitles)
    MUX_TOKEN_ID: str = ""
    MUX_TOKEN_SECRET: str = ""
    MUX_API_BASE: str = "https://api.mux.com/video/v1"
    MUX_STREAM_BASE: str = "https://stream.mux.com"
    MUX_IMAGE_BASE: str = "https://image.mux.com"
    MUX_CORS_ORIGIN: str = "*"
    # ถ้าไม่ได้ตั้งค่า จะไม่ตรวจ signature ของ webhook
    MUX_WEBHOOK_SECRET: str | None = None
    MUX_WEBHOOK_TOLERANCE_SECONDS: int = 300
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Google Gemini (summary / description)
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_TIMEOUT_SECONDS: float = 60.0

    # Redis (for enrichment retry queue), optional
    REDIS_URL: str | None = None
    ENRICHMENT_QUEUE_NAME: str = "vidbrief-enrichment-retry"
    ENRICHMENT_MAX_ATTEMPTS: int = 3
    ENRICHMENT_RETRY_BASE_DELAY: float = 30.0
    ENRICHMENT_LEASE_SECONDS: int = 600
    ENRICHMENT_POLL_INTERVAL: float = 1.0

    # Polling fallback for /check-upload
    POLL_SETTLE_DELAY: float = 2.0
    POLL_ATTEMPTS: int = 5
    POLL_DELAY: float = 2.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding='utf-8',
        extra='ignore'
    )

@lru_cache()
def get_settings():
    return Settings()

settings = get_settings()
