import logging
from typing import List, Optional

from pydantic_settings import BaseSettings

# Set up logging for this module
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # Database
    MONGO_URI: str = "mongodb://localhost:27017/studysync"
    MONGO_DB_NAME: str = "studysync"

    # Identity provider tokens (verified, never issued here)
    AUTH_TOKEN_SECRET: str = "change-me"
    AUTH_TOKEN_ALGORITHM: str = "HS256"
    AUTH_TOKEN_AUDIENCE: Optional[str] = None

    # YouTube Data API v3
    YOUTUBE_API_KEY: Optional[str] = None
    YOUTUBE_API_BASE_URL: str = "https://www.googleapis.com/youtube/v3"
    YOUTUBE_TIMEOUT_SECONDS: int = 10

    # Email configuration
    SMTP_SERVER: str = "smtp.gmail.com"
    SMTP_PORT: int = 465
    SENDER_EMAIL: Optional[str] = None
    SENDER_PASSWORD: Optional[str] = None
    SENDER_NAME: str = "The Study Sync"

    # Links inside emails
    APP_BASE_URL: str = "http://localhost:3000"

    # Shared secret for the scheduled reminder trigger
    CRON_SECRET: Optional[str] = None

    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    class Config:
        env_file = ".env"


def _redact(value: Optional[str], keep: int = 6) -> str:
    if not value:
        return "None"
    return f"{value[:keep]}**** (redacted)"


# Log settings loading (redact sensitive values)
settings = Settings()
logger.info("[CONFIG] Settings loaded successfully")
logger.info(f"[CONFIG] Mongo URI: {_redact(settings.MONGO_URI, 10)}")
logger.info(f"[CONFIG] Database: {settings.MONGO_DB_NAME}")
logger.info(f"[CONFIG] Token algorithm: {settings.AUTH_TOKEN_ALGORITHM}")
logger.info(f"[CONFIG] YouTube API key: {_redact(settings.YOUTUBE_API_KEY)}")
logger.info(f"[CONFIG] SMTP Server: {settings.SMTP_SERVER}")
logger.info(f"[CONFIG] Sender Email: {settings.SENDER_EMAIL or 'None'}")
logger.info(f"[CONFIG] Cron secret configured: {bool(settings.CRON_SECRET)}")
