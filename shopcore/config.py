# shopcore/config.py
import logging
from pydantic_settings import BaseSettings
from typing import ClassVar
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./shopcore.db"
    SQL_ECHO: bool = False

    # Used by the HTTP adapter to decode bearer tokens issued elsewhere
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"

    # File storage for product images
    UPLOAD_DIR: str = "static/uploads"
    PUBLIC_BASE_URL: str = "http://127.0.0.1:8000"

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file: ClassVar[str] = str(env_path)

settings = Settings()


def setup_logging(level: str = None):
    """Configure root logging from settings (idempotent)."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
