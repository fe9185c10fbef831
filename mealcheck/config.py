"""
Configuration management for the meal check-in portal
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Meal Check-In Portal"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./data/mealcheck.db"

    # Security
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12  # one school day

    # Default admin account, created on first startup when no admin exists
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: str = "admin1234"

    # Backups (SQLite only)
    BACKUP_DIR: str = "backups"
    BACKUP_MAX_FILES: int = 30
    BACKUP_ON_STARTUP: bool = True

    # Kiosk camera snapshots
    PHOTO_DIR: str = "data/camera"

    # Uploads (roster spreadsheets, photos)
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10 MB

    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Logging; LOG_FILE adds a rotating file next to stdout
    LOG_FILE: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
