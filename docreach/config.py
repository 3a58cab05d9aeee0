from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # App
    app_name: str = "DocReach"
    debug: bool = False
    log_level: str = "INFO"

    # Database (SQLite by default; set DATABASE_URL for PostgreSQL)
    database_url: str = "sqlite:///./docreach.db"

    # Auth: identity tokens are issued elsewhere; we only verify them
    auth_secret_key: str = "docreach-dev-secret-change-in-production"
    auth_algorithm: str = "HS256"
    auth_cookie_name: str = "docreach_session"
    auth_token_max_age_seconds: int = 86400 * 7

    # Document store
    upload_dir: str = "./uploads/documents"
    max_document_bytes: int = 10 * 1024 * 1024  # 10 MiB

    # Matching
    search_radius_km: float = 10.0
    emergency_radius_km: float = 20.0
    default_page_size: int = 20
    max_page_size: int = 100
    nearest_emergency_count: int = 5

    # Dispatch
    video_session_ttl_seconds: int = 900
    video_session_base_url: Optional[str] = None  # e.g. "https://meet.example.org/session/"

    # Optional remote license registry; rule-based checks only when unset
    license_registry_url: Optional[str] = None
    license_registry_timeout_seconds: float = 8.0

    # Email (message channel for the Message contact method); if not set, messages are logged only
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    email_from: Optional[str] = None  # e.g. "DocReach <noreply@yourdomain.com>"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    class Config:
        env_file = ".env"


settings = Settings()
