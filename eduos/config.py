# eduos/config.py
import os
from datetime import time
from dotenv import load_dotenv
from typing import List, Optional
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
load_dotenv()

DEFAULT_SECRET_KEY = "default_secret_key"


def get_optional(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def get_bool(key: str, default: bool = False) -> bool:
    value = get_optional(key)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def get_list(key: str, default: str = "") -> List[str]:
    return [item.strip() for item in get_optional(key, default).split(",") if item.strip()]


def get_time(key: str, default: str) -> time:
    hour, minute = get_optional(key, default).split(":")
    return time(int(hour), int(minute))


def build_database_url() -> str:
    url = get_optional("DATABASE_URL")
    if url:
        return url
    if get_optional("DB_HOST"):
        return (
            f"mysql+pymysql://{get_optional('DB_USER', 'root')}:{get_optional('DB_PASSWORD', '')}"
            f"@{get_optional('DB_HOST')}:{get_optional('DB_PORT', '3306')}"
            f"/{get_optional('DB_NAME', 'eduos')}?charset=utf8mb4"
        )
    return f"sqlite:///{BASE_DIR.parent / 'eduos.db'}"


class Settings:
    # ---------------------------------------------------------------------
    # DATABASE
    # ---------------------------------------------------------------------
    DATABASE_URL: str = build_database_url()

    # ---------------------------------------------------------------------
    # JWT / SECURITY
    # ---------------------------------------------------------------------
    # Development-only fallback, never deploy without SECRET_KEY set.
    SECRET_KEY: str = get_optional("SECRET_KEY", DEFAULT_SECRET_KEY)
    ALGORITHM: str = get_optional("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
        get_optional("ACCESS_TOKEN_EXPIRE_MINUTES", str(7 * 24 * 60))
    )
    RESET_TOKEN_EXPIRE_MINUTES: int = int(
        get_optional("RESET_TOKEN_EXPIRE_MINUTES", "60")
    )
    ALLOW_TOKENLESS_PASSWORD_RESET: bool = get_bool("ALLOW_TOKENLESS_PASSWORD_RESET")
    EXPOSE_RESET_TOKEN: bool = get_bool("EXPOSE_RESET_TOKEN")

    # ---------------------------------------------------------------------
    # CORS
    # ---------------------------------------------------------------------
    CORS_ALLOW_ORIGINS: List[str] = get_list("CORS_ALLOW_ORIGINS", "*")
    CORS_ALLOW_METHODS: List[str] = get_list("CORS_ALLOW_METHODS", "*")
    CORS_ALLOW_HEADERS: List[str] = get_list("CORS_ALLOW_HEADERS", "*")
    CORS_ALLOW_CREDENTIALS: bool = get_bool("CORS_ALLOW_CREDENTIALS", True)

    # ---------------------------------------------------------------------
    # SERVER / LOGGING
    # ---------------------------------------------------------------------
    PORT: int = int(get_optional("PORT", "5000"))
    LOG_LEVEL: str = get_optional("LOG_LEVEL", "INFO").upper()
    LOG_FILE: Optional[str] = get_optional("LOG_FILE")

    # ---------------------------------------------------------------------
    # SCHOOL DAY / RISK RULES
    # ---------------------------------------------------------------------
    SCHOOL_DAY_START_HOUR: int = int(get_optional("SCHOOL_DAY_START_HOUR", "8"))
    SCHOOL_DAY_END_HOUR: int = int(get_optional("SCHOOL_DAY_END_HOUR", "17"))
    LATE_AFTER: time = get_time("LATE_AFTER", "09:00")
    ATTENDANCE_RISK_THRESHOLD: float = float(get_optional("ATTENDANCE_RISK_THRESHOLD", "75"))
    MARKS_RISK_THRESHOLD: float = float(get_optional("MARKS_RISK_THRESHOLD", "60"))
    DAILY_HISTORY_LIMIT: int = 30

    # ---------------------------------------------------------------------
    # FACE RECOGNITION
    # ---------------------------------------------------------------------
    FACE_MATCH_THRESHOLD: float = float(get_optional("FACE_MATCH_THRESHOLD", "0.6"))
    FACE_MATCH_BYPASS: bool = get_bool("FACE_MATCH_BYPASS")

    # ---------------------------------------------------------------------
    # TEXT GENERATION (GEMINI)
    # ---------------------------------------------------------------------
    GEMINI_API_KEY: Optional[str] = get_optional("GEMINI_API_KEY")
    GEMINI_MODEL: str = get_optional("GEMINI_MODEL", "gemini-pro")
    GEMINI_BASE_URL: str = get_optional(
        "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
    )
    GEMINI_TIMEOUT_SECONDS: float = float(get_optional("GEMINI_TIMEOUT_SECONDS", "10"))
    GEMINI_MAX_CONCURRENCY: int = int(get_optional("GEMINI_MAX_CONCURRENCY", "8"))

    @property
    def uses_default_secret(self) -> bool:
        return self.SECRET_KEY == DEFAULT_SECRET_KEY


# Singleton instance
settings = Settings()
