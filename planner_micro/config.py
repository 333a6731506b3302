import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _split_env(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    """Configuration settings for the planner service"""

    # Key-value store (empty DATABASE_URL runs the store in offline/cache-only mode)
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "5"))
    DB_MAX_OVERFLOW: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    DB_POOL_TIMEOUT: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    DB_POOL_RECYCLE: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))
    STORE_TABLE_NAME: str = os.getenv("STORE_TABLE_NAME", "key_value_store")

    # Auth
    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))
    ADMIN_USER_IDS: List[str] = _split_env("ADMIN_USER_IDS", "14548")
    SUPER_ADMIN_USER_ID: str = os.getenv("SUPER_ADMIN_USER_ID", "Admin")
    DEFAULT_TEACHER_PASSWORD: str = os.getenv("DEFAULT_TEACHER_PASSWORD", "BASIS2025!")

    # Notification polling
    POLL_INTERVAL_SECONDS: int = int(os.getenv("POLL_INTERVAL_SECONDS", "10"))
    POLLER_ENABLED: bool = os.getenv("POLLER_ENABLED", "true").lower() == "true"

    # Gemini
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or ""
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

    CORS_ORIGINS: List[str] = _split_env(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173",
    )


# Global config instance
config = Config()
