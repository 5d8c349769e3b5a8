"""Application configuration and constants."""
import os
from dataclasses import dataclass, field
from pathlib import Path


def _parse_int_env(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_list_env(name: str) -> list[str]:
    """Parse a comma separated environment variable into lowercase items."""
    raw = os.environ.get(name, "")
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


# Database
DB_DIR = Path(os.environ.get("DB_DIR", Path.cwd() / "data"))
DB_DIR.mkdir(parents=True, exist_ok=True)
DATABASE_URL = os.environ.get("DATABASE_URL", f"sqlite:///{DB_DIR / 'exams.db'}")

# Authentication (tokens are issued by the external login service)
SECRET_KEY = os.environ.get(
    "SECRET_KEY",
    "CHANGE_ME_IN_PRODUCTION_USE_openssl_rand_hex_32"
)
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = _parse_int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 60)
ADMIN_EMAILS = _parse_list_env("ADMIN_EMAILS")

# Exam sessions
DEFAULT_DURATION_SECONDS = 3600  # 1 hour
TICK_INTERVAL_SECONDS = _parse_int_env("TICK_INTERVAL_SECONDS", 1)
AUTOSAVE_INTERVAL_SECONDS = _parse_int_env("AUTOSAVE_INTERVAL_SECONDS", 5)
LOW_TIME_WARNING_SECONDS = _parse_int_env("LOW_TIME_WARNING_SECONDS", 300)
LOW_TIME_WARNING_DISPLAY_SECONDS = _parse_int_env(
    "LOW_TIME_WARNING_DISPLAY_SECONDS", 10
)
SHUFFLE_QUESTIONS = os.environ.get("SHUFFLE_QUESTIONS", "1") not in {"0", "false", "no"}
SESSION_IDLE_TTL_SECONDS = _parse_int_env("SESSION_IDLE_TTL_SECONDS", 60 * 60)

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


@dataclass(frozen=True)
class SessionSettings:
    """Timer and autosave settings handed to each exam session."""

    tick_interval_seconds: float = TICK_INTERVAL_SECONDS
    autosave_interval_seconds: float = AUTOSAVE_INTERVAL_SECONDS
    low_time_warning_seconds: int = LOW_TIME_WARNING_SECONDS
    low_time_warning_display_seconds: int = LOW_TIME_WARNING_DISPLAY_SECONDS
    shuffle_questions: bool = SHUFFLE_QUESTIONS


@dataclass(frozen=True)
class AccessPolicy:
    """Capabilities granted to callers, resolved from the admin allow-list."""

    admin_emails: frozenset[str] = field(default_factory=lambda: frozenset(ADMIN_EMAILS))

    def is_admin(self, email: str | None) -> bool:
        if not email:
            return False
        return email.strip().lower() in self.admin_emails
