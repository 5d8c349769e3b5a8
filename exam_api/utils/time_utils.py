"""Time utilities."""
import logging
import math
import re
from datetime import datetime, timezone

from exam_api.config import DEFAULT_DURATION_SECONDS

logger = logging.getLogger(__name__)

_HOUR_MIN_RE = re.compile(r"(\d+)h(\d+)?")
_MIN_RE = re.compile(r"(\d+)m")
_SEC_RE = re.compile(r"^\d+$")


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def parse_iso_timestamp(value: object) -> datetime | None:
    """Parse ISO timestamp string to datetime."""
    if not isinstance(value, str):
        return None
    raw = value.strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def parse_duration(value: object) -> int:
    """
    Convert a duration string to seconds.

    Accepts "2h30", "2h", "45m" or a bare number of seconds ("3600").
    Anything else falls back to one hour so a malformed duration never
    blocks an exam.
    """
    if not isinstance(value, str) or not value.strip():
        return DEFAULT_DURATION_SECONDS
    raw = value.strip()

    match = _HOUR_MIN_RE.search(raw)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2) or 0)
        return hours * 3600 + minutes * 60

    match = _MIN_RE.search(raw)
    if match:
        return int(match.group(1)) * 60

    if _SEC_RE.match(raw):
        return int(raw)

    logger.debug("Unrecognized duration %r, defaulting to %ss", value, DEFAULT_DURATION_SECONDS)
    return DEFAULT_DURATION_SECONDS


def format_seconds(seconds: object) -> str:
    """Format seconds as HH:MM:SS; invalid or negative input gives 00:00:00."""
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        return "00:00:00"
    if math.isnan(seconds) or math.isinf(seconds) or seconds < 0:
        return "00:00:00"

    total = int(seconds)
    hrs, rest = divmod(total, 3600)
    mins, secs = divmod(rest, 60)
    return f"{hrs:02d}:{mins:02d}:{secs:02d}"


def format_date(value: datetime | str | None) -> str:
    """Human-readable date for result listings."""
    if isinstance(value, str):
        value = parse_iso_timestamp(value)
    if value is None:
        return "Unknown date"
    return value.strftime("%Y-%m-%d at %H:%M:%S")


def calculate_progress(answered_count: int, total_questions: int) -> int:
    """Progress percentage (0-100), rounded half up."""
    if not total_questions or total_questions <= 0:
        return 0
    return math.floor(answered_count / total_questions * 100 + 0.5)
