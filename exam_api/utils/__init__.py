"""Utility modules."""
from exam_api.utils.time_utils import (
    calculate_progress,
    format_date,
    format_seconds,
    parse_duration,
    parse_iso_timestamp,
    utc_now,
)

__all__ = [
    "calculate_progress",
    "format_date",
    "format_seconds",
    "parse_duration",
    "parse_iso_timestamp",
    "utc_now",
]
