from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Iterable

from app.core.errors import ValidationError

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")
LOCAL_DATETIME_FORMAT = "%Y-%m-%dT%H:%M"
EVENT_DATETIME_FORMATS = [
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%d",
]


def utc_timestamp() -> str:
    """Return the current UTC time as ISO8601 with a Z suffix"""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def coerce_int(value: object, default: int = 0) -> int:
    """Convert a value to int

    Args:
        value: raw value
        default: value returned on failure

    Returns:
        Integer value
    """
    if value is None:
        return default
    text = str(value).strip()
    if text == "":
        return default
    try:
        return int(text)
    except ValueError:
        try:
            return int(float(text))
        except ValueError:
            return default


def clean_text(value: object) -> str:
    """Strip a free-text value, mapping None to an empty string"""
    if value is None:
        return ""
    return str(value).strip()


def require_text(value: object, field: str) -> str:
    """Return stripped text or fail when it is empty

    Args:
        value: raw value
        field: field name used in the error message

    Returns:
        Stripped text

    Raises:
        ValidationError: when the value is missing or blank
    """
    text = clean_text(value)
    if text == "":
        raise ValidationError(field, "campo obrigatório")
    return text


def parse_local_datetime(day: str | None, time: str | None) -> str:
    """Combine a civil date and time into the stored YYYY-MM-DDTHH:MM form

    Args:
        day: date as YYYY-MM-DD
        time: time as HH:MM

    Returns:
        Local civil date-time string with minute precision

    Raises:
        ValidationError: when either part is missing or malformed
    """
    day_text = require_text(day, "date")
    time_text = require_text(time, "time")
    if not DATE_PATTERN.match(day_text):
        raise ValidationError("date", f"A data deve estar no formato YYYY-MM-DD: {day}")
    if not TIME_PATTERN.match(time_text):
        raise ValidationError("time", f"A hora deve estar no formato HH:MM: {time}")
    combined = f"{day_text}T{time_text}"
    try:
        parsed = datetime.strptime(combined, LOCAL_DATETIME_FORMAT)
    except ValueError as exc:
        raise ValidationError("date", f"data ou hora inexistente: {combined}") from exc
    return parsed.strftime(LOCAL_DATETIME_FORMAT)


def normalize_date(value: object) -> str | None:
    """Reduce a date or date-time value to its YYYY-MM-DD calendar part

    Args:
        value: date, datetime, YYYY-MM-DD or YYYY-MM-DDTHH:MM string

    Returns:
        Calendar date string, or None when the value cannot be read
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if DATE_PATTERN.match(text):
        return text
    if "T" in text:
        head = text.split("T", 1)[0]
        return head if DATE_PATTERN.match(head) else None
    return None


def same_day(left: object, right: object) -> bool:
    """Compare two date values ignoring the time of day"""
    left_day = normalize_date(left)
    right_day = normalize_date(right)
    return left_day is not None and left_day == right_day


def parse_event_datetime(value: object, formats: Iterable[str] = EVENT_DATETIME_FORMATS) -> datetime | None:
    """Parse a stored event date for ordering

    Args:
        value: raw stored value
        formats: accepted formats

    Returns:
        Naive datetime, or None when no format matches
    """
    if value is None:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1]
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None
