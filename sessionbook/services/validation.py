"""Input coercion helpers for API payloads and CLI options.

Every helper raises :class:`ValidationError` with a message that can be shown
to staff as-is.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Type, TypeVar

from sessionbook.services.errors import ValidationError

E = TypeVar("E", bound=Enum)

TIME_RE = re.compile(r'^([01]?[0-9]|2[0-3]):([0-5][0-9])$')
SLUG_RE = re.compile(r'^[a-z0-9-]+$')


def slugify(text: str) -> str:
    """Convert text to a URL-safe slug."""
    text = text.lower()
    text = re.sub(r'[^a-z0-9\s-]', '', text)
    text = re.sub(r'[\s-]+', '-', text)
    return text.strip('-')


def validate_slug(slug: str) -> str:
    slug = (slug or '').strip().lower()
    if not slug:
        raise ValidationError("Slug cannot be empty")
    if not SLUG_RE.match(slug):
        raise ValidationError("Slug can only contain lowercase letters, numbers, and hyphens")
    if len(slug) > 120:
        raise ValidationError("Slug cannot exceed 120 characters")
    return slug


def require(data: dict[str, Any], *fields: str) -> None:
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def parse_text(value: Any, field: str, max_length: int, required: bool = False) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    text = str(value).strip()
    if required and not text:
        raise ValidationError(f"{field} is required")
    if len(text) > max_length:
        raise ValidationError(f"{field} cannot exceed {max_length} characters")
    return text


def parse_date(value: Any, field: str) -> date:
    """Accept a date, a datetime or an ISO string (YYYY-MM-DD, optionally with a time part)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        raw = value.strip()
        try:
            return date.fromisoformat(raw)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(raw).date()
        except ValueError:
            pass
    raise ValidationError(f"Invalid {field}: expected YYYY-MM-DD")


def parse_time(value: Any, field: str) -> str:
    """Validate a 24h wall-clock time and normalize it to zero-padded HH:MM."""
    match = TIME_RE.match(str(value or '').strip())
    if not match:
        raise ValidationError(f"Invalid {field}. Use HH:MM format")
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def validate_time_window(start_time: str, end_time: str) -> None:
    # Zero-padded HH:MM strings compare correctly as text
    if end_time <= start_time:
        raise ValidationError("End time must be after start time")


def parse_int(value: Any, field: str, minimum: int | None = None, maximum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a whole number")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a whole number")
    if isinstance(value, float) and value != number:
        raise ValidationError(f"{field} must be a whole number")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}")
    return number


def parse_number(value: Any, field: str, minimum: float | None = None, maximum: float | None = None) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} cannot be less than {minimum:g}")
    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum:g}")
    return number


def parse_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, str)):
        text = str(value).strip().lower()
        if text in ('1', 'true', 'yes', 'on'):
            return True
        if text in ('0', 'false', 'no', 'off'):
            return False
    raise ValidationError(f"{field} must be true or false")


def parse_enum(enum_cls: Type[E], value: Any, field: str) -> E:
    if isinstance(value, enum_cls):
        return value
    raw = str(value or '').strip().lower()
    for member in enum_cls:
        if member.value == raw:
            return member
    allowed = ', '.join(m.value for m in enum_cls)
    raise ValidationError(f"Invalid {field} '{value}'. Expected one of: {allowed}")


def parse_days_of_week(values: Any) -> list[int]:
    """Weekday indices, 0=Sunday through 6=Saturday."""
    if isinstance(values, str):
        values = [v for v in values.split(',') if v.strip()]
    if not isinstance(values, (list, tuple, set)) or not values:
        raise ValidationError("Invalid days of week. Must be 0-6 (Sunday-Saturday)")
    days = []
    for value in values:
        try:
            day = parse_int(value, 'day of week', minimum=0, maximum=6)
        except ValidationError:
            raise ValidationError("Invalid days of week. Must be 0-6 (Sunday-Saturday)")
        if day not in days:
            days.append(day)
    return sorted(days)


__all__ = [
    'TIME_RE',
    'SLUG_RE',
    'slugify',
    'validate_slug',
    'require',
    'parse_text',
    'parse_date',
    'parse_time',
    'validate_time_window',
    'parse_int',
    'parse_number',
    'parse_bool',
    'parse_enum',
    'parse_days_of_week',
]
