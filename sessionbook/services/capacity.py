"""Capacity ledger: derived occupancy and calendar state for session instances.

Only ``capacity`` and ``booked_count`` are stored; everything here is computed
on read. ``booked_count`` itself is changed exclusively by
:mod:`sessionbook.services.booking`.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any


def available_spots(capacity: int, booked_count: int) -> int:
    return max(0, (capacity or 0) - (booked_count or 0))


def is_full(capacity: int, booked_count: int) -> bool:
    return available_spots(capacity, booked_count) <= 0


def booking_percentage(capacity: int, booked_count: int) -> int:
    if not capacity:
        return 0
    return round((booked_count or 0) / capacity * 100)


def is_available(instance: Any, today: date) -> bool:
    """Whether the instance can take a new booking as of ``today``."""
    return bool(
        instance.is_active
        and not instance.is_cancelled
        and not is_full(instance.capacity, instance.booked_count)
        and instance.date >= today
    )


def week_bounds(today: date) -> tuple[date, date]:
    """Sunday-to-Saturday week containing ``today``."""
    # date.weekday() is Monday=0; shift so Sunday starts the week
    start = today - timedelta(days=(today.weekday() + 1) % 7)
    return start, start + timedelta(days=6)


def instance_flags(instance: Any, today: date) -> dict[str, Any]:
    """All derived read-only fields of an instance, relative to ``today``."""
    week_start, week_end = week_bounds(today)
    session_date = instance.date
    return {
        'available_spots': available_spots(instance.capacity, instance.booked_count),
        'is_full': is_full(instance.capacity, instance.booked_count),
        'is_available': is_available(instance, today),
        'booking_percentage': booking_percentage(instance.capacity, instance.booked_count),
        'is_today': session_date == today,
        'is_this_week': week_start <= session_date <= week_end,
        'is_this_month': (session_date.year, session_date.month) == (today.year, today.month),
        'is_past': session_date < today,
        'is_upcoming': session_date > today,
    }


def period_flags(period: Any, today: date) -> dict[str, bool]:
    return {
        'is_currently_active': period.is_currently_active(today),
        'is_upcoming': period.is_upcoming(today),
        'is_past': period.is_past(today),
    }


__all__ = [
    'available_spots',
    'is_full',
    'booking_percentage',
    'is_available',
    'week_bounds',
    'instance_flags',
    'period_flags',
]
