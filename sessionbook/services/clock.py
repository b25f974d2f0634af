"""Facility-local clock.

Services never read the wall clock themselves; the API and CLI layers call
these helpers and pass the result down as an explicit ``today``/``now``.
"""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

from flask import current_app


def facility_timezone() -> ZoneInfo:
    return ZoneInfo(current_app.config.get('FACILITY_TIMEZONE', 'UTC'))


def facility_now() -> datetime:
    """Current time in the facility's configured zone."""
    return datetime.now(facility_timezone())


def facility_today() -> date:
    return facility_now().date()


__all__ = ['facility_timezone', 'facility_now', 'facility_today']
