"""Bulk generation of session instances from a schedule period."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import select

from sessionbook.extensions import db
from sessionbook.models import SchedulePeriod, SessionInstance
from sessionbook.services import validation as v
from sessionbook.services.audit import log_admin_action
from sessionbook.services.errors import NotFoundError, ValidationError

NAME_MAX_LENGTH = 100


def sunday_weekday(day: date) -> int:
    """Weekday index with 0=Sunday through 6=Saturday."""
    return (day.weekday() + 1) % 7


def default_instance_name(period: SchedulePeriod, day: date) -> str:
    """Label an instance "<template> - Week N (YYYY-MM-DD)" relative to the period start."""
    week = (day - period.start_date).days // 7 + 1
    suffix = f" - Week {week} ({day.isoformat()})" if week >= 1 else f" - {day.isoformat()}"
    base = period.template.name if period.template else period.name
    return base[:NAME_MAX_LENGTH - len(suffix)] + suffix


@dataclass
class GenerationResult:
    """Outcome of one generation run.

    ``existing`` holds instances that already occupied a matching
    (period, date) and were left untouched; ``errors`` holds one entry per
    candidate that could not be created.
    """

    created: List[SessionInstance] = field(default_factory=list)
    existing: List[SessionInstance] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)

    @property
    def matched(self) -> List[SessionInstance]:
        return sorted(self.created + self.existing, key=lambda i: i.date)

    @property
    def status(self) -> str:
        if self.errors and not self.created:
            return 'failed'
        if self.errors:
            return 'partial'
        if self.created:
            return 'created'
        return 'noop'


class InstanceGenerator:
    """Expands a period's weekday pattern into dated session instances."""

    def __init__(self, period: SchedulePeriod):
        self.period = period

    @classmethod
    def for_period_id(cls, period_id: str) -> "InstanceGenerator":
        period = db.session.get(SchedulePeriod, period_id) if period_id else None
        if period is None:
            raise NotFoundError("Schedule period not found")
        if period.template is None:
            raise NotFoundError("Template not found for this period")
        return cls(period)

    def generate(
        self,
        start_date: Any,
        end_date: Any,
        days_of_week: Any,
        start_time: Any,
        end_time: Any,
        user: Any = None,
    ) -> GenerationResult:
        """
        Create one instance per matching day in [start_date, end_date].

        The window is used as given; it is not clamped to the period's own
        dates. Days that already have an instance for this period are
        skipped, so re-running over an overlapping window is safe.

        Raises:
            ValidationError: malformed window, weekdays or times (nothing is written)
        """
        start_date = v.parse_date(start_date, 'start_date')
        end_date = v.parse_date(end_date, 'end_date')
        if start_date > end_date:
            raise ValidationError("Start date must be on or before end date")
        days = v.parse_days_of_week(days_of_week)
        start_time = v.parse_time(start_time, 'start time')
        end_time = v.parse_time(end_time, 'end time')
        v.validate_time_window(start_time, end_time)

        result = GenerationResult()
        candidates = self._matching_dates(start_date, end_date, days)
        if not candidates:
            return result

        existing = self._existing_by_date(candidates)

        for day in candidates:
            if day in existing:
                result.existing.append(existing[day])
                continue
            try:
                instance = self._build_instance(day, start_time, end_time)
                with db.session.begin_nested():
                    db.session.add(instance)
                    db.session.flush()
                result.created.append(instance)
            except Exception as e:
                current_app.logger.warning(f"Skipped instance for period {self.period.id} on {day}: {e}")
                result.errors.append({'date': day.isoformat(), 'error': str(e)})

        if result.created or result.errors:
            log_admin_action(
                user,
                "session_instances_generated",
                "schedule_period",
                self.period.id,
                metadata={
                    'start_date': start_date,
                    'end_date': end_date,
                    'days_of_week': days,
                    'created': len(result.created),
                    'existing': len(result.existing),
                    'errors': len(result.errors),
                }
            )
        db.session.commit()

        current_app.logger.info(
            f"Generated {len(result.created)} session instances for period {self.period.name} "
            f"({len(result.existing)} existing, {len(result.errors)} failed)"
        )
        return result

    def _matching_dates(self, start_date: date, end_date: date, days: List[int]) -> List[date]:
        dates = []
        current_date = start_date

        while current_date <= end_date:
            if sunday_weekday(current_date) in days:
                dates.append(current_date)
            current_date += timedelta(days=1)

        return dates

    def _existing_by_date(self, dates: List[date]) -> Dict[date, SessionInstance]:
        statement = select(SessionInstance).where(
            SessionInstance.period_id == self.period.id,
            SessionInstance.date.in_(dates),
        ).order_by(SessionInstance.created_at)
        existing: Dict[date, SessionInstance] = {}
        for instance in db.session.scalars(statement):
            existing.setdefault(instance.date, instance)
        return existing

    def _build_instance(self, day: date, start_time: str, end_time: str) -> SessionInstance:
        period = self.period
        if not period.capacity or period.capacity < 1:
            raise ValidationError("Period capacity must be at least 1")
        return SessionInstance(
            period_id=period.id,
            template_id=period.template_id,
            name=default_instance_name(period, day),
            date=day,
            start_time=start_time,
            end_time=end_time,
            coaches=list(period.coaches),
            capacity=period.capacity,
            booked_count=0,
            is_active=True,
            is_cancelled=False,
        )


def generate_instances(
    period_id: str,
    start_date: Any,
    end_date: Any,
    days_of_week: Any,
    start_time: Any,
    end_time: Any,
    user: Any = None,
) -> GenerationResult:
    """
    Convenience function to generate instances for a period by id.

    Args:
        period_id: Schedule period to generate for
        start_date: First candidate date (inclusive)
        end_date: Last candidate date (inclusive)
        days_of_week: Weekday indices, 0=Sunday through 6=Saturday
        start_time: Shared "HH:MM" start time
        end_time: Shared "HH:MM" end time
        user: Admin performing the generation (for the audit log)

    Returns:
        GenerationResult with created, existing and failed candidates
    """
    generator = InstanceGenerator.for_period_id(period_id)
    return generator.generate(start_date, end_date, days_of_week, start_time, end_time, user=user)


__all__ = [
    'GenerationResult',
    'InstanceGenerator',
    'default_instance_name',
    'generate_instances',
    'sunday_weekday',
]
