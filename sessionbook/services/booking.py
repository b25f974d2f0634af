"""Booking coordinator: atomic reservation and release of instance capacity.

The payment workflow calls :func:`reserve` before capturing payment and
:func:`release` when payment fails or a booking is cancelled. Both run as a
single conditional UPDATE so concurrent callers can never push
``booked_count`` past ``capacity`` or below zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from flask import current_app
from sqlalchemy import update

from sessionbook.extensions import db
from sessionbook.models import SessionInstance
from sessionbook.services.clock import facility_today
from sessionbook.services.errors import (
    CapacityFullError,
    InstanceCancelledError,
    InstanceExpiredError,
    NotFoundError,
    ServiceError,
)


class ReservationFailure(Enum):
    NOT_FOUND = "NOT_FOUND"
    CAPACITY_FULL = "CAPACITY_FULL"
    INSTANCE_CANCELLED = "INSTANCE_CANCELLED"
    INSTANCE_EXPIRED = "INSTANCE_EXPIRED"


_FAILURE_ERRORS = {
    ReservationFailure.NOT_FOUND: (NotFoundError, "Session not found"),
    ReservationFailure.CAPACITY_FULL: (CapacityFullError, "This session is full"),
    ReservationFailure.INSTANCE_CANCELLED: (InstanceCancelledError, "This session has been cancelled"),
    ReservationFailure.INSTANCE_EXPIRED: (InstanceExpiredError, "This session has already taken place"),
}


@dataclass
class ReservationResult:
    success: bool
    instance: Optional[SessionInstance] = None
    failure: Optional[ReservationFailure] = None

    @property
    def error(self) -> Optional[ServiceError]:
        """The failure as a user-displayable ServiceError."""
        if self.failure is None:
            return None
        error_cls, message = _FAILURE_ERRORS[self.failure]
        return error_cls(message)


def _classify_failure(instance: Optional[SessionInstance], today: date) -> ReservationFailure:
    # Inactive instances are hidden from guardians, so they read as missing
    if instance is None or not instance.is_active:
        return ReservationFailure.NOT_FOUND
    if instance.is_cancelled:
        return ReservationFailure.INSTANCE_CANCELLED
    if instance.date < today:
        return ReservationFailure.INSTANCE_EXPIRED
    return ReservationFailure.CAPACITY_FULL


def reserve(instance_id: str, today: Optional[date] = None) -> ReservationResult:
    """
    Claim one spot on an instance.

    All preconditions (active, not cancelled, not in the past, spots left)
    live in the WHERE clause of one UPDATE. The row is re-read afterwards
    only to report the outcome.
    """
    today = today or facility_today()

    statement = (
        update(SessionInstance)
        .where(
            SessionInstance.id == instance_id,
            SessionInstance.is_active.is_(True),
            SessionInstance.is_cancelled.is_(False),
            SessionInstance.date >= today,
            SessionInstance.booked_count < SessionInstance.capacity,
        )
        .values(booked_count=SessionInstance.booked_count + 1)
        .execution_options(synchronize_session=False)
    )

    try:
        rowcount = db.session.execute(statement).rowcount
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.error(f"Reservation update failed for session instance {instance_id}", exc_info=True)
        raise

    instance = db.session.get(SessionInstance, instance_id, populate_existing=True)

    if rowcount == 1:
        current_app.logger.info(
            f"Reserved spot on session instance {instance_id} ({instance.booked_count}/{instance.capacity})"
        )
        return ReservationResult(success=True, instance=instance)

    failure = _classify_failure(instance, today)
    current_app.logger.warning(f"Reservation rejected for session instance {instance_id}: {failure.value}")
    return ReservationResult(success=False, instance=instance, failure=failure)


def release(instance_id: str) -> ReservationResult:
    """
    Give back one spot, e.g. after a failed payment or a cancellation.

    The count never drops below zero: releasing an instance with no
    bookings succeeds without changing anything.
    """
    statement = (
        update(SessionInstance)
        .where(
            SessionInstance.id == instance_id,
            SessionInstance.booked_count > 0,
        )
        .values(booked_count=SessionInstance.booked_count - 1)
        .execution_options(synchronize_session=False)
    )

    try:
        rowcount = db.session.execute(statement).rowcount
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.error(f"Release update failed for session instance {instance_id}", exc_info=True)
        raise

    instance = db.session.get(SessionInstance, instance_id, populate_existing=True)
    if instance is None:
        return ReservationResult(success=False, failure=ReservationFailure.NOT_FOUND)

    if rowcount == 1:
        current_app.logger.info(
            f"Released spot on session instance {instance_id} ({instance.booked_count}/{instance.capacity})"
        )
    else:
        current_app.logger.info(f"Release on session instance {instance_id} had no bookings to return")
    return ReservationResult(success=True, instance=instance)


__all__ = ['ReservationFailure', 'ReservationResult', 'reserve', 'release']
