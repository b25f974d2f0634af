import threading
from datetime import date

import pytest

from sessionbook.extensions import db
from sessionbook.models import SessionInstance
from sessionbook.services import booking
from sessionbook.services.booking import ReservationFailure
from sessionbook.services.errors import CapacityFullError, InstanceExpiredError
from sessionbook.services.generator import generate_instances

SESSION_DAY = date(2024, 6, 3)
BEFORE = date(2024, 6, 1)


@pytest.fixture
def instance_id(app, period_id):
    """One Monday instance with room for three."""
    with app.app_context():
        result = generate_instances(period_id, SESSION_DAY, SESSION_DAY, [1], '17:00', '18:30')
        instance = result.created[0]
        instance.capacity = 3
        db.session.commit()
        return instance.id


def _set(app, instance_id, **values):
    with app.app_context():
        instance = db.session.get(SessionInstance, instance_id)
        for key, value in values.items():
            setattr(instance, key, value)
        db.session.commit()


def _booked(app, instance_id):
    with app.app_context():
        return db.session.get(SessionInstance, instance_id).booked_count


def test_reserve_increments(app, instance_id):
    with app.app_context():
        result = booking.reserve(instance_id, today=BEFORE)
        assert result.success
        assert result.failure is None
        assert result.instance.booked_count == 1
        assert result.instance.available_spots == 2


def test_reserve_last_spot_then_full(app, instance_id):
    _set(app, instance_id, booked_count=2)
    with app.app_context():
        assert booking.reserve(instance_id, today=BEFORE).success

        result = booking.reserve(instance_id, today=BEFORE)
        assert not result.success
        assert result.failure is ReservationFailure.CAPACITY_FULL
        assert isinstance(result.error, CapacityFullError)
        assert result.error.status == 409
    assert _booked(app, instance_id) == 3


def test_reserve_on_session_day_is_allowed(app, instance_id):
    with app.app_context():
        assert booking.reserve(instance_id, today=SESSION_DAY).success


def test_reserve_after_session_day_is_expired(app, instance_id):
    with app.app_context():
        result = booking.reserve(instance_id, today=date(2024, 6, 4))
        assert result.failure is ReservationFailure.INSTANCE_EXPIRED
        assert isinstance(result.error, InstanceExpiredError)
    assert _booked(app, instance_id) == 0


def test_reserve_cancelled(app, instance_id):
    _set(app, instance_id, is_cancelled=True)
    with app.app_context():
        result = booking.reserve(instance_id, today=BEFORE)
        assert result.failure is ReservationFailure.INSTANCE_CANCELLED
        assert result.error.code == 'INSTANCE_CANCELLED'
    assert _booked(app, instance_id) == 0


def test_cancelled_wins_over_full(app, instance_id):
    _set(app, instance_id, is_cancelled=True, booked_count=3)
    with app.app_context():
        assert booking.reserve(instance_id, today=BEFORE).failure is ReservationFailure.INSTANCE_CANCELLED


def test_reserve_inactive_reads_as_missing(app, instance_id):
    _set(app, instance_id, is_active=False)
    with app.app_context():
        assert booking.reserve(instance_id, today=BEFORE).failure is ReservationFailure.NOT_FOUND


def test_reserve_unknown_instance(app):
    with app.app_context():
        result = booking.reserve('does-not-exist', today=BEFORE)
        assert result.failure is ReservationFailure.NOT_FOUND
        assert result.error.status == 404


def test_release_decrements(app, instance_id):
    _set(app, instance_id, booked_count=2)
    with app.app_context():
        result = booking.release(instance_id)
        assert result.success
        assert result.instance.booked_count == 1


def test_release_never_goes_negative(app, instance_id):
    with app.app_context():
        result = booking.release(instance_id)
        assert result.success
        assert result.instance.booked_count == 0
    assert _booked(app, instance_id) == 0


def test_release_unknown_instance(app):
    with app.app_context():
        assert booking.release('does-not-exist').failure is ReservationFailure.NOT_FOUND


def test_release_ignores_cancellation_and_date(app, instance_id):
    _set(app, instance_id, booked_count=1, is_cancelled=True, is_active=False)
    with app.app_context():
        assert booking.release(instance_id).instance.booked_count == 0


def test_concurrent_reservations_never_overbook(app, instance_id):
    attempts = 10
    outcomes = []
    lock = threading.Lock()
    barrier = threading.Barrier(attempts)

    def worker():
        with app.app_context():
            barrier.wait()
            result = booking.reserve(instance_id, today=BEFORE)
            with lock:
                outcomes.append(result.failure)
            db.session.remove()

    threads = [threading.Thread(target=worker) for _ in range(attempts)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count(None) == 3
    assert outcomes.count(ReservationFailure.CAPACITY_FULL) == attempts - 3
    assert _booked(app, instance_id) == 3
