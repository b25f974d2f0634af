from datetime import date

from sessionbook.models import SchedulePeriod, SessionInstance
from sessionbook.services import capacity


def _instance(**overrides):
    values = dict(
        name='Soccer Skills U10 - Week 1 (2024-06-05)',
        date=date(2024, 6, 5),
        start_time='17:00',
        end_time='18:30',
        capacity=10,
        booked_count=0,
        is_active=True,
        is_cancelled=False,
    )
    values.update(overrides)
    return SessionInstance(**values)


def test_spots_and_percentage():
    instance = _instance(booked_count=3)
    assert instance.available_spots == 7
    assert not instance.is_full
    assert instance.booking_percentage == 30


def test_full_instance():
    instance = _instance(booked_count=10)
    assert instance.available_spots == 0
    assert instance.is_full
    assert instance.booking_percentage == 100
    assert not instance.is_available(date(2024, 6, 1))


def test_zero_capacity_percentage():
    assert capacity.booking_percentage(0, 0) == 0


def test_availability_requires_active_future_and_not_cancelled():
    today = date(2024, 6, 5)
    assert _instance().is_available(today)
    assert not _instance(is_active=False).is_available(today)
    assert not _instance(is_cancelled=True).is_available(today)
    assert not _instance().is_available(date(2024, 6, 6))


def test_week_starts_on_sunday():
    # 2024-06-05 is a Wednesday
    assert capacity.week_bounds(date(2024, 6, 5)) == (date(2024, 6, 2), date(2024, 6, 8))
    assert capacity.week_bounds(date(2024, 6, 2)) == (date(2024, 6, 2), date(2024, 6, 8))
    assert capacity.week_bounds(date(2024, 6, 8)) == (date(2024, 6, 2), date(2024, 6, 8))


def test_instance_calendar_flags():
    flags = capacity.instance_flags(_instance(date=date(2024, 6, 8)), date(2024, 6, 5))
    assert flags['is_this_week']
    assert flags['is_this_month']
    assert flags['is_upcoming']
    assert not flags['is_today']
    assert not flags['is_past']

    flags = capacity.instance_flags(_instance(date=date(2024, 6, 5)), date(2024, 6, 5))
    assert flags['is_today']
    assert not flags['is_upcoming']
    assert not flags['is_past']

    flags = capacity.instance_flags(_instance(date=date(2024, 5, 31)), date(2024, 6, 5))
    assert flags['is_past']
    assert not flags['is_this_week']
    assert not flags['is_this_month']
    assert not flags['is_available']


def test_period_flags():
    period = SchedulePeriod(
        name='June', start_date=date(2024, 6, 1), end_date=date(2024, 6, 30), capacity=10, is_active=True,
    )
    assert capacity.period_flags(period, date(2024, 5, 31)) == {
        'is_currently_active': False, 'is_upcoming': True, 'is_past': False,
    }
    assert capacity.period_flags(period, date(2024, 6, 30))['is_currently_active']
    assert capacity.period_flags(period, date(2024, 7, 1))['is_past']

    period.is_active = False
    assert not capacity.period_flags(period, date(2024, 6, 15))['is_currently_active']
