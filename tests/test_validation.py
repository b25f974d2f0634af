"""Payload coercion helpers."""

from datetime import date, datetime

import pytest

from sessionbook.services.errors import ValidationError
from sessionbook.services.validation import parse_date


class TestParseDate:

    @pytest.mark.parametrize('value', [
        '2024-06-01',
        ' 2024-06-01 ',
        '2024-06-01T10:00:00',
        date(2024, 6, 1),
        datetime(2024, 6, 1, 18, 30),
    ])
    def test_accepts_iso_dates(self, value):
        assert parse_date(value, 'start_date') == date(2024, 6, 1)

    @pytest.mark.parametrize('value', [
        '2024-06-01 is not a date',
        '2024-06-01xyz',
        'June 1st',
        '2024-13-01',
        '',
        None,
        20240601,
    ])
    def test_rejects_anything_else(self, value):
        with pytest.raises(ValidationError, match='expected YYYY-MM-DD'):
            parse_date(value, 'start_date')
