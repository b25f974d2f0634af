from datetime import date
from types import SimpleNamespace

import pytest

from sessionbook.models import Demo, Sex
from sessionbook.services.eligibility import (
    OPEN_ENDED_MAX_AGE,
    calculate_age,
    is_age_eligible,
    is_gender_eligible,
    is_player_eligible,
    parse_age_range,
)
from sessionbook.services.errors import ValidationError


def _template(min_age=None, max_age=None, birth_year=None, demo=Demo.COED):
    return SimpleNamespace(min_age=min_age, max_age=max_age, birth_year=birth_year, demo=demo)


class TestCalculateAge:

    def test_birthday_not_yet_reached(self):
        assert calculate_age(date(2014, 6, 15), date(2024, 6, 14)) == 9

    def test_birthday_today(self):
        assert calculate_age(date(2014, 6, 15), date(2024, 6, 15)) == 10

    def test_leap_day_birthday(self):
        assert calculate_age(date(2012, 2, 29), date(2024, 2, 28)) == 11
        assert calculate_age(date(2012, 2, 29), date(2024, 2, 29)) == 12


class TestAgeEligibility:

    def test_range_boundaries_are_inclusive(self):
        template = _template(min_age=10, max_age=12)
        today = date(2024, 6, 15)
        assert is_age_eligible(date(2014, 6, 15), template, today)  # turns 10 today
        assert not is_age_eligible(date(2014, 6, 16), template, today)  # still 9
        assert is_age_eligible(date(2011, 6, 16), template, today)  # 12, 13 tomorrow
        assert not is_age_eligible(date(2011, 6, 15), template, today)  # 13 today

    def test_birth_year_must_match_exactly(self):
        template = _template(birth_year=2014)
        today = date(2024, 6, 15)
        assert is_age_eligible(date(2014, 1, 1), template, today)
        assert is_age_eligible(date(2014, 12, 31), template, today)
        assert not is_age_eligible(date(2013, 12, 31), template, today)
        assert not is_age_eligible(date(2015, 1, 1), template, today)

    def test_range_wins_over_birth_year(self):
        template = _template(min_age=8, max_age=10, birth_year=2010)
        assert is_age_eligible(date(2015, 1, 1), template, date(2024, 6, 1))

    def test_no_restriction_admits_everyone(self):
        assert is_age_eligible(date(1980, 1, 1), _template(), date(2024, 6, 1))


class TestGenderEligibility:

    @pytest.mark.parametrize('sex, demo, expected', [
        (Sex.MALE, Demo.BOYS, True),
        (Sex.FEMALE, Demo.BOYS, False),
        (Sex.FEMALE, Demo.GIRLS, True),
        (Sex.MALE, Demo.GIRLS, False),
        (Sex.MALE, Demo.COED, True),
        (Sex.FEMALE, Demo.COED, True),
    ])
    def test_demo_matrix(self, sex, demo, expected):
        assert is_gender_eligible(sex, demo) is expected

    def test_accepts_raw_values(self):
        assert is_gender_eligible('female', 'girls')
        assert not is_gender_eligible('male', 'girls')


def test_player_needs_both_age_and_gender():
    today = date(2024, 6, 1)
    template = _template(min_age=8, max_age=10, demo=Demo.GIRLS)
    girl = SimpleNamespace(birth_date=date(2015, 3, 1), sex=Sex.FEMALE)
    boy = SimpleNamespace(birth_date=date(2015, 3, 1), sex=Sex.MALE)
    too_old = SimpleNamespace(birth_date=date(2010, 3, 1), sex=Sex.FEMALE)

    assert is_player_eligible(girl, template, today)
    assert not is_player_eligible(boy, template, today)
    assert not is_player_eligible(too_old, template, today)


class TestParseAgeRange:

    def test_range(self):
        assert parse_age_range('10-12') == (10, 12)
        assert parse_age_range(' 8 - 9 ') == (8, 9)

    def test_open_ended(self):
        assert parse_age_range('18+') == (18, OPEN_ENDED_MAX_AGE)

    def test_single_age(self):
        assert parse_age_range('10') == (10, 10)

    @pytest.mark.parametrize('text', ['', 'ten', '10-', '12-10', '-5', '10+12'])
    def test_rejects_bad_input(self, text):
        with pytest.raises(ValidationError):
            parse_age_range(text)
