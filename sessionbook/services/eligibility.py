"""Player eligibility rules for session templates.

This is the only implementation of the age and gender rules; the API uses it
both to pre-filter listings and to gate reservations, so the two never drift.
All functions are pure and take ``today`` explicitly.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any

from sessionbook.services.errors import ValidationError

# Upper bound used for open-ended ranges such as "18+"
OPEN_ENDED_MAX_AGE = 100

_SEX_TO_DEMO = {
    'male': 'boys',
    'female': 'girls',
}

_RANGE_RE = re.compile(r'^(\d{1,3})\s*-\s*(\d{1,3})$')
_PLUS_RE = re.compile(r'^(\d{1,3})\s*\+$')
_SINGLE_RE = re.compile(r'^(\d{1,3})$')


def _value(field: Any) -> Any:
    return field.value if hasattr(field, 'value') else field


def calculate_age(birth_date: date, today: date) -> int:
    """Age in whole years, counting a birthday only once it has occurred."""
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def is_age_eligible(birth_date: date, template: Any, today: date) -> bool:
    """
    Age check against a template (or anything exposing the same fields).

    The age range is authoritative when both bounds are set. Otherwise a
    birth year must match exactly; a player one year off is not eligible
    even where an age range would have admitted them. With neither set,
    every age is eligible.
    """
    min_age = getattr(template, 'min_age', None)
    max_age = getattr(template, 'max_age', None)
    if min_age is not None and max_age is not None:
        age = calculate_age(birth_date, today)
        return min_age <= age <= max_age

    birth_year = getattr(template, 'birth_year', None)
    if birth_year:
        return birth_date.year == int(birth_year)

    return True


def is_gender_eligible(sex: Any, demo: Any) -> bool:
    demo = _value(demo)
    if demo == 'coed':
        return True
    return _SEX_TO_DEMO.get(_value(sex)) == demo


def is_player_eligible(player: Any, template: Any, today: date) -> bool:
    """Final eligibility: age rule AND gender rule."""
    return (
        is_age_eligible(player.birth_date, template, today)
        and is_gender_eligible(player.sex, template.demo)
    )


def parse_age_range(text: str) -> tuple[int, int]:
    """
    Parse an age range as typed by staff.

    Accepts "10-12", "18+" (capped at OPEN_ENDED_MAX_AGE) and a single age
    such as "10".
    """
    value = (text or '').strip().lower()

    match = _RANGE_RE.match(value)
    if match:
        min_age, max_age = int(match.group(1)), int(match.group(2))
    else:
        match = _PLUS_RE.match(value)
        if match:
            min_age, max_age = int(match.group(1)), OPEN_ENDED_MAX_AGE
        else:
            match = _SINGLE_RE.match(value)
            if not match:
                raise ValidationError(f"Invalid age range '{text}'. Use formats like 10-12, 18+ or 10")
            min_age = max_age = int(match.group(1))

    if min_age > max_age:
        raise ValidationError('Minimum age cannot exceed maximum age')
    return min_age, max_age


__all__ = [
    'OPEN_ENDED_MAX_AGE',
    'calculate_age',
    'is_age_eligible',
    'is_gender_eligible',
    'is_player_eligible',
    'parse_age_range',
]
