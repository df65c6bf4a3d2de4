"""Donor eligibility rules.

A donor may give blood when all of the following hold:
- age between 18 and 65 (inclusive, whole years)
- weight at least 45 kg
- at least 90 whole days since the last donation (if any)
- no disqualifying medical condition flagged

Pure functions; `now` is the only time input.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

MIN_AGE = 18
MAX_AGE = 65
MIN_WEIGHT_KG = 45
DONATION_INTERVAL_DAYS = 90

MEDICAL_FLAGS = (
    "has_diabetes",
    "has_hypertension",
    "has_heart_disease",
    "has_hepatitis",
    "has_hiv",
)


def compute_age(date_of_birth: date | datetime, today: date | None = None) -> int:
    """Age in whole years, one less if this year's birthday has not come yet."""
    if isinstance(date_of_birth, datetime):
        date_of_birth = date_of_birth.date()
    if today is None:
        today = datetime.now(timezone.utc).date()
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def days_since(moment: datetime, now: datetime) -> int:
    """Whole days elapsed between `moment` and `now` (floor)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (now - moment).days


def has_medical_condition(donor: Any) -> bool:
    return any(bool(getattr(donor, flag, False)) for flag in MEDICAL_FLAGS)


def ineligibility_reasons(donor: Any, now: datetime | None = None) -> list[str]:
    """List every rule the donor currently fails. Empty list means eligible."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    reasons: list[str] = []
    age = compute_age(donor.date_of_birth, now.date())
    if age < MIN_AGE or age > MAX_AGE:
        reasons.append(f"Age must be between {MIN_AGE} and {MAX_AGE}")
    if donor.weight is None or donor.weight < MIN_WEIGHT_KG:
        reasons.append(f"Weight must be at least {MIN_WEIGHT_KG} kg")
    if donor.last_donation_date is not None:
        if days_since(donor.last_donation_date, now) < DONATION_INTERVAL_DAYS:
            reasons.append(f"At least {DONATION_INTERVAL_DAYS} days must pass between donations")
    if has_medical_condition(donor):
        reasons.append("A medical condition prevents donation")
    return reasons


def is_eligible(donor: Any, now: datetime | None = None) -> bool:
    """True when the donor meets every age, weight, interval and health rule."""
    return not ineligibility_reasons(donor, now)
