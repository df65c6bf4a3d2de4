"""Shared pydantic field types and query helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal

from pydantic import AfterValidator


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def like_pattern(value: str) -> str:
    """Substring LIKE pattern with `%`, `_` and the escape char taken literally.

    Pair with `escape="\\"` on `ilike`.
    """
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


UTCDatetime = Annotated[datetime, AfterValidator(as_utc)]

BloodGroup = Literal["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]
Urgency = Literal["low", "medium", "high", "critical"]
Role = Literal["donor", "recipient", "admin"]
SelfServiceRole = Literal["donor", "recipient"]

PINCODE_PATTERN = r"^\d{6}$"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
