"""Donor achievement badges.

Thresholds on a donor's total completed donations, plus emergency_hero for
completing a donation on a critical request. Badges are never removed and
never duplicated.
"""

from __future__ import annotations

from typing import Any

BADGE_THRESHOLDS: tuple[tuple[str, int], ...] = (
    ("first_donation", 1),
    ("regular_donor", 5),
    ("lifesaver", 10),
)

EMERGENCY_HERO = "emergency_hero"

ALL_BADGES = tuple(name for name, _ in BADGE_THRESHOLDS) + (EMERGENCY_HERO,)


def earned_badges(total_donations: int, *, critical_request: bool = False) -> list[str]:
    earned = [name for name, threshold in BADGE_THRESHOLDS if total_donations >= threshold]
    if critical_request:
        earned.append(EMERGENCY_HERO)
    return earned


def award_badges(donor: Any, *, critical_request: bool = False) -> list[str]:
    """Add any newly earned badges to the donor. Returns only the new ones."""
    current = list(donor.badges or [])
    new = [
        badge
        for badge in earned_badges(donor.total_donations or 0, critical_request=critical_request)
        if badge not in current
    ]
    if new:
        # Reassign so the JSON column is marked dirty.
        donor.badges = current + new
    return new
