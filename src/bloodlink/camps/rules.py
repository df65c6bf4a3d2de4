"""Camp registration window and lazy status rollover.

Status rolls forward on its own:
  scheduled -> ongoing    while start_date <= now <= end_date
  scheduled/ongoing -> completed once now > end_date
paused and cancelled are only ever set by an admin.
"""

from __future__ import annotations

from datetime import datetime, timezone

from bloodlink.db.models import DonationCamp

CAMP_STATUSES = ("scheduled", "ongoing", "paused", "completed", "cancelled")
REGISTRABLE_STATUSES = frozenset({"scheduled", "ongoing"})
AUTO_STATUSES = frozenset({"scheduled", "ongoing"})


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def rolled_status(camp: DonationCamp, now: datetime | None = None) -> str:
    """The status the camp should have at `now`."""
    now = _now(now)
    if camp.status not in AUTO_STATUSES:
        return camp.status
    if now > camp.end_date:
        return "completed"
    if camp.status == "scheduled" and camp.start_date <= now:
        return "ongoing"
    return camp.status


def refresh_camp_status(camp: DonationCamp, now: datetime | None = None) -> bool:
    """Apply rollover in place. Returns True if the status changed."""
    target = rolled_status(camp, now)
    if target == camp.status:
        return False
    camp.status = target
    return True


def registration_block_reason(camp: DonationCamp, now: datetime | None = None) -> str | None:
    """Why a donor cannot register right now, or None if registration is open."""
    now = _now(now)
    window_open = now < camp.end_date and camp.status in REGISTRABLE_STATUSES
    if not window_open:
        return "Registration is not open for this camp"
    if camp.available_slots <= 0:
        return "This camp is full"
    return None


def is_registration_open(camp: DonationCamp, now: datetime | None = None) -> bool:
    return registration_block_reason(camp, now) is None
