"""Camp status rollover and registration window."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from bloodlink.camps.rules import (
    is_registration_open,
    refresh_camp_status,
    registration_block_reason,
    rolled_status,
)
from bloodlink.db.models import CampRegistration, DonationCamp

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _camp(status: str = "scheduled", start_in: timedelta = timedelta(days=2), length=timedelta(days=1), **kw):
    start = NOW + start_in
    return DonationCamp(
        id=1,
        status=status,
        start_date=start,
        end_date=start + length,
        max_donors=kw.pop("max_donors", 2),
        registrations=kw.pop("registrations", []),
        **kw,
    )


def _registrations(count: int) -> list[CampRegistration]:
    return [CampRegistration(camp_id=1, donor_id=i, status="registered") for i in range(count)]


class TestRollover:
    def test_future_scheduled_stays_scheduled(self):
        assert rolled_status(_camp(), NOW) == "scheduled"

    def test_started_becomes_ongoing(self):
        camp = _camp(start_in=-timedelta(hours=1))
        assert refresh_camp_status(camp, NOW) is True
        assert camp.status == "ongoing"

    def test_finished_becomes_completed(self):
        camp = _camp(start_in=-timedelta(days=3))
        assert rolled_status(camp, NOW) == "completed"

    def test_ongoing_past_end_becomes_completed(self):
        camp = _camp(status="ongoing", start_in=-timedelta(days=3))
        assert rolled_status(camp, NOW) == "completed"

    @pytest.mark.parametrize("status", ["paused", "cancelled", "completed"])
    def test_manual_statuses_never_roll(self, status):
        camp = _camp(status=status, start_in=-timedelta(days=3))
        assert refresh_camp_status(camp, NOW) is False
        assert camp.status == status

    def test_refresh_is_idempotent(self):
        camp = _camp(start_in=-timedelta(hours=1))
        refresh_camp_status(camp, NOW)
        assert refresh_camp_status(camp, NOW) is False


class TestRegistrationWindow:
    def test_open_for_scheduled_camp_with_slots(self):
        assert registration_block_reason(_camp(), NOW) is None
        assert is_registration_open(_camp(), NOW)

    def test_open_while_ongoing(self):
        camp = _camp(status="ongoing", start_in=-timedelta(hours=1))
        assert is_registration_open(camp, NOW)

    def test_closed_after_end(self):
        camp = _camp(status="ongoing", start_in=-timedelta(days=3))
        assert registration_block_reason(camp, NOW) == "Registration is not open for this camp"

    @pytest.mark.parametrize("status", ["paused", "cancelled", "completed"])
    def test_closed_for_non_registrable_status(self, status):
        assert not is_registration_open(_camp(status=status), NOW)

    def test_full_camp(self):
        camp = _camp(max_donors=2, registrations=_registrations(2))
        assert camp.available_slots == 0
        assert registration_block_reason(camp, NOW) == "This camp is full"

    def test_one_slot_left(self):
        camp = _camp(max_donors=2, registrations=_registrations(1))
        assert camp.available_slots == 1
        assert is_registration_open(camp, NOW)
