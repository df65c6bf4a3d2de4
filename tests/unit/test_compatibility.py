"""ABO/Rh compatibility table and its reverse lookup."""

from __future__ import annotations

import pytest

from bloodlink.db.models import BLOOD_GROUPS
from bloodlink.matching.compatibility import (
    COMPATIBILITY,
    can_donate,
    compatible_recipient_groups,
    donor_groups_for,
)


class TestCompatibilityTable:
    def test_covers_every_group(self):
        assert set(COMPATIBILITY) == set(BLOOD_GROUPS)

    def test_o_negative_is_universal_donor(self):
        assert compatible_recipient_groups("O-") == frozenset(BLOOD_GROUPS)

    def test_ab_positive_gives_only_to_itself(self):
        assert compatible_recipient_groups("AB+") == frozenset({"AB+"})

    def test_unknown_group_matches_nothing(self):
        assert compatible_recipient_groups("C+") == frozenset()
        assert donor_groups_for("C+") == frozenset()

    @pytest.mark.parametrize("group", BLOOD_GROUPS)
    def test_every_group_can_receive_from_itself(self, group):
        assert can_donate(group, group)

    def test_positive_cannot_give_to_negative(self):
        assert not can_donate("A+", "A-")
        assert not can_donate("O+", "O-")


class TestReverseLookup:
    def test_ab_positive_is_universal_recipient(self):
        assert donor_groups_for("AB+") == frozenset(BLOOD_GROUPS)

    def test_o_negative_receives_only_from_o_negative(self):
        assert donor_groups_for("O-") == frozenset({"O-"})

    def test_a_positive_donors(self):
        assert donor_groups_for("A+") == frozenset({"A+", "A-", "O+", "O-"})

    @pytest.mark.parametrize("recipient", BLOOD_GROUPS)
    def test_reverse_agrees_with_forward(self, recipient):
        for donor in BLOOD_GROUPS:
            assert (donor in donor_groups_for(recipient)) == can_donate(donor, recipient)
