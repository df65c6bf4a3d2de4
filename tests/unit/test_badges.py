"""Donation badge thresholds and awarding."""

from __future__ import annotations

from types import SimpleNamespace

from bloodlink.donations.badges import ALL_BADGES, EMERGENCY_HERO, award_badges, earned_badges


class TestEarnedBadges:
    def test_no_donations_no_badges(self):
        assert earned_badges(0) == []

    def test_thresholds(self):
        assert earned_badges(1) == ["first_donation"]
        assert earned_badges(4) == ["first_donation"]
        assert earned_badges(5) == ["first_donation", "regular_donor"]
        assert earned_badges(10) == ["first_donation", "regular_donor", "lifesaver"]

    def test_critical_request_adds_emergency_hero(self):
        assert EMERGENCY_HERO in earned_badges(1, critical_request=True)

    def test_every_badge_is_known(self):
        assert set(earned_badges(100, critical_request=True)) == set(ALL_BADGES)


class TestAwardBadges:
    def test_first_donation(self):
        donor = SimpleNamespace(total_donations=1, badges=[])
        assert award_badges(donor) == ["first_donation"]
        assert donor.badges == ["first_donation"]

    def test_returns_only_new_badges(self):
        donor = SimpleNamespace(total_donations=5, badges=["first_donation"])
        assert award_badges(donor) == ["regular_donor"]
        assert donor.badges == ["first_donation", "regular_donor"]

    def test_never_duplicates(self):
        donor = SimpleNamespace(total_donations=1, badges=["first_donation"])
        original = donor.badges
        assert award_badges(donor) == []
        assert donor.badges is original

    def test_badges_are_never_removed(self):
        donor = SimpleNamespace(total_donations=0, badges=["lifesaver"])
        award_badges(donor)
        assert donor.badges == ["lifesaver"]

    def test_emergency_hero_once(self):
        donor = SimpleNamespace(total_donations=2, badges=["first_donation"])
        assert award_badges(donor, critical_request=True) == [EMERGENCY_HERO]
        assert award_badges(donor, critical_request=True) == []

    def test_none_badges_treated_as_empty(self):
        donor = SimpleNamespace(total_donations=1, badges=None)
        assert award_badges(donor) == ["first_donation"]
