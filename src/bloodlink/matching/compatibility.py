"""ABO/Rh blood-group compatibility.

One static table maps each donor group to the recipient groups it may serve.
The reverse lookup (which donors can serve a recipient) is derived from the
same table rather than kept separately.
"""

from __future__ import annotations

COMPATIBILITY: dict[str, frozenset[str]] = {
    "O-": frozenset({"O-", "O+", "A-", "A+", "B-", "B+", "AB-", "AB+"}),  # universal donor
    "O+": frozenset({"O+", "A+", "B+", "AB+"}),
    "A-": frozenset({"A-", "A+", "AB-", "AB+"}),
    "A+": frozenset({"A+", "AB+"}),
    "B-": frozenset({"B-", "B+", "AB-", "AB+"}),
    "B+": frozenset({"B+", "AB+"}),
    "AB-": frozenset({"AB-", "AB+"}),
    "AB+": frozenset({"AB+"}),
}


def compatible_recipient_groups(donor_group: str) -> frozenset[str]:
    """Recipient groups a donor may give to. Unknown groups match nothing."""
    return COMPATIBILITY.get(donor_group, frozenset())


def can_donate(donor_group: str, recipient_group: str) -> bool:
    return recipient_group in compatible_recipient_groups(donor_group)


def donor_groups_for(recipient_group: str) -> frozenset[str]:
    """Donor groups able to serve a recipient group."""
    return frozenset(
        donor_group for donor_group, recipients in COMPATIBILITY.items() if recipient_group in recipients
    )
