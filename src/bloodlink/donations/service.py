"""Donation verification claims.

A donor reports a donation made outside a tracked blood request (a camp, a
hospital walk-in). An admin approves or rejects it once; approval credits the
donor's totals and may award badges.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bloodlink.db.models import DonationCamp, DonationClaim, Donor, User
from bloodlink.donations.badges import award_badges

logger = logging.getLogger(__name__)

CLAIM_STATUSES = ("pending", "approved", "rejected")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def create_claim(
    db: AsyncSession,
    donor: Donor,
    donation_date: datetime,
    location: str | None = None,
    notes: str | None = None,
    camp_id: int | None = None,
) -> DonationClaim:
    """Submit a pending claim for the donor."""
    now = _utcnow()
    if donation_date > now:
        raise ValueError("Donation date cannot be in the future")
    if camp_id is not None and await db.get(DonationCamp, camp_id) is None:
        raise LookupError("Donation camp not found")

    claim = DonationClaim(
        donor_id=donor.id,
        user_id=donor.user_id,
        donation_date=donation_date,
        status="pending",
        camp_id=camp_id,
        location=location or "",
        notes=notes or "",
        created_at=now,
    )
    db.add(claim)
    await db.flush()
    logger.info("Donation claim %s submitted by donor %s", claim.id, donor.id)
    return claim


async def list_donor_claims(db: AsyncSession, donor_id: int) -> list[DonationClaim]:
    result = await db.execute(
        select(DonationClaim)
        .where(DonationClaim.donor_id == donor_id)
        .order_by(DonationClaim.created_at.desc(), DonationClaim.id.desc())
    )
    return list(result.scalars().all())


async def list_pending_claims(db: AsyncSession) -> list[tuple[DonationClaim, User, Donor]]:
    """Pending claims with claimant and donor, oldest first."""
    result = await db.execute(
        select(DonationClaim, User, Donor)
        .join(User, User.id == DonationClaim.user_id)
        .join(Donor, Donor.id == DonationClaim.donor_id)
        .where(DonationClaim.status == "pending")
        .order_by(DonationClaim.created_at, DonationClaim.id)
    )
    return [tuple(row) for row in result.all()]


async def _pending_claim(db: AsyncSession, claim_id: int) -> DonationClaim:
    claim = await db.get(DonationClaim, claim_id)
    if claim is None:
        raise LookupError("Request not found")
    if claim.status != "pending":
        raise ValueError("Request is already processed")
    return claim


async def approve_claim(
    db: AsyncSession,
    claim_id: int,
    admin_id: int,
) -> tuple[DonationClaim, list[str]]:
    """Approve a pending claim and credit the donor.

    Returns:
        Tuple of (claim, newly awarded badges).

    Raises:
        LookupError: If the claim does not exist.
        ValueError: If the claim was already approved or rejected.
    """
    claim = await _pending_claim(db, claim_id)
    claim.status = "approved"
    claim.verified_by_id = admin_id
    claim.verified_at = _utcnow()

    new_badges: list[str] = []
    donor = await db.get(Donor, claim.donor_id)
    if donor is not None:
        donor.last_donation_date = claim.donation_date
        donor.total_donations = (donor.total_donations or 0) + 1
        new_badges = award_badges(donor)
    await db.flush()
    logger.info("Donation claim %s approved by admin %s", claim.id, admin_id)
    return claim, new_badges


async def reject_claim(
    db: AsyncSession,
    claim_id: int,
    admin_id: int,
    reason: str,
) -> DonationClaim:
    """Reject a pending claim with a reason."""
    if not reason.strip():
        raise ValueError("Rejection reason is required")
    claim = await _pending_claim(db, claim_id)
    claim.status = "rejected"
    claim.rejection_reason = reason.strip()
    claim.verified_by_id = admin_id
    claim.verified_at = _utcnow()
    await db.flush()
    logger.info("Donation claim %s rejected by admin %s", claim.id, admin_id)
    return claim
