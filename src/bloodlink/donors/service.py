"""Donor profile service: profile upsert, availability, request browsing, history."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bloodlink.blood_requests.service import expire_stale_requests
from bloodlink.db.models import URGENCY_SCORES, BloodRequest, Donor, RequestDonation, User
from bloodlink.matching.compatibility import compatible_recipient_groups
from bloodlink.matching.eligibility import MEDICAL_FLAGS, is_eligible
from bloodlink.pagination import paginate
from bloodlink.validators import like_pattern

logger = logging.getLogger(__name__)

# Requests donors may browse and respond to.
BROWSABLE_STATUSES = ("pending", "matched")


async def get_donor_by_user(db: AsyncSession, user_id: int) -> Donor | None:
    result = await db.execute(select(Donor).where(Donor.user_id == user_id))
    return result.scalar_one_or_none()


async def require_donor_profile(db: AsyncSession, user_id: int) -> Donor:
    """Load the caller's donor profile. Raises LookupError if they have none."""
    donor = await get_donor_by_user(db, user_id)
    if donor is None:
        raise LookupError("Donor profile not found")
    return donor


def _apply_profile(donor: Donor, data: dict[str, Any]) -> None:
    donor.blood_group = data["blood_group"]
    donor.date_of_birth = data["date_of_birth"]
    donor.weight = data["weight"]
    donor.height = data.get("height")

    medical = data.get("medical_history") or {}
    for flag in MEDICAL_FLAGS:
        setattr(donor, flag, bool(medical.get(flag, False)))
    donor.other_conditions = medical.get("other_conditions")

    contact = data["emergency_contact"]
    donor.emergency_contact_name = contact["name"]
    donor.emergency_contact_phone = contact["phone"]
    donor.emergency_contact_relationship = contact["relationship"]

    location = data["location"]
    donor.address = location["address"]
    donor.city = location["city"]
    donor.state = location["state"]
    donor.pincode = location["pincode"]
    donor.latitude = location.get("latitude")
    donor.longitude = location.get("longitude")

    donor.availability_notes = data.get("availability_notes") or ""


async def upsert_donor_profile(
    db: AsyncSession,
    user_id: int,
    data: dict[str, Any],
) -> tuple[Donor, bool]:
    """Create the donor profile or overwrite the existing one.

    Verification, totals and badges survive an overwrite.

    Returns:
        Tuple of (donor, created).
    """
    donor = await get_donor_by_user(db, user_id)
    created = donor is None
    if donor is None:
        donor = Donor(
            user_id=user_id,
            is_available=True,
            is_verified=False,
            total_donations=0,
            badges=[],
            created_at=datetime.now(timezone.utc),
        )
        db.add(donor)

    _apply_profile(donor, data)
    await db.flush()
    logger.info("Donor profile %s for user %s", "created" if created else "updated", user_id)
    return donor, created


async def set_availability(
    db: AsyncSession,
    donor: Donor,
    is_available: bool,
    notes: str | None = None,
) -> Donor:
    donor.is_available = is_available
    if notes is not None:
        donor.availability_notes = notes
    await db.flush()
    return donor


async def list_compatible_requests(
    db: AsyncSession,
    donor: Donor,
    urgency: str | None = None,
    city: str | None = None,
    page: int = 1,
    per_page: int = 10,
    now: datetime | None = None,
) -> tuple[list[BloodRequest], int]:
    """Open, verified, unexpired requests this donor's group can serve.

    Most urgent first, then newest.
    """
    now = now or datetime.now(timezone.utc)
    await expire_stale_requests(db, now)

    query = select(BloodRequest).where(
        BloodRequest.blood_group.in_(sorted(compatible_recipient_groups(donor.blood_group))),
        BloodRequest.status.in_(BROWSABLE_STATUSES),
        BloodRequest.expires_at > now,
        BloodRequest.is_verified.is_(True),
    )
    if urgency:
        query = query.where(BloodRequest.urgency == urgency)
    if city:
        query = query.where(BloodRequest.city.ilike(like_pattern(city), escape="\\"))

    urgency_rank = case(URGENCY_SCORES, value=BloodRequest.urgency, else_=0)
    query = query.order_by(urgency_rank.desc(), BloodRequest.created_at.desc(), BloodRequest.id.desc())
    return await paginate(db, query, page, per_page)


async def get_donation_history(
    db: AsyncSession,
    donor: Donor,
    page: int = 1,
    per_page: int = 10,
) -> tuple[list[BloodRequest], int]:
    """Requests this donor has donated to, most recent donation first."""
    last_donated = (
        select(RequestDonation.request_id, func.max(RequestDonation.donated_at).label("donated_at"))
        .where(RequestDonation.donor_id == donor.id)
        .group_by(RequestDonation.request_id)
        .subquery()
    )
    query = (
        select(BloodRequest)
        .join(last_donated, last_donated.c.request_id == BloodRequest.id)
        .order_by(last_donated.c.donated_at.desc(), BloodRequest.id.desc())
    )
    return await paginate(db, query, page, per_page)


async def find_available_donors(
    db: AsyncSession,
    blood_group: str,
    city: str | None = None,
    limit: int = 20,
    now: datetime | None = None,
) -> list[tuple[Donor, User]]:
    """Verified, available donors of exactly `blood_group` who are eligible right now."""
    query = (
        select(Donor, User)
        .join(User, User.id == Donor.user_id)
        .where(
            Donor.blood_group == blood_group,
            Donor.is_available.is_(True),
            Donor.is_verified.is_(True),
            User.is_active.is_(True),
        )
        .order_by(Donor.total_donations.desc(), Donor.id)
    )
    if city:
        query = query.where(Donor.city.ilike(like_pattern(city), escape="\\"))

    result = await db.execute(query)
    eligible = [(donor, user) for donor, user in result.all() if is_eligible(donor, now)]
    return eligible[:limit]
