"""Blood request business logic.

Wraps the lifecycle state machine with persistence: loading requests with
lazy expiry applied, the requester's own CRUD, donation completion and the
donor-side response.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bloodlink.blood_requests import lifecycle
from bloodlink.config import get_settings
from bloodlink.db.models import BloodRequest, Donor, RequestMatch, User
from bloodlink.donations.badges import award_badges
from bloodlink.matching.compatibility import donor_groups_for
from bloodlink.matching.eligibility import is_eligible
from bloodlink.pagination import paginate
from bloodlink.validators import like_pattern

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "patient_name",
    "urgency",
    "hospital_name",
    "hospital_address",
    "city",
    "state",
    "pincode",
    "required_date",
    "description",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Creation and candidate donors
# ---------------------------------------------------------------------------


async def create_request(
    db: AsyncSession,
    requester_id: int,
    data: dict[str, Any],
    now: datetime | None = None,
) -> BloodRequest:
    """Create a pending request that expires after the configured number of days."""
    settings = get_settings()
    now = now or _utcnow()
    contact = data["contact_person"]
    request = BloodRequest(
        requester_id=requester_id,
        patient_name=data["patient_name"],
        blood_group=data["blood_group"],
        units_required=data["units_required"],
        urgency=data["urgency"],
        hospital_name=data["hospital_name"],
        hospital_address=data["hospital_address"],
        city=data["city"],
        state=data["state"],
        pincode=data["pincode"],
        contact_name=contact["name"],
        contact_phone=contact["phone"],
        contact_relationship=contact["relationship"],
        required_date=data["required_date"],
        description=data.get("description"),
        status="pending",
        total_units_received=0,
        is_verified=False,
        created_by_id=requester_id,
        expires_at=now + timedelta(days=settings.request_expiry_days),
        created_at=now,
        matches=[],
        donations=[],
    )
    db.add(request)
    await db.flush()
    logger.info("Blood request %s created for %s (%s)", request.id, request.blood_group, request.urgency)
    return request


async def find_candidate_donors(
    db: AsyncSession,
    request: BloodRequest,
    now: datetime | None = None,
) -> list[Donor]:
    """Verified, available, eligible donors whose group can serve the request, in its city."""
    result = await db.execute(
        select(Donor).where(
            Donor.blood_group.in_(sorted(donor_groups_for(request.blood_group))),
            Donor.is_available.is_(True),
            Donor.is_verified.is_(True),
            Donor.city.ilike(like_pattern(request.city), escape="\\"),
        )
    )
    return [d for d in result.scalars().all() if is_eligible(d, now)]


# ---------------------------------------------------------------------------
# Loading with lazy expiry
# ---------------------------------------------------------------------------


async def expire_stale_requests(db: AsyncSession, now: datetime | None = None) -> int:
    """Flip every pending request past its expiry to expired. Idempotent."""
    result = await db.execute(
        update(BloodRequest)
        .where(BloodRequest.status == "pending", BloodRequest.expires_at < (now or _utcnow()))
        .values(status="expired")
    )
    await db.flush()
    if result.rowcount:
        logger.info("Expired %d stale blood requests", result.rowcount)
    return result.rowcount


async def get_request(db: AsyncSession, request_id: int, now: datetime | None = None) -> BloodRequest:
    """Load a request, applying lazy expiry.

    Raises:
        LookupError: If the request does not exist.
    """
    result = await db.execute(select(BloodRequest).where(BloodRequest.id == request_id))
    request = result.scalar_one_or_none()
    if request is None:
        raise LookupError("Blood request not found")
    if lifecycle.refresh_expiry(request, now):
        await db.flush()
    return request


async def get_owned_request(
    db: AsyncSession,
    request_id: int,
    requester_id: int,
    now: datetime | None = None,
) -> BloodRequest:
    """Like get_request, but other users' requests are reported as missing."""
    request = await get_request(db, request_id, now)
    if request.requester_id != requester_id:
        raise LookupError("Blood request not found")
    return request


async def list_requester_requests(
    db: AsyncSession,
    requester_id: int,
    status: str | None = None,
    page: int = 1,
    per_page: int = 10,
    now: datetime | None = None,
) -> tuple[list[BloodRequest], int]:
    await expire_stale_requests(db, now)
    query = select(BloodRequest).where(BloodRequest.requester_id == requester_id)
    if status:
        query = query.where(BloodRequest.status == status)
    query = query.order_by(BloodRequest.created_at.desc(), BloodRequest.id.desc())
    return await paginate(db, query, page, per_page)


async def matched_donor_contacts(db: AsyncSession, request: BloodRequest) -> list[dict[str, Any]]:
    """Name, phone and group of every donor who accepted or completed."""
    statuses = {m.donor_id: m.status for m in request.matches if m.status in ("accepted", "completed")}
    if not statuses:
        return []
    result = await db.execute(
        select(Donor.id, Donor.blood_group, User.name, User.phone)
        .join(User, User.id == Donor.user_id)
        .where(Donor.id.in_(list(statuses)))
    )
    return [
        {"donor_id": donor_id, "blood_group": group, "name": name, "phone": phone, "status": statuses[donor_id]}
        for donor_id, group, name, phone in result
    ]


# ---------------------------------------------------------------------------
# Requester actions
# ---------------------------------------------------------------------------


async def update_request(
    db: AsyncSession,
    request: BloodRequest,
    updates: dict[str, Any],
    user_id: int,
) -> BloodRequest:
    """Apply whitelisted edits. Completed and cancelled requests are frozen."""
    if request.status in ("completed", "cancelled"):
        raise ValueError("Cannot update completed or cancelled request")

    if updates.get("units_required") is not None:
        lifecycle.set_units_required(request, updates["units_required"])
    for field in UPDATABLE_FIELDS:
        if updates.get(field) is not None:
            setattr(request, field, updates[field])
    contact = updates.get("contact_person")
    if contact:
        request.contact_name = contact["name"]
        request.contact_phone = contact["phone"]
        request.contact_relationship = contact["relationship"]
    request.updated_by_id = user_id
    await db.flush()
    return request


async def cancel_request(db: AsyncSession, request: BloodRequest, user_id: int) -> list[int]:
    """Cancel and return the donor ids whose accepted match should be told."""
    donor_ids = lifecycle.cancel(request)
    request.updated_by_id = user_id
    await db.flush()
    logger.info("Blood request %s cancelled (%d accepted donors)", request.id, len(donor_ids))
    return donor_ids


async def complete_donation(
    db: AsyncSession,
    request: BloodRequest,
    donor_id: int,
    units: int,
    now: datetime | None = None,
) -> Donor:
    """Record a completed donation and credit the donor.

    Raises:
        LookupError: If the donor does not exist.
        ValueError: If the donor never accepted or the request is closed.
    """
    now = now or _utcnow()
    donor = await db.get(Donor, donor_id)
    if donor is None:
        raise LookupError("Donor not found")

    lifecycle.record_completion(request, donor_id, units, now)

    donor.total_donations = (donor.total_donations or 0) + 1
    donor.last_donation_date = now
    new_badges = award_badges(donor, critical_request=request.urgency == "critical")
    await db.flush()
    logger.info(
        "Donation of %d unit(s) by donor %s on request %s; request now %s",
        units, donor_id, request.id, request.status,
    )
    if new_badges:
        logger.info("Donor %s earned badges %s", donor_id, new_badges)
    return donor


# ---------------------------------------------------------------------------
# Donor response
# ---------------------------------------------------------------------------


async def respond_to_request(
    db: AsyncSession,
    donor: Donor,
    request_id: int,
    action: str,
    now: datetime | None = None,
) -> tuple[BloodRequest, RequestMatch]:
    """Accept or decline a request on behalf of a donor.

    Raises:
        LookupError: If the request does not exist.
        ValueError: If the donor is ineligible/unavailable, already responded,
            or the request no longer takes responses.
    """
    now = now or _utcnow()
    request = await get_request(db, request_id, now)

    if not is_eligible(donor, now):
        raise ValueError("You are not currently eligible to donate blood")
    if not donor.is_available:
        raise ValueError("You are not currently available for donation")

    match = lifecycle.apply_response(request, donor.id, action, now)
    try:
        await db.flush()
    except IntegrityError as e:
        # A concurrent response from the same donor won the unique constraint.
        raise ValueError("You have already responded to this request") from e
    logger.info("Donor %s %s request %s", donor.id, lifecycle.RESPONSE_PAST_TENSE[action], request.id)
    return request, match
