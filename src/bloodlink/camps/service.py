"""Donation camp service: listing with lazy rollover, admin CRUD, donor registration."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bloodlink.camps.rules import AUTO_STATUSES, refresh_camp_status, registration_block_reason
from bloodlink.db.models import CampRegistration, DonationCamp, Donor
from bloodlink.donors.service import get_donor_by_user
from bloodlink.matching.eligibility import is_eligible
from bloodlink.pagination import paginate
from bloodlink.validators import like_pattern

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "title",
    "description",
    "start_date",
    "end_date",
    "start_time",
    "end_time",
    "max_donors",
    "special_instructions",
    "target_blood_groups",
    "is_public",
    "status",
    # flattened nested blocks
    "location_name",
    "address",
    "city",
    "state",
    "pincode",
    "latitude",
    "longitude",
    "min_age",
    "max_age",
    "min_weight",
    "required_documents",
    "coordinator_name",
    "coordinator_phone",
    "coordinator_email",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _flatten(data: dict[str, Any]) -> dict[str, Any]:
    """Map nested location/requirements/contact_info payloads onto column names."""
    flat = {k: v for k, v in data.items() if k not in ("location", "requirements", "contact_info")}
    location = data.get("location")
    if location:
        flat.update(
            location_name=location["name"],
            address=location["address"],
            city=location["city"],
            state=location["state"],
            pincode=location["pincode"],
            latitude=location.get("latitude"),
            longitude=location.get("longitude"),
        )
    requirements = data.get("requirements")
    if requirements:
        flat.update(
            min_age=requirements["min_age"],
            max_age=requirements["max_age"],
            min_weight=requirements["min_weight"],
            required_documents=list(requirements.get("required_documents") or []),
        )
    contact = data.get("contact_info")
    if contact:
        flat.update(
            coordinator_name=contact["coordinator_name"],
            coordinator_phone=contact["phone"],
            coordinator_email=contact.get("email"),
        )
    return flat


# ---------------------------------------------------------------------------
# Lazy status rollover
# ---------------------------------------------------------------------------


async def sync_camp_statuses(db: AsyncSession, now: datetime | None = None) -> None:
    """Bulk-apply camp rollover. Safe to call before every listing."""
    now = now or _utcnow()
    completed = await db.execute(
        update(DonationCamp)
        .where(DonationCamp.end_date < now, DonationCamp.status.in_(sorted(AUTO_STATUSES)))
        .values(status="completed")
        .execution_options(synchronize_session="fetch")
    )
    started = await db.execute(
        update(DonationCamp)
        .where(
            DonationCamp.start_date <= now,
            DonationCamp.end_date >= now,
            DonationCamp.status == "scheduled",
        )
        .values(status="ongoing")
        .execution_options(synchronize_session="fetch")
    )
    await db.flush()
    if completed.rowcount or started.rowcount:
        logger.info("Camp rollover: %d completed, %d started", completed.rowcount, started.rowcount)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_camps(
    db: AsyncSession,
    status: str | None = None,
    city: str | None = None,
    is_public: bool | None = None,
    page: int = 1,
    per_page: int = 10,
    now: datetime | None = None,
) -> tuple[list[DonationCamp], int]:
    await sync_camp_statuses(db, now)
    query = select(DonationCamp)
    if status:
        query = query.where(DonationCamp.status == status)
    if city:
        query = query.where(DonationCamp.city.ilike(like_pattern(city), escape="\\"))
    if is_public is not None:
        query = query.where(DonationCamp.is_public.is_(is_public))
    query = query.order_by(DonationCamp.start_date, DonationCamp.id)
    return await paginate(db, query, page, per_page)


async def list_upcoming_camps(
    db: AsyncSession,
    limit: int = 5,
    now: datetime | None = None,
) -> list[DonationCamp]:
    """Public, still-scheduled camps that have not started yet, soonest first."""
    now = now or _utcnow()
    await sync_camp_statuses(db, now)
    result = await db.execute(
        select(DonationCamp)
        .where(
            DonationCamp.status == "scheduled",
            DonationCamp.is_public.is_(True),
            DonationCamp.start_date >= now,
        )
        .order_by(DonationCamp.start_date, DonationCamp.id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_camp(db: AsyncSession, camp_id: int, now: datetime | None = None) -> DonationCamp:
    """Load a camp with its status rolled forward.

    Raises:
        LookupError: If the camp does not exist.
    """
    camp = await db.get(DonationCamp, camp_id)
    if camp is None:
        raise LookupError("Donation camp not found")
    if refresh_camp_status(camp, now):
        await db.flush()
    return camp


# ---------------------------------------------------------------------------
# Admin CRUD
# ---------------------------------------------------------------------------


async def create_camp(db: AsyncSession, organizer_id: int, data: dict[str, Any]) -> DonationCamp:
    fields = _flatten(data)
    if fields["end_date"] < fields["start_date"]:
        raise ValueError("End date must be on or after start date")

    camp = DonationCamp(
        organizer_id=organizer_id,
        created_by_id=organizer_id,
        status="scheduled",
        total_donations=0,
        total_units=0,
        registrations=[],
        created_at=_utcnow(),
        **fields,
    )
    db.add(camp)
    await db.flush()
    logger.info("Donation camp %s created: %s", camp.id, camp.title)
    return camp


async def update_camp(
    db: AsyncSession,
    camp: DonationCamp,
    updates: dict[str, Any],
    user_id: int,
) -> DonationCamp:
    """Apply whitelisted edits. Nested location/requirements/contact blocks replace wholesale."""
    fields = _flatten(updates)
    start = fields.get("start_date") or camp.start_date
    end = fields.get("end_date") or camp.end_date
    if end < start:
        raise ValueError("End date must be on or after start date")
    if "max_donors" in fields and fields["max_donors"] is not None and fields["max_donors"] < len(camp.registrations):
        raise ValueError("Max donors cannot be lower than the number of registered donors")

    for field, value in fields.items():
        if value is not None and field in UPDATABLE_FIELDS:
            setattr(camp, field, value)
    camp.updated_by_id = user_id
    await db.flush()
    return camp


async def delete_camp(db: AsyncSession, camp: DonationCamp) -> list[int]:
    """Delete a camp. Returns the user ids of donors who were registered."""
    donor_ids = [r.donor_id for r in camp.registrations]
    user_ids: list[int] = []
    if donor_ids:
        result = await db.execute(select(Donor.user_id).where(Donor.id.in_(donor_ids)))
        user_ids = [row[0] for row in result]
    await db.delete(camp)
    await db.flush()
    logger.info("Donation camp %s deleted (%d registrations)", camp.id, len(donor_ids))
    return user_ids


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


async def register_donor(
    db: AsyncSession,
    camp: DonationCamp,
    user_id: int,
    slot_time: str | None = None,
    now: datetime | None = None,
) -> tuple[CampRegistration, Donor]:
    """Put the user's donor profile on the camp roster.

    Guards run in order: registration window and capacity, donor profile,
    duplicate registration, eligibility.

    Raises:
        ValueError: If any guard fails.
    """
    now = now or _utcnow()
    refresh_camp_status(camp, now)
    reason = registration_block_reason(camp, now)
    if reason:
        raise ValueError(reason)

    donor = await get_donor_by_user(db, user_id)
    if donor is None:
        raise ValueError("Donor profile not found")

    if any(r.donor_id == donor.id for r in camp.registrations):
        raise ValueError("Already registered for this camp")

    if not is_eligible(donor, now):
        raise ValueError("You are not currently eligible to donate blood")

    registration = CampRegistration(
        donor_id=donor.id,
        registered_at=now,
        status="registered",
        slot_time=slot_time,
    )
    camp.registrations.append(registration)
    try:
        await db.flush()
    except IntegrityError as e:
        raise ValueError("Already registered for this camp") from e
    logger.info("Donor %s registered for camp %s (%d slots left)", donor.id, camp.id, camp.available_slots)
    return registration, donor


async def unregister_donor(db: AsyncSession, camp: DonationCamp, user_id: int) -> None:
    """Remove the user's donor profile from the roster.

    Raises:
        ValueError: If the user has no donor profile or is not registered.
    """
    donor = await get_donor_by_user(db, user_id)
    if donor is None:
        raise ValueError("Donor profile not found")

    registration = next((r for r in camp.registrations if r.donor_id == donor.id), None)
    if registration is None:
        raise ValueError("Not registered for this camp")

    camp.registrations.remove(registration)
    await db.flush()
    logger.info("Donor %s unregistered from camp %s", donor.id, camp.id)
