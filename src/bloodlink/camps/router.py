"""Donation camp router: /api/v1/camps/* endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bloodlink.auth.dependencies import get_current_user, require_admin
from bloodlink.camps.rules import is_registration_open
from bloodlink.camps.schemas import (
    CampCreate,
    CampListResponse,
    CampRegisterRequest,
    CampResponse,
    CampStatus,
    CampUpdate,
)
from bloodlink.camps.service import (
    create_camp,
    delete_camp,
    get_camp,
    list_camps,
    list_upcoming_camps,
    register_donor,
    unregister_donor,
    update_camp,
)
from bloodlink.database import get_session
from bloodlink.db.models import DonationCamp, User
from bloodlink.notifications.fanout import notify_users, verified_donor_user_ids
from bloodlink.pagination import page_meta

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/camps", tags=["Donation Camps"])


def _camp_response(camp: DonationCamp, now: datetime | None = None) -> CampResponse:
    return CampResponse.from_camp(camp, is_registration_open(camp, now))


async def _load_camp(db: AsyncSession, camp_id: int) -> DonationCamp:
    try:
        return await get_camp(db, camp_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


# ---------------------------------------------------------------------------
# Public listing
# ---------------------------------------------------------------------------


@router.get("", response_model=CampListResponse)
async def list_all_camps(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    status: CampStatus | None = Query(None),
    city: str | None = Query(None, max_length=100),
    is_public: bool | None = Query(None),
    db: AsyncSession = Depends(get_session),
):
    """All camps, soonest first. Statuses are rolled forward before listing."""
    camps, total = await list_camps(db, status, city, is_public, page, per_page)
    await db.commit()
    now = datetime.now(timezone.utc)
    return CampListResponse(
        camps=[_camp_response(c, now) for c in camps],
        pagination=page_meta(page, per_page, total),
    )


@router.get("/upcoming")
async def upcoming_camps(
    limit: int = Query(5, ge=1, le=50),
    db: AsyncSession = Depends(get_session),
):
    """Public camps that are scheduled and have not started yet."""
    camps = await list_upcoming_camps(db, limit)
    await db.commit()
    now = datetime.now(timezone.utc)
    return {"camps": [_camp_response(c, now) for c in camps]}


@router.get("/{camp_id}")
async def get_camp_detail(
    camp_id: int,
    db: AsyncSession = Depends(get_session),
):
    camp = await _load_camp(db, camp_id)
    await db.commit()
    return {"camp": _camp_response(camp)}


# ---------------------------------------------------------------------------
# Admin management
# ---------------------------------------------------------------------------


@router.post("", status_code=201)
async def create_new_camp(
    body: CampCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Create a camp and announce it to every verified donor."""
    try:
        camp = await create_camp(db, admin.id, body.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    logger.info("camp_created", camp_id=camp.id, admin_id=admin.id)
    response = _camp_response(camp)

    await notify_users(
        db,
        await verified_donor_user_ids(db),
        "camp_announcement",
        "New Donation Camp",
        f"New donation camp: {camp.title} on {camp.start_date:%d %b %Y}",
        priority="medium",
        data={"camp_id": camp.id},
    )

    return {"message": "Donation camp created successfully", "camp": response}


@router.patch("/{camp_id}")
async def update_existing_camp(
    camp_id: int,
    body: CampUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    camp = await _load_camp(db, camp_id)
    try:
        await update_camp(db, camp, body.model_dump(exclude_unset=True), admin.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    logger.info("camp_updated", camp_id=camp.id, admin_id=admin.id)
    return {"message": "Donation camp updated successfully", "camp": _camp_response(camp)}


@router.delete("/{camp_id}")
async def delete_existing_camp(
    camp_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Delete a camp. Registered donors are told it was cancelled."""
    camp = await _load_camp(db, camp_id)
    title = camp.title
    user_ids = await delete_camp(db, camp)
    await db.commit()
    logger.info("camp_deleted", camp_id=camp_id, admin_id=admin.id, registered=len(user_ids))

    await notify_users(
        db,
        user_ids,
        "camp_announcement",
        "Camp Cancelled",
        f'The donation camp "{title}" has been cancelled',
        priority="medium",
        data={"camp_id": camp_id},
    )

    return {"message": "Donation camp deleted successfully"}


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@router.post("/{camp_id}/register")
async def register_for_camp(
    camp_id: int,
    body: CampRegisterRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Register the caller's donor profile for a camp. The organizer is notified."""
    camp = await _load_camp(db, camp_id)
    try:
        registration, donor = await register_donor(db, camp, user.id, body.slot_time if body else None)
    except ValueError as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    logger.info("camp_registration", camp_id=camp.id, donor_id=donor.id)

    await notify_users(
        db,
        [camp.organizer_id],
        "donation_reminder",
        "New Camp Registration",
        f'{user.name} has registered for the camp "{camp.title}"',
        priority="medium",
        data={"camp_id": camp.id, "donor_id": donor.id},
    )

    return {
        "message": "Successfully registered for donation camp",
        "registration": {
            "camp_id": camp.id,
            "donor_id": donor.id,
            "registered_at": registration.registered_at,
            "slot_time": registration.slot_time,
        },
    }


@router.delete("/{camp_id}/register")
async def unregister_from_camp(
    camp_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    camp = await _load_camp(db, camp_id)
    try:
        await unregister_donor(db, camp, user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return {"message": "Successfully unregistered from donation camp"}
