"""Donor router: /api/v1/donors/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bloodlink.auth.dependencies import require_donor
from bloodlink.blood_requests.lifecycle import RESPONSE_PAST_TENSE
from bloodlink.blood_requests.schemas import BloodRequestDetailResponse, BloodRequestResponse, MatchedDonorContact
from bloodlink.blood_requests.service import get_request, matched_donor_contacts, respond_to_request
from bloodlink.database import get_session
from bloodlink.db.models import Donor, User
from bloodlink.donors.schemas import (
    AvailabilityRequest,
    CompatibleRequestListResponse,
    DonationHistoryResponse,
    DonationStats,
    DonorProfileRequest,
    DonorResponse,
    EligibleDonor,
    EligibleDonorListResponse,
    RespondRequest,
)
from bloodlink.donors.service import (
    find_available_donors,
    get_donation_history,
    list_compatible_requests,
    require_donor_profile,
    set_availability,
    upsert_donor_profile,
)
from bloodlink.notifications.fanout import notify_users
from bloodlink.pagination import page_meta
from bloodlink.validators import BloodGroup, Urgency

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/donors", tags=["Donors"])


async def _load_profile(db: AsyncSession, user: User) -> Donor:
    try:
        return await require_donor_profile(db, user.id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.post("/profile")
async def save_profile(
    body: DonorProfileRequest,
    user: User = Depends(require_donor),
    db: AsyncSession = Depends(get_session),
):
    """Create or update the caller's donor profile."""
    donor, created = await upsert_donor_profile(db, user.id, body.model_dump())
    await db.commit()
    logger.info("donor_profile_saved", user_id=user.id, donor_id=donor.id, created=created)
    return {"message": "Donor profile updated successfully", "donor": DonorResponse.from_donor(donor)}


@router.get("/profile")
async def get_profile(
    user: User = Depends(require_donor),
    db: AsyncSession = Depends(get_session),
):
    donor = await _load_profile(db, user)
    return {"donor": DonorResponse.from_donor(donor)}


@router.put("/availability")
async def update_availability(
    body: AvailabilityRequest,
    user: User = Depends(require_donor),
    db: AsyncSession = Depends(get_session),
):
    """Toggle whether the donor can currently be asked to donate."""
    donor = await _load_profile(db, user)
    await set_availability(db, donor, body.is_available, body.availability_notes)
    await db.commit()
    return {
        "message": "Availability updated successfully",
        "donor": {"is_available": donor.is_available, "availability_notes": donor.availability_notes},
    }


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@router.get("/requests", response_model=CompatibleRequestListResponse)
async def browse_requests(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    urgency: Urgency | None = Query(None),
    city: str | None = Query(None, max_length=100),
    user: User = Depends(require_donor),
    db: AsyncSession = Depends(get_session),
):
    """Open requests the caller's blood group can serve, most urgent first."""
    donor = await _load_profile(db, user)
    requests, total = await list_compatible_requests(db, donor, urgency, city, page, per_page)
    await db.commit()
    return CompatibleRequestListResponse(
        requests=[BloodRequestResponse.from_request(r) for r in requests],
        pagination=page_meta(page, per_page, total),
    )


@router.get("/requests/{request_id}", response_model=BloodRequestDetailResponse)
async def get_request_detail(
    request_id: int,
    user: User = Depends(require_donor),
    db: AsyncSession = Depends(get_session),
):
    await _load_profile(db, user)
    try:
        request = await get_request(db, request_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    contacts = await matched_donor_contacts(db, request)
    await db.commit()
    return BloodRequestDetailResponse(
        request=BloodRequestResponse.from_request(request),
        matched_donors=[MatchedDonorContact(**c) for c in contacts],
    )


@router.post("/respond-request")
async def respond_request(
    body: RespondRequest,
    user: User = Depends(require_donor),
    db: AsyncSession = Depends(get_session),
):
    """Accept or decline a blood request. Accepting notifies the requester."""
    donor = await _load_profile(db, user)
    try:
        request, _match = await respond_to_request(db, donor, body.request_id, body.action)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    logger.info("donor_responded", donor_id=donor.id, request_id=request.id, outcome=RESPONSE_PAST_TENSE[body.action])

    if body.action == "accept":
        await notify_users(
            db,
            [request.requester_id],
            "donor_match",
            "Donor Found!",
            f"{user.name} has accepted your blood request",
            priority="high",
            data={"request_id": request.id, "donor_id": donor.id},
        )

    return {"message": f"Request {RESPONSE_PAST_TENSE[body.action]} successfully", "action": body.action}


# ---------------------------------------------------------------------------
# History and public lookup
# ---------------------------------------------------------------------------


@router.get("/history", response_model=DonationHistoryResponse)
async def donation_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    user: User = Depends(require_donor),
    db: AsyncSession = Depends(get_session),
):
    donor = await _load_profile(db, user)
    requests, total = await get_donation_history(db, donor, page, per_page)
    return DonationHistoryResponse(
        history=[BloodRequestResponse.from_request(r) for r in requests],
        pagination=page_meta(page, per_page, total),
        stats=DonationStats(
            total_donations=donor.total_donations or 0,
            last_donation=donor.last_donation_date,
            badges=list(donor.badges or []),
        ),
    )


@router.get("/eligible", response_model=EligibleDonorListResponse)
async def eligible_donors(
    blood_group: BloodGroup | None = Query(None),
    city: str | None = Query(None, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    """Public: verified, available, currently eligible donors of a blood group."""
    if blood_group is None:
        raise HTTPException(status_code=400, detail="Blood group is required")
    rows = await find_available_donors(db, blood_group, city, limit)
    return EligibleDonorListResponse(donors=[EligibleDonor.from_row(d, u) for d, u in rows])
