"""Recipient router: /api/v1/recipients/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bloodlink.auth.dependencies import require_recipient
from bloodlink.blood_requests.lifecycle import REQUEST_STATUSES
from bloodlink.blood_requests.schemas import (
    BloodRequestCreate,
    BloodRequestDetailResponse,
    BloodRequestListResponse,
    BloodRequestResponse,
    BloodRequestUpdate,
    CompleteDonationRequest,
    MatchedDonorContact,
)
from bloodlink.blood_requests.service import (
    cancel_request,
    complete_donation,
    create_request,
    find_candidate_donors,
    get_owned_request,
    list_requester_requests,
    matched_donor_contacts,
    update_request,
)
from bloodlink.database import get_session
from bloodlink.db.models import BloodRequest, User
from bloodlink.donors.schemas import EligibleDonor, EligibleDonorListResponse
from bloodlink.donors.service import find_available_donors
from bloodlink.notifications.fanout import donor_user_ids, notify_users
from bloodlink.pagination import page_meta
from bloodlink.validators import BloodGroup

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/recipients", tags=["Recipients"])


async def _owned(db: AsyncSession, request_id: int, user: User) -> BloodRequest:
    try:
        return await get_owned_request(db, request_id, user.id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


# ---------------------------------------------------------------------------
# Create and list
# ---------------------------------------------------------------------------


@router.post("/request", status_code=201)
async def create_blood_request(
    body: BloodRequestCreate,
    user: User = Depends(require_recipient),
    db: AsyncSession = Depends(get_session),
):
    """Create a blood request and alert compatible donors in the same city."""
    request = await create_request(db, user.id, body.model_dump())
    await db.commit()
    logger.info("blood_request_created", request_id=request.id, blood_group=request.blood_group)
    response = BloodRequestResponse.from_request(request)

    donors = await find_candidate_donors(db, request)
    notified = await notify_users(
        db,
        [d.user_id for d in donors],
        "blood_request",
        f"Urgent: {request.blood_group} Blood Needed",
        f"{request.units_required} unit(s) of {request.blood_group} blood needed at "
        f"{request.hospital_name}, {request.city}",
        priority="urgent" if request.urgency == "critical" else "high",
        data={"request_id": request.id},
    )
    logger.info("blood_request_fanout", request_id=request.id, notified=notified)

    return {"message": "Blood request created successfully", "request": response}


@router.get("/requests", response_model=BloodRequestListResponse)
async def list_my_requests(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    status: str | None = Query(None),
    user: User = Depends(require_recipient),
    db: AsyncSession = Depends(get_session),
):
    """The caller's requests, newest first."""
    if status is not None and status not in REQUEST_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
    requests, total = await list_requester_requests(db, user.id, status, page, per_page)
    await db.commit()
    return BloodRequestListResponse(
        requests=[BloodRequestResponse.from_request(r) for r in requests],
        pagination=page_meta(page, per_page, total),
    )


# ---------------------------------------------------------------------------
# Single request
# ---------------------------------------------------------------------------


@router.get("/requests/{request_id}", response_model=BloodRequestDetailResponse)
async def get_my_request(
    request_id: int,
    user: User = Depends(require_recipient),
    db: AsyncSession = Depends(get_session),
):
    """One of the caller's requests, with contact details of accepted donors."""
    request = await _owned(db, request_id, user)
    contacts = await matched_donor_contacts(db, request)
    await db.commit()
    return BloodRequestDetailResponse(
        request=BloodRequestResponse.from_request(request),
        matched_donors=[MatchedDonorContact(**c) for c in contacts],
    )


@router.put("/requests/{request_id}")
async def update_my_request(
    request_id: int,
    body: BloodRequestUpdate,
    user: User = Depends(require_recipient),
    db: AsyncSession = Depends(get_session),
):
    request = await _owned(db, request_id, user)
    try:
        await update_request(db, request, body.model_dump(exclude_unset=True), user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return {"message": "Blood request updated successfully", "request": BloodRequestResponse.from_request(request)}


@router.delete("/requests/{request_id}")
async def cancel_my_request(
    request_id: int,
    user: User = Depends(require_recipient),
    db: AsyncSession = Depends(get_session),
):
    """Cancel a request. Donors who accepted it are told."""
    request = await _owned(db, request_id, user)
    try:
        donor_ids = await cancel_request(db, request, user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    logger.info("blood_request_cancelled", request_id=request.id, accepted_donors=len(donor_ids))

    if donor_ids:
        await notify_users(
            db,
            await donor_user_ids(db, donor_ids),
            "request_status_update",
            "Blood Request Cancelled",
            f"The blood request for {request.patient_name} at {request.hospital_name} has been cancelled",
            priority="medium",
            data={"request_id": request.id},
        )

    return {"message": "Blood request cancelled successfully"}


# ---------------------------------------------------------------------------
# Donors
# ---------------------------------------------------------------------------


@router.get("/available-donors", response_model=EligibleDonorListResponse)
async def available_donors(
    blood_group: BloodGroup | None = Query(None),
    city: str | None = Query(None, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(require_recipient),
    db: AsyncSession = Depends(get_session),
):
    if blood_group is None:
        raise HTTPException(status_code=400, detail="Blood group is required")
    rows = await find_available_donors(db, blood_group, city, limit)
    return EligibleDonorListResponse(donors=[EligibleDonor.from_row(d, u) for d, u in rows])


@router.post("/complete-donation")
async def complete_donation_endpoint(
    body: CompleteDonationRequest,
    user: User = Depends(require_recipient),
    db: AsyncSession = Depends(get_session),
):
    """Record units donated by an accepted donor against one of the caller's requests."""
    request = await _owned(db, body.request_id, user)
    try:
        donor = await complete_donation(db, request, body.donor_id, body.units_donated)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    logger.info(
        "donation_completed",
        request_id=request.id,
        donor_id=donor.id,
        units=body.units_donated,
        status=request.status,
    )
    response = BloodRequestResponse.from_request(request)

    await notify_users(
        db,
        [donor.user_id],
        "donation_completed",
        "Donation Completed",
        f"Thank you! Your donation of {body.units_donated} unit(s) for {request.patient_name} has been recorded",
        priority="medium",
        data={"request_id": request.id, "units_donated": body.units_donated},
    )

    return {"message": "Donation marked as completed", "request": response}
