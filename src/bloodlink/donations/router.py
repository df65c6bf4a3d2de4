"""Donation verification router: /api/v1/donation-requests/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from bloodlink.auth.dependencies import require_admin, require_donor
from bloodlink.database import get_session
from bloodlink.db.models import User
from bloodlink.donations.schemas import (
    ClaimantInfo,
    ClaimCreate,
    ClaimListResponse,
    ClaimRejectRequest,
    ClaimResponse,
    PendingClaimListResponse,
    PendingClaimResponse,
)
from bloodlink.donations.service import (
    approve_claim,
    create_claim,
    list_donor_claims,
    list_pending_claims,
    reject_claim,
)
from bloodlink.donors.service import require_donor_profile
from bloodlink.notifications.fanout import notify_users

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/donation-requests", tags=["Donation Verification"])


@router.post("", status_code=201)
async def submit_claim(
    body: ClaimCreate,
    user: User = Depends(require_donor),
    db: AsyncSession = Depends(get_session),
):
    """Submit a donation for admin verification."""
    try:
        donor = await require_donor_profile(db, user.id)
        claim = await create_claim(db, donor, body.donation_date, body.location, body.notes, body.camp_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    logger.info("donation_claim_submitted", claim_id=claim.id, donor_id=donor.id)
    return {
        "message": "Donation verification request submitted successfully",
        "donation_request": ClaimResponse.model_validate(claim),
    }


@router.get("/my-requests", response_model=ClaimListResponse)
async def my_claims(
    user: User = Depends(require_donor),
    db: AsyncSession = Depends(get_session),
):
    try:
        donor = await require_donor_profile(db, user.id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    claims = await list_donor_claims(db, donor.id)
    return ClaimListResponse(requests=[ClaimResponse.model_validate(c) for c in claims])


@router.get("/pending", response_model=PendingClaimListResponse)
async def pending_claims(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Claims awaiting review, oldest first."""
    rows = await list_pending_claims(db)
    return PendingClaimListResponse(
        requests=[
            PendingClaimResponse(
                **ClaimResponse.model_validate(claim).model_dump(),
                claimant=ClaimantInfo(
                    name=user.name,
                    email=user.email,
                    phone=user.phone,
                    blood_group=donor.blood_group,
                ),
            )
            for claim, user, donor in rows
        ]
    )


@router.put("/{claim_id}/verify")
async def verify_claim(
    claim_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Approve a claim. The donor's totals and badges are updated."""
    try:
        claim, new_badges = await approve_claim(db, claim_id, admin.id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    logger.info("donation_claim_approved", claim_id=claim.id, admin_id=admin.id, badges=new_badges)
    response = ClaimResponse.model_validate(claim)

    message = f"Your donation on {claim.donation_date:%d %b %Y} has been verified"
    if new_badges:
        message += f". New badges: {', '.join(new_badges)}"
    await notify_users(
        db,
        [claim.user_id],
        "donation_verified",
        "Donation Verified",
        message,
        priority="medium",
        data={"donation_request_id": claim.id, "badges": new_badges},
    )

    return {"message": "Request approved successfully", "request": response}


@router.put("/{claim_id}/reject")
async def reject_claim_endpoint(
    claim_id: int,
    body: ClaimRejectRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    try:
        claim = await reject_claim(db, claim_id, admin.id, body.rejection_reason)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    logger.info("donation_claim_rejected", claim_id=claim.id, admin_id=admin.id)
    response = ClaimResponse.model_validate(claim)

    await notify_users(
        db,
        [claim.user_id],
        "donation_rejected",
        "Donation Not Verified",
        f"Your donation claim was rejected: {claim.rejection_reason}",
        priority="medium",
        data={"donation_request_id": claim.id},
    )

    return {"message": "Request rejected", "request": response}
