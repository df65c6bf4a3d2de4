"""Admin router: /api/v1/admin/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bloodlink.admin.schemas import (
    AdminDonorResponse,
    AnalyticsResponse,
    AnnouncementRequest,
    DashboardResponse,
    DashboardStats,
    DonorListResponse,
    RequestListResponse,
    UserListResponse,
    UserStatusRequest,
    VerificationRequest,
)
from bloodlink.admin.service import (
    get_analytics,
    get_dashboard,
    list_donors,
    list_requests,
    list_users,
    set_donor_verification,
    set_request_verification,
    set_user_status,
)
from bloodlink.auth.dependencies import require_admin
from bloodlink.auth.schemas import UserResponse
from bloodlink.blood_requests.lifecycle import REQUEST_STATUSES
from bloodlink.blood_requests.schemas import BloodRequestResponse
from bloodlink.database import get_session
from bloodlink.db.models import User
from bloodlink.notifications.fanout import active_user_ids, notify_users
from bloodlink.pagination import page_meta
from bloodlink.validators import BloodGroup, Role, Urgency

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


def _verb(flag: bool) -> str:
    return "verified" if flag else "unverified"


# ---------------------------------------------------------------------------
# Dashboard and analytics
# ---------------------------------------------------------------------------


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    data = await get_dashboard(db)
    await db.commit()
    return DashboardResponse(
        stats=DashboardStats(**data["stats"]),
        blood_group_stats=data["blood_group_stats"],
        urgency_stats=data["urgency_stats"],
        monthly_trends=data["monthly_trends"],
        recent_requests=[BloodRequestResponse.from_request(r) for r in data["recent_requests"]],
        recent_donors=[AdminDonorResponse.from_row(d, u) for d, u in data["recent_donors"]],
    )


@router.get("/analytics", response_model=AnalyticsResponse)
async def analytics(
    period: int = Query(30, ge=1, le=365),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Per-day registrations and requests over the last `period` days."""
    return AnalyticsResponse(**await get_analytics(db, period))


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserListResponse)
async def users(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    role: Role | None = Query(None),
    is_active: bool | None = Query(None),
    search: str | None = Query(None, max_length=100),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    items, total = await list_users(db, role, is_active, search, page, per_page)
    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in items],
        pagination=page_meta(page, per_page, total),
    )


@router.put("/users/{user_id}/status")
async def update_user_status(
    user_id: int,
    body: UserStatusRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    try:
        user = await set_user_status(db, user_id, body.is_active, admin.id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    logger.info("user_status_changed", user_id=user.id, is_active=user.is_active, admin_id=admin.id)
    return {
        "message": f"User {'activated' if body.is_active else 'deactivated'} successfully",
        "user": UserResponse.model_validate(user),
    }


# ---------------------------------------------------------------------------
# Donors
# ---------------------------------------------------------------------------


@router.get("/donors", response_model=DonorListResponse)
async def donors(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    blood_group: BloodGroup | None = Query(None),
    city: str | None = Query(None, max_length=100),
    is_verified: bool | None = Query(None),
    is_available: bool | None = Query(None),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    rows, total = await list_donors(db, blood_group, city, is_verified, is_available, page, per_page)
    return DonorListResponse(
        donors=[AdminDonorResponse.from_row(d, u) for d, u in rows],
        pagination=page_meta(page, per_page, total),
    )


@router.put("/donors/{donor_id}/verify")
async def verify_donor(
    donor_id: int,
    body: VerificationRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Mark a donor profile verified or unverified and tell the donor."""
    try:
        donor = await set_donor_verification(db, donor_id, body.is_verified)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    logger.info("donor_verification_changed", donor_id=donor.id, is_verified=donor.is_verified, admin_id=admin.id)
    response = {
        "message": f"Donor {_verb(body.is_verified)} successfully",
        "donor": {"id": donor.id, "is_verified": donor.is_verified, "verification_date": donor.verification_date},
    }

    await notify_users(
        db,
        [donor.user_id],
        "system_alert",
        "Profile Verification",
        f"Your donor profile has been {_verb(body.is_verified)}",
        priority="medium",
        data={"donor_id": donor.id},
    )
    return response


# ---------------------------------------------------------------------------
# Blood requests
# ---------------------------------------------------------------------------


@router.get("/requests", response_model=RequestListResponse)
async def requests(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    status: str | None = Query(None),
    blood_group: BloodGroup | None = Query(None),
    urgency: Urgency | None = Query(None),
    city: str | None = Query(None, max_length=100),
    is_verified: bool | None = Query(None),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    if status is not None and status not in REQUEST_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
    items, total = await list_requests(db, status, blood_group, urgency, city, is_verified, page, per_page)
    await db.commit()
    return RequestListResponse(
        requests=[BloodRequestResponse.from_request(r) for r in items],
        pagination=page_meta(page, per_page, total),
    )


@router.put("/requests/{request_id}/verify")
async def verify_request(
    request_id: int,
    body: VerificationRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Mark a blood request verified or unverified and tell the requester."""
    try:
        request = await set_request_verification(db, request_id, body.is_verified, admin.id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    logger.info("request_verification_changed", request_id=request.id, is_verified=request.is_verified)
    response = BloodRequestResponse.from_request(request)

    await notify_users(
        db,
        [request.requester_id],
        "request_status_update",
        "Request Verification",
        f"Your blood request has been {_verb(body.is_verified)}",
        priority="medium",
        data={"request_id": request.id},
    )
    return {"message": f"Blood request {_verb(body.is_verified)} successfully", "request": response}


# ---------------------------------------------------------------------------
# Announcements
# ---------------------------------------------------------------------------


@router.post("/announcement")
async def announcement(
    body: AnnouncementRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Send a system alert to every active user, or only donors or recipients."""
    role = None if body.target_role == "all" else body.target_role
    recipients = await active_user_ids(db, role)
    sent = await notify_users(
        db,
        recipients,
        "system_alert",
        body.title,
        body.message,
        priority=body.priority,
        data={"announcement": True},
    )
    logger.info("announcement_sent", admin_id=admin.id, target_role=body.target_role, recipients=sent)
    return {"message": f"Announcement sent to {sent} users", "recipients": sent}
