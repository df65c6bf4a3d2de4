"""Admin console queries and moderation actions.

Date bucketing (monthly trend, per-day analytics) is done in Python over the
selected rows so that the same code runs on PostgreSQL and SQLite.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bloodlink.auth.service import get_user_by_id, revoke_all_tokens
from bloodlink.blood_requests.lifecycle import OPEN_STATUSES
from bloodlink.blood_requests.service import expire_stale_requests, get_request
from bloodlink.db.models import BloodRequest, DonationCamp, DonationClaim, Donor, User
from bloodlink.pagination import count_rows, paginate
from bloodlink.validators import like_pattern

logger = logging.getLogger(__name__)

TREND_MONTHS = 6
RECENT_LIMIT = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _months_back(now: datetime, months: int) -> datetime:
    """First instant of the month `months` before the current one."""
    year, month = now.year, now.month - months
    while month <= 0:
        month += 12
        year -= 1
    return now.replace(year=year, month=month, day=1, hour=0, minute=0, second=0, microsecond=0)


async def _count(db: AsyncSession, model: Any, *filters: Any) -> int:
    result = await db.execute(select(func.count()).select_from(model).where(*filters))
    return result.scalar_one()


async def _group_counts(db: AsyncSession, column: Any, *filters: Any) -> list[dict[str, Any]]:
    """[{value, count}] grouped by `column`, most frequent first."""
    result = await db.execute(
        select(column, func.count()).where(*filters).group_by(column).order_by(func.count().desc(), column)
    )
    return [{"value": value, "count": count} for value, count in result.all()]


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


async def get_dashboard(db: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    """Headline counts, distributions, six-month trend and recent activity."""
    now = now or _utcnow()
    await expire_stale_requests(db, now)

    stats = {
        "total_users": await _count(db, User),
        "total_donors": await _count(db, Donor),
        "verified_donors": await _count(db, Donor, Donor.is_verified.is_(True)),
        "total_requests": await _count(db, BloodRequest),
        "active_requests": await _count(db, BloodRequest, BloodRequest.status.in_(sorted(OPEN_STATUSES))),
        "completed_requests": await _count(db, BloodRequest, BloodRequest.status == "completed"),
        "total_camps": await _count(db, DonationCamp),
        "upcoming_camps": await _count(db, DonationCamp, DonationCamp.status == "scheduled"),
        "pending_claims": await _count(db, DonationClaim, DonationClaim.status == "pending"),
    }

    since = _months_back(now, TREND_MONTHS)
    result = await db.execute(select(BloodRequest.created_at).where(BloodRequest.created_at >= since))
    per_month = Counter(created.strftime("%Y-%m") for (created,) in result.all())
    monthly_trends = [{"month": month, "count": per_month[month]} for month in sorted(per_month)]

    recent_requests = await db.execute(
        select(BloodRequest).order_by(BloodRequest.created_at.desc(), BloodRequest.id.desc()).limit(RECENT_LIMIT)
    )
    recent_donors = await db.execute(
        select(Donor, User)
        .join(User, User.id == Donor.user_id)
        .order_by(Donor.created_at.desc(), Donor.id.desc())
        .limit(RECENT_LIMIT)
    )

    return {
        "stats": stats,
        "blood_group_stats": await _group_counts(db, BloodRequest.blood_group),
        "urgency_stats": await _group_counts(db, BloodRequest.urgency),
        "monthly_trends": monthly_trends,
        "recent_requests": list(recent_requests.scalars().all()),
        "recent_donors": [(donor, user) for donor, user in recent_donors.all()],
    }


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def list_users(
    db: AsyncSession,
    role: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    page: int = 1,
    per_page: int = 10,
) -> tuple[list[User], int]:
    query = select(User)
    if role:
        # roles is a JSON array; its text form contains the quoted role name.
        query = query.where(cast(User.roles, String).like(f'%"{role}"%'))
    if is_active is not None:
        query = query.where(User.is_active.is_(is_active))
    if search:
        pattern = like_pattern(search)
        query = query.where(
            or_(
                User.name.ilike(pattern, escape="\\"),
                User.email.ilike(pattern, escape="\\"),
                User.department.ilike(pattern, escape="\\"),
            )
        )
    query = query.order_by(User.created_at.desc(), User.id.desc())
    return await paginate(db, query, page, per_page)


async def set_user_status(db: AsyncSession, user_id: int, is_active: bool, admin_id: int) -> User:
    """Activate or deactivate an account. Deactivation revokes its refresh tokens.

    Raises:
        LookupError: If the user does not exist.
        ValueError: If an admin tries to deactivate themselves.
    """
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise LookupError("User not found")
    if user.id == admin_id and not is_active:
        raise ValueError("You cannot deactivate your own account")

    user.is_active = is_active
    if not is_active:
        await revoke_all_tokens(db, user.id)
    await db.flush()
    logger.info("User %s %s by admin %s", user.id, "activated" if is_active else "deactivated", admin_id)
    return user


# ---------------------------------------------------------------------------
# Donors
# ---------------------------------------------------------------------------


async def list_donors(
    db: AsyncSession,
    blood_group: str | None = None,
    city: str | None = None,
    is_verified: bool | None = None,
    is_available: bool | None = None,
    page: int = 1,
    per_page: int = 10,
) -> tuple[list[tuple[Donor, User]], int]:
    query = select(Donor, User).join(User, User.id == Donor.user_id)
    if blood_group:
        query = query.where(Donor.blood_group == blood_group)
    if city:
        query = query.where(Donor.city.ilike(like_pattern(city), escape="\\"))
    if is_verified is not None:
        query = query.where(Donor.is_verified.is_(is_verified))
    if is_available is not None:
        query = query.where(Donor.is_available.is_(is_available))
    query = query.order_by(Donor.created_at.desc(), Donor.id.desc())

    total = await count_rows(db, query)
    result = await db.execute(query.offset((page - 1) * per_page).limit(per_page))
    return [(donor, user) for donor, user in result.all()], total


async def set_donor_verification(db: AsyncSession, donor_id: int, is_verified: bool) -> Donor:
    donor = await db.get(Donor, donor_id)
    if donor is None:
        raise LookupError("Donor not found")
    donor.is_verified = is_verified
    donor.verification_date = _utcnow() if is_verified else None
    await db.flush()
    logger.info("Donor %s %s", donor.id, "verified" if is_verified else "unverified")
    return donor


# ---------------------------------------------------------------------------
# Blood requests
# ---------------------------------------------------------------------------


async def list_requests(
    db: AsyncSession,
    status: str | None = None,
    blood_group: str | None = None,
    urgency: str | None = None,
    city: str | None = None,
    is_verified: bool | None = None,
    page: int = 1,
    per_page: int = 10,
    now: datetime | None = None,
) -> tuple[list[BloodRequest], int]:
    await expire_stale_requests(db, now)
    query = select(BloodRequest)
    if status:
        query = query.where(BloodRequest.status == status)
    if blood_group:
        query = query.where(BloodRequest.blood_group == blood_group)
    if urgency:
        query = query.where(BloodRequest.urgency == urgency)
    if city:
        query = query.where(BloodRequest.city.ilike(like_pattern(city), escape="\\"))
    if is_verified is not None:
        query = query.where(BloodRequest.is_verified.is_(is_verified))
    query = query.order_by(BloodRequest.created_at.desc(), BloodRequest.id.desc())
    return await paginate(db, query, page, per_page)


async def set_request_verification(
    db: AsyncSession,
    request_id: int,
    is_verified: bool,
    admin_id: int,
) -> BloodRequest:
    request = await get_request(db, request_id)
    request.is_verified = is_verified
    request.verified_by_id = admin_id
    request.verification_date = _utcnow() if is_verified else None
    await db.flush()
    logger.info("Blood request %s %s by admin %s", request.id, "verified" if is_verified else "unverified", admin_id)
    return request


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


async def get_analytics(db: AsyncSession, period_days: int = 30, now: datetime | None = None) -> dict[str, Any]:
    """Registrations and requests per day, top groups and per-group success rate."""
    now = now or _utcnow()
    since = now - timedelta(days=period_days)

    users = await db.execute(select(User.created_at, User.roles).where(User.created_at >= since))
    user_counts: Counter[tuple[str, str]] = Counter()
    for created, roles in users.all():
        for role in roles or ["none"]:
            user_counts[(created.strftime("%Y-%m-%d"), role)] += 1

    requests = await db.execute(
        select(BloodRequest.created_at, BloodRequest.status, BloodRequest.blood_group).where(
            BloodRequest.created_at >= since
        )
    )
    request_counts: Counter[tuple[str, str]] = Counter()
    group_totals: Counter[str] = Counter()
    group_completed: Counter[str] = Counter()
    for created, status, group in requests.all():
        request_counts[(created.strftime("%Y-%m-%d"), status)] += 1
        group_totals[group] += 1
        if status == "completed":
            group_completed[group] += 1

    success_rates = [
        {
            "blood_group": group,
            "total": total,
            "completed": group_completed[group],
            "success_rate": round(group_completed[group] / total * 100, 2),
        }
        for group, total in group_totals.items()
    ]
    success_rates.sort(key=lambda r: (-r["success_rate"], r["blood_group"]))

    return {
        "period": period_days,
        "user_trends": [
            {"date": day, "role": role, "count": count} for (day, role), count in sorted(user_counts.items())
        ],
        "request_trends": [
            {"date": day, "status": status, "count": count}
            for (day, status), count in sorted(request_counts.items())
        ],
        "top_blood_groups": [
            {"blood_group": group, "count": count}
            for group, count in sorted(group_totals.items(), key=lambda item: (-item[1], item[0]))
        ],
        "success_rates": success_rates,
    }
