"""Notification persistence and inbox queries.

Types:
  blood_request, donor_match, request_status_update, donation_completed,
  camp_announcement, donation_reminder, system_alert,
  donation_verified, donation_rejected
Priorities: low, medium, high, urgent
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bloodlink.db.models import Notification

logger = logging.getLogger(__name__)

VALID_TYPES = {
    "blood_request",
    "donor_match",
    "request_status_update",
    "donation_completed",
    "camp_announcement",
    "donation_reminder",
    "system_alert",
    "donation_verified",
    "donation_rejected",
}

VALID_PRIORITIES = {"low", "medium", "high", "urgent"}


async def create_notification(
    db: AsyncSession,
    user_id: int,
    type_: str,
    title: str,
    message: str,
    priority: str = "medium",
    data: dict[str, Any] | None = None,
    *,
    flush: bool = True,
) -> Notification:
    """Stage a notification for one user.

    With flush=False the row is only added to the session; fan-out uses this so
    a whole batch lands in one commit.
    """
    if type_ not in VALID_TYPES:
        raise ValueError(f"Invalid notification type: {type_}. Must be one of {sorted(VALID_TYPES)}")
    if priority not in VALID_PRIORITIES:
        raise ValueError(f"Invalid notification priority: {priority}")

    notification = Notification(
        user_id=user_id,
        type=type_,
        title=title,
        message=message,
        priority=priority,
        read=False,
        data=data or {},
        created_at=datetime.now(timezone.utc),
    )
    db.add(notification)
    if flush:
        await db.flush()
    return notification


async def get_notifications(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 20,
    unread_only: bool = False,
) -> tuple[list[Notification], int]:
    """Get user's notifications (paginated, most recent first)."""
    offset = (page - 1) * per_page

    filters = [Notification.user_id == user_id]
    if unread_only:
        filters.append(Notification.read.is_(False))

    total_result = await db.execute(select(func.count()).select_from(Notification).where(*filters))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Notification)
        .where(*filters)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def mark_as_read(db: AsyncSession, user_id: int, notification_id: int) -> bool:
    """Mark a single notification as read. Returns True if found."""
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(read=True, read_at=datetime.now(timezone.utc))
    )
    await db.flush()
    return result.rowcount > 0


async def mark_all_as_read(db: AsyncSession, user_id: int) -> int:
    """Mark all unread notifications as read. Returns count updated."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True, read_at=datetime.now(timezone.utc))
    )
    await db.flush()
    return result.rowcount


async def delete_notification(db: AsyncSession, user_id: int, notification_id: int) -> bool:
    result = await db.execute(
        delete(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    )
    await db.flush()
    return result.rowcount > 0


async def get_unread_count(db: AsyncSession, user_id: int) -> int:
    """Get count of unread notifications."""
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
    )
    return result.scalar_one()
