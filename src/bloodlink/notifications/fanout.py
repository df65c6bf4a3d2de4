"""Best-effort notification fan-out.

Runs after the triggering change has been committed. A failure for one
recipient is logged and skipped; a failure to persist the batch is logged and
rolled back. Neither ever fails the triggering request.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bloodlink.db.models import Donor, User
from bloodlink.notifications.service import create_notification

logger = logging.getLogger(__name__)


async def notify_users(
    db: AsyncSession,
    user_ids: Iterable[int],
    type_: str,
    title: str,
    message: str,
    priority: str = "medium",
    data: dict[str, Any] | None = None,
) -> int:
    """Create one notification per distinct user and commit. Returns how many were stored."""
    staged = 0
    for user_id in dict.fromkeys(user_ids):
        try:
            await create_notification(
                db, user_id, type_, title, message, priority, data, flush=False,
            )
            staged += 1
        except Exception:
            logger.exception("Failed to create %s notification for user %s", type_, user_id)

    if staged == 0:
        return 0

    try:
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Failed to persist %d %s notifications", staged, type_)
        await db.rollback()
        return 0
    return staged


async def donor_user_ids(db: AsyncSession, donor_ids: Iterable[int]) -> list[int]:
    """Resolve donor profile ids to their owning user ids."""
    ids = list(donor_ids)
    if not ids:
        return []
    result = await db.execute(select(Donor.user_id).where(Donor.id.in_(ids)))
    return [row[0] for row in result]


async def verified_donor_user_ids(db: AsyncSession) -> list[int]:
    result = await db.execute(select(Donor.user_id).where(Donor.is_verified.is_(True)))
    return [row[0] for row in result]


async def active_user_ids(db: AsyncSession, role: str | None = None) -> list[int]:
    """Ids of active users, optionally only those holding `role`."""
    result = await db.execute(select(User.id, User.roles).where(User.is_active.is_(True)))
    return [uid for uid, roles in result if role is None or role in (roles or [])]
