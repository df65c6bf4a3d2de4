"""Admin account bootstrap, run once at startup."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from bloodlink.auth.password import hash_password
from bloodlink.auth.service import get_user_by_email
from bloodlink.config import get_settings
from bloodlink.db.models import User

logger = logging.getLogger(__name__)


async def seed_admin(db: AsyncSession) -> User | None:
    """Create the configured admin account, or grant admin to an existing one.

    Does nothing unless both ``admin_email`` and ``admin_password`` are set.
    Running it again with the same settings changes nothing.
    """
    settings = get_settings()
    if not settings.admin_email or not settings.admin_password:
        return None

    email = settings.admin_email.lower().strip()
    user = await get_user_by_email(db, email)
    if user is None:
        user = User(
            name=settings.admin_name,
            email=email,
            password_hash=hash_password(settings.admin_password),
            roles=["admin"],
            is_active=True,
            email_verified=True,
            created_at=datetime.now(timezone.utc),
        )
        db.add(user)
        await db.commit()
        logger.info("Created admin account %s", email)
        return user

    changed = False
    if not user.has_role("admin"):
        user.roles = [*(user.roles or []), "admin"]
        changed = True
    if not user.email_verified or not user.is_active:
        user.email_verified = True
        user.is_active = True
        changed = True
    if changed:
        await db.commit()
        logger.info("Granted admin access to %s", email)
    return user
