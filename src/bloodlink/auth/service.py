"""
Authentication business logic.

Handles registration with email OTP verification, login with account lockout,
refresh-token rotation and self-service profile/role changes.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select, update

from bloodlink.auth.password import (
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from bloodlink.config import get_settings
from bloodlink.db.models import RefreshToken, User

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

PROFILE_FIELDS = ("name", "phone", "department", "year")


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower().strip()))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# One-time passcodes
# ---------------------------------------------------------------------------


def generate_otp() -> str:
    """Six random digits, zero padded."""
    return f"{secrets.randbelow(1_000_000):06d}"


def hash_otp(code: str) -> str:
    return hashlib.sha256(code.encode()).hexdigest()


def issue_otp(user: User, now: datetime | None = None) -> str:
    """Attach a fresh OTP to the user. Returns the raw code for delivery; only its hash is stored."""
    settings = get_settings()
    now = now or datetime.now(timezone.utc)
    code = generate_otp()
    user.otp_hash = hash_otp(code)
    user.otp_expires_at = now + timedelta(minutes=settings.otp_ttl_minutes)
    return code


async def verify_otp(db: AsyncSession, email: str, code: str, now: datetime | None = None) -> User:
    """
    Check an OTP and mark the email verified.

    Raises:
        ValueError: unknown email, already verified, no pending code, wrong or expired code.
    """
    now = now or datetime.now(timezone.utc)
    user = await get_user_by_email(db, email)
    if user is None:
        msg = "User not found"
        raise ValueError(msg)
    if user.email_verified:
        msg = "Email is already verified"
        raise ValueError(msg)
    if not user.otp_hash or user.otp_expires_at is None:
        msg = "No verification code pending. Request a new one."
        raise ValueError(msg)
    if not secrets.compare_digest(user.otp_hash, hash_otp(code.strip())):
        msg = "Invalid verification code"
        raise ValueError(msg)
    if user.otp_expires_at < now:
        msg = "Verification code has expired"
        raise ValueError(msg)

    user.email_verified = True
    user.otp_hash = None
    user.otp_expires_at = None
    user.last_login = now
    await db.flush()
    logger.info("email_verified", user_id=user.id)
    return user


async def reissue_otp(db: AsyncSession, email: str) -> tuple[User, str]:
    """Replace a pending OTP for an unverified user."""
    user = await get_user_by_email(db, email)
    if user is None:
        msg = "User not found"
        raise LookupError(msg)
    if user.email_verified:
        msg = "Email is already verified"
        raise ValueError(msg)
    code = issue_otp(user)
    await db.flush()
    return user, code


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


async def register_user(
    db: AsyncSession,
    name: str,
    email: str,
    password: str,
    role: str,
    phone: str | None = None,
    department: str | None = None,
    year: str | None = None,
) -> tuple[User, str]:
    """
    Create an unverified user holding `role` and a pending OTP.

    Returns:
        Tuple of (user, raw_otp).

    Raises:
        ValueError: If the email is taken or the password is weak.
    """
    validate_password_strength(password)

    existing = await get_user_by_email(db, email)
    if existing is not None:
        msg = "Email already registered"
        raise ValueError(msg)

    user = User(
        name=name.strip(),
        email=email.lower().strip(),
        password_hash=hash_password(password),
        phone=phone,
        department=department,
        year=year,
        roles=[role],
        is_active=True,
        email_verified=False,
        created_at=datetime.now(timezone.utc),
    )
    code = issue_otp(user)
    db.add(user)
    await db.flush()
    logger.info("user_created", user_id=user.id, role=role)
    return user, code


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def authenticate_user(
    db: AsyncSession,
    redis: Redis,
    email: str,
    password: str,
) -> User:
    """
    Authenticate with email + password.

    Raises:
        ValueError: If credentials are invalid.
        PermissionError: If the account is locked, deactivated or unverified.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        msg = "Invalid email or password"
        raise ValueError(msg)

    if await check_account_lockout(redis, user.id):
        msg = "Account temporarily locked. Try again later."
        raise PermissionError(msg)

    if not verify_password(password, user.password_hash):
        await increment_failed_login(redis, user.id)
        msg = "Invalid email or password"
        raise ValueError(msg)

    await clear_failed_login(redis, user.id)

    if not user.is_active:
        msg = "Account is deactivated"
        raise PermissionError(msg)
    if not user.email_verified:
        msg = "Email verification required. Please verify your email before logging in."
        raise PermissionError(msg)

    user.last_login = datetime.now(timezone.utc)
    if check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        logger.info("password_rehashed", user_id=user.id)
    await db.flush()
    return user


# ---------------------------------------------------------------------------
# Account lockout
# ---------------------------------------------------------------------------


async def check_account_lockout(redis: Redis, user_id: int) -> bool:
    """Check if the account is locked due to too many failed login attempts."""
    settings = get_settings()
    count_str = await redis.get(f"login_attempts:{user_id}")
    if count_str is None:
        return False
    return int(count_str) >= settings.account_lockout_threshold


async def increment_failed_login(redis: Redis, user_id: int) -> int:
    """Increment failed login counter. Returns the new count."""
    settings = get_settings()
    key = f"login_attempts:{user_id}"
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, settings.account_lockout_duration_minutes * 60)
    return int(count)


async def clear_failed_login(redis: Redis, user_id: int) -> None:
    await redis.delete(f"login_attempts:{user_id}")


# ---------------------------------------------------------------------------
# Profile and roles
# ---------------------------------------------------------------------------


async def update_profile(db: AsyncSession, user: User, updates: dict[str, Any]) -> User:
    """Apply the whitelisted profile fields present in `updates`."""
    for field in PROFILE_FIELDS:
        if field in updates and updates[field] is not None:
            setattr(user, field, updates[field])
    await db.flush()
    return user


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
    """
    Raises:
        PermissionError: If the current password is wrong.
        PasswordStrengthError: If the new password is weak.
    """
    if not verify_password(current_password, user.password_hash):
        msg = "Current password is incorrect"
        raise PermissionError(msg)
    validate_password_strength(new_password)
    user.password_hash = hash_password(new_password)
    await revoke_all_tokens(db, user.id)
    await db.flush()


async def add_role(db: AsyncSession, user: User, role: str) -> User:
    """Grant a self-service role (donor or recipient)."""
    if user.has_role(role):
        msg = f"You already have the {role} role"
        raise ValueError(msg)
    # Reassign so the JSON column is flagged dirty.
    user.roles = [*user.roles, role]
    await db.flush()
    logger.info("role_added", user_id=user.id, role=role)
    return user


# ---------------------------------------------------------------------------
# Refresh tokens
# ---------------------------------------------------------------------------


async def store_refresh_token(
    db: AsyncSession,
    user_id: int,
    token_id: str,
    token_hash: str,
    expires_at: datetime,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> RefreshToken:
    """Store a refresh token hash in the database."""
    token = RefreshToken(
        id=token_id,
        user_id=user_id,
        token_hash=token_hash,
        issued_at=datetime.now(timezone.utc),
        expires_at=expires_at,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(token)
    await db.flush()
    return token


async def get_refresh_token(db: AsyncSession, token_id: str) -> RefreshToken | None:
    """Look up a refresh token by its JTI."""
    result = await db.execute(select(RefreshToken).where(RefreshToken.id == token_id))
    return result.scalar_one_or_none()


async def rotate_refresh_token(
    db: AsyncSession,
    old_token: RefreshToken,
    new_token_id: str,
    new_token_hash: str,
    new_expires_at: datetime,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> RefreshToken:
    """Revoke old token and create a new one (rotation)."""
    old_token.is_revoked = True
    old_token.revoked_at = datetime.now(timezone.utc)
    old_token.replaced_by = new_token_id

    return await store_refresh_token(
        db,
        user_id=old_token.user_id,
        token_id=new_token_id,
        token_hash=new_token_hash,
        expires_at=new_expires_at,
        ip_address=ip_address,
        user_agent=user_agent,
    )


async def revoke_refresh_token(db: AsyncSession, token_id: str) -> bool:
    """Revoke a specific refresh token. Returns True if found."""
    token = await get_refresh_token(db, token_id)
    if token is None:
        return False
    token.is_revoked = True
    token.revoked_at = datetime.now(timezone.utc)
    await db.flush()
    return True


async def revoke_all_tokens(db: AsyncSession, user_id: int) -> int:
    """Revoke all refresh tokens for a user. Returns count revoked."""
    result = await db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id)
        .where(RefreshToken.is_revoked == False)  # noqa: E712
        .values(is_revoked=True, revoked_at=datetime.now(timezone.utc))
    )
    await db.flush()
    return result.rowcount  # type: ignore[return-value]
