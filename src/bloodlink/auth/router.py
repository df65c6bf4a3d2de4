"""Authentication router: /api/v1/auth/* endpoints."""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt as pyjwt
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from bloodlink.auth.dependencies import get_current_user
from bloodlink.auth.jwt import create_access_token, create_refresh_token, verify_token
from bloodlink.auth.password import PasswordStrengthError
from bloodlink.auth.schemas import (
    AddRoleRequest,
    ChangePasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    RegisterResponse,
    ResendOtpRequest,
    TokenResponse,
    UpdateProfileRequest,
    UserResponse,
    VerifyOtpRequest,
)
from bloodlink.auth.service import (
    add_role,
    authenticate_user,
    change_password,
    get_refresh_token,
    get_user_by_id,
    register_user,
    reissue_otp,
    revoke_all_tokens,
    revoke_refresh_token,
    rotate_refresh_token,
    store_refresh_token,
    update_profile,
    verify_otp,
)
from bloodlink.config import get_settings
from bloodlink.database import get_session
from bloodlink.db.models import User
from bloodlink.donors.schemas import DonorResponse
from bloodlink.donors.service import get_donor_by_user
from bloodlink.email.service import get_email_service
from bloodlink.redis_client import get_redis

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


async def _issue_tokens(
    db: AsyncSession,
    user: User,
    request: Request,
    message: str = "Login successful",
) -> TokenResponse:
    """Create access + refresh tokens and store refresh token hash."""
    settings = get_settings()
    token_id = str(uuid.uuid4())
    access_token = create_access_token(user.id, user.roles)
    refresh_token = create_refresh_token(user.id, token_id=token_id)

    await store_refresh_token(
        db,
        user_id=user.id,
        token_id=token_id,
        token_hash=hashlib.sha256(refresh_token.encode()).hexdigest(),
        expires_at=datetime.now(timezone.utc) + timedelta(days=settings.jwt_refresh_token_expire_days),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    await db.commit()

    return TokenResponse(
        message=message,
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
    )


async def _send_otp(user: User, otp: str, template_name: str) -> None:
    """Deliver an OTP. Failures are logged, never raised to the client."""
    settings = get_settings()
    try:
        email_service = get_email_service()
        await email_service.send_template(
            to=user.email,
            template_name=template_name,
            context={"name": user.name, "otp": otp, "expires_minutes": settings.otp_ttl_minutes},
        )
    except Exception:
        logger.exception("otp_email_failed", user_id=user.id, template=template_name)


# ---------------------------------------------------------------------------
# Registration and verification
# ---------------------------------------------------------------------------


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),
) -> RegisterResponse:
    """Register and email a 6-digit verification code. No tokens until verified."""
    try:
        user, otp = await register_user(
            db,
            name=body.name,
            email=body.email,
            password=body.password,
            role=body.role,
            phone=body.phone,
            department=body.department,
            year=body.year,
        )
    except PasswordStrengthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ValueError as e:
        detail = str(e)
        if "already registered" in detail.lower():
            raise HTTPException(status_code=409, detail=detail) from e
        raise HTTPException(status_code=400, detail=detail) from e
    await db.commit()

    await _send_otp(user, otp, "registration_otp")

    return RegisterResponse(
        message="Registration successful. Please check your email for the verification code.",
        require_verification=True,
        email=user.email,
    )


@router.post("/verify-otp", response_model=TokenResponse)
async def verify_otp_endpoint(
    body: VerifyOtpRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Verify the emailed code, activate the account and issue tokens."""
    try:
        user = await verify_otp(db, body.email, body.otp)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return await _issue_tokens(db, user, request, message="Email verified successfully")


@router.post("/resend-otp")
async def resend_otp_endpoint(
    body: ResendOtpRequest,
    db: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis),  # type: ignore[assignment]
) -> dict[str, str]:
    """Issue a replacement code. Limited to one per cooldown window per address."""
    settings = get_settings()
    cooldown_key = f"otp_resend:{body.email}"
    if await redis.get(cooldown_key):
        raise HTTPException(status_code=429, detail="Please wait before requesting another code")

    try:
        user, otp = await reissue_otp(db, body.email)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    await redis.set(cooldown_key, "1", ex=settings.otp_resend_cooldown_seconds)

    await _send_otp(user, otp, "resend_otp")
    return {"message": "A new verification code has been sent", "email": user.email}


# ---------------------------------------------------------------------------
# Login and tokens
# ---------------------------------------------------------------------------


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis),  # type: ignore[assignment]
) -> TokenResponse:
    """Login with email + password."""
    try:
        user = await authenticate_user(db, redis, body.email, body.password)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except PermissionError as e:
        detail = str(e)
        if "locked" in detail.lower():
            raise HTTPException(status_code=429, detail=detail) from e
        raise HTTPException(status_code=403, detail=detail) from e

    return await _issue_tokens(db, user, request)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    body: RefreshRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Rotate refresh token."""
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
    except pyjwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    jti = payload.get("jti")
    if not jti:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    old_token = await get_refresh_token(db, jti)
    if old_token is None:
        raise HTTPException(status_code=401, detail="Refresh token not found")
    if old_token.is_revoked:
        # Reuse of a rotated token: revoke the whole family.
        await revoke_all_tokens(db, old_token.user_id)
        await db.commit()
        raise HTTPException(status_code=401, detail="Refresh token has been revoked")

    user = await get_user_by_id(db, old_token.user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found")

    settings = get_settings()
    new_token_id = str(uuid.uuid4())
    new_access = create_access_token(user.id, user.roles)
    new_refresh = create_refresh_token(user.id, token_id=new_token_id)

    await rotate_refresh_token(
        db,
        old_token=old_token,
        new_token_id=new_token_id,
        new_token_hash=hashlib.sha256(new_refresh.encode()).hexdigest(),
        new_expires_at=datetime.now(timezone.utc) + timedelta(days=settings.jwt_refresh_token_expire_days),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    await db.commit()

    return TokenResponse(
        message="Token refreshed",
        access_token=new_access,
        refresh_token=new_refresh,
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
    )


@router.post("/logout")
async def logout(
    body: LogoutRequest,
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Revoke a refresh token."""
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
    except pyjwt.InvalidTokenError:
        logger.info("logout_with_invalid_token")
    else:
        jti = payload.get("jti")
        if jti:
            await revoke_refresh_token(db, jti)
            await db.commit()

    return {"message": "Logged out"}


# ---------------------------------------------------------------------------
# Current user
# ---------------------------------------------------------------------------


@router.get("/me")
async def me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Current user plus donor profile, if one exists."""
    donor = await get_donor_by_user(db, user.id)
    return {
        "user": UserResponse.model_validate(user),
        "donor": DonorResponse.from_donor(donor) if donor else None,
    }


@router.put("/profile")
async def update_profile_endpoint(
    body: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Update name, phone, department or year."""
    await update_profile(db, user, body.model_dump(exclude_unset=True))
    await db.commit()
    return {"message": "Profile updated successfully", "user": UserResponse.model_validate(user)}


@router.post("/change-password")
async def change_password_endpoint(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Change password and revoke every refresh token."""
    try:
        await change_password(db, user, body.current_password, body.new_password)
    except PasswordStrengthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except PermissionError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    await db.commit()
    return {"message": "Password changed successfully"}


@router.post("/add-role")
async def add_role_endpoint(
    body: AddRoleRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Become a donor or recipient. Returns fresh tokens carrying the new role."""
    try:
        await add_role(db, user, body.role)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return await _issue_tokens(db, user, request, message=f"{body.role.capitalize()} role added successfully")
