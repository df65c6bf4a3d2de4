"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from bloodlink.validators import SelfServiceRole


class _EmailModel(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


# ---------------------------------------------------------------------------
# Registration / OTP
# ---------------------------------------------------------------------------


class RegisterRequest(_EmailModel):
    """Registration request. The account stays inactive until the OTP is verified."""

    name: str = Field(..., min_length=2, max_length=100)
    password: str = Field(..., min_length=1, max_length=128)
    phone: str = Field(..., min_length=7, max_length=20)
    department: str = Field(..., min_length=1, max_length=100)
    year: str | None = Field(None, max_length=10)
    role: SelfServiceRole = "donor"


class RegisterResponse(BaseModel):
    message: str
    require_verification: bool = True
    email: str


class VerifyOtpRequest(_EmailModel):
    otp: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")


class ResendOtpRequest(_EmailModel):
    pass


class LoginRequest(_EmailModel):
    password: str = Field(..., min_length=1, max_length=128)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class UpdateProfileRequest(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=100)
    phone: str | None = Field(None, min_length=7, max_length=20)
    department: str | None = Field(None, min_length=1, max_length=100)
    year: str | None = Field(None, max_length=10)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=1, max_length=128)


class AddRoleRequest(BaseModel):
    role: SelfServiceRole


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class RefreshRequest(BaseModel):
    refresh_token: str


class LogoutRequest(BaseModel):
    refresh_token: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    phone: str | None = None
    department: str | None = None
    year: str | None = None
    roles: list[str]
    is_active: bool
    email_verified: bool
    last_login: datetime | None = None
    created_at: datetime | None = None


class TokenResponse(BaseModel):
    """Token response returned after successful auth."""

    message: str = "Login successful"
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = 3600
    user: UserResponse
