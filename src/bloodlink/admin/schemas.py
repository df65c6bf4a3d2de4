"""Pydantic schemas for admin endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from bloodlink.auth.schemas import UserResponse
from bloodlink.blood_requests.schemas import BloodRequestResponse
from bloodlink.db.models import Donor, User
from bloodlink.pagination import PaginationMeta


class UserStatusRequest(BaseModel):
    is_active: bool


class VerificationRequest(BaseModel):
    is_verified: bool


class AnnouncementRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    target_role: Literal["donor", "recipient", "all"] = "all"


class AdminDonorResponse(BaseModel):
    """Donor row joined with its account, as shown in the admin console."""

    id: int
    user_id: int
    name: str
    email: str
    phone: str | None = None
    department: str | None = None
    blood_group: str
    age: int
    weight: float
    city: str | None = None
    is_available: bool
    is_eligible: bool
    is_verified: bool
    verification_date: datetime | None = None
    total_donations: int
    badges: list[str] = []
    last_donation_date: datetime | None = None
    created_at: datetime

    @classmethod
    def from_row(cls, donor: Donor, user: User) -> AdminDonorResponse:
        return cls(
            id=donor.id,
            user_id=user.id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            department=user.department,
            blood_group=donor.blood_group,
            age=donor.age,
            weight=donor.weight,
            city=donor.city,
            is_available=donor.is_available,
            is_eligible=donor.is_eligible,
            is_verified=donor.is_verified,
            verification_date=donor.verification_date,
            total_donations=donor.total_donations or 0,
            badges=list(donor.badges or []),
            last_donation_date=donor.last_donation_date,
            created_at=donor.created_at,
        )


class UserListResponse(BaseModel):
    users: list[UserResponse]
    pagination: PaginationMeta


class DonorListResponse(BaseModel):
    donors: list[AdminDonorResponse]
    pagination: PaginationMeta


class RequestListResponse(BaseModel):
    requests: list[BloodRequestResponse]
    pagination: PaginationMeta


class DashboardStats(BaseModel):
    total_users: int
    total_donors: int
    verified_donors: int
    total_requests: int
    active_requests: int
    completed_requests: int
    total_camps: int
    upcoming_camps: int
    pending_claims: int


class DashboardResponse(BaseModel):
    stats: DashboardStats
    blood_group_stats: list[dict[str, Any]]
    urgency_stats: list[dict[str, Any]]
    monthly_trends: list[dict[str, Any]]
    recent_requests: list[BloodRequestResponse]
    recent_donors: list[AdminDonorResponse]


class AnalyticsResponse(BaseModel):
    period: int
    user_trends: list[dict[str, Any]]
    request_trends: list[dict[str, Any]]
    top_blood_groups: list[dict[str, Any]]
    success_rates: list[dict[str, Any]]
