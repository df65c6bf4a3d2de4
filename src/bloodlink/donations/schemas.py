"""Pydantic schemas for donation verification claims."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from bloodlink.validators import UTCDatetime


class ClaimCreate(BaseModel):
    donation_date: UTCDatetime
    location: str | None = Field(None, max_length=300)
    notes: str | None = Field(None, max_length=1000)
    camp_id: int | None = None


class ClaimRejectRequest(BaseModel):
    rejection_reason: str = Field(..., min_length=1, max_length=1000)


class ClaimResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    donor_id: int
    user_id: int
    donation_date: datetime
    status: str
    camp_id: int | None = None
    location: str | None = None
    notes: str | None = None
    rejection_reason: str | None = None
    verified_by_id: int | None = None
    verified_at: datetime | None = None
    created_at: datetime


class ClaimantInfo(BaseModel):
    name: str
    email: str
    phone: str | None = None
    blood_group: str


class PendingClaimResponse(ClaimResponse):
    claimant: ClaimantInfo


class ClaimListResponse(BaseModel):
    requests: list[ClaimResponse]


class PendingClaimListResponse(BaseModel):
    requests: list[PendingClaimResponse]
