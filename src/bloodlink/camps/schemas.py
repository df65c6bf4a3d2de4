"""Pydantic schemas for donation camp endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

from bloodlink.db.models import DonationCamp
from bloodlink.pagination import PaginationMeta
from bloodlink.validators import PINCODE_PATTERN, TIME_PATTERN, BloodGroup, UTCDatetime

CampStatus = Literal["scheduled", "ongoing", "paused", "completed", "cancelled"]


class CampLocation(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    address: str = Field(..., min_length=1, max_length=300)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    pincode: str = Field(..., pattern=PINCODE_PATTERN)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)


class CampRequirements(BaseModel):
    min_age: int = Field(18, ge=16, le=100)
    max_age: int = Field(65, ge=16, le=100)
    min_weight: float = Field(45, ge=30, le=200)
    required_documents: list[str] = []


class CampContactInfo(BaseModel):
    coordinator_name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=7, max_length=20)
    email: EmailStr | None = None


class CampCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    location: CampLocation
    start_date: UTCDatetime
    end_date: UTCDatetime
    start_time: str = Field(..., pattern=TIME_PATTERN)
    end_time: str = Field(..., pattern=TIME_PATTERN)
    max_donors: int = Field(100, ge=1, le=10000)
    requirements: CampRequirements = Field(default_factory=CampRequirements)
    contact_info: CampContactInfo
    special_instructions: str | None = Field(None, max_length=1000)
    target_blood_groups: list[BloodGroup] = []
    is_public: bool = True


class CampUpdate(BaseModel):
    """Partial update. Nested blocks replace the stored values wholesale."""

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, min_length=1, max_length=2000)
    location: CampLocation | None = None
    start_date: UTCDatetime | None = None
    end_date: UTCDatetime | None = None
    start_time: str | None = Field(None, pattern=TIME_PATTERN)
    end_time: str | None = Field(None, pattern=TIME_PATTERN)
    max_donors: int | None = Field(None, ge=1, le=10000)
    requirements: CampRequirements | None = None
    contact_info: CampContactInfo | None = None
    special_instructions: str | None = Field(None, max_length=1000)
    target_blood_groups: list[BloodGroup] | None = None
    is_public: bool | None = None
    status: CampStatus | None = None


class CampRegisterRequest(BaseModel):
    slot_time: str | None = Field(None, pattern=TIME_PATTERN)


class CampRegistrationResponse(BaseModel):
    donor_id: int
    registered_at: datetime
    status: str
    slot_time: str | None = None


class CampResponse(BaseModel):
    id: int
    title: str
    description: str
    organizer_id: int
    location: CampLocation
    start_date: datetime
    end_date: datetime
    start_time: str
    end_time: str
    max_donors: int
    status: str
    requirements: CampRequirements
    contact_info: CampContactInfo
    special_instructions: str | None = None
    is_public: bool
    target_blood_groups: list[str] = []
    total_donations: int
    total_units: int
    registered_count: int
    available_slots: int
    is_registration_open: bool
    registrations: list[CampRegistrationResponse] = []
    created_at: datetime

    @classmethod
    def from_camp(cls, camp: DonationCamp, is_registration_open: bool) -> CampResponse:
        return cls(
            id=camp.id,
            title=camp.title,
            description=camp.description,
            organizer_id=camp.organizer_id,
            location=CampLocation.model_construct(
                name=camp.location_name,
                address=camp.address,
                city=camp.city,
                state=camp.state,
                pincode=camp.pincode,
                latitude=camp.latitude,
                longitude=camp.longitude,
            ),
            start_date=camp.start_date,
            end_date=camp.end_date,
            start_time=camp.start_time,
            end_time=camp.end_time,
            max_donors=camp.max_donors,
            status=camp.status,
            requirements=CampRequirements.model_construct(
                min_age=camp.min_age,
                max_age=camp.max_age,
                min_weight=camp.min_weight,
                required_documents=list(camp.required_documents or []),
            ),
            contact_info=CampContactInfo.model_construct(
                coordinator_name=camp.coordinator_name,
                phone=camp.coordinator_phone,
                email=camp.coordinator_email,
            ),
            special_instructions=camp.special_instructions,
            is_public=camp.is_public,
            target_blood_groups=list(camp.target_blood_groups or []),
            total_donations=camp.total_donations,
            total_units=camp.total_units,
            registered_count=len(camp.registrations),
            available_slots=camp.available_slots,
            is_registration_open=is_registration_open,
            registrations=[
                CampRegistrationResponse(
                    donor_id=r.donor_id,
                    registered_at=r.registered_at,
                    status=r.status,
                    slot_time=r.slot_time,
                )
                for r in camp.registrations
            ],
            created_at=camp.created_at,
        )


class CampListResponse(BaseModel):
    camps: list[CampResponse]
    pagination: PaginationMeta
