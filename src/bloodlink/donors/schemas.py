"""Pydantic schemas for donor endpoints."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Literal

from pydantic import BaseModel, Field

from bloodlink.blood_requests.schemas import BloodRequestResponse
from bloodlink.db.models import Donor, User
from bloodlink.matching.eligibility import DONATION_INTERVAL_DAYS, MIN_WEIGHT_KG
from bloodlink.pagination import PaginationMeta
from bloodlink.validators import PINCODE_PATTERN, BloodGroup


class MedicalHistory(BaseModel):
    has_diabetes: bool = False
    has_hypertension: bool = False
    has_heart_disease: bool = False
    has_hepatitis: bool = False
    has_hiv: bool = False
    other_conditions: str | None = Field(None, max_length=500)


class EmergencyContact(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=7, max_length=20)
    relationship: str = Field(..., min_length=1, max_length=50)


class DonorLocation(BaseModel):
    address: str = Field(..., min_length=1, max_length=256)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    pincode: str = Field(..., pattern=PINCODE_PATTERN)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)


class DonorProfileRequest(BaseModel):
    """Create or replace the caller's donor profile."""

    blood_group: BloodGroup
    date_of_birth: date
    weight: float = Field(..., ge=MIN_WEIGHT_KG, le=300)
    height: float = Field(..., ge=100, le=250)
    medical_history: MedicalHistory = Field(default_factory=MedicalHistory)
    emergency_contact: EmergencyContact
    location: DonorLocation
    availability_notes: str | None = Field(None, max_length=500)


class AvailabilityRequest(BaseModel):
    is_available: bool
    availability_notes: str | None = Field(None, max_length=500)


class RespondRequest(BaseModel):
    request_id: int
    action: Literal["accept", "decline"]


class DonorResponse(BaseModel):
    id: int
    user_id: int
    blood_group: str
    date_of_birth: date
    age: int
    weight: float
    height: float | None = None
    medical_history: MedicalHistory
    emergency_contact: EmergencyContact | None = None
    location: DonorLocation | None = None
    last_donation_date: datetime | None = None
    next_eligible_date: datetime | None = None
    is_available: bool
    availability_notes: str | None = None
    is_eligible: bool
    is_verified: bool
    total_donations: int
    badges: list[str] = []
    created_at: datetime

    @classmethod
    def from_donor(cls, donor: Donor) -> DonorResponse:
        next_eligible = None
        if donor.last_donation_date is not None:
            next_eligible = donor.last_donation_date + timedelta(days=DONATION_INTERVAL_DAYS)

        contact = None
        if donor.emergency_contact_name:
            contact = EmergencyContact.model_construct(
                name=donor.emergency_contact_name,
                phone=donor.emergency_contact_phone or "",
                relationship=donor.emergency_contact_relationship or "",
            )
        location = None
        if donor.city:
            location = DonorLocation.model_construct(
                address=donor.address or "",
                city=donor.city,
                state=donor.state or "",
                pincode=donor.pincode or "",
                latitude=donor.latitude,
                longitude=donor.longitude,
            )

        return cls(
            id=donor.id,
            user_id=donor.user_id,
            blood_group=donor.blood_group,
            date_of_birth=donor.date_of_birth,
            age=donor.age,
            weight=donor.weight,
            height=donor.height,
            medical_history=MedicalHistory(
                has_diabetes=donor.has_diabetes,
                has_hypertension=donor.has_hypertension,
                has_heart_disease=donor.has_heart_disease,
                has_hepatitis=donor.has_hepatitis,
                has_hiv=donor.has_hiv,
                other_conditions=donor.other_conditions,
            ),
            emergency_contact=contact,
            location=location,
            last_donation_date=donor.last_donation_date,
            next_eligible_date=next_eligible,
            is_available=donor.is_available,
            availability_notes=donor.availability_notes,
            is_eligible=donor.is_eligible,
            is_verified=donor.is_verified,
            total_donations=donor.total_donations or 0,
            badges=list(donor.badges or []),
            created_at=donor.created_at,
        )


class EligibleDonor(BaseModel):
    """Public view of a donor; medical and emergency details are withheld."""

    donor_id: int
    name: str
    email: str
    phone: str | None = None
    department: str | None = None
    blood_group: str
    city: str | None = None
    total_donations: int
    last_donation_date: datetime | None = None

    @classmethod
    def from_row(cls, donor: Donor, user: User) -> EligibleDonor:
        return cls(
            donor_id=donor.id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            department=user.department,
            blood_group=donor.blood_group,
            city=donor.city,
            total_donations=donor.total_donations or 0,
            last_donation_date=donor.last_donation_date,
        )


class EligibleDonorListResponse(BaseModel):
    donors: list[EligibleDonor]


class CompatibleRequestListResponse(BaseModel):
    requests: list[BloodRequestResponse]
    pagination: PaginationMeta


class DonationStats(BaseModel):
    total_donations: int
    last_donation: datetime | None = None
    badges: list[str] = []


class DonationHistoryResponse(BaseModel):
    history: list[BloodRequestResponse]
    pagination: PaginationMeta
    stats: DonationStats
