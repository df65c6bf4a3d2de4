"""Pydantic schemas for blood request endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from bloodlink.db.models import BloodRequest
from bloodlink.pagination import PaginationMeta
from bloodlink.validators import PINCODE_PATTERN, BloodGroup, Urgency, UTCDatetime


class ContactPerson(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=7, max_length=20)
    relationship: str = Field(..., min_length=1, max_length=50)


class BloodRequestCreate(BaseModel):
    patient_name: str = Field(..., min_length=2, max_length=100)
    blood_group: BloodGroup
    units_required: int = Field(..., ge=1, le=10)
    urgency: Urgency
    hospital_name: str = Field(..., min_length=1, max_length=200)
    hospital_address: str = Field(..., min_length=1, max_length=300)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    pincode: str = Field(..., pattern=PINCODE_PATTERN)
    contact_person: ContactPerson
    required_date: UTCDatetime
    description: str | None = Field(None, max_length=1000)


class BloodRequestUpdate(BaseModel):
    """Editable fields. Blood group is fixed once a request exists."""

    patient_name: str | None = Field(None, min_length=2, max_length=100)
    units_required: int | None = Field(None, ge=1, le=10)
    urgency: Urgency | None = None
    hospital_name: str | None = Field(None, min_length=1, max_length=200)
    hospital_address: str | None = Field(None, min_length=1, max_length=300)
    city: str | None = Field(None, min_length=1, max_length=100)
    state: str | None = Field(None, min_length=1, max_length=100)
    pincode: str | None = Field(None, pattern=PINCODE_PATTERN)
    contact_person: ContactPerson | None = None
    required_date: UTCDatetime | None = None
    description: str | None = Field(None, max_length=1000)


class CompleteDonationRequest(BaseModel):
    request_id: int
    donor_id: int
    units_donated: int = Field(..., ge=1, le=10)


class RequestMatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    donor_id: int
    status: str
    matched_at: datetime
    responded_at: datetime | None = None


class RequestDonationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    donor_id: int
    units_donated: int
    donated_at: datetime


class BloodRequestResponse(BaseModel):
    id: int
    requester_id: int
    patient_name: str
    blood_group: str
    units_required: int
    urgency: str
    urgency_score: int
    hospital_name: str
    hospital_address: str
    city: str
    state: str
    pincode: str
    contact_person: ContactPerson
    required_date: datetime
    description: str | None = None
    status: str
    total_units_received: int
    is_verified: bool
    expires_at: datetime
    created_at: datetime
    matches: list[RequestMatchResponse] = []
    donations: list[RequestDonationResponse] = []

    @classmethod
    def from_request(cls, request: BloodRequest) -> BloodRequestResponse:
        return cls(
            id=request.id,
            requester_id=request.requester_id,
            patient_name=request.patient_name,
            blood_group=request.blood_group,
            units_required=request.units_required,
            urgency=request.urgency,
            urgency_score=request.urgency_score,
            hospital_name=request.hospital_name,
            hospital_address=request.hospital_address,
            city=request.city,
            state=request.state,
            pincode=request.pincode,
            contact_person=ContactPerson(
                name=request.contact_name,
                phone=request.contact_phone,
                relationship=request.contact_relationship,
            ),
            required_date=request.required_date,
            description=request.description,
            status=request.status,
            total_units_received=request.total_units_received,
            is_verified=request.is_verified,
            expires_at=request.expires_at,
            created_at=request.created_at,
            matches=[RequestMatchResponse.model_validate(m) for m in request.matches],
            donations=[RequestDonationResponse.model_validate(d) for d in request.donations],
        )


class MatchedDonorContact(BaseModel):
    """Contact card for a donor who accepted, shown to the requester."""

    donor_id: int
    name: str
    phone: str | None = None
    blood_group: str
    status: str


class BloodRequestDetailResponse(BaseModel):
    request: BloodRequestResponse
    matched_donors: list[MatchedDonorContact] = []


class BloodRequestListResponse(BaseModel):
    requests: list[BloodRequestResponse]
    pagination: PaginationMeta
