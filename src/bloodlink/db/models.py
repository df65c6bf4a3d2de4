"""ORM models for the BloodLink schema.

Embedded donor lists (request matches, request donations, camp registrations)
are child tables keyed by (parent, donor) so that "one entry per donor per
parent" is a database constraint rather than a scan.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Date,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bloodlink.db.base import Base, IdType, JSONType, UTCDateTime, utcnow
from bloodlink.matching.eligibility import compute_age, is_eligible

BLOOD_GROUPS = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-")
URGENCY_SCORES = {"low": 1, "medium": 2, "high": 3, "critical": 4}


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Account holder. `roles` is a JSON list drawn from donor/recipient/admin."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    year: Mapped[str | None] = mapped_column(String(10), nullable=True)
    roles: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    otp_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    otp_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    last_login: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, onupdate=utcnow)

    def has_role(self, role: str) -> bool:
        return role in (self.roles or [])


class RefreshToken(Base):
    """JWT refresh token tracking for revocation and rotation."""

    __tablename__ = "refresh_tokens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_revoked: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    replaced_by: Mapped[str | None] = mapped_column(String(36), nullable=True)


# ---------------------------------------------------------------------------
# Donors
# ---------------------------------------------------------------------------


class Donor(Base):
    """Donor profile, one per user. Age and eligibility are derived, never stored."""

    __tablename__ = "donors"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    blood_group: Mapped[str] = mapped_column(String(3), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    weight: Mapped[float] = mapped_column(Float, nullable=False)
    height: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Medical history
    has_diabetes: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    has_hypertension: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    has_heart_disease: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    has_hepatitis: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    has_hiv: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    other_conditions: Mapped[str | None] = mapped_column(Text, nullable=True)

    last_donation_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    availability_notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    emergency_contact_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    emergency_contact_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    emergency_contact_relationship: Mapped[str | None] = mapped_column(String(50), nullable=True)

    address: Mapped[str | None] = mapped_column(String(256), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pincode: Mapped[str | None] = mapped_column(String(10), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    verification_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    total_donations: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    badges: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, onupdate=utcnow)

    @property
    def age(self) -> int:
        return compute_age(self.date_of_birth)

    @property
    def is_eligible(self) -> bool:
        return is_eligible(self)


# ---------------------------------------------------------------------------
# Blood requests
# ---------------------------------------------------------------------------


class BloodRequest(Base):
    """A recipient's request for units of a blood group."""

    __tablename__ = "blood_requests"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    requester_id: Mapped[int] = mapped_column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    patient_name: Mapped[str] = mapped_column(String(100), nullable=False)
    blood_group: Mapped[str] = mapped_column(String(3), nullable=False)
    units_required: Mapped[int] = mapped_column(Integer, nullable=False)
    urgency: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")

    hospital_name: Mapped[str] = mapped_column(String(200), nullable=False)
    hospital_address: Mapped[str] = mapped_column(String(300), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    pincode: Mapped[str] = mapped_column(String(10), nullable=False)

    contact_name: Mapped[str] = mapped_column(String(100), nullable=False)
    contact_phone: Mapped[str] = mapped_column(String(20), nullable=False)
    contact_relationship: Mapped[str] = mapped_column(String(50), nullable=False)

    required_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    total_units_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    verified_by_id: Mapped[int | None] = mapped_column(IdType, ForeignKey("users.id"), nullable=True)
    verification_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_by_id: Mapped[int | None] = mapped_column(IdType, ForeignKey("users.id"), nullable=True)
    updated_by_id: Mapped[int | None] = mapped_column(IdType, ForeignKey("users.id"), nullable=True)

    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, onupdate=utcnow)

    matches: Mapped[list[RequestMatch]] = relationship(
        "RequestMatch",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RequestMatch.id",
    )
    donations: Mapped[list[RequestDonation]] = relationship(
        "RequestDonation",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RequestDonation.id",
    )

    @property
    def urgency_score(self) -> int:
        return URGENCY_SCORES.get(self.urgency, 2)


class RequestMatch(Base):
    """A donor's accept/decline response to a blood request."""

    __tablename__ = "request_matches"
    __table_args__ = (UniqueConstraint("request_id", "donor_id", name="uq_request_matches_request_donor"),)

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("blood_requests.id", ondelete="CASCADE"), nullable=False
    )
    donor_id: Mapped[int] = mapped_column(IdType, ForeignKey("donors.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    matched_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    responded_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)


class RequestDonation(Base):
    """Units actually donated against a blood request."""

    __tablename__ = "request_donations"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("blood_requests.id", ondelete="CASCADE"), nullable=False
    )
    donor_id: Mapped[int] = mapped_column(IdType, ForeignKey("donors.id", ondelete="CASCADE"), nullable=False)
    units_donated: Mapped[int] = mapped_column(Integer, nullable=False)
    donated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)


# ---------------------------------------------------------------------------
# Donation camps
# ---------------------------------------------------------------------------


class DonationCamp(Base):
    """A scheduled, capacity-bounded donation event."""

    __tablename__ = "donation_camps"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    organizer_id: Mapped[int] = mapped_column(IdType, ForeignKey("users.id"), nullable=False)

    location_name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str] = mapped_column(String(300), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    pincode: Mapped[str] = mapped_column(String(10), nullable=False)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    start_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    max_donors: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="scheduled")

    min_age: Mapped[int] = mapped_column(Integer, nullable=False, default=18)
    max_age: Mapped[int] = mapped_column(Integer, nullable=False, default=65)
    min_weight: Mapped[float] = mapped_column(Float, nullable=False, default=45)
    required_documents: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    coordinator_name: Mapped[str] = mapped_column(String(100), nullable=False)
    coordinator_phone: Mapped[str] = mapped_column(String(20), nullable=False)
    coordinator_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    special_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    target_blood_groups: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    total_donations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_units: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_by_id: Mapped[int | None] = mapped_column(IdType, ForeignKey("users.id"), nullable=True)
    updated_by_id: Mapped[int | None] = mapped_column(IdType, ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, onupdate=utcnow)

    registrations: Mapped[list[CampRegistration]] = relationship(
        "CampRegistration",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CampRegistration.id",
    )

    @property
    def available_slots(self) -> int:
        return max(0, self.max_donors - len(self.registrations))


class CampRegistration(Base):
    """A donor's slot on a camp roster."""

    __tablename__ = "camp_registrations"
    __table_args__ = (UniqueConstraint("camp_id", "donor_id", name="uq_camp_registrations_camp_donor"),)

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    camp_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("donation_camps.id", ondelete="CASCADE"), nullable=False
    )
    donor_id: Mapped[int] = mapped_column(IdType, ForeignKey("donors.id", ondelete="CASCADE"), nullable=False)
    registered_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="registered")
    slot_time: Mapped[str | None] = mapped_column(String(5), nullable=True)


# ---------------------------------------------------------------------------
# Donation verification claims
# ---------------------------------------------------------------------------


class DonationClaim(Base):
    """A donor's self-reported donation awaiting admin approval."""

    __tablename__ = "donation_claims"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    donor_id: Mapped[int] = mapped_column(IdType, ForeignKey("donors.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    donation_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    camp_id: Mapped[int | None] = mapped_column(
        IdType, ForeignKey("donation_camps.id", ondelete="SET NULL"), nullable=True
    )
    location: Mapped[str | None] = mapped_column(String(300), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_by_id: Mapped[int | None] = mapped_column(IdType, ForeignKey("users.id"), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class Notification(Base):
    """Persisted user notifications."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
