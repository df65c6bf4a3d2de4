"""Initial schema: accounts, donors, blood requests, camps, claims, notifications.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_BLOOD_GROUPS = "('A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-')"


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Create all tables, indexes and check constraints."""
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(256), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("department", sa.String(100), nullable=True),
        sa.Column("year", sa.String(10), nullable=True),
        sa.Column("roles", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("email_verified", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("otp_hash", sa.String(128), nullable=True),
        _ts("otp_expires_at"),
        _ts("last_login"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        _ts("updated_at"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.execute("CREATE INDEX ix_users_roles ON users USING gin (roles)")

    # --- refresh_tokens ---
    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token_hash", sa.String(128), nullable=False),
        _ts("issued_at", nullable=False),
        _ts("expires_at", nullable=False),
        _ts("revoked_at"),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("is_revoked", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("replaced_by", sa.String(36), nullable=True),
    )
    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])

    # --- donors ---
    op.create_table(
        "donors",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
        ),
        sa.Column("blood_group", sa.String(3), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("height", sa.Float(), nullable=True),
        sa.Column("has_diabetes", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("has_hypertension", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("has_heart_disease", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("has_hepatitis", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("has_hiv", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("other_conditions", sa.Text(), nullable=True),
        _ts("last_donation_date"),
        sa.Column("is_available", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("availability_notes", sa.String(500), nullable=True),
        sa.Column("emergency_contact_name", sa.String(100), nullable=True),
        sa.Column("emergency_contact_phone", sa.String(20), nullable=True),
        sa.Column("emergency_contact_relationship", sa.String(50), nullable=True),
        sa.Column("address", sa.String(256), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("pincode", sa.String(10), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("is_verified", sa.Boolean(), server_default="false", nullable=False),
        _ts("verification_date"),
        sa.Column("total_donations", sa.Integer(), server_default="0", nullable=False),
        sa.Column("badges", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        _ts("updated_at"),
    )
    op.create_index("ix_donors_match", "donors", ["blood_group", "is_available", "is_verified"])
    op.create_index("ix_donors_city", "donors", ["city"])
    op.execute(f"ALTER TABLE donors ADD CONSTRAINT ck_donors_blood_group CHECK (blood_group IN {_BLOOD_GROUPS})")
    op.execute("ALTER TABLE donors ADD CONSTRAINT ck_donors_weight CHECK (weight >= 45 AND weight <= 300)")

    # --- blood_requests ---
    op.create_table(
        "blood_requests",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "requester_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("patient_name", sa.String(100), nullable=False),
        sa.Column("blood_group", sa.String(3), nullable=False),
        sa.Column("units_required", sa.Integer(), nullable=False),
        sa.Column("urgency", sa.String(10), server_default="medium", nullable=False),
        sa.Column("hospital_name", sa.String(200), nullable=False),
        sa.Column("hospital_address", sa.String(300), nullable=False),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("state", sa.String(100), nullable=False),
        sa.Column("pincode", sa.String(10), nullable=False),
        sa.Column("contact_name", sa.String(100), nullable=False),
        sa.Column("contact_phone", sa.String(20), nullable=False),
        sa.Column("contact_relationship", sa.String(50), nullable=False),
        _ts("required_date", nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("total_units_received", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_verified", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("verified_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=True),
        _ts("verification_date"),
        sa.Column("created_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("updated_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=True),
        _ts("expires_at", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        _ts("updated_at"),
    )
    op.create_index("ix_blood_requests_requester_id", "blood_requests", ["requester_id"])
    op.create_index("ix_blood_requests_open", "blood_requests", ["blood_group", "status", "expires_at"])
    op.execute(
        f"ALTER TABLE blood_requests ADD CONSTRAINT ck_blood_requests_blood_group CHECK (blood_group IN {_BLOOD_GROUPS})"
    )
    op.execute(
        "ALTER TABLE blood_requests ADD CONSTRAINT ck_blood_requests_units "
        "CHECK (units_required BETWEEN 1 AND 10)"
    )
    op.execute(
        "ALTER TABLE blood_requests ADD CONSTRAINT ck_blood_requests_urgency "
        "CHECK (urgency IN ('low', 'medium', 'high', 'critical'))"
    )
    op.execute(
        "ALTER TABLE blood_requests ADD CONSTRAINT ck_blood_requests_status "
        "CHECK (status IN ('pending', 'matched', 'in_progress', 'completed', 'cancelled', 'expired'))"
    )

    # --- request_matches / request_donations ---
    op.create_table(
        "request_matches",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "request_id", sa.BigInteger(), sa.ForeignKey("blood_requests.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("donor_id", sa.BigInteger(), sa.ForeignKey("donors.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("matched_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        _ts("responded_at"),
        sa.UniqueConstraint("request_id", "donor_id", name="uq_request_matches_request_donor"),
    )
    op.create_index("ix_request_matches_donor_id", "request_matches", ["donor_id"])
    op.execute(
        "ALTER TABLE request_matches ADD CONSTRAINT ck_request_matches_status "
        "CHECK (status IN ('pending', 'accepted', 'declined', 'completed'))"
    )

    op.create_table(
        "request_donations",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "request_id", sa.BigInteger(), sa.ForeignKey("blood_requests.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("donor_id", sa.BigInteger(), sa.ForeignKey("donors.id", ondelete="CASCADE"), nullable=False),
        sa.Column("units_donated", sa.Integer(), nullable=False),
        sa.Column("donated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_request_donations_donor_id", "request_donations", ["donor_id"])
    op.execute(
        "ALTER TABLE request_donations ADD CONSTRAINT ck_request_donations_units CHECK (units_donated >= 1)"
    )

    # --- donation_camps / camp_registrations ---
    op.create_table(
        "donation_camps",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("organizer_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("location_name", sa.String(200), nullable=False),
        sa.Column("address", sa.String(300), nullable=False),
        sa.Column("city", sa.String(100), nullable=False),
        sa.Column("state", sa.String(100), nullable=False),
        sa.Column("pincode", sa.String(10), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        _ts("start_date", nullable=False),
        _ts("end_date", nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("max_donors", sa.Integer(), server_default="100", nullable=False),
        sa.Column("status", sa.String(16), server_default="scheduled", nullable=False),
        sa.Column("min_age", sa.Integer(), server_default="18", nullable=False),
        sa.Column("max_age", sa.Integer(), server_default="65", nullable=False),
        sa.Column("min_weight", sa.Float(), server_default="45", nullable=False),
        sa.Column("required_documents", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column("coordinator_name", sa.String(100), nullable=False),
        sa.Column("coordinator_phone", sa.String(20), nullable=False),
        sa.Column("coordinator_email", sa.String(320), nullable=True),
        sa.Column("special_instructions", sa.Text(), nullable=True),
        sa.Column("is_public", sa.Boolean(), server_default="true", nullable=False),
        sa.Column(
            "target_blood_groups", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False
        ),
        sa.Column("total_donations", sa.Integer(), server_default="0", nullable=False),
        sa.Column("total_units", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("updated_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        _ts("updated_at"),
    )
    op.create_index("ix_donation_camps_schedule", "donation_camps", ["status", "start_date"])
    op.execute(
        "ALTER TABLE donation_camps ADD CONSTRAINT ck_donation_camps_status "
        "CHECK (status IN ('scheduled', 'ongoing', 'paused', 'completed', 'cancelled'))"
    )
    op.execute("ALTER TABLE donation_camps ADD CONSTRAINT ck_donation_camps_dates CHECK (end_date >= start_date)")
    op.execute("ALTER TABLE donation_camps ADD CONSTRAINT ck_donation_camps_capacity CHECK (max_donors >= 1)")

    op.create_table(
        "camp_registrations",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "camp_id", sa.BigInteger(), sa.ForeignKey("donation_camps.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("donor_id", sa.BigInteger(), sa.ForeignKey("donors.id", ondelete="CASCADE"), nullable=False),
        sa.Column("registered_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("status", sa.String(16), server_default="registered", nullable=False),
        sa.Column("slot_time", sa.String(5), nullable=True),
        sa.UniqueConstraint("camp_id", "donor_id", name="uq_camp_registrations_camp_donor"),
    )

    # --- donation_claims ---
    op.create_table(
        "donation_claims",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("donor_id", sa.BigInteger(), sa.ForeignKey("donors.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        _ts("donation_date", nullable=False),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column(
            "camp_id", sa.BigInteger(), sa.ForeignKey("donation_camps.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("location", sa.String(300), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("verified_by_id", sa.BigInteger(), sa.ForeignKey("users.id"), nullable=True),
        _ts("verified_at"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        _ts("updated_at"),
    )
    op.create_index("ix_donation_claims_donor_id", "donation_claims", ["donor_id"])
    op.create_index("ix_donation_claims_status", "donation_claims", ["status", "created_at"])
    op.execute(
        "ALTER TABLE donation_claims ADD CONSTRAINT ck_donation_claims_status "
        "CHECK (status IN ('pending', 'approved', 'rejected'))"
    )

    # --- notifications ---
    op.create_table(
        "notifications",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(10), server_default="medium", nullable=False),
        sa.Column("read", sa.Boolean(), server_default="false", nullable=False),
        _ts("read_at"),
        sa.Column("data", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.execute(
        "CREATE INDEX ix_notifications_user_unread ON notifications (user_id, read, created_at DESC)"
    )


def downgrade() -> None:
    """Drop everything in reverse dependency order."""
    for table in (
        "notifications",
        "donation_claims",
        "camp_registrations",
        "donation_camps",
        "request_donations",
        "request_matches",
        "blood_requests",
        "donors",
        "refresh_tokens",
        "users",
    ):
        op.drop_table(table)
