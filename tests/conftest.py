"""Shared test fixtures.

The app runs against a throwaway SQLite file (aiosqlite) with the schema built
from the ORM metadata. Redis is a dict-backed AsyncMock injected through the
``get_redis`` dependency, so rate limiting (which reads the module-level
client) fails open.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator, Callable
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

_TMP = Path(tempfile.mkdtemp(prefix="bloodlink_test_"))


def _write_test_keys() -> tuple[Path, Path]:
    """Generate an RSA key pair for signing test JWTs."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_path = _TMP / "jwt_private.pem"
    public_path = _TMP / "jwt_public.pem"
    private_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    public_path.write_bytes(
        key.public_key().public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    return private_path, public_path


_private, _public = _write_test_keys()
os.environ["BLOODLINK_DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP / 'test.db'}"
os.environ["BLOODLINK_JWT_PRIVATE_KEY_PATH"] = str(_private)
os.environ["BLOODLINK_JWT_PUBLIC_KEY_PATH"] = str(_public)
os.environ["BLOODLINK_LOG_FORMAT"] = "console"
os.environ["BLOODLINK_ADMIN_EMAIL"] = ""
os.environ["BLOODLINK_ADMIN_PASSWORD"] = ""

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from bloodlink.auth.jwt import create_access_token, reset_keys  # noqa: E402
from bloodlink.auth.password import hash_password  # noqa: E402
from bloodlink.config import get_settings  # noqa: E402
from bloodlink.database import close_db, get_engine, init_db  # noqa: E402
from bloodlink.db.base import Base  # noqa: E402
from bloodlink.db.models import Donor, User  # noqa: E402
from bloodlink.main import create_app  # noqa: E402
from bloodlink.redis_client import get_redis  # noqa: E402

get_settings.cache_clear()
reset_keys()

PASSWORD = "donate123"
# One argon2 hash shared by every seeded account keeps the suite fast.
_PASSWORD_HASH = hash_password(PASSWORD)


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_redis() -> AsyncMock:
    """AsyncMock Redis with just enough state for cooldowns and lockout counters."""
    store: dict[str, str] = {}

    def _set(key: str, value: Any, ex: int | None = None) -> bool:
        store[key] = str(value)
        return True

    def _incr(key: str) -> int:
        store[key] = str(int(store.get(key, "0")) + 1)
        return int(store[key])

    def _delete(*keys: str) -> int:
        return sum(1 for key in keys if store.pop(key, None) is not None)

    redis = AsyncMock()
    redis.get.side_effect = store.get
    redis.set.side_effect = _set
    redis.incr.side_effect = _incr
    redis.delete.side_effect = _delete
    redis.expire.return_value = True
    redis.ping.return_value = True
    redis.store = store
    return redis


@pytest_asyncio.fixture
async def client(fake_redis: AsyncMock) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over a fresh schema."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    app = create_app()
    app.dependency_overrides[get_redis] = lambda: fake_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await close_db()


@pytest_asyncio.fixture
async def db_session(client: AsyncClient) -> AsyncGenerator[AsyncSession, None]:
    """A direct session for seeding and assertions. Commit before calling the API."""
    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        yield session


@pytest.fixture
def mock_email_service(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Capture outgoing OTP emails instead of sending them."""
    mock_service = MagicMock()
    mock_service.send_template = AsyncMock(return_value=True)
    mock_service.send_email = AsyncMock(return_value=True)

    monkeypatch.setattr("bloodlink.auth.router.get_email_service", lambda *a, **kw: mock_service)
    return mock_service


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.roles)}"}


async def create_user(
    session: AsyncSession,
    email: str,
    roles: list[str],
    *,
    name: str = "Test User",
    phone: str = "9876543210",
    verified: bool = True,
    is_active: bool = True,
) -> User:
    user = User(
        name=name,
        email=email,
        password_hash=_PASSWORD_HASH,
        phone=phone,
        department="Engineering",
        roles=roles,
        is_active=is_active,
        email_verified=verified,
        created_at=datetime.now(timezone.utc),
    )
    session.add(user)
    await session.commit()
    return user


async def create_donor(
    session: AsyncSession,
    user: User,
    *,
    blood_group: str = "O+",
    city: str = "Pune",
    verified: bool = True,
    available: bool = True,
    date_of_birth: date = date(1995, 6, 15),
    weight: float = 70,
    last_donation_date: datetime | None = None,
    **medical: bool,
) -> Donor:
    donor = Donor(
        user_id=user.id,
        blood_group=blood_group,
        date_of_birth=date_of_birth,
        weight=weight,
        height=172,
        city=city,
        state="Maharashtra",
        pincode="411001",
        address="1 Test Street",
        is_available=available,
        is_verified=verified,
        last_donation_date=last_donation_date,
        total_donations=0,
        badges=[],
        created_at=datetime.now(timezone.utc),
        **medical,
    )
    session.add(donor)
    await session.commit()
    return donor


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory: ``user, headers = await make_user(email, roles, **kw)``."""

    async def _make(email: str, roles: list[str], **kwargs: Any) -> tuple[User, dict[str, str]]:
        user = await create_user(db_session, email, roles, **kwargs)
        return user, auth_headers(user)

    return _make


@pytest.fixture
def make_donor(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory: ``user, donor, headers = await make_donor(email, **profile_kw)``."""

    async def _make(email: str, **kwargs: Any) -> tuple[User, Donor, dict[str, str]]:
        name = kwargs.pop("name", "Extra Donor")
        user = await create_user(db_session, email, ["donor"], name=name)
        profile = await create_donor(db_session, user, **kwargs)
        return user, profile, auth_headers(user)

    return _make


@pytest_asyncio.fixture
async def recipient(db_session: AsyncSession) -> dict[str, Any]:
    user = await create_user(db_session, "recipient@example.com", ["recipient"], name="Riya Recipient")
    return {"user": user, "headers": auth_headers(user)}


@pytest_asyncio.fixture
async def donor(db_session: AsyncSession) -> dict[str, Any]:
    """A verified, available, eligible O+ donor in Pune."""
    user = await create_user(db_session, "donor@example.com", ["donor"], name="Dev Donor", phone="9000000001")
    profile = await create_donor(db_session, user)
    return {"user": user, "donor": profile, "headers": auth_headers(user)}


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> dict[str, Any]:
    user = await create_user(db_session, "admin@example.com", ["admin"], name="Asha Admin")
    return {"user": user, "headers": auth_headers(user)}


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------


@pytest.fixture
def request_payload() -> Callable[..., dict[str, Any]]:
    def _build(**overrides: Any) -> dict[str, Any]:
        payload = {
            "patient_name": "Patient Zero",
            "blood_group": "A+",
            "units_required": 2,
            "urgency": "high",
            "hospital_name": "City Hospital",
            "hospital_address": "12 MG Road",
            "city": "Pune",
            "state": "Maharashtra",
            "pincode": "411001",
            "contact_person": {"name": "Ravi", "phone": "9123456789", "relationship": "Brother"},
            "required_date": (datetime.now(timezone.utc) + timedelta(days=2)).isoformat(),
            "description": "Surgery scheduled",
        }
        payload.update(overrides)
        return payload

    return _build


@pytest.fixture
def camp_payload() -> Callable[..., dict[str, Any]]:
    def _build(**overrides: Any) -> dict[str, Any]:
        start = datetime.now(timezone.utc) + timedelta(days=3)
        payload = {
            "title": "Campus Blood Drive",
            "description": "Annual donation camp in the main hall",
            "location": {
                "name": "Main Hall",
                "address": "University Road",
                "city": "Pune",
                "state": "Maharashtra",
                "pincode": "411007",
            },
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=1)).isoformat(),
            "start_time": "09:00",
            "end_time": "17:00",
            "max_donors": 50,
            "contact_info": {"coordinator_name": "Dr. Mehta", "phone": "9988776655"},
        }
        payload.update(overrides)
        return payload

    return _build


@pytest.fixture
def profile_payload() -> Callable[..., dict[str, Any]]:
    def _build(**overrides: Any) -> dict[str, Any]:
        payload = {
            "blood_group": "B+",
            "date_of_birth": "1998-03-20",
            "weight": 68,
            "height": 175,
            "medical_history": {},
            "emergency_contact": {"name": "Meera", "phone": "9812345678", "relationship": "Mother"},
            "location": {"address": "5 Hill Road", "city": "Pune", "state": "Maharashtra", "pincode": "411004"},
        }
        payload.update(overrides)
        return payload

    return _build
