"""Integration tests for registration, OTP verification, login and tokens."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient

from conftest import PASSWORD

pytestmark = pytest.mark.asyncio

REGISTER = "/api/v1/auth/register"


def _registration(**overrides):
    payload = {
        "name": "Nina Newcomer",
        "email": "Nina@Example.com",
        "password": "bloodbank1",
        "phone": "9876501234",
        "department": "Biology",
        "role": "donor",
    }
    payload.update(overrides)
    return payload


def _sent_otp(mock_email_service: MagicMock) -> str:
    return mock_email_service.send_template.call_args.kwargs["context"]["otp"]


async def _register_and_verify(client: AsyncClient, mock_email_service: MagicMock, **overrides) -> dict:
    payload = _registration(**overrides)
    await client.post(REGISTER, json=payload)
    resp = await client.post(
        "/api/v1/auth/verify-otp",
        json={"email": payload["email"], "otp": _sent_otp(mock_email_service)},
    )
    assert resp.status_code == 200
    return resp.json()


async def _login(client: AsyncClient, email: str, password: str = PASSWORD):
    return await client.post("/api/v1/auth/login", json={"email": email, "password": password})


class TestRegistration:
    async def test_register_requires_verification(self, client: AsyncClient, mock_email_service):
        resp = await client.post(REGISTER, json=_registration())
        assert resp.status_code == 201
        data = resp.json()
        assert data["require_verification"] is True
        assert data["email"] == "nina@example.com"
        assert "access_token" not in data

    async def test_register_emails_six_digit_code(self, client: AsyncClient, mock_email_service):
        await client.post(REGISTER, json=_registration())
        kwargs = mock_email_service.send_template.call_args.kwargs
        assert kwargs["to"] == "nina@example.com"
        assert kwargs["template_name"] == "registration_otp"
        otp = kwargs["context"]["otp"]
        assert len(otp) == 6
        assert otp.isdigit()

    async def test_duplicate_email_rejected(self, client: AsyncClient, mock_email_service):
        await client.post(REGISTER, json=_registration())
        resp = await client.post(REGISTER, json=_registration(email="NINA@example.com"))
        assert resp.status_code == 409

    async def test_short_password_rejected(self, client: AsyncClient, mock_email_service):
        resp = await client.post(REGISTER, json=_registration(password="abc"))
        assert resp.status_code == 400
        assert "password" in resp.json()["message"].lower()

    async def test_blank_password_rejected(self, client: AsyncClient, mock_email_service):
        resp = await client.post(REGISTER, json=_registration(password="        "))
        assert resp.status_code == 400

    async def test_admin_role_cannot_be_self_assigned(self, client: AsyncClient, mock_email_service):
        resp = await client.post(REGISTER, json=_registration(role="admin"))
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "role"

    async def test_validation_error_shape(self, client: AsyncClient):
        resp = await client.post(REGISTER, json=_registration(email="not-an-email"))
        assert resp.status_code == 400
        data = resp.json()
        assert data["message"] == "Validation error"
        assert any(err["field"] == "email" for err in data["errors"])


class TestOtpVerification:
    async def test_login_blocked_until_verified(self, client: AsyncClient, mock_email_service):
        await client.post(REGISTER, json=_registration())
        resp = await _login(client, "nina@example.com", "bloodbank1")
        assert resp.status_code == 403
        assert "verif" in resp.json()["message"].lower()

    async def test_wrong_code_rejected(self, client: AsyncClient, mock_email_service):
        await client.post(REGISTER, json=_registration())
        wrong = f"{(int(_sent_otp(mock_email_service)) + 1) % 1_000_000:06d}"
        resp = await client.post("/api/v1/auth/verify-otp", json={"email": "nina@example.com", "otp": wrong})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid verification code"

    async def test_verify_issues_tokens(self, client: AsyncClient, mock_email_service):
        data = await _register_and_verify(client, mock_email_service)
        assert data["message"] == "Email verified successfully"
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["user"]["email_verified"] is True
        assert data["user"]["roles"] == ["donor"]

    async def test_code_is_single_use(self, client: AsyncClient, mock_email_service):
        await client.post(REGISTER, json=_registration())
        otp = _sent_otp(mock_email_service)
        first = await client.post("/api/v1/auth/verify-otp", json={"email": "nina@example.com", "otp": otp})
        second = await client.post("/api/v1/auth/verify-otp", json={"email": "nina@example.com", "otp": otp})
        assert first.status_code == 200
        assert second.status_code == 400

    async def test_login_after_verification(self, client: AsyncClient, mock_email_service):
        await _register_and_verify(client, mock_email_service)
        resp = await _login(client, "nina@example.com", "bloodbank1")
        assert resp.status_code == 200
        assert resp.json()["message"] == "Login successful"

    async def test_resend_issues_working_code(self, client: AsyncClient, mock_email_service):
        await client.post(REGISTER, json=_registration())
        resp = await client.post("/api/v1/auth/resend-otp", json={"email": "nina@example.com"})
        assert resp.status_code == 200
        assert mock_email_service.send_template.call_count == 2
        assert mock_email_service.send_template.call_args.kwargs["template_name"] == "resend_otp"

        latest = _sent_otp(mock_email_service)
        verify = await client.post("/api/v1/auth/verify-otp", json={"email": "nina@example.com", "otp": latest})
        assert verify.status_code == 200

    async def test_resend_cooldown(self, client: AsyncClient, mock_email_service):
        await client.post(REGISTER, json=_registration())
        await client.post("/api/v1/auth/resend-otp", json={"email": "nina@example.com"})
        resp = await client.post("/api/v1/auth/resend-otp", json={"email": "nina@example.com"})
        assert resp.status_code == 429

    async def test_resend_unknown_email(self, client: AsyncClient, mock_email_service):
        resp = await client.post("/api/v1/auth/resend-otp", json={"email": "ghost@example.com"})
        assert resp.status_code == 404

    async def test_resend_for_verified_account(self, client: AsyncClient, mock_email_service):
        await _register_and_verify(client, mock_email_service)
        resp = await client.post("/api/v1/auth/resend-otp", json={"email": "nina@example.com"})
        assert resp.status_code == 400


class TestLogin:
    async def test_wrong_password(self, client: AsyncClient, make_user):
        await make_user("lena@example.com", ["recipient"])
        resp = await _login(client, "lena@example.com", "wrong-password")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid email or password"

    async def test_unknown_email(self, client: AsyncClient):
        resp = await _login(client, "nobody@example.com")
        assert resp.status_code == 401

    async def test_email_is_case_insensitive(self, client: AsyncClient, make_user):
        await make_user("lena@example.com", ["recipient"])
        resp = await _login(client, "LENA@Example.com")
        assert resp.status_code == 200

    async def test_deactivated_account(self, client: AsyncClient, make_user):
        await make_user("gone@example.com", ["donor"], is_active=False)
        resp = await _login(client, "gone@example.com")
        assert resp.status_code == 403

    async def test_lockout_after_repeated_failures(self, client: AsyncClient, make_user, fake_redis):
        user, _ = await make_user("lena@example.com", ["recipient"])
        for _ in range(10):
            resp = await _login(client, "lena@example.com", "wrong-password")
            assert resp.status_code == 401
        assert fake_redis.store[f"login_attempts:{user.id}"] == "10"

        resp = await _login(client, "lena@example.com")
        assert resp.status_code == 429
        assert "locked" in resp.json()["message"].lower()

    async def test_success_clears_failure_counter(self, client: AsyncClient, make_user, fake_redis):
        user, _ = await make_user("lena@example.com", ["recipient"])
        await _login(client, "lena@example.com", "wrong-password")
        resp = await _login(client, "lena@example.com")
        assert resp.status_code == 200
        assert f"login_attempts:{user.id}" not in fake_redis.store


class TestTokens:
    async def test_refresh_rotates(self, client: AsyncClient, make_user):
        await make_user("lena@example.com", ["recipient"])
        login = (await _login(client, "lena@example.com")).json()

        resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": login["refresh_token"]})
        assert resp.status_code == 200
        assert resp.json()["refresh_token"] != login["refresh_token"]

    async def test_reused_refresh_token_revokes_family(self, client: AsyncClient, make_user):
        await make_user("lena@example.com", ["recipient"])
        login = (await _login(client, "lena@example.com")).json()
        rotated = (await client.post("/api/v1/auth/refresh", json={"refresh_token": login["refresh_token"]})).json()

        reuse = await client.post("/api/v1/auth/refresh", json={"refresh_token": login["refresh_token"]})
        assert reuse.status_code == 401
        after = await client.post("/api/v1/auth/refresh", json={"refresh_token": rotated["refresh_token"]})
        assert after.status_code == 401

    async def test_access_token_is_not_a_refresh_token(self, client: AsyncClient, make_user):
        await make_user("lena@example.com", ["recipient"])
        login = (await _login(client, "lena@example.com")).json()
        resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": login["access_token"]})
        assert resp.status_code == 401

    async def test_logout_revokes_refresh_token(self, client: AsyncClient, make_user):
        await make_user("lena@example.com", ["recipient"])
        login = (await _login(client, "lena@example.com")).json()
        resp = await client.post("/api/v1/auth/logout", json={"refresh_token": login["refresh_token"]})
        assert resp.status_code == 200
        again = await client.post("/api/v1/auth/refresh", json={"refresh_token": login["refresh_token"]})
        assert again.status_code == 401

    async def test_logout_with_garbage_token(self, client: AsyncClient):
        resp = await client.post("/api/v1/auth/logout", json={"refresh_token": "garbage"})
        assert resp.status_code == 200


class TestCurrentUser:
    async def test_me_requires_token(self, client: AsyncClient):
        resp = await client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Not authenticated"

    async def test_me_rejects_bad_token(self, client: AsyncClient):
        resp = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
        assert resp.status_code == 401

    async def test_me_includes_donor_profile(self, client: AsyncClient, donor):
        resp = await client.get("/api/v1/auth/me", headers=donor["headers"])
        assert resp.status_code == 200
        data = resp.json()
        assert data["user"]["email"] == "donor@example.com"
        assert data["donor"]["blood_group"] == "O+"

    async def test_me_without_donor_profile(self, client: AsyncClient, recipient):
        resp = await client.get("/api/v1/auth/me", headers=recipient["headers"])
        assert resp.json()["donor"] is None

    async def test_deactivated_user_token_refused(self, client: AsyncClient, make_user):
        _, headers = await make_user("gone@example.com", ["donor"], is_active=False)
        resp = await client.get("/api/v1/auth/me", headers=headers)
        assert resp.status_code == 403

    async def test_update_profile(self, client: AsyncClient, recipient):
        resp = await client.put(
            "/api/v1/auth/profile",
            json={"name": "Riya R", "year": "3"},
            headers=recipient["headers"],
        )
        assert resp.status_code == 200
        user = resp.json()["user"]
        assert user["name"] == "Riya R"
        assert user["year"] == "3"
        assert user["department"] == "Engineering"

    async def test_change_password(self, client: AsyncClient, recipient):
        resp = await client.post(
            "/api/v1/auth/change-password",
            json={"current_password": PASSWORD, "new_password": "newsecret"},
            headers=recipient["headers"],
        )
        assert resp.status_code == 200
        assert (await _login(client, "recipient@example.com")).status_code == 401
        assert (await _login(client, "recipient@example.com", "newsecret")).status_code == 200

    async def test_change_password_wrong_current(self, client: AsyncClient, recipient):
        resp = await client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "nope-nope", "new_password": "newsecret"},
            headers=recipient["headers"],
        )
        assert resp.status_code == 401


class TestRoles:
    async def test_add_role_returns_fresh_tokens(self, client: AsyncClient, donor):
        resp = await client.post("/api/v1/auth/add-role", json={"role": "recipient"}, headers=donor["headers"])
        assert resp.status_code == 200
        data = resp.json()
        assert sorted(data["user"]["roles"]) == ["donor", "recipient"]

        headers = {"Authorization": f"Bearer {data['access_token']}"}
        listing = await client.get("/api/v1/recipients/requests", headers=headers)
        assert listing.status_code == 200

    async def test_add_existing_role(self, client: AsyncClient, donor):
        resp = await client.post("/api/v1/auth/add-role", json={"role": "donor"}, headers=donor["headers"])
        assert resp.status_code == 400

    async def test_admin_role_not_self_service(self, client: AsyncClient, donor):
        resp = await client.post("/api/v1/auth/add-role", json={"role": "admin"}, headers=donor["headers"])
        assert resp.status_code == 400

    async def test_wrong_role_forbidden(self, client: AsyncClient, donor, request_payload):
        resp = await client.post("/api/v1/recipients/request", json=request_payload(), headers=donor["headers"])
        assert resp.status_code == 403
        assert "recipient" in resp.json()["message"]
