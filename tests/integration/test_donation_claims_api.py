"""Integration tests for donation verification claims."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio

CLAIMS = "/api/v1/donation-requests"


def _days_ago(days: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


async def _submit(client: AsyncClient, headers: dict, **overrides) -> dict:
    payload = {"donation_date": _days_ago(2), "location": "Ruby Hall Clinic", "notes": "Walk-in"}
    payload.update(overrides)
    resp = await client.post(CLAIMS, json=payload, headers=headers)
    assert resp.status_code == 201
    return resp.json()["donation_request"]


async def _inbox(client: AsyncClient, headers: dict) -> list[dict]:
    return (await client.get("/api/v1/notifications", headers=headers)).json()["notifications"]


class TestSubmitClaim:
    async def test_submit_pending_claim(self, client: AsyncClient, donor):
        claim = await _submit(client, donor["headers"])
        assert claim["status"] == "pending"
        assert claim["donor_id"] == donor["donor"].id
        assert claim["user_id"] == donor["user"].id
        assert claim["location"] == "Ruby Hall Clinic"

    async def test_future_date_rejected(self, client: AsyncClient, donor):
        resp = await client.post(CLAIMS, json={"donation_date": _days_ago(-3)}, headers=donor["headers"])
        assert resp.status_code == 400
        assert resp.json()["message"] == "Donation date cannot be in the future"

    async def test_unknown_camp(self, client: AsyncClient, donor):
        resp = await client.post(CLAIMS, json={"donation_date": _days_ago(1), "camp_id": 9999}, headers=donor["headers"])
        assert resp.status_code == 404

    async def test_linked_camp(self, client: AsyncClient, donor, admin, camp_payload):
        camp = (await client.post("/api/v1/camps", json=camp_payload(), headers=admin["headers"])).json()["camp"]
        claim = await _submit(client, donor["headers"], camp_id=camp["id"])
        assert claim["camp_id"] == camp["id"]

    async def test_requires_donor_profile(self, client: AsyncClient, make_user):
        _, headers = await make_user("fresh@example.com", ["donor"])
        resp = await client.post(CLAIMS, json={"donation_date": _days_ago(1)}, headers=headers)
        assert resp.status_code == 404

    async def test_my_claims_newest_first(self, client: AsyncClient, donor, make_donor):
        first = await _submit(client, donor["headers"], donation_date=_days_ago(20))
        second = await _submit(client, donor["headers"], donation_date=_days_ago(5))
        _, _, other = await make_donor("other@example.com")
        await _submit(client, other)

        resp = await client.get(f"{CLAIMS}/my-requests", headers=donor["headers"])
        assert resp.status_code == 200
        assert [c["id"] for c in resp.json()["requests"]] == [second["id"], first["id"]]


class TestReviewClaims:
    async def test_pending_queue_shows_claimant(self, client: AsyncClient, donor, admin):
        claim = await _submit(client, donor["headers"])
        resp = await client.get(f"{CLAIMS}/pending", headers=admin["headers"])
        assert resp.status_code == 200
        queue = resp.json()["requests"]
        assert [c["id"] for c in queue] == [claim["id"]]
        assert queue[0]["claimant"] == {
            "name": "Dev Donor",
            "email": "donor@example.com",
            "phone": "9000000001",
            "blood_group": "O+",
        }

    async def test_pending_queue_admin_only(self, client: AsyncClient, donor):
        resp = await client.get(f"{CLAIMS}/pending", headers=donor["headers"])
        assert resp.status_code == 403

    async def test_approve_credits_donor(self, client: AsyncClient, donor, admin):
        claim = await _submit(client, donor["headers"], donation_date=_days_ago(3))

        resp = await client.put(f"{CLAIMS}/{claim['id']}/verify", headers=admin["headers"])
        assert resp.status_code == 200
        approved = resp.json()["request"]
        assert approved["status"] == "approved"
        assert approved["verified_by_id"] == admin["user"].id

        profile = (await client.get("/api/v1/donors/profile", headers=donor["headers"])).json()["donor"]
        assert profile["total_donations"] == 1
        assert profile["badges"] == ["first_donation"]
        assert profile["is_eligible"] is False

        inbox = await _inbox(client, donor["headers"])
        assert inbox[0]["type"] == "donation_verified"
        assert "first_donation" in inbox[0]["message"]

        queue = (await client.get(f"{CLAIMS}/pending", headers=admin["headers"])).json()["requests"]
        assert queue == []

    async def test_claim_processed_once(self, client: AsyncClient, donor, admin):
        claim = await _submit(client, donor["headers"])
        await client.put(f"{CLAIMS}/{claim['id']}/verify", headers=admin["headers"])

        again = await client.put(f"{CLAIMS}/{claim['id']}/verify", headers=admin["headers"])
        assert again.status_code == 400
        assert again.json()["message"] == "Request is already processed"
        reject = await client.put(
            f"{CLAIMS}/{claim['id']}/reject",
            json={"rejection_reason": "Duplicate"},
            headers=admin["headers"],
        )
        assert reject.status_code == 400

    async def test_reject_with_reason(self, client: AsyncClient, donor, admin):
        claim = await _submit(client, donor["headers"])
        resp = await client.put(
            f"{CLAIMS}/{claim['id']}/reject",
            json={"rejection_reason": "  No certificate attached  "},
            headers=admin["headers"],
        )
        assert resp.status_code == 200
        rejected = resp.json()["request"]
        assert rejected["status"] == "rejected"
        assert rejected["rejection_reason"] == "No certificate attached"

        profile = (await client.get("/api/v1/donors/profile", headers=donor["headers"])).json()["donor"]
        assert profile["total_donations"] == 0

        inbox = await _inbox(client, donor["headers"])
        assert inbox[0]["type"] == "donation_rejected"

    async def test_blank_reason_rejected(self, client: AsyncClient, donor, admin):
        claim = await _submit(client, donor["headers"])
        resp = await client.put(
            f"{CLAIMS}/{claim['id']}/reject",
            json={"rejection_reason": "   "},
            headers=admin["headers"],
        )
        assert resp.status_code == 400

    async def test_unknown_claim(self, client: AsyncClient, admin):
        resp = await client.put(f"{CLAIMS}/9999/verify", headers=admin["headers"])
        assert resp.status_code == 404
