"""Integration tests for the admin console."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio

ADMIN = "/api/v1/admin"


async def _create_request(client: AsyncClient, recipient: dict, payload: dict) -> dict:
    resp = await client.post("/api/v1/recipients/request", json=payload, headers=recipient["headers"])
    assert resp.status_code == 201
    return resp.json()["request"]


class TestAccess:
    async def test_requires_admin_role(self, client: AsyncClient, donor, recipient):
        for headers in (donor["headers"], recipient["headers"]):
            resp = await client.get(f"{ADMIN}/dashboard", headers=headers)
            assert resp.status_code == 403

    async def test_requires_auth(self, client: AsyncClient):
        resp = await client.get(f"{ADMIN}/users")
        assert resp.status_code == 401


class TestDashboard:
    async def test_counts_and_distributions(
        self, client: AsyncClient, admin, donor, recipient, request_payload, camp_payload
    ):
        await _create_request(client, recipient, request_payload(blood_group="A+"))
        await _create_request(client, recipient, request_payload(blood_group="A+", urgency="critical"))
        await _create_request(client, recipient, request_payload(blood_group="B-"))
        await client.post("/api/v1/camps", json=camp_payload(), headers=admin["headers"])

        resp = await client.get(f"{ADMIN}/dashboard", headers=admin["headers"])
        assert resp.status_code == 200
        data = resp.json()
        assert data["stats"] == {
            "total_users": 3,
            "total_donors": 1,
            "verified_donors": 1,
            "total_requests": 3,
            "active_requests": 3,
            "completed_requests": 0,
            "total_camps": 1,
            "upcoming_camps": 1,
            "pending_claims": 0,
        }
        assert data["blood_group_stats"][0] == {"value": "A+", "count": 2}
        assert {row["value"] for row in data["urgency_stats"]} == {"high", "critical"}
        this_month = datetime.now(timezone.utc).strftime("%Y-%m")
        assert data["monthly_trends"] == [{"month": this_month, "count": 3}]
        assert len(data["recent_requests"]) == 3
        assert data["recent_donors"][0]["email"] == "donor@example.com"

    async def test_analytics(self, client: AsyncClient, admin, donor, recipient, request_payload):
        await _create_request(client, recipient, request_payload(blood_group="AB-"))

        resp = await client.get(f"{ADMIN}/analytics", params={"period": 7}, headers=admin["headers"])
        assert resp.status_code == 200
        data = resp.json()
        assert data["period"] == 7
        assert data["top_blood_groups"] == [{"blood_group": "AB-", "count": 1}]
        assert data["success_rates"] == [
            {"blood_group": "AB-", "total": 1, "completed": 0, "success_rate": 0.0}
        ]
        assert sum(row["count"] for row in data["user_trends"]) == 3
        assert [row["status"] for row in data["request_trends"]] == ["pending"]

    async def test_analytics_period_bounds(self, client: AsyncClient, admin):
        resp = await client.get(f"{ADMIN}/analytics", params={"period": 0}, headers=admin["headers"])
        assert resp.status_code == 400


class TestUsers:
    async def test_filters(self, client: AsyncClient, admin, donor, recipient, make_user):
        await make_user("sleepy@example.com", ["donor"], name="Sleepy", is_active=False)

        donors = (await client.get(f"{ADMIN}/users", params={"role": "donor"}, headers=admin["headers"])).json()
        assert {u["email"] for u in donors["users"]} == {"donor@example.com", "sleepy@example.com"}

        inactive = (await client.get(f"{ADMIN}/users", params={"is_active": False}, headers=admin["headers"])).json()
        assert [u["email"] for u in inactive["users"]] == ["sleepy@example.com"]

        search = (await client.get(f"{ADMIN}/users", params={"search": "riya"}, headers=admin["headers"])).json()
        assert [u["email"] for u in search["users"]] == ["recipient@example.com"]

    async def test_deactivate_blocks_access(self, client: AsyncClient, admin, donor):
        resp = await client.put(
            f"{ADMIN}/users/{donor['user'].id}/status",
            json={"is_active": False},
            headers=admin["headers"],
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "User deactivated successfully"
        assert resp.json()["user"]["is_active"] is False

        me = await client.get("/api/v1/auth/me", headers=donor["headers"])
        assert me.status_code == 403

        back = await client.put(
            f"{ADMIN}/users/{donor['user'].id}/status",
            json={"is_active": True},
            headers=admin["headers"],
        )
        assert back.json()["message"] == "User activated successfully"

    async def test_cannot_deactivate_self(self, client: AsyncClient, admin):
        resp = await client.put(
            f"{ADMIN}/users/{admin['user'].id}/status",
            json={"is_active": False},
            headers=admin["headers"],
        )
        assert resp.status_code == 400

    async def test_unknown_user(self, client: AsyncClient, admin):
        resp = await client.put(f"{ADMIN}/users/9999/status", json={"is_active": False}, headers=admin["headers"])
        assert resp.status_code == 404


class TestDonors:
    async def test_list_and_filter(self, client: AsyncClient, admin, donor, make_donor):
        await make_donor("pending@example.com", name="Pending Donor", blood_group="B-", verified=False)

        everyone = (await client.get(f"{ADMIN}/donors", headers=admin["headers"])).json()
        assert everyone["pagination"]["total"] == 2

        unverified = (
            await client.get(f"{ADMIN}/donors", params={"is_verified": False}, headers=admin["headers"])
        ).json()
        assert [d["name"] for d in unverified["donors"]] == ["Pending Donor"]
        assert unverified["donors"][0]["is_eligible"] is True

    async def test_verify_donor_notifies(self, client: AsyncClient, admin, make_donor):
        _, profile, headers = await make_donor("pending@example.com", verified=False)

        resp = await client.put(
            f"{ADMIN}/donors/{profile.id}/verify",
            json={"is_verified": True},
            headers=admin["headers"],
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Donor verified successfully"
        assert data["donor"]["is_verified"] is True
        assert data["donor"]["verification_date"] is not None

        inbox = (await client.get("/api/v1/notifications", headers=headers)).json()["notifications"]
        assert inbox[0]["title"] == "Profile Verification"
        assert inbox[0]["type"] == "system_alert"

    async def test_unverify_clears_date(self, client: AsyncClient, admin, donor):
        resp = await client.put(
            f"{ADMIN}/donors/{donor['donor'].id}/verify",
            json={"is_verified": False},
            headers=admin["headers"],
        )
        assert resp.json()["message"] == "Donor unverified successfully"
        assert resp.json()["donor"]["verification_date"] is None

    async def test_unknown_donor(self, client: AsyncClient, admin):
        resp = await client.put(f"{ADMIN}/donors/9999/verify", json={"is_verified": True}, headers=admin["headers"])
        assert resp.status_code == 404


class TestRequests:
    async def test_list_with_filters(self, client: AsyncClient, admin, recipient, request_payload):
        await _create_request(client, recipient, request_payload(blood_group="A+"))
        await _create_request(client, recipient, request_payload(blood_group="O-", city="Nashik"))

        by_group = (
            await client.get(f"{ADMIN}/requests", params={"blood_group": "O-"}, headers=admin["headers"])
        ).json()
        assert [r["city"] for r in by_group["requests"]] == ["Nashik"]
        unverified = (
            await client.get(f"{ADMIN}/requests", params={"is_verified": False}, headers=admin["headers"])
        ).json()
        assert unverified["pagination"]["total"] == 2

    async def test_invalid_status(self, client: AsyncClient, admin):
        resp = await client.get(f"{ADMIN}/requests", params={"status": "lost"}, headers=admin["headers"])
        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid status: lost"

    async def test_verify_request_notifies_requester(self, client: AsyncClient, admin, recipient, request_payload):
        request = await _create_request(client, recipient, request_payload())

        resp = await client.put(
            f"{ADMIN}/requests/{request['id']}/verify",
            json={"is_verified": True},
            headers=admin["headers"],
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "Blood request verified successfully"
        assert resp.json()["request"]["is_verified"] is True

        inbox = (await client.get("/api/v1/notifications", headers=recipient["headers"])).json()["notifications"]
        assert inbox[0]["title"] == "Request Verification"

    async def test_verify_unknown_request(self, client: AsyncClient, admin):
        resp = await client.put(f"{ADMIN}/requests/9999/verify", json={"is_verified": True}, headers=admin["headers"])
        assert resp.status_code == 404


class TestAnnouncements:
    async def test_reaches_all_active_users(self, client: AsyncClient, admin, donor, recipient, make_user):
        await make_user("sleepy@example.com", ["donor"], is_active=False)

        resp = await client.post(
            f"{ADMIN}/announcement",
            json={"title": "Blood drive week", "message": "Donate this week", "priority": "high"},
            headers=admin["headers"],
        )
        assert resp.status_code == 200
        assert resp.json() == {"message": "Announcement sent to 3 users", "recipients": 3}

        inbox = (await client.get("/api/v1/notifications", headers=recipient["headers"])).json()["notifications"]
        assert inbox[0]["title"] == "Blood drive week"
        assert inbox[0]["priority"] == "high"

    async def test_target_role(self, client: AsyncClient, admin, donor, recipient):
        resp = await client.post(
            f"{ADMIN}/announcement",
            json={"title": "Donors", "message": "Thank you", "target_role": "donor"},
            headers=admin["headers"],
        )
        assert resp.json()["recipients"] == 1
        inbox = (await client.get("/api/v1/notifications", headers=recipient["headers"])).json()["notifications"]
        assert inbox == []

    async def test_invalid_priority(self, client: AsyncClient, admin):
        resp = await client.post(
            f"{ADMIN}/announcement",
            json={"title": "x", "message": "y", "priority": "extreme"},
            headers=admin["headers"],
        )
        assert resp.status_code == 400
