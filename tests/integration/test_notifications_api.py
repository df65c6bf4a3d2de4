"""Integration tests for the notification inbox."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient

from bloodlink.db.models import Notification

pytestmark = pytest.mark.asyncio

INBOX = "/api/v1/notifications"


@pytest_asyncio.fixture
async def seeded(db_session, recipient, donor):
    """Three notifications for the recipient (oldest first) and one for the donor."""
    base = datetime.now(timezone.utc) - timedelta(hours=3)
    rows = [
        Notification(
            user_id=recipient["user"].id,
            type="system_alert",
            title=f"Alert {i}",
            message=f"Message {i}",
            priority="medium",
            read=False,
            data={"n": i},
            created_at=base + timedelta(hours=i),
        )
        for i in range(3)
    ]
    rows.append(
        Notification(
            user_id=donor["user"].id,
            type="blood_request",
            title="Urgent",
            message="Someone else's",
            priority="high",
            read=False,
            data={},
            created_at=base,
        )
    )
    db_session.add_all(rows)
    await db_session.commit()
    return rows


class TestInbox:
    async def test_list_newest_first(self, client: AsyncClient, recipient, seeded):
        resp = await client.get(INBOX, headers=recipient["headers"])
        assert resp.status_code == 200
        data = resp.json()
        assert [n["title"] for n in data["notifications"]] == ["Alert 2", "Alert 1", "Alert 0"]
        assert data["unread_count"] == 3
        assert data["pagination"]["total"] == 3

    async def test_pagination(self, client: AsyncClient, recipient, seeded):
        resp = await client.get(INBOX, params={"page": 2, "per_page": 2}, headers=recipient["headers"])
        data = resp.json()
        assert [n["title"] for n in data["notifications"]] == ["Alert 0"]
        assert data["pagination"]["pages"] == 2

    async def test_requires_auth(self, client: AsyncClient):
        resp = await client.get(INBOX)
        assert resp.status_code == 401

    async def test_unread_count(self, client: AsyncClient, recipient, donor, seeded):
        mine = await client.get(f"{INBOX}/unread-count", headers=recipient["headers"])
        theirs = await client.get(f"{INBOX}/unread-count", headers=donor["headers"])
        assert mine.json() == {"unread_count": 3}
        assert theirs.json() == {"unread_count": 1}


class TestReadState:
    async def test_mark_one_read(self, client: AsyncClient, recipient, seeded):
        target = seeded[0].id
        resp = await client.put(f"{INBOX}/{target}/read", headers=recipient["headers"])
        assert resp.status_code == 200

        data = (await client.get(INBOX, headers=recipient["headers"])).json()
        read = {n["id"]: n for n in data["notifications"]}[target]
        assert read["read"] is True
        assert read["read_at"] is not None
        assert data["unread_count"] == 2

    async def test_unread_only_filter(self, client: AsyncClient, recipient, seeded):
        await client.put(f"{INBOX}/{seeded[2].id}/read", headers=recipient["headers"])
        resp = await client.get(INBOX, params={"unread_only": True}, headers=recipient["headers"])
        assert [n["title"] for n in resp.json()["notifications"]] == ["Alert 1", "Alert 0"]

    async def test_cannot_touch_other_users_notification(self, client: AsyncClient, recipient, seeded):
        foreign = seeded[3].id
        read = await client.put(f"{INBOX}/{foreign}/read", headers=recipient["headers"])
        delete = await client.delete(f"{INBOX}/{foreign}", headers=recipient["headers"])
        assert read.status_code == 404
        assert delete.status_code == 404

    async def test_mark_all_read(self, client: AsyncClient, recipient, donor, seeded):
        resp = await client.put(f"{INBOX}/read-all", headers=recipient["headers"])
        assert resp.status_code == 200
        assert resp.json() == {"message": "Marked 3 notifications as read", "updated": 3}

        again = await client.put(f"{INBOX}/read-all", headers=recipient["headers"])
        assert again.json()["updated"] == 0
        theirs = await client.get(f"{INBOX}/unread-count", headers=donor["headers"])
        assert theirs.json()["unread_count"] == 1

    async def test_delete(self, client: AsyncClient, recipient, seeded):
        resp = await client.delete(f"{INBOX}/{seeded[1].id}", headers=recipient["headers"])
        assert resp.status_code == 200
        data = (await client.get(INBOX, headers=recipient["headers"])).json()
        assert [n["title"] for n in data["notifications"]] == ["Alert 2", "Alert 0"]

        missing = await client.delete(f"{INBOX}/{seeded[1].id}", headers=recipient["headers"])
        assert missing.status_code == 404
