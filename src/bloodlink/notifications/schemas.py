"""Pydantic schemas for notification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from bloodlink.pagination import PaginationMeta


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    title: str
    message: str
    priority: str
    read: bool
    read_at: datetime | None = None
    data: dict[str, Any] = {}
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    pagination: PaginationMeta
    unread_count: int


class UnreadCountResponse(BaseModel):
    unread_count: int
