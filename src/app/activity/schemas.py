"""Pydantic schemas for deal activities and security events."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class DealActivityType(str, Enum):
    DOCUMENT_UPLOADED = "document_uploaded"
    DOCUMENT_DELETED = "document_deleted"
    DOCUMENT_MOVED = "document_moved"
    DOCUMENT_APPROVED = "document_approved"
    DOCUMENT_REJECTED = "document_rejected"
    DOCUMENT_DOWNLOADED = "document_downloaded"
    REQUEST_CREATED = "request_created"
    REQUEST_UPDATED = "request_updated"
    REQUEST_STATUS_CHANGED = "request_status_changed"
    REQUEST_COMPLETED = "request_completed"
    COMMENT_ADDED = "comment_added"
    TEAM_MEMBER_ADDED = "team_member_added"
    TEAM_MEMBER_REMOVED = "team_member_removed"
    PERMISSION_CHANGED = "permission_changed"
    NDA_SIGNED = "nda_signed"
    DEAL_STAGE_CHANGED = "deal_stage_changed"
    DEAL_CREATED = "deal_created"
    DEAL_UPDATED = "deal_updated"


class DealActivityCreate(BaseModel):
    """Arguments of log_deal_activity."""

    deal_id: str
    activity_type: DealActivityType
    entity_type: str
    entity_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = None


class DealActivityRead(BaseModel):
    """A logged deal activity."""

    id: str
    deal_id: str
    user_id: str | None = None
    activity_type: DealActivityType
    entity_type: str
    entity_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class SecurityEventCreate(BaseModel):
    """Arguments of log_security_event."""

    event_type: str = Field(..., min_length=1, max_length=100)
    event_data: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


class SecurityEventRead(BaseModel):
    id: str
    event_type: str
    event_data: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime | None = None
