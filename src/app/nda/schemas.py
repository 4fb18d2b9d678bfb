"""Pydantic schemas for NDA acceptance, reminders, and extension."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, EmailStr, Field


class NDAStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class NDAAcceptRequest(BaseModel):
    """Body of accept_company_nda."""

    signer_name: str = Field(..., min_length=1, max_length=200)
    signer_email: EmailStr
    signer_title: str | None = None


class NDAAcceptanceCreate(BaseModel):
    user_id: str
    company_id: str
    company_name: str | None = None
    signer_name: str
    signer_email: str
    signer_title: str | None = None
    ip_address: str | None = None
    expires_at: datetime


class NDAAcceptanceRead(BaseModel):
    id: str
    user_id: str
    company_id: str
    company_name: str | None = None
    signer_name: str
    signer_email: str
    signer_title: str | None = None
    status: NDAStatus = NDAStatus.ACTIVE
    accepted_at: datetime | None = None
    expires_at: datetime


class NDAAcceptResult(BaseModel):
    success: bool
    already_accepted: bool
    acceptance_id: str
    expires_at: datetime


class NDAStatusRead(BaseModel):
    company_id: str
    accepted: bool
    status: NDAStatus | None = None
    expires_at: datetime | None = None


class ExtensionTokenRead(BaseModel):
    id: str
    nda_id: str
    token: str
    expires_at: datetime
    used_at: datetime | None = None


class ReminderResult(BaseModel):
    nda_id: str
    email: str
    status: str
    error: str | None = None


class ExpiringScanResult(BaseModel):
    """Response of check-expiring-ndas."""

    message: str
    success_count: int = 0
    results: list[ReminderResult] = Field(default_factory=list)


class NDAExtension(BaseModel):
    nda_id: str
    company_name: str
    new_expires_at: datetime
