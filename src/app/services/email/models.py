"""Pydantic schemas for outgoing transactional email."""

from __future__ import annotations

from pydantic import BaseModel, Field


class EmailMessage(BaseModel):
    """Email message to send through the email provider."""

    to: list[str]
    subject: str
    body_html: str
    body_text: str | None = None
    reply_to: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)


class SentEmailResult(BaseModel):
    """Result from sending an email."""

    message_id: str
