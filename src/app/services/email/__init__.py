"""Transactional email delivery through the Resend HTTP API.

Used by the NDA expiry scan and the invitation flows.
"""

from src.app.services.email.models import EmailMessage, SentEmailResult
from src.app.services.email.resend import (
    EmailDeliveryError,
    EmailNotConfiguredError,
    ResendClient,
)

__all__ = [
    "EmailDeliveryError",
    "EmailMessage",
    "EmailNotConfiguredError",
    "ResendClient",
    "SentEmailResult",
]
