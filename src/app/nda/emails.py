"""HTML for NDA reminder emails and the extension result page."""

from __future__ import annotations

from datetime import datetime
from html import escape

from src.app.services.email import EmailMessage


def format_date(value: datetime) -> str:
    """e.g. "March 4, 2026"."""
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def expiry_reminder_email(
    to: str,
    signer_name: str,
    company_name: str,
    expires_at: datetime,
    extension_url: str,
    reminder_days: int = 7,
    extension_days: int = 60,
    token_ttl_days: int = 7,
) -> EmailMessage:
    company = escape(company_name)
    url = escape(extension_url, quote=True)
    html = f"""<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1 style="font-size: 24px;">NDA Expiration Notice</h1>
    <p>Hello {escape(signer_name)},</p>
    <p>Your Non-Disclosure Agreement (NDA) for <strong>{company}</strong> will expire on
       <strong>{format_date(expires_at)}</strong>.</p>
    <p>When it expires you will lose access to confidential documents and data room
       materials until you sign a new NDA.</p>
    <p>To keep access, extend your NDA by {extension_days} days with one click:</p>
    <p style="text-align: center;">
      <a href="{url}" style="display: inline-block; background: #667eea; color: white; text-decoration: none; padding: 14px 32px; border-radius: 6px;">Extend NDA by {extension_days} Days</a>
    </p>
    <p style="font-size: 14px; color: #666;">Or paste this link into your browser:<br><code>{url}</code></p>
    <p style="font-size: 12px; color: #999;">This link will expire in {token_ttl_days} days.</p>
  </body>
</html>"""
    text = (
        f"Hello {signer_name},\n\n"
        f"Your NDA for {company_name} will expire on {format_date(expires_at)}.\n"
        f"Extend it by {extension_days} days: {extension_url}\n"
    )
    return EmailMessage(
        to=[to],
        subject=f"Your NDA for {company_name} expires in {reminder_days} days",
        body_html=html,
        body_text=text,
        tags={"category": "nda_expiry"},
    )


def render_result_page(title: str, message: str, success: bool, portal_url: str | None = None) -> str:
    """Standalone HTML page returned by the extension link.

    message may contain trusted markup; callers escape any user data.
    """
    colour = "#10b981" if success else "#ef4444"
    mark = "&#10003;" if success else "&#10007;"
    button = (
        f'<a href="{escape(portal_url, quote=True)}" style="display: inline-block; background: #667eea; '
        f'color: white; text-decoration: none; padding: 12px 32px; border-radius: 6px;">Return to Portal</a>'
        if success and portal_url
        else ""
    )
    return f"""<!DOCTYPE html>
<html>
  <head><meta charset="utf-8"><title>{escape(title)}</title></head>
  <body style="font-family: Arial, sans-serif; background: #f3f4f6; padding: 20px;">
    <div style="max-width: 500px; margin: 0 auto; background: white; border-radius: 12px;">
      <div style="background: {colour}; padding: 40px; text-align: center; color: white;">
        <div style="font-size: 48px;">{mark}</div>
        <h1 style="margin: 0; font-size: 24px;">{escape(title)}</h1>
      </div>
      <div style="padding: 40px; text-align: center;">
        <p style="font-size: 16px; color: #374151;">{message}</p>
        {button}
      </div>
    </div>
  </body>
</html>"""


def extension_success_message(company_name: str, new_expires_at: datetime) -> str:
    return (
        f"Your NDA for <strong>{escape(company_name)}</strong> has been extended "
        f"until <strong>{format_date(new_expires_at)}</strong>.<br><br>"
        "You can now continue accessing confidential documents and materials."
    )
