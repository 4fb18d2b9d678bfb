"""HTML for staff, partner, team and investor invitation emails."""

from __future__ import annotations

from datetime import datetime, timezone
from html import escape

from src.app.deals.schemas import DealRead
from src.app.invitations.schemas import AccessType, InvestorInvitationRead, TeamInvitationRead
from src.app.nda.emails import format_date
from src.app.profiles.schemas import role_title
from src.app.services.email import EmailMessage
from src.app.team.roles import ROLE_DISPLAY_NAMES, TEAM_ROLE_VALUES
from src.app.team.schemas import TeamRole

ROLE_DESCRIPTIONS: dict[str, str] = {
    "deal_lead": "Full access to manage the deal, team, and all documents",
    "analyst": "Can view all documents and create/edit diligence requests",
    "external_reviewer": "Can review and approve specific documents",
    "investor": "View-only access to approved deal materials",
    "seller": "Upload documents and respond to information requests",
    "advisor": "Collaborate on due diligence with document access",
    "admin": "Full administrative access to all platform features",
    "editor": "Can create and manage deals and companies",
    "viewer": "Read-only access to assigned deals",
}


def invitation_role_name(role: str) -> str:
    """Display name of a deal team role or platform role."""
    if role in TEAM_ROLE_VALUES:
        return ROLE_DISPLAY_NAMES[TeamRole(role)]
    return role_title(role)


def _layout(heading: str, body: str, link: str, button: str, footer_brand: str) -> str:
    year = datetime.now(timezone.utc).year
    url = escape(link, quote=True)
    return f"""<!DOCTYPE html>
<html>
  <head><meta charset="utf-8"></head>
  <body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; margin: 0; background: #f8fafc;">
    <div style="max-width: 600px; margin: 0 auto; background: #ffffff;">
      <div style="background: #1e293b; padding: 40px 20px; text-align: center;">
        <h1 style="color: #ffffff; font-size: 24px; margin: 0;">{escape(heading)}</h1>
      </div>
      <div style="padding: 40px 20px; color: #334155; font-size: 16px; line-height: 1.5;">
        {body}
        <p style="text-align: center; margin: 32px 0;">
          <a href="{url}" style="display: inline-block; background: #1d4ed8; color: #ffffff; text-decoration: none; padding: 16px 32px; border-radius: 8px;">{escape(button)}</a>
        </p>
        <p style="font-size: 13px; color: #64748b;">If the button does not work, paste this link into your browser:<br>{url}</p>
      </div>
      <div style="background: #f1f5f9; padding: 20px; text-align: center; color: #64748b; font-size: 14px;">
        &copy; {year} {escape(footer_brand)}. All rights reserved.
      </div>
    </div>
  </body>
</html>"""


def custom_invite_email(
    to: str, link: str, role_name: str, first_name: str | None, existing_user: bool
) -> EmailMessage:
    if existing_user:
        intro = (
            "You've been granted access. Click the button below to sign in "
            "and set your password."
        )
        button = "Set Password & Sign In"
        subject = "Complete your access to Exclusive Business Brokers"
    else:
        intro = (
            f"You've been invited as <strong>{escape(role_name)}</strong> to join the "
            "Exclusive Business Brokers investor platform. Click the button below to "
            "verify your account and set your password."
        )
        button = "Accept Invitation & Set Password"
        subject = "You're invited to Exclusive Business Brokers"
    greeting = f"Welcome {escape(first_name)}!" if first_name else "Welcome!"
    body = f"<h2>{greeting}</h2><p>{intro}</p>"
    return EmailMessage(
        to=[to],
        subject=subject,
        body_html=_layout("Exclusive Business Brokers", body, link, button, "Exclusive Business Brokers"),
        body_text=f"{greeting}\n\n{button}: {link}\n",
        tags={"category": "custom_invite"},
    )


def partner_invite_email(
    to: str,
    link: str,
    team_name: str,
    company_name: str | None,
    first_name: str | None,
    existing_user: bool,
) -> EmailMessage:
    team = escape(team_name)
    if company_name:
        team = f"{team} ({escape(company_name)})"
    body = (
        f"<p>Hello {escape(first_name or 'Partner')},</p>"
        "<p>You have been given access to the EBB Data Room partner portal.</p>"
        f"<p><strong>Your team:</strong> {team}</p>"
        "<p style=\"font-size: 13px;\">This invitation link will expire in 7 days.</p>"
    )
    button = "Sign In to Partner Portal" if existing_user else "Accept Invitation"
    return EmailMessage(
        to=[to],
        subject=f"You've been invited to join {team_name} on EBB Data Room",
        body_html=_layout("Welcome to EBB Data Room", body, link, button, "EBB Data Room"),
        body_text=f"You've been invited to join {team_name} on EBB Data Room.\n{link}\n",
        tags={"category": "partner_invite"},
    )


def investor_invitation_subject(
    invitation: InvestorInvitationRead, deals: list[DealRead], resend: bool
) -> str:
    prefix = "[Resent] " if resend else ""
    if invitation.access_type == AccessType.SINGLE and deals:
        return f"{prefix}Investment Opportunity: {deals[0].title or deals[0].company_name}"
    return f"{prefix}Investment Opportunities"


def investor_invitation_email(
    invitation: InvestorInvitationRead,
    deals: list[DealRead],
    registration_url: str,
    resend: bool = False,
) -> EmailMessage:
    name = escape(invitation.investor_name or "Investor")
    if invitation.access_type == AccessType.PORTFOLIO or invitation.portfolio_access:
        offer = (
            "<p>You have been invited to <strong>portfolio access</strong>: every current "
            "and future deal in our portfolio.</p>"
        )
    else:
        items = "".join(
            f"<li><strong>{escape(d.title or d.company_name)}</strong> ({escape(d.company_name)})</li>" for d in deals
        )
        offer = f"<p>You have been invited to review the following opportunities:</p><ul>{items}</ul>"
    nda_note = (
        "<br><strong>Note:</strong> A master NDA will be required for portfolio access."
        if invitation.master_nda
        else ""
    )
    body = (
        f"<p>Dear {name},</p>{offer}"
        f"<p><strong>Important:</strong> This invitation expires on "
        f"{format_date(invitation.expires_at)}. Please complete your registration "
        f"before this date.{nda_note}</p>"
        f"<p style=\"font-size: 12px; color: #94a3b8;\">This invitation is confidential and "
        f"intended only for {escape(invitation.email)}.</p>"
    )
    return EmailMessage(
        to=[invitation.email],
        subject=investor_invitation_subject(invitation, deals, resend),
        body_html=_layout("Investment Opportunity", body, registration_url, "Access Data Room", "EBB Data Room"),
        body_text=f"Register to access the data room: {registration_url}\n",
        tags={"category": "investor_invitation"},
    )


def team_invitation_email(
    invitation: TeamInvitationRead,
    link: str,
    inviter_name: str,
    deal_title: str | None,
    existing_user: bool,
) -> EmailMessage:
    invitee = invitation.invitee_name or invitation.invitee_email.split("@")[0]
    role_name = invitation_role_name(invitation.role)
    description = ROLE_DESCRIPTIONS.get(invitation.role, "Access to the platform")
    message = ""
    if invitation.personal_message:
        message = (
            '<blockquote style="border-left: 4px solid #1d4ed8; margin: 24px 0; padding: 0 16px;">'
            f"<p><em>&ldquo;{escape(invitation.personal_message)}&rdquo;</em></p>"
            f"<p style=\"font-size: 14px; color: #64748b;\">{escape(inviter_name)}</p></blockquote>"
        )
    deal = (
        f"<p><strong>Deal access:</strong> {escape(deal_title)}</p>" if deal_title else ""
    )
    body = (
        f"<p>Hi {escape(invitee)},</p>"
        f"<p><strong>{escape(inviter_name)}</strong> has invited you to collaborate on M&amp;A "
        "deals in their data room.</p>"
        f"{message}"
        f"<p><strong>Your role:</strong> {escape(role_name)}<br>{escape(description)}</p>"
        f"{deal}"
        f"<p style=\"font-size: 13px;\">This invitation expires on "
        f"{format_date(invitation.expires_at)}.</p>"
    )
    button = "Accept Invitation" if existing_user else "Create Your Account"
    subject = f"{inviter_name} invited you to collaborate"
    if deal_title:
        subject = f"{subject} on {deal_title}"
    return EmailMessage(
        to=[invitation.invitee_email],
        subject=subject,
        body_html=_layout("You're Invited", body, link, button, "Exclusive Business Brokers"),
        body_text=f"{inviter_name} invited you to join as {role_name}.\n{button}: {link}\n",
        tags={"category": "team_invitation"},
    )
