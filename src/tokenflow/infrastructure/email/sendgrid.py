import asyncio
from html import escape
from typing import Any, Dict, Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from ...config import Settings
from ...domain.tokens import SubjectKind, TokenAction
from ...logging_config import get_logger

logger = get_logger(__name__)


def _link(url: str, label: str) -> str:
    return f'<a href="{escape(url, quote=True)}">{escape(label)}</a>'


def render(template: str, context: Dict[str, Any], org: str) -> tuple[str, str]:
    """Return (subject, html) for one of the workflow notification templates."""
    framing = context.get("organization_context") or ""
    if template == "approval_request":
        name = escape(str(context.get("applicant_name", "")))
        html = (
            f"<p>A new registration from {name} is waiting for review.</p>"
            f"<p>{_link(context['approve_url'], 'Approve')} or "
            f"{_link(context['reject_url'], 'Reject')}</p>"
            f"<p>These links expire on {escape(str(context.get('expires_at', '')))}.</p>"
        )
        return f"Registration awaiting approval - {org}", html
    if template == "registration_approved":
        return (
            f"Your registration has been approved - {org}",
            "<p>Your registration has been approved. You can now sign in.</p>",
        )
    if template == "registration_rejected":
        reason = context.get("reason")
        detail = f"<p>Reason: {escape(str(reason))}</p>" if reason else ""
        return (
            f"Your registration was not approved - {org}",
            f"<p>Your registration was not approved.</p>{detail}",
        )
    if template == "password_reset_request":
        html = (
            f"<p>You requested a password reset{escape(framing)}.</p>"
            f"<p>{_link(context['reset_url'], 'Reset your password')}</p>"
            f"<p>This link expires in {int(context.get('expires_in_minutes', 30))} minutes. "
            "If you did not request this, ignore this email.</p>"
        )
        return f"Password Recovery - {org}{framing}", html
    if template == "password_changed":
        html = (
            f"<p>The password{escape(framing)} was changed on "
            f"{escape(str(context.get('changed_at', '')))}.</p>"
            "<p>If this was not you, contact support immediately.</p>"
        )
        return f"Your password has been changed - {org}", html
    raise ValueError(f"unknown notification template: {template}")


class SendGridNotificationSender:
    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        organization_name: Optional[str] = None,
    ):
        s = Settings()
        self.api_key = api_key or s.sendgrid_api_key
        self.from_email = from_email or s.email_from
        self.organization_name = organization_name or s.organization_name

    async def _send(self, to_email: Any, subject: str, html_content: str) -> None:
        # SendGrid client is synchronous; wrap in thread via asyncio to avoid blocking event loop
        client = SendGridAPIClient(self.api_key)
        message = Mail(
            from_email=self.from_email,
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
        )
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, client.send, message)

    async def send(
        self,
        kind: SubjectKind,
        subject_id: str,
        action: TokenAction,
        context: Dict[str, Any],
    ) -> None:
        subject, html = render(str(context.get("template")), context, self.organization_name)
        await self._send(context["to"], subject, html)
        logger.info(
            "notification_sent",
            template=context.get("template"),
            kind=kind.value,
            subject_id=subject_id,
            action=action.value,
        )
