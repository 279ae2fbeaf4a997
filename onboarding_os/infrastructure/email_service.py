"""
Email service for sending transactional emails via AWS SES.

Feature-flagged: when SES credentials are missing the message is logged and
reported as a mock delivery instead of being sent.
"""
import asyncio
from html import escape
from typing import Any, Dict, NamedTuple

import boto3
from botocore.exceptions import ClientError
from onboarding_os.core.config import settings
from onboarding_os.core.exceptions import DependencyFailureError
import structlog

logger = structlog.get_logger()

RETRYABLE_SES_ERRORS = ("Throttling", "ServiceUnavailable")


class EmailMessage(NamedTuple):
    subject: str
    body_text: str
    body_html: str


def _layout(content: str, footer: str) -> str:
    return f"""
<!DOCTYPE html>
<html>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    {content}
    <hr style="border: none; border-top: 1px solid #eee; margin: 30px 0;">
    <p style="color: #999; font-size: 12px;">{footer}</p>
  </div>
</body>
</html>
    """.strip()


def _button(link: str, label: str) -> str:
    return (
        '<div style="text-align: center; margin: 30px 0;">'
        f'<a href="{escape(link)}" style="display: inline-block; background-color: #111; color: #fff; '
        f'padding: 12px 24px; text-decoration: none; border-radius: 6px;">{label}</a></div>'
    )


def welcome_email(client_name: str, provider_name: str, portal_url: str) -> EmailMessage:
    subject = f"Welcome! Let's get you onboarded with {provider_name}"
    body_text = (
        f"Hi {client_name}!\n\n"
        f"You've been invited to complete your onboarding with {provider_name}.\n"
        f"Get started here: {portal_url}\n"
    )
    body_html = _layout(
        f'<h1 style="color: #111;">Hi {escape(client_name)}!</h1>'
        f"<p>Welcome! You've been invited to complete your onboarding with "
        f"<strong>{escape(provider_name)}</strong>.</p>"
        + _button(portal_url, "Start Onboarding"),
        f"This email was sent by Client Onboarding OS on behalf of {escape(provider_name)}.",
    )
    return EmailMessage(subject, body_text, body_html)


def reminder_email(client_name: str, provider_name: str, portal_url: str, progress: int) -> EmailMessage:
    subject = f"Reminder: Complete your onboarding with {provider_name}"
    body_text = (
        f"Hi {client_name}!\n\n"
        f"This is a friendly reminder to complete your onboarding with {provider_name}.\n"
        f"You're currently {progress}% of the way there!\n\n"
        f"Continue here: {portal_url}\n"
    )
    body_html = _layout(
        f'<h1 style="color: #111;">Hi {escape(client_name)}!</h1>'
        f"<p>This is a friendly reminder to complete your onboarding with "
        f"<strong>{escape(provider_name)}</strong>.</p>"
        f"<p>You're currently <strong>{progress}%</strong> of the way there!</p>"
        + _button(portal_url, "Continue Onboarding"),
        f"This email was sent by Client Onboarding OS on behalf of {escape(provider_name)}.",
    )
    return EmailMessage(subject, body_text, body_html)


def completion_email(client_name: str, client_email: str, flow_name: str, dashboard_url: str) -> EmailMessage:
    subject = f"{client_name} completed their onboarding!"
    body_text = (
        f"Great news!\n\n"
        f'{client_name} ({client_email}) has completed their onboarding for "{flow_name}".\n\n'
        f"View in dashboard: {dashboard_url}\n"
    )
    body_html = _layout(
        '<h1 style="color: #111;">Great news!</h1>'
        f"<p><strong>{escape(client_name)}</strong> ({escape(client_email)}) has completed their "
        f'onboarding for "{escape(flow_name)}".</p>'
        + _button(dashboard_url, "View in Dashboard"),
        "This notification was sent by Client Onboarding OS.",
    )
    return EmailMessage(subject, body_text, body_html)


async def send_email(to_email: str, message: EmailMessage, max_attempts: int = 4) -> Dict[str, Any]:
    """
    Send an email via AWS SES with exponential backoff on throttling.

    Returns:
        {"success": True, "message_id": ...} or {"success": True, "mock": True}
        when SES is not configured

    Raises:
        DependencyFailureError: SES rejected the message or kept throttling
    """
    # If AWS SES not configured, log and skip (dev mode)
    if not settings.aws_access_key_id or not settings.aws_secret_access_key:
        logger.warning(
            "aws_ses_not_configured",
            message="Email not sent - AWS SES credentials missing",
            to_email=to_email,
            subject=message.subject,
        )
        return {"success": True, "mock": True}

    ses_client = boto3.client(
        "ses",
        region_name=settings.aws_ses_region,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
    )

    for attempt in range(max_attempts):
        try:
            response = ses_client.send_email(
                Source=settings.email_from,
                Destination={"ToAddresses": [to_email]},
                Message={
                    "Subject": {"Data": message.subject, "Charset": "UTF-8"},
                    "Body": {
                        "Text": {"Data": message.body_text, "Charset": "UTF-8"},
                        "Html": {"Data": message.body_html, "Charset": "UTF-8"},
                    },
                },
            )
            logger.info("email_sent", message_id=response["MessageId"], to_email=to_email)
            return {"success": True, "message_id": response["MessageId"]}
        except ClientError as exc:
            error_code = exc.response["Error"]["Code"]
            if error_code in RETRYABLE_SES_ERRORS and attempt < max_attempts - 1:
                wait = 2 ** attempt
                logger.warning(
                    "email_send_retry",
                    attempt=attempt + 1,
                    wait_seconds=wait,
                    error=error_code,
                )
                await asyncio.sleep(wait)
            else:
                logger.error(
                    "ses_error",
                    error=exc.response["Error"]["Message"],
                    to_email=to_email,
                )
                raise DependencyFailureError("Failed to send email", details={"code": error_code})

    raise DependencyFailureError("Failed to send email")
