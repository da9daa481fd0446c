"""Transactional email via the Brevo HTTP API.

Every attempt, successful or not, is recorded in the email_logs table.
"""

import logging

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.email_log import EMAIL_FAILED, EMAIL_SENT, EmailLog
from app.models.profile import Profile
from app.services.errors import ConfigurationError, UpstreamError
from app.services.settings_service import ClubConfig

logger = logging.getLogger(__name__)


async def send_templated_email(
    recipient_email: str,
    recipient_name: str,
    template_id: int,
    params: dict,
) -> str:
    """Send a Brevo template email. Returns the provider message id."""
    if not settings.brevo_api_key:
        raise ConfigurationError("Brevo API key not configured", rule="email_provider")

    payload = {
        "to": [{"email": recipient_email, "name": recipient_name}],
        "templateId": template_id,
        "params": params,
    }
    headers = {"accept": "application/json", "api-key": settings.brevo_api_key}

    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            response = await client.post(settings.brevo_api_url, json=payload, headers=headers)
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Email provider unreachable: {exc}") from exc

    if response.status_code >= 400:
        raise UpstreamError(f"Email provider error {response.status_code}: {response.text}")

    return str(response.json().get("messageId", ""))


async def send_event_email(
    db: AsyncSession,
    recipient: Profile,
    event_type: str,
    params: dict,
    config: ClubConfig,
    booking_id: int | None = None,
) -> EmailLog:
    """Send the template mapped to event_type and record the attempt.

    Raises ConfigurationError or UpstreamError after the failed attempt is logged.
    """
    if not recipient.email:
        raise ConfigurationError(f"Profile {recipient.id} has no email address", rule="recipient_email")

    log = EmailLog(
        recipient_email=recipient.email,
        recipient_name=recipient.display_name,
        event_type=event_type,
        params=params,
        booking_id=booking_id,
        status=EMAIL_FAILED,
    )
    db.add(log)

    try:
        log.template_id = config.template_for(event_type)
        log.message_id = await send_templated_email(recipient.email, log.recipient_name, log.template_id, params)
    except (ConfigurationError, UpstreamError) as exc:
        log.error_message = exc.message
        await db.flush()
        raise

    log.status = EMAIL_SENT
    await db.flush()
    logger.info("Sent %s email to %s (message %s)", event_type, recipient.email, log.message_id)
    return log
