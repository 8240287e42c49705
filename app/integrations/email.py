import logging

import httpx

from app.config import (
    SENDGRID_API_KEY,
    SENDGRID_API_URL,
    EMAIL_FROM_ADDRESS,
    EMAIL_FROM_NAME,
    EMAIL_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


def build_payload(to: str, subject: str, text: str) -> dict:
    return {
        "personalizations": [{"to": [{"email": to}]}],
        "from": {"email": EMAIL_FROM_ADDRESS, "name": EMAIL_FROM_NAME},
        "subject": subject,
        "content": [{"type": "text/plain", "value": text}],
    }


async def send_email(to: str, subject: str, text: str) -> bool:
    """Send a plain text email; returns False when delivery is not configured or fails"""
    if not SENDGRID_API_KEY:
        logger.info("Email delivery not configured, skipping '%s' to %s", subject, to)
        return False

    try:
        async with httpx.AsyncClient(timeout=EMAIL_TIMEOUT_SECONDS) as client:
            response = await client.post(
                SENDGRID_API_URL,
                json=build_payload(to, subject, text),
                headers={"Authorization": f"Bearer {SENDGRID_API_KEY}"},
            )
        if response.status_code >= 400:
            logger.error("Email to %s rejected: %s %s", to, response.status_code, response.text)
            return False
        return True
    except httpx.HTTPError as e:
        logger.error("Email to %s failed: %s", to, e)
        return False
