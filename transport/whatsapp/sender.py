"""
WhatsApp Response Sender

Sends engine replies back to WhatsApp. No retries.
"""

import logging
import os
from typing import Optional

import httpx

from config import Config

from .schemas import WhatsAppMessageResponse

logger = logging.getLogger(__name__)

GRAPH_API_URL = "https://graph.facebook.com"


class WhatsAppSenderError(Exception):
    """Failed to send response to WhatsApp."""
    pass


def build_text_payload(recipient: str, body: str) -> dict:
    return {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": recipient,
        "type": "text",
        "text": {"preview_url": False, "body": body},
    }


async def send_text(
    recipient: str,
    body: str,
    phone_number_id: Optional[str] = None,
    access_token: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> WhatsAppMessageResponse:
    """
    Send a text message via the WhatsApp Cloud API.

    Args:
        recipient: Phone number (ConversationKey)
        body: Reply text
        phone_number_id: Business phone_number_id (Config by default)
        access_token: Bearer token (Config by default)
        client: Optional shared AsyncClient

    Returns:
        WhatsAppMessageResponse from Meta API

    Raises:
        WhatsAppSenderError: If configuration is missing or the send fails
    """
    access_token = access_token or Config.WHATSAPP_ACCESS_TOKEN
    if not access_token:
        raise WhatsAppSenderError("WHATSAPP_ACCESS_TOKEN not configured")

    phone_number_id = phone_number_id or Config.WHATSAPP_PHONE_NUMBER_ID
    if not phone_number_id:
        raise WhatsAppSenderError("WHATSAPP_PHONE_NUMBER_ID not configured")

    api_version = os.getenv("WHATSAPP_API_VERSION", "v18.0")
    endpoint = f"{GRAPH_API_URL}/{api_version}/{phone_number_id}/messages"
    headers = {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
    }
    payload = build_text_payload(recipient, body)

    try:
        if client is None:
            async with httpx.AsyncClient() as own_client:
                response = await own_client.post(endpoint, json=payload, headers=headers, timeout=30.0)
        else:
            response = await client.post(endpoint, json=payload, headers=headers, timeout=30.0)
    except httpx.RequestError as e:
        logger.error(f"HTTP request failed: {e}", extra={"recipient": recipient})
        raise WhatsAppSenderError(f"HTTP request failed: {e}")

    if response.status_code != 200:
        logger.error(
            f"WhatsApp API error: {response.status_code} - {response.text}",
            extra={"status_code": response.status_code, "recipient": recipient},
        )
        raise WhatsAppSenderError(f"WhatsApp API returned {response.status_code}")

    result = WhatsAppMessageResponse(**response.json())
    logger.info(
        f"Reply sent to {recipient}",
        extra={
            "recipient": recipient,
            "response_id": (result.messages or [{}])[0].get("id"),
        },
    )
    return result
