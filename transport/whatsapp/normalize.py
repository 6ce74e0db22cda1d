"""
WhatsApp Input Normalization

PURE CONVERSION - NO LOGIC, NO MODEL CALLS

Converts a WhatsApp webhook payload into the canonical NormalizedMessage.
Only text messages reach the conversation engine; every other message type
is rejected here.
"""

import re
from datetime import datetime
from typing import Optional

from .schemas import NormalizedMessage, WhatsAppWebhookPayload


class NormalizationError(Exception):
    """Input normalization failed."""
    pass


_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_sender_id(raw: str) -> str:
    """
    Reduce a WhatsApp sender to the ConversationKey form (digits only).

    >>> normalize_sender_id("+52 (55) 1234-5678")
    '525512345678'
    """
    key = _NON_DIGITS.sub("", raw or "")
    if not key:
        raise NormalizationError(f"Sender has no digits: {raw!r}")
    return key


def is_status_update(payload: dict) -> bool:
    """True for delivery/read receipts, which carry no user message."""
    try:
        value = payload["entry"][0]["changes"][0]["value"]
    except (KeyError, IndexError, TypeError):
        return False
    return bool(value.get("statuses")) and not value.get("messages")


def normalize_message(
    payload: dict | WhatsAppWebhookPayload,
) -> NormalizedMessage:
    """
    Convert WhatsApp webhook message into NormalizedMessage.

    Args:
        payload: Raw WhatsApp webhook payload

    Returns:
        NormalizedMessage ready for the conversation engine

    Raises:
        NormalizationError: Invalid payload or non-text message
    """

    if isinstance(payload, WhatsAppWebhookPayload):
        payload = payload.model_dump()

    try:
        value = payload["entry"][0]["changes"][0]["value"]
        messages = value.get("messages", [])

        if not messages:
            raise NormalizationError("No messages in payload")

        message = messages[0]
        sender_id = normalize_sender_id(message["from"])
        message_id = message["id"]
        timestamp = int(message["timestamp"])

    except (KeyError, IndexError, ValueError, TypeError) as e:
        raise NormalizationError(f"Invalid payload structure: {e}")

    message_type = message.get("type")
    if message_type != "text":
        raise NormalizationError(f"Unsupported message type: {message_type}")

    try:
        text_body = message["text"]["body"]
    except (KeyError, TypeError):
        raise NormalizationError("Text message missing 'text.body'")

    return NormalizedMessage(
        input_text=text_body.strip(),
        sender_id=sender_id,
        sender_name=_contact_name(value, message["from"]),
        message_id=message_id,
        timestamp=datetime.fromtimestamp(timestamp),
    )


def _contact_name(value: dict, wa_id: str) -> Optional[str]:
    for contact in value.get("contacts") or []:
        if contact.get("wa_id") in (None, wa_id):
            name = (contact.get("profile") or {}).get("name")
            if name:
                return name
    return None


def extract_sender_id(payload: dict) -> str:
    """
    Extract the normalized sender from payload.

    Useful for routing/logging without full normalization.
    """
    try:
        return normalize_sender_id(payload["entry"][0]["changes"][0]["value"]["messages"][0]["from"])
    except (KeyError, IndexError, TypeError):
        raise NormalizationError("Cannot extract sender_id from payload")
