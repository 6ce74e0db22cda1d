"""
WhatsApp Transport Layer - Pydantic Schemas

PURE DATA MODELS - NO LOGIC
Only defines the contract between WhatsApp and the conversation engine.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


# ============================================================================
# NORMALIZED MESSAGE (THE CONTRACT)
# ============================================================================

class NormalizedMessage(BaseModel):
    """
    Canonical inbound message consumed by the conversation engine.

    sender_id doubles as the ConversationKey.
    """

    input_text: str = Field(..., description="Trimmed message body")
    sender_id: str = Field(..., description="Sender phone number, digits only")
    sender_name: Optional[str] = Field(None, description="WhatsApp profile name, if sent")
    message_id: str = Field(..., description="Unique WhatsApp message ID")
    timestamp: datetime = Field(..., description="Message timestamp")
    transport: Literal["whatsapp"] = "whatsapp"
    input_type: Literal["text"] = "text"

    class Config:
        frozen = True


# ============================================================================
# WHATSAPP WEBHOOK PAYLOAD SCHEMAS (INPUT)
# ============================================================================

class WhatsAppWebhookPayload(BaseModel):
    """
    Full WhatsApp webhook payload.

    ref: https://developers.facebook.com/docs/whatsapp/cloud-api/webhooks/payload-example
    """

    object: str = Field(..., description="Always 'whatsapp_business_account'")
    entry: list[dict] = Field(..., description="Webhook entries")

    class Config:
        extra = "allow"  # WhatsApp may add fields


# ============================================================================
# API PAYLOADS
# ============================================================================

class InvokePayload(BaseModel):
    """Direct engine call, bypassing WhatsApp (curl, tests, other channels)."""

    conversation_key: str = Field(..., min_length=1, description="ConversationKey")
    text: str = Field(..., description="User message")
    trace_id: Optional[str] = None


class WhatsAppMessageResponse(BaseModel):
    """Response from WhatsApp Cloud API when sending a message."""

    messaging_product: str = Field(default="whatsapp")
    contacts: list[dict[str, str]] = Field(default_factory=list)
    messages: list[dict[str, str]] = Field(default_factory=list)

    class Config:
        extra = "allow"
