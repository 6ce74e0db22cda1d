"""
WhatsApp Webhook Receiver

FastAPI router that receives WhatsApp messages, hands them to the
conversation engine and sends the reply back.
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse

from agent.orchestrator import ConversationEngine
from infra import InfraBootstrap

from .normalize import NormalizationError, is_status_update, normalize_message
from .security import SignatureVerificationError, verify_signature, verify_webhook_challenge
from .sender import WhatsAppSenderError, send_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["WhatsApp Transport"])


def get_engine() -> ConversationEngine:
    """Engine dependency; tests override it through app.dependency_overrides."""
    return InfraBootstrap.get_instance().get_engine()


# ============================================================================
# WEBHOOK CHALLENGE (Setup only)
# ============================================================================

@router.get("/whatsapp", response_class=PlainTextResponse)
async def whatsapp_webhook_challenge(
    hub_mode: str = Query(..., alias="hub.mode"),
    hub_challenge: str = Query(..., alias="hub.challenge"),
    hub_verify_token: str = Query(..., alias="hub.verify_token"),
) -> str:
    """
    Verify webhook subscription challenge from Meta.

    Returns:
        The challenge string (plain text)

    Raises:
        HTTPException(403): Invalid token
        HTTPException(400): Invalid mode
    """
    return verify_webhook_challenge(hub_mode, hub_challenge, hub_verify_token)


# ============================================================================
# WEBHOOK RECEIVER (Message processing)
# ============================================================================

@router.post("/whatsapp")
async def whatsapp_webhook_receiver(
    request: Request,
    engine: ConversationEngine = Depends(get_engine),
) -> dict[str, str]:
    """
    Receive WhatsApp messages via webhook.

    Flow:
    1. Verify signature (403 if missing or invalid)
    2. Parse JSON (422 if invalid)
    3. Normalize to NormalizedMessage (400 for non-text messages)
    4. Run the conversation engine
    5. Send the reply back to WhatsApp

    Once the payload is accepted the webhook answers 200, even when the
    reply could not be delivered.
    """
    body = await request.body()

    try:
        verify_signature(body, request.headers.get("X-Hub-Signature-256"))
    except SignatureVerificationError as e:
        logger.warning(f"Signature verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Signature verification failed"
        )

    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid JSON payload"
        )

    if is_status_update(payload):
        return {"status": "ignored"}

    try:
        normalized = normalize_message(payload)
    except NormalizationError as e:
        logger.warning(f"Normalization failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Normalization failed: {str(e)}"
        )

    logger.info(
        "Message normalized",
        extra={
            "sender_id": normalized.sender_id,
            "message_id": normalized.message_id,
        },
    )

    reply = await engine.handle_message(
        normalized.sender_id,
        normalized.input_text,
        trace_id=normalized.message_id,
        sender_name=normalized.sender_name,
    )

    try:
        await send_text(normalized.sender_id, reply.reply)
    except WhatsAppSenderError as e:
        # WhatsApp expects 200 regardless of delivery
        logger.error(f"Failed to send response: {e}", extra={"sender_id": normalized.sender_id})

    return {"status": "ok", "reply_status": reply.status}
