"""
WhatsApp Signature Verification

SECURITY BOUNDARY - Verify Meta HMAC signature.
"""

import hashlib
import hmac
from typing import Optional

from fastapi import HTTPException, status

from config import Config


class SignatureVerificationError(Exception):
    """Signature verification failed."""
    pass


def compute_signature(body: bytes, app_secret: str) -> str:
    """X-Hub-Signature-256 header value for a body."""
    return "sha256=" + hmac.new(
        key=app_secret.encode("utf-8"),
        msg=body,
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify_signature(
    body: bytes,
    signature: Optional[str],
    app_secret: Optional[str] = None,
) -> None:
    """
    Verify Meta HMAC-SHA256 signature on a WhatsApp webhook body.

    Args:
        body: Raw request body bytes
        signature: X-Hub-Signature-256 header value
        app_secret: App secret (Config.WHATSAPP_APP_SECRET by default)

    Raises:
        SignatureVerificationError: Missing secret, missing or wrong signature
    """
    secret = app_secret if app_secret is not None else Config.WHATSAPP_APP_SECRET
    if not secret:
        raise SignatureVerificationError("WHATSAPP_APP_SECRET not configured")
    if not signature:
        raise SignatureVerificationError("Missing X-Hub-Signature-256 header")

    # Constant-time comparison
    if not hmac.compare_digest(signature, compute_signature(body, secret)):
        raise SignatureVerificationError("Invalid signature")


def verify_webhook_challenge(
    hub_mode: str,
    hub_challenge: str,
    hub_verify_token: str,
    expected_token: Optional[str] = None,
) -> str:
    """
    Verify webhook subscription challenge from WhatsApp.

    WhatsApp calls GET /webhook/whatsapp with hub.mode=subscribe,
    hub.challenge and hub.verify_token; the challenge is echoed back.

    Raises:
        HTTPException(400): Invalid mode
        HTTPException(403): Invalid token
    """
    expected = expected_token if expected_token is not None else Config.WHATSAPP_VERIFY_TOKEN

    if hub_mode != "subscribe":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid hub.mode"
        )

    if not expected or not hmac.compare_digest(hub_verify_token or "", expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid hub.verify_token"
        )

    return hub_challenge
