"""WhatsApp Transport Layer - Module Exports"""

from .normalize import (
    NormalizationError,
    extract_sender_id,
    is_status_update,
    normalize_message,
    normalize_sender_id,
)
from .schemas import (
    InvokePayload,
    NormalizedMessage,
    WhatsAppMessageResponse,
    WhatsAppWebhookPayload,
)
from .security import (
    SignatureVerificationError,
    compute_signature,
    verify_signature,
    verify_webhook_challenge,
)
from .sender import WhatsAppSenderError, build_text_payload, send_text
from .webhook import get_engine, router

__all__ = [
    # Schemas
    "NormalizedMessage",
    "WhatsAppWebhookPayload",
    "InvokePayload",
    "WhatsAppMessageResponse",
    # Normalization
    "normalize_message",
    "normalize_sender_id",
    "is_status_update",
    "extract_sender_id",
    "NormalizationError",
    # Security
    "compute_signature",
    "verify_signature",
    "verify_webhook_challenge",
    "SignatureVerificationError",
    # Sender
    "build_text_payload",
    "send_text",
    "WhatsAppSenderError",
    # Router
    "router",
    "get_engine",
]
