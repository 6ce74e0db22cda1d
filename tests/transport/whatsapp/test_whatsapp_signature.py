"""
WhatsApp Signature Verification Tests

Verify Meta HMAC-SHA256 signature validation and the subscription challenge.
"""

import hashlib
import hmac
import json

import pytest
from fastapi import HTTPException

from config import Config
from transport.whatsapp.security import (
    SignatureVerificationError,
    compute_signature,
    verify_signature,
    verify_webhook_challenge,
)


class TestSignatureVerification:
    """Test HMAC signature verification."""

    def test_valid_signature(self):
        """Valid signature passes."""
        app_secret = "test_secret"
        payload = json.dumps({"test": "data"}).encode()

        expected_sig = "sha256=" + hmac.new(
            key=app_secret.encode(),
            msg=payload,
            digestmod=hashlib.sha256
        ).hexdigest()

        assert compute_signature(payload, app_secret) == expected_sig
        # Should not raise
        verify_signature(payload, expected_sig, app_secret=app_secret)

    def test_invalid_signature(self):
        with pytest.raises(SignatureVerificationError, match="Invalid signature"):
            verify_signature(b"{}", "sha256=invalid", app_secret="secret")

    def test_tampered_body(self):
        signature = compute_signature(b'{"a": 1}', "secret")
        with pytest.raises(SignatureVerificationError):
            verify_signature(b'{"a": 2}', signature, app_secret="secret")

    def test_missing_signature(self):
        with pytest.raises(SignatureVerificationError, match="Missing"):
            verify_signature(b"{}", None, app_secret="secret")

    def test_missing_secret(self, monkeypatch):
        monkeypatch.setattr(Config, "WHATSAPP_APP_SECRET", "")
        with pytest.raises(SignatureVerificationError, match="not configured"):
            verify_signature(b"{}", "sha256=whatever")

    def test_secret_from_config(self, monkeypatch):
        monkeypatch.setattr(Config, "WHATSAPP_APP_SECRET", "from_env")
        verify_signature(b"{}", compute_signature(b"{}", "from_env"))


class TestWebhookChallenge:
    """Test GET subscription challenge."""

    def test_valid_challenge(self):
        assert verify_webhook_challenge("subscribe", "12345", "tok", expected_token="tok") == "12345"

    def test_wrong_mode(self):
        with pytest.raises(HTTPException) as exc_info:
            verify_webhook_challenge("unsubscribe", "12345", "tok", expected_token="tok")
        assert exc_info.value.status_code == 400

    def test_wrong_token(self):
        with pytest.raises(HTTPException) as exc_info:
            verify_webhook_challenge("subscribe", "12345", "otro", expected_token="tok")
        assert exc_info.value.status_code == 403

    def test_unconfigured_token_rejects_everything(self, monkeypatch):
        monkeypatch.setattr(Config, "WHATSAPP_VERIFY_TOKEN", "")
        with pytest.raises(HTTPException) as exc_info:
            verify_webhook_challenge("subscribe", "12345", "")
        assert exc_info.value.status_code == 403
