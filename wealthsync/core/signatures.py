"""Webhook signature verification over the literal raw request body."""

from __future__ import annotations

import hashlib
import hmac
from typing import Literal, Optional

from Crypto.Hash import keccak

from wealthsync.core.errors import ConfigurationError, SignatureVerificationError
from wealthsync.core.logging import get_logger

log = get_logger("signatures")

Scheme = Literal["hmac-sha256", "keccak256"]


def hmac_sha256_hex(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def keccak256_hex(body: bytes, secret: str) -> str:
    # Moralis streams: keccak256(JSON body + secret), hex with 0x prefix
    digest = keccak.new(digest_bits=256)
    digest.update(body + secret.encode("utf-8"))
    return "0x" + digest.hexdigest()


class WebhookVerifier:
    """Checks a provider signature header against a shared secret."""

    def __init__(self, provider: str, secret: Optional[str], scheme: Scheme):
        if not secret:
            raise ConfigurationError(f"Webhook secret for {provider} not configured")
        if scheme not in ("hmac-sha256", "keccak256"):
            raise ConfigurationError(f"Unsupported webhook signature scheme: {scheme}")
        self.provider = provider
        self.secret = secret
        self.scheme = scheme

    def expected(self, body: bytes) -> str:
        if self.scheme == "keccak256":
            return keccak256_hex(body, self.secret)
        return hmac_sha256_hex(body, self.secret)

    def verify(self, body: bytes, signature: Optional[str]) -> None:
        """Raise ``SignatureVerificationError`` unless ``signature`` matches."""
        if not signature:
            raise SignatureVerificationError(f"Missing signature header for {self.provider} webhook")
        expected = _strip_hex_prefix(self.expected(body))
        received = _strip_hex_prefix(signature.strip())
        if not hmac.compare_digest(expected.lower().encode("utf-8"), received.lower().encode("utf-8")):
            log.warning(f"Rejected {self.provider} webhook with invalid signature")
            raise SignatureVerificationError(f"Invalid signature for {self.provider} webhook")


def _strip_hex_prefix(value: str) -> str:
    return value[2:] if value[:2].lower() == "0x" else value
