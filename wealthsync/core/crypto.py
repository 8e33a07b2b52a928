"""Authenticated encryption for provider access tokens at rest."""

from __future__ import annotations

import base64
import os
from typing import Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from wealthsync.core.errors import ConfigurationError, CredentialError

NONCE_SIZE = 12
KEY_SIZE = 32


class TokenCipher:
    """AES-256-GCM with a fresh random nonce on every ``encrypt`` call.

    Ciphertext and nonce are returned base64-encoded so they can be stored in
    two text columns; the GCM tag travels at the end of the ciphertext.
    """

    def __init__(self, key: str | None):
        if not key:
            raise ConfigurationError("ENCRYPTION_KEY not configured")
        raw = key.encode("utf-8")
        if len(raw) != KEY_SIZE:
            raise ConfigurationError(f"ENCRYPTION_KEY must be exactly {KEY_SIZE} characters long")
        self._aead = AESGCM(raw)

    def encrypt(self, plaintext: str) -> Tuple[str, str]:
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return (
            base64.b64encode(ciphertext).decode("ascii"),
            base64.b64encode(nonce).decode("ascii"),
        )

    def decrypt(self, ciphertext_b64: str, iv_b64: str) -> str:
        try:
            nonce = base64.b64decode(iv_b64, validate=True)
            ciphertext = base64.b64decode(ciphertext_b64, validate=True)
        except ValueError as exc:
            raise CredentialError(f"Stored credential is not valid base64: {exc}") from exc
        if len(nonce) != NONCE_SIZE:
            raise CredentialError(f"Stored nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
        try:
            plaintext = self._aead.decrypt(nonce, ciphertext, None)
        except InvalidTag as exc:
            raise CredentialError("Stored credential failed authentication") from exc
        return plaintext.decode("utf-8")
