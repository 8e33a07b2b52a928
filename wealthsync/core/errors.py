"""Error taxonomy shared by adapters, services and the HTTP layer.

Every error carries the HTTP status it maps to and a short title used as the
``error`` field of the response envelope:

- ConfigurationError: missing or malformed secret, fatal for the invocation
- InvalidRequestError: a required field is missing, rejected before any I/O
- NotFoundError: the referenced asset, connection or symbol does not exist
- UpstreamProviderError: non-2xx or malformed payload from a provider
- PersistenceError: constraint violation or connection failure
- SignatureVerificationError: webhook body not signed with the shared secret
- CredentialError: a stored credential failed authenticated decryption
"""

from __future__ import annotations

from typing import Optional


class WealthSyncError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    title: str = "Internal Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(WealthSyncError):
    status_code = 500
    title = "Configuration Error"


class InvalidRequestError(WealthSyncError):
    status_code = 400
    title = "Validation Error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(WealthSyncError):
    status_code = 404
    title = "Not Found"


class UpstreamProviderError(WealthSyncError):
    status_code = 502
    title = "Upstream Provider Error"

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status = status


class PersistenceError(WealthSyncError):
    status_code = 500
    title = "Persistence Error"


class SignatureVerificationError(WealthSyncError):
    status_code = 401
    title = "Invalid Signature"


class CredentialError(WealthSyncError):
    status_code = 500
    title = "Credential Error"
