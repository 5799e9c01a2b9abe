"""
NRIC Identity Gateway Errors
Closed error taxonomy for the identity workflow.

Every error carries an HTTP status code, a human-readable message and a
structured payload; the gateway serializes them with ``to_dict()``.
"""

from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base class for every error surfaced by the gateway."""

    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def payload(self) -> Dict[str, Any]:
        """Structured fields specific to the error (camelCase keys)."""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "code": type(self).__name__}
        body.update({k: v for k, v in self.payload().items() if v is not None})
        return body


class ConfigurationError(GatewayError):
    default_message = "Gateway is not configured"


# ============ Validation (400) ============

class ValidationError(GatewayError):
    """Malformed input, caught before any external call."""
    status_code = 400
    default_message = "Invalid request"


class MissingFields(ValidationError):
    default_message = "NRIC and wallet address are required"


class MissingNric(ValidationError):
    default_message = "NRIC is required"


class MissingEvidence(ValidationError):
    default_message = "Either metadataCID or file is required"


class MissingFile(ValidationError):
    default_message = "No file uploaded"


class InvalidWallet(ValidationError):
    default_message = "Invalid wallet address"

    def __init__(self, wallet: str, message: Optional[str] = None):
        self.wallet = wallet
        super().__init__(message)

    def payload(self) -> Dict[str, Any]:
        return {"wallet": self.wallet}


class InvalidMediaType(ValidationError):
    default_message = "Invalid file type. Only PDF, JPEG, PNG, or JSON allowed."

    def __init__(self, mime_type: Optional[str]):
        self.mime_type = mime_type
        super().__init__()

    def payload(self) -> Dict[str, Any]:
        return {"mimeType": self.mime_type}


class InvalidEvidence(ValidationError):
    default_message = "Invalid evidence file"


# ============ Conflict (400) ============

class ConflictError(GatewayError):
    """Uniqueness or state invariant violation."""
    status_code = 400
    default_message = "Conflicting identity state"


class AlreadyBound(ConflictError):
    default_message = "NRIC already bound"

    def __init__(self, existing_wallet: str):
        self.existing_wallet = existing_wallet
        super().__init__()

    def payload(self) -> Dict[str, Any]:
        return {"existingWallet": self.existing_wallet}


class WalletAlreadyBound(ConflictError):
    default_message = "Wallet already bound"

    def __init__(self, existing_nric: str):
        self.existing_nric = existing_nric
        super().__init__()

    def payload(self) -> Dict[str, Any]:
        return {"existingNric": self.existing_nric}


# ============ Authorization (403) ============

class AuthorizationError(GatewayError):
    status_code = 403
    default_message = "Not authorized"


class NotAuthorized(AuthorizationError):
    default_message = "Not authorized registrar"

    def __init__(self, registrar: str):
        self.registrar = registrar
        super().__init__()

    def payload(self) -> Dict[str, Any]:
        return {"registrar": self.registrar}


# ============ Not found (404) ============

class NotFoundError(GatewayError):
    status_code = 404
    default_message = "Not found"


class NricNotRegistered(NotFoundError):
    default_message = "NRIC not registered"

    def __init__(self, nric: str):
        self.nric = nric
        super().__init__()

    def payload(self) -> Dict[str, Any]:
        return {"nric": self.nric}


# ============ Upstream (500) ============

class UpstreamError(GatewayError):
    """Ledger or storage network failure."""
    status_code = 500
    default_message = "Upstream service failure"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        self.details = details
        self.orphaned_cid: Optional[str] = None
        super().__init__(message)

    def payload(self) -> Dict[str, Any]:
        return {"details": self.details, "orphanedCid": self.orphaned_cid}


class StorageUnavailable(UpstreamError):
    default_message = "Evidence store unavailable"


class StagingIOError(UpstreamError):
    default_message = "Failed to stage evidence file"


class LedgerError(UpstreamError):
    default_message = "Ledger call failed"


class TransactionRejected(LedgerError):
    default_message = "Transaction rejected"


class TransactionTimeout(LedgerError):
    default_message = "Transaction was not confirmed in time"


class NetworkError(LedgerError):
    default_message = "Ledger network error"
