"""SecureChat error taxonomy.

Every failure in the E2EE core surfaces as a subclass of SecureChatError with a
stable machine-readable code. HTTP surfaces translate them with raise_api_error.
"""
from enum import Enum
from typing import Optional, Dict, Any

from fastapi import HTTPException


class SecureChatError(Exception):
    """Base class for all SecureChat core errors."""

    code = "SECURECHAT_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class KeyGenerationError(SecureChatError):
    """Crypto provider unavailable or key parameters rejected. Fatal."""

    code = "KEY_GENERATION_FAILED"


class StorageError(SecureChatError):
    """Local key store read/write failure. Callers decide whether to retry."""

    code = "STORAGE_ERROR"


class KeyNotFoundError(SecureChatError):
    code = "KEY_NOT_FOUND"


class EncodingError(SecureChatError):
    """Plaintext is not encodable as UTF-8, or a serialized key is malformed."""

    code = "ENCODING_ERROR"


class DecryptionFailure(str, Enum):
    AUTHENTICATION_FAILED = "authentication failed"
    KEY_MISMATCH = "key mismatch"
    MALFORMED = "malformed envelope"


class DecryptionError(SecureChatError):
    """Envelope could not be opened. Never accompanied by partial plaintext."""

    code = "DECRYPTION_FAILED"

    def __init__(self, kind: DecryptionFailure, detail: Optional[str] = None):
        message = kind.value if not detail else f"{kind.value}: {detail}"
        super().__init__(message)
        self.kind = kind
        self.detail = detail


def raise_api_error(
    code: str,
    status_code: int,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """Raise a standardized SecureChat HTTPException.

    Args:
        code: Error code (KEY_NOT_FOUND, DECRYPTION_FAILED, etc.)
        status_code: HTTP Status Code (404, 422, etc.)
        message: Human readable message
        details: Optional extra details
    """
    error_body: Dict[str, Any] = {
        "code": code,
        "message": message
    }
    if details:
        error_body["details"] = details

    raise HTTPException(status_code=status_code, detail={"error": error_body})


_STATUS_BY_CODE = {
    KeyNotFoundError.code: 404,
    EncodingError.code: 400,
    DecryptionError.code: 422,
    StorageError.code: 503,
    KeyGenerationError.code: 500,
}


def raise_for_error(error: SecureChatError) -> None:
    """Translate a core error into the standardized HTTP error body."""
    details = None
    if isinstance(error, DecryptionError):
        details = {"kind": error.kind.name}
    raise_api_error(error.code, _STATUS_BY_CODE.get(error.code, 500), error.message, details)
