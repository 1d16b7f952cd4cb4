"""
Exceptions for envelope encryption key materials.

Every runtime failure derives from EnvelopeEncryptionError so callers can
catch the whole family, while still telling the kinds apart.
"""
from typing import Optional


class EnvelopeEncryptionError(Exception):
    """Base exception for envelope encryption errors."""
    pass


class ConfigurationError(EnvelopeEncryptionError):
    # missing or invalid key id / provider settings, raised before any network call
    pass


class KeyServiceError(EnvelopeEncryptionError):
    """
    Raised when the key-management service rejects or fails a request.

    Attributes:
        message: Error message
        code: Service error code (e.g. "AccessDeniedException"), if known
    """

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class KeyServiceUnavailableError(KeyServiceError):
    # network failure, throttling, internal service error
    pass


class KeyServiceAccessDeniedError(KeyServiceError):
    # unauthorized, disabled or unknown key id
    pass


class KeyServiceContextMismatchError(KeyServiceError):
    # wrapped key or encryption context was tampered with
    pass


class EnvelopeFormatError(EnvelopeEncryptionError):
    # malformed base64/JSON or missing fields in a stored envelope
    pass


class DecryptionFailedError(EnvelopeEncryptionError):
    # ciphertext could not be decrypted (bad padding, truncated body)
    pass


class CipherStateError(RuntimeError):
    """
    Raised when a cipher is used outside its lifecycle.

    Signals a caller bug such as update() after finalize(). Not part of the
    EnvelopeEncryptionError family.
    """
    pass
