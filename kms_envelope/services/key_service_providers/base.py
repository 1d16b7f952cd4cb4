"""
Abstract base class for key-management service providers.

A key service owns the customer master keys. The client never sees them; it
asks the service to:
1. Generate a fresh data key, returned both in plaintext and wrapped form
2. Unwrap a previously wrapped data key

Both calls bind an encryption context (authenticated associated data) to the
wrapped key. Unwrapping with a different context must fail inside the
service; providers never compare contexts themselves.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict

EncryptionContext = Dict[str, str]


@dataclass(frozen=True)
class DataKey:
    """A data key as returned by generate_data_key()."""

    plaintext_key: bytes
    wrapped_key: bytes

    def __repr__(self) -> str:
        # Plaintext key material must never end up in logs or tracebacks
        return f"DataKey(plaintext_key=<redacted>, wrapped_key=<{len(self.wrapped_key)} bytes>)"


class KeyService(ABC):
    """
    Capability interface for a key-management service.

    Thread Safety:
        Implementations must be safe for concurrent use; the envelope key
        provider shares one instance across all calls.

    Example:
        >>> service = LocalKMSKeyService(master_key="...")
        >>> data_key = await service.generate_data_key("key-1", {"kms_cmk_id": "key-1"})
        >>> plaintext = await service.decrypt(data_key.wrapped_key, {"kms_cmk_id": "key-1"})
        >>> assert plaintext == data_key.plaintext_key
    """

    @abstractmethod
    async def generate_data_key(
        self,
        key_id: str,
        encryption_context: EncryptionContext,
        key_spec: str = "AES_256",
    ) -> DataKey:
        """
        Generate a data key under the given master key.

        Args:
            key_id: Master key identifier (id, alias or ARN)
            encryption_context: Context bound to the wrapped key
            key_spec: Requested data key spec ("AES_256" = 32 bytes)

        Returns:
            DataKey with plaintext and wrapped forms

        Raises:
            KeyServiceError: On any service-side failure
        """
        pass

    @abstractmethod
    async def decrypt(
        self,
        wrapped_key: bytes,
        encryption_context: EncryptionContext,
    ) -> bytes:
        """
        Unwrap a data key.

        Args:
            wrapped_key: Wrapped key as returned by generate_data_key()
            encryption_context: Context that was bound at generation time

        Returns:
            Plaintext data key bytes

        Raises:
            KeyServiceContextMismatchError: If the key or context was tampered with
            KeyServiceError: On any other service-side failure
        """
        pass

    @abstractmethod
    def get_provider_version(self) -> str:
        """
        Get the version identifier for this provider (e.g. "aws-kms-v1").
        """
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} version={self.get_provider_version()}>"
