"""
KMS-secured key materials for client-side envelope encryption.

Implements the envelope encryption pattern where:
- Each object gets a unique data key generated by the key-management service
- The data key encrypts the object body locally (AES-256-CBC)
- Only the wrapped form of the data key is stored, inside the envelope
- The encryption context {"kms_cmk_id": <key id>} is bound to the wrapped key
  and checked by the key service on every unwrap

Usage:
    materials = create_key_materials(provider="aws-kms")

    # Writing an object
    result = await materials.for_encryption()
    ciphertext = encrypt_bytes(result.cipher, body)
    put_object(body=ciphertext, metadata=result.envelope.to_metadata())

    # Reading it back
    cipher = await materials.for_decryption(stored_metadata)
    body = decrypt_bytes(cipher, ciphertext)
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from kms_envelope.exceptions import ConfigurationError, KeyServiceError
from kms_envelope.schemas.envelope import Envelope
from kms_envelope.services.cipher_factory import KEY_LENGTH, CipherFactory, StreamCipher
from kms_envelope.services.key_service_providers.base import EncryptionContext, KeyService
from kms_envelope.utils.logger import get_logger

logger = get_logger("key_materials")

# Constants
CONTEXT_KEY_ID = "kms_cmk_id"
KEY_SPEC = "AES_256"


@dataclass(frozen=True)
class EncryptionMaterials:
    """Result of for_encryption(): envelope to persist, cipher to stream the body through."""

    envelope: Envelope
    cipher: StreamCipher


class KmsSecuredKeyMaterials:
    """
    Creates and opens encryption envelopes using a key-management service.

    Holds only the configured key id and the key service; both are fixed at
    construction. Every call gets its own data key, IV and cipher, so one
    instance may be shared across tasks and threads as long as the key
    service is.

    Example:
        >>> materials = KmsSecuredKeyMaterials(
        ...     kms_key_id="arn:aws:kms:eu-central-1:111122223333:key/abc",
        ...     key_service=AWSKMSKeyService(),
        ... )
        >>> result = await materials.for_encryption()
        >>> cipher = await materials.for_decryption(result.envelope)
    """

    def __init__(self, kms_key_id: str, key_service: KeyService):
        """
        Args:
            kms_key_id: Master key id, alias or ARN used for new envelopes
            key_service: Key-management service client

        Raises:
            ConfigurationError: If kms_key_id is empty or key_service is missing
        """
        _require_key_id(kms_key_id)
        if key_service is None:
            raise ConfigurationError("A key service is required")

        self._kms_key_id = kms_key_id
        self._key_service = key_service
        logger.info(
            "KmsSecuredKeyMaterials initialized",
            kms_key_id=kms_key_id,
            provider=key_service.get_provider_version(),
        )

    @property
    def kms_key_id(self) -> str:
        return self._kms_key_id

    @property
    def key_service(self) -> KeyService:
        return self._key_service

    async def for_encryption(self) -> EncryptionMaterials:
        """
        Create a new envelope and a matching encryption cipher.

        Makes exactly one generate_data_key call. The plaintext data key is
        used only to seed the returned cipher.

        Returns:
            EncryptionMaterials(envelope, cipher)

        Raises:
            ConfigurationError: If the key id is empty (no network call is made)
            KeyServiceError: If the key service fails; not retried
        """
        _require_key_id(self._kms_key_id)
        encryption_context: EncryptionContext = {CONTEXT_KEY_ID: self._kms_key_id}

        data_key = await self._key_service.generate_data_key(
            self._kms_key_id,
            encryption_context,
            key_spec=KEY_SPEC,
        )
        _require_key_length(data_key.plaintext_key, "generate_data_key")
        if not data_key.wrapped_key:
            raise KeyServiceError("Key service generate_data_key returned an empty wrapped key")

        iv = CipherFactory.random_iv()
        cipher = CipherFactory.encryption_cipher(data_key.plaintext_key, iv)
        envelope = Envelope.build(
            wrapped_key=data_key.wrapped_key,
            iv=iv,
            encryption_context=encryption_context,
        )
        del data_key

        logger.debug("Created encryption envelope", kms_key_id=self._kms_key_id)
        return EncryptionMaterials(envelope=envelope, cipher=cipher)

    async def for_decryption(
        self,
        envelope: Union[Envelope, Mapping[str, Any]],
    ) -> StreamCipher:
        """
        Open an envelope and return a decryption cipher.

        The encryption context is taken from the envelope's material
        description as-is; the key service alone decides whether it matches
        the wrapped key.

        Args:
            envelope: Envelope, or raw object metadata holding the envelope fields

        Returns:
            Decryption cipher seeded with the unwrapped data key and stored IV

        Raises:
            EnvelopeFormatError: If the envelope is malformed (no network call is made)
            KeyServiceContextMismatchError: If the key service rejects the key/context
            KeyServiceError: On any other key service failure; not retried
        """
        if not isinstance(envelope, Envelope):
            envelope = Envelope.from_metadata(envelope)

        encryption_context = envelope.encryption_context
        wrapped_key = envelope.wrapped_key_bytes
        iv = envelope.iv_bytes

        plaintext_key = await self._key_service.decrypt(wrapped_key, encryption_context)
        _require_key_length(plaintext_key, "decrypt")

        cipher = CipherFactory.decryption_cipher(plaintext_key, iv)
        del plaintext_key

        logger.debug(
            "Opened encryption envelope",
            kms_key_id=encryption_context.get(CONTEXT_KEY_ID),
        )
        return cipher


def _require_key_id(kms_key_id: Optional[str]) -> None:
    if not isinstance(kms_key_id, str) or not kms_key_id.strip():
        raise ConfigurationError("A non-empty KMS key id is required")


def _require_key_length(plaintext_key: bytes, operation: str) -> None:
    if not isinstance(plaintext_key, (bytes, bytearray)) or len(plaintext_key) != KEY_LENGTH:
        raise KeyServiceError(
            f"Key service {operation} returned a data key of unexpected size "
            f"(expected {KEY_LENGTH} bytes)"
        )


# =============================================================================
# Factory Function
# =============================================================================


def create_key_materials(
    provider: Optional[str] = None,
    kms_key_id: Optional[str] = None,
    key_service: Optional[KeyService] = None,
) -> KmsSecuredKeyMaterials:
    """
    Factory function to create key materials from settings.

    Args:
        provider: Provider type ("aws-kms" or "local"); defaults to KMS_PROVIDER
        kms_key_id: Key id; defaults to KMS_KEY_ID
        key_service: Pre-built key service; skips provider construction

    Returns:
        Configured KmsSecuredKeyMaterials

    Raises:
        ConfigurationError: If the provider is unknown or required settings are missing

    Example:
        >>> materials = create_key_materials(provider="local", kms_key_id="dev-key")
    """
    from kms_envelope.config import settings

    kms_key_id = kms_key_id if kms_key_id is not None else settings.kms_key_id
    _require_key_id(kms_key_id)

    if key_service is not None:
        return KmsSecuredKeyMaterials(kms_key_id, key_service)

    provider = provider or settings.KMS_PROVIDER

    if provider == "aws-kms":
        from kms_envelope.services.key_service_providers.aws_kms import AWSKMSKeyService

        key_service = AWSKMSKeyService(
            region_name=settings.AWS_REGION,
            endpoint_url=settings.KMS_ENDPOINT_URL,
        )

    elif provider == "local":
        from kms_envelope.services.key_service_providers.local_kms import LocalKMSKeyService

        if not settings.LOCAL_KMS_MASTER_KEY:
            raise ConfigurationError("LOCAL_KMS_MASTER_KEY is required for the local provider")
        try:
            key_service = LocalKMSKeyService(master_key=settings.LOCAL_KMS_MASTER_KEY)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    else:
        raise ConfigurationError(f"Unsupported key service provider: {provider}")

    return KmsSecuredKeyMaterials(kms_key_id, key_service)
