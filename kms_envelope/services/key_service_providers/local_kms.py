"""
Local key-management service.

Stands in for a cloud KMS during development and tests. A single master
key string is expanded into one key-encryption key (KEK) per key id, and
data keys are wrapped with AES-256-GCM using the encryption context as
associated data.

Security properties:
- Per-key-id isolation via HKDF-SHA256 with the key id in the info field
- AES-256-GCM binds the encryption context: any change makes unwrap fail
- 96-bit random nonce per wrap (stored inside the wrapped key)

Wrapped key layout:
    key_id_len (2 bytes, big-endian) || key_id (UTF-8) || nonce (12) || ciphertext || tag (16)

Not a substitute for a real KMS: the master key lives in process memory.
"""

import json
import os
import struct
from typing import Iterable, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from kms_envelope.exceptions import (
    KeyServiceAccessDeniedError,
    KeyServiceContextMismatchError,
    KeyServiceError,
)
from kms_envelope.services.key_service_providers.base import (
    DataKey,
    EncryptionContext,
    KeyService,
)
from kms_envelope.utils.logger import get_logger

logger = get_logger("key_service.local")

KEY_SPEC_LENGTHS = {"AES_256": 32, "AES_128": 16}


class LocalKMSKeyService(KeyService):
    """
    In-process key service using HKDF key derivation + AES-GCM wrapping.

    Key derivation:
        KEK = HKDF-SHA256(master_key, salt=None, info="kms-envelope-local:" + key_id)

    Thread Safety:
        Key derivation and wrapping are stateless. The call counters are
        advisory and intended for single-threaded tests.

    Counters:
        generate_calls and decrypt_calls count attempts, rejected calls
        included. They are not a count of successful round trips.

    Example:
        >>> service = LocalKMSKeyService(master_key="test-master-key-12345678")
        >>> data_key = await service.generate_data_key("key-1", {"kms_cmk_id": "key-1"})
    """

    VERSION = "local-kms-v1"
    KEK_LENGTH = 32  # AES-256
    NONCE_LENGTH = 12  # 96 bits for GCM
    TAG_LENGTH = 16

    def __init__(self, master_key: str, allowed_key_ids: Optional[Iterable[str]] = None):
        """
        Initialize with a master key string.

        Args:
            master_key: Master secret (at least 16 characters)
            allowed_key_ids: If given, only these key ids may be used;
                others are rejected as access denied

        Raises:
            ValueError: If master_key is empty or too short
        """
        if not master_key or len(master_key) < 16:
            raise ValueError("Master key must be at least 16 characters")

        self._master_key = master_key.encode("utf-8")
        self._allowed_key_ids = frozenset(allowed_key_ids) if allowed_key_ids is not None else None
        self.generate_calls = 0
        self.decrypt_calls = 0
        logger.info("LocalKMSKeyService initialized", version=self.VERSION)

    def _derive_kek(self, key_id: str) -> bytes:
        hkdf = HKDF(
            algorithm=hashes.SHA256(),
            length=self.KEK_LENGTH,
            salt=None,
            info=b"kms-envelope-local:" + key_id.encode("utf-8"),
        )
        return hkdf.derive(self._master_key)

    def _check_key_id(self, key_id: str) -> None:
        if not key_id:
            raise KeyServiceAccessDeniedError("Key id is required", code="NotFoundException")
        if self._allowed_key_ids is not None and key_id not in self._allowed_key_ids:
            raise KeyServiceAccessDeniedError(
                f"Key '{key_id}' does not exist or access is denied",
                code="NotFoundException",
            )

    @staticmethod
    def _aad(key_id: str, encryption_context: EncryptionContext) -> bytes:
        # Canonical form so that dict ordering never changes the AAD
        payload = {"key_id": key_id, "context": dict(encryption_context or {})}
        return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")

    async def generate_data_key(
        self,
        key_id: str,
        encryption_context: EncryptionContext,
        key_spec: str = "AES_256",
    ) -> DataKey:
        """Generate a random data key and wrap it under the key id's KEK."""
        self.generate_calls += 1
        self._check_key_id(key_id)

        key_length = KEY_SPEC_LENGTHS.get(key_spec)
        if key_length is None:
            raise KeyServiceError(f"Unsupported key spec: {key_spec}", code="ValidationException")

        plaintext_key = os.urandom(key_length)
        nonce = os.urandom(self.NONCE_LENGTH)
        aesgcm = AESGCM(self._derive_kek(key_id))
        ciphertext = aesgcm.encrypt(nonce, plaintext_key, self._aad(key_id, encryption_context))

        key_id_bytes = key_id.encode("utf-8")
        wrapped_key = struct.pack(">H", len(key_id_bytes)) + key_id_bytes + nonce + ciphertext

        logger.debug("Generated data key", key_id=key_id, key_spec=key_spec)
        return DataKey(plaintext_key=plaintext_key, wrapped_key=wrapped_key)

    async def decrypt(
        self,
        wrapped_key: bytes,
        encryption_context: EncryptionContext,
    ) -> bytes:
        """Unwrap a data key, verifying the encryption context via the GCM tag."""
        self.decrypt_calls += 1
        key_id, nonce, ciphertext = self._split_wrapped_key(wrapped_key)
        self._check_key_id(key_id)

        aesgcm = AESGCM(self._derive_kek(key_id))
        try:
            return aesgcm.decrypt(nonce, ciphertext, self._aad(key_id, encryption_context))
        except InvalidTag as e:
            logger.warning("Data key unwrap rejected", key_id=key_id)
            raise KeyServiceContextMismatchError(
                "Unable to decrypt data key: wrapped key or encryption context does not match",
                code="InvalidCiphertextException",
            ) from e

    def _split_wrapped_key(self, wrapped_key: bytes) -> tuple[str, bytes, bytes]:
        # Minimum: length prefix (2) + nonce (12) + ciphertext (1) + tag (16)
        min_length = 2 + self.NONCE_LENGTH + 1 + self.TAG_LENGTH
        if not wrapped_key or len(wrapped_key) < min_length:
            raise KeyServiceContextMismatchError(
                "Wrapped key is too short to be valid", code="InvalidCiphertextException"
            )

        (key_id_len,) = struct.unpack(">H", wrapped_key[:2])
        body = wrapped_key[2 + key_id_len:]
        if len(body) < self.NONCE_LENGTH + 1 + self.TAG_LENGTH:
            raise KeyServiceContextMismatchError(
                "Wrapped key is truncated", code="InvalidCiphertextException"
            )

        try:
            key_id = wrapped_key[2:2 + key_id_len].decode("utf-8")
        except UnicodeDecodeError as e:
            raise KeyServiceContextMismatchError(
                "Wrapped key header is corrupted", code="InvalidCiphertextException"
            ) from e

        return key_id, body[:self.NONCE_LENGTH], body[self.NONCE_LENGTH:]

    def get_provider_version(self) -> str:
        """Return the provider version string."""
        return self.VERSION
