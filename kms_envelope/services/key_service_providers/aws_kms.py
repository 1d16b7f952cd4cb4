"""
AWS KMS key service.

Uses the GenerateDataKey and Decrypt APIs through a boto3 ``kms`` client.
Credentials come from the standard boto3 chain (environment, shared config,
instance role). boto3 calls block, so they run in a worker thread to keep
the event loop free; boto3 clients are safe to share across threads.

Error mapping (AWS error code -> exception):
- InvalidCiphertextException, IncorrectKeyException
      -> KeyServiceContextMismatchError (tampered key or context)
- AccessDeniedException, NotFoundException, DisabledException,
  KMSInvalidStateException, InvalidKeyUsageException
      -> KeyServiceAccessDeniedError
- anything else, including BotoCoreError (network, credentials)
      -> KeyServiceUnavailableError
"""

import asyncio
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from kms_envelope.exceptions import (
    ConfigurationError,
    KeyServiceAccessDeniedError,
    KeyServiceContextMismatchError,
    KeyServiceError,
    KeyServiceUnavailableError,
)
from kms_envelope.services.key_service_providers.base import (
    DataKey,
    EncryptionContext,
    KeyService,
)
from kms_envelope.utils.logger import get_logger

logger = get_logger("key_service.aws_kms")

CONTEXT_MISMATCH_CODES = frozenset({
    "InvalidCiphertextException",
    "IncorrectKeyException",
})

ACCESS_DENIED_CODES = frozenset({
    "AccessDeniedException",
    "NotFoundException",
    "DisabledException",
    "KMSInvalidStateException",
    "InvalidKeyUsageException",
})


class AWSKMSKeyService(KeyService):
    """
    Key service backed by AWS KMS.

    Example:
        >>> service = AWSKMSKeyService(region_name="eu-central-1")
        >>> data_key = await service.generate_data_key(
        ...     "arn:aws:kms:eu-central-1:111122223333:key/abc",
        ...     {"kms_cmk_id": "arn:aws:kms:eu-central-1:111122223333:key/abc"},
        ... )
    """

    VERSION = "aws-kms-v1"

    def __init__(
        self,
        client: Optional[Any] = None,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ):
        """
        Initialize with an existing boto3 KMS client or build one.

        Args:
            client: Pre-built ``boto3.client("kms")``; takes precedence
            region_name: AWS region when building a client
            endpoint_url: Custom endpoint when building a client

        Raises:
            ConfigurationError: If no client is given and boto3 cannot build one
                (for example, no region configured)
        """
        if client is None:
            try:
                client = boto3.client("kms", region_name=region_name, endpoint_url=endpoint_url)
            except (BotoCoreError, ValueError) as e:
                raise ConfigurationError(f"Cannot create KMS client: {e}") from e
        self.client = client
        logger.info(
            "AWSKMSKeyService initialized",
            version=self.VERSION,
            region=self.client.meta.region_name,
        )

    async def generate_data_key(
        self,
        key_id: str,
        encryption_context: EncryptionContext,
        key_spec: str = "AES_256",
    ) -> DataKey:
        """Call kms:GenerateDataKey."""
        response = await self._call(
            "generate_data_key",
            KeyId=key_id,
            EncryptionContext=dict(encryption_context),
            KeySpec=key_spec,
        )
        return DataKey(
            plaintext_key=response["Plaintext"],
            wrapped_key=response["CiphertextBlob"],
        )

    async def decrypt(
        self,
        wrapped_key: bytes,
        encryption_context: EncryptionContext,
    ) -> bytes:
        """Call kms:Decrypt; KMS verifies the encryption context."""
        response = await self._call(
            "decrypt",
            CiphertextBlob=wrapped_key,
            EncryptionContext=dict(encryption_context),
        )
        return response["Plaintext"]

    async def _call(self, operation: str, **params) -> dict:
        method = getattr(self.client, operation)
        try:
            return await asyncio.to_thread(method, **params)
        except ClientError as e:
            raise self._translate_client_error(operation, e) from e
        except BotoCoreError as e:
            logger.error("KMS request failed", operation=operation, error=str(e))
            raise KeyServiceUnavailableError(f"KMS {operation} failed: {e}") from e

    @staticmethod
    def _translate_client_error(operation: str, error: ClientError) -> KeyServiceError:
        code = error.response.get("Error", {}).get("Code", "Unknown")
        message = error.response.get("Error", {}).get("Message", str(error))

        logger.error("KMS request rejected", operation=operation, code=code)

        if code in CONTEXT_MISMATCH_CODES:
            return KeyServiceContextMismatchError(f"KMS {operation} rejected: {message}", code=code)
        if code in ACCESS_DENIED_CODES:
            return KeyServiceAccessDeniedError(f"KMS {operation} denied: {message}", code=code)
        return KeyServiceUnavailableError(f"KMS {operation} failed: {message}", code=code)

    def get_provider_version(self) -> str:
        """Return the provider version string."""
        return self.VERSION
