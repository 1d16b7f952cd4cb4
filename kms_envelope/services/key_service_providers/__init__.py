"""
Key service providers package.

Provides key-management service clients for envelope encryption.
Each provider implements the KeyService ABC (generate_data_key / decrypt).

Available providers:
- AWSKMSKeyService: AWS KMS via boto3
- LocalKMSKeyService: In-process master key, for development and tests
"""

from kms_envelope.services.key_service_providers.base import DataKey, KeyService
from kms_envelope.services.key_service_providers.aws_kms import AWSKMSKeyService
from kms_envelope.services.key_service_providers.local_kms import LocalKMSKeyService

__all__ = ["DataKey", "KeyService", "AWSKMSKeyService", "LocalKMSKeyService"]
