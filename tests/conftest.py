"""
Pytest configuration and fixtures for kms_envelope tests.
"""
import os
from unittest.mock import MagicMock

import pytest

# Set environment variables before importing Settings so module-level settings are predictable
os.environ.setdefault("KMS_PROVIDER", "local")
os.environ.setdefault("KMS_KEY_ID", "arn:aws:kms:us-east-1:111122223333:key/test-key")
os.environ.setdefault("LOCAL_KMS_MASTER_KEY", "test-master-key-for-testing-only")
os.environ.setdefault("APP_LOG_LEVEL", "WARNING")

from kms_envelope.services.key_materials import KmsSecuredKeyMaterials
from kms_envelope.services.key_service_providers.base import DataKey, KeyService
from kms_envelope.services.key_service_providers.local_kms import LocalKMSKeyService


TEST_KEY_ID = "arn:aws:kms:us-east-1:111122223333:key/abc"
TEST_MASTER_KEY = "test-master-key-12345678"


@pytest.fixture
def key_id() -> str:
    return TEST_KEY_ID


@pytest.fixture
def local_key_service() -> LocalKMSKeyService:
    """Local key service that only knows TEST_KEY_ID and a second key."""
    return LocalKMSKeyService(
        master_key=TEST_MASTER_KEY,
        allowed_key_ids=[TEST_KEY_ID, "arn:aws:kms:us-east-1:111122223333:key/other"],
    )


@pytest.fixture
def local_materials(local_key_service) -> KmsSecuredKeyMaterials:
    return KmsSecuredKeyMaterials(kms_key_id=TEST_KEY_ID, key_service=local_key_service)


@pytest.fixture
def fixed_data_key() -> DataKey:
    """Deterministic data key for tests that don't care about the service."""
    return DataKey(plaintext_key=b"\x01" * 32, wrapped_key=b"wrapped-key-blob")


@pytest.fixture
def mock_key_service(fixed_data_key) -> MagicMock:
    """
    Test double for the key service.

    Async methods become AsyncMocks through the spec; decrypt() returns the
    plaintext of fixed_data_key.
    """
    service = MagicMock(spec=KeyService)
    service.get_provider_version.return_value = "mock-v1"
    service.generate_data_key.return_value = fixed_data_key
    service.decrypt.return_value = fixed_data_key.plaintext_key
    return service
