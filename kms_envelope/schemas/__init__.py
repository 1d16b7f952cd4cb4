"""
Pydantic schemas for persisted envelope metadata.
"""
from kms_envelope.schemas.envelope import (
    CEK_ALGORITHM,
    WRAP_ALGORITHM,
    ENVELOPE_FIELDS,
    Envelope,
)

__all__ = [
    "CEK_ALGORITHM",
    "WRAP_ALGORITHM",
    "ENVELOPE_FIELDS",
    "Envelope",
]
