"""
Pydantic schema for the encryption envelope.

The envelope is stored as object metadata next to the ciphertext. Field
names on the wire are fixed and shared with every compatible reader/writer:

    x-amz-key-v2    base64 wrapped data key
    x-amz-iv        base64 initialization vector
    x-amz-cek-alg   content encryption algorithm (AES/CBC/PKCS5Padding)
    x-amz-wrap-alg  key wrapping algorithm (kms)
    x-amz-matdesc   JSON encryption context
"""
import base64
import binascii
import json
from typing import Any, Dict, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from kms_envelope.exceptions import EnvelopeFormatError
from kms_envelope.services.cipher_factory import CEK_ALGORITHM, IV_LENGTH

WRAP_ALGORITHM = "kms"

KEY_FIELD = "x-amz-key-v2"
IV_FIELD = "x-amz-iv"
CEK_ALG_FIELD = "x-amz-cek-alg"
WRAP_ALG_FIELD = "x-amz-wrap-alg"
MATDESC_FIELD = "x-amz-matdesc"

ENVELOPE_FIELDS = (KEY_FIELD, IV_FIELD, CEK_ALG_FIELD, WRAP_ALG_FIELD, MATDESC_FIELD)


def encode64(data: bytes) -> str:
    """Standard padded base64 without line breaks."""
    return base64.b64encode(data).decode("ascii")


def decode64(value: str) -> bytes:
    """Strict base64 decode; raises ValueError on anything but the standard alphabet."""
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"invalid base64: {e}") from e


def dump_matdesc(encryption_context: Mapping[str, str]) -> str:
    """Serialize an encryption context the way it is stored in x-amz-matdesc."""
    return json.dumps(dict(encryption_context), separators=(",", ":"))


class Envelope(BaseModel):
    """Encryption envelope persisted alongside an encrypted object."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    wrapped_key: str = Field(alias=KEY_FIELD, description="Base64 wrapped data key")
    iv: str = Field(alias=IV_FIELD, description="Base64 16-byte IV")
    cek_alg: str = Field(alias=CEK_ALG_FIELD, description="Content encryption algorithm")
    wrap_alg: str = Field(alias=WRAP_ALG_FIELD, description="Key wrapping algorithm")
    matdesc: str = Field(alias=MATDESC_FIELD, description="JSON encryption context")

    @field_validator("wrapped_key")
    @classmethod
    def check_wrapped_key(cls, value: str) -> str:
        if not decode64(value):
            raise ValueError("wrapped key is empty")
        return value

    @field_validator("iv")
    @classmethod
    def check_iv(cls, value: str) -> str:
        length = len(decode64(value))
        if length != IV_LENGTH:
            raise ValueError(f"IV must be {IV_LENGTH} bytes, got {length}")
        return value

    @field_validator("cek_alg")
    @classmethod
    def check_cek_alg(cls, value: str) -> str:
        if value != CEK_ALGORITHM:
            raise ValueError(f"unsupported content encryption algorithm: {value!r}")
        return value

    @field_validator("wrap_alg")
    @classmethod
    def check_wrap_alg(cls, value: str) -> str:
        if value != WRAP_ALGORITHM:
            raise ValueError(f"unsupported key wrapping algorithm: {value!r}")
        return value

    @field_validator("matdesc")
    @classmethod
    def check_matdesc(cls, value: str) -> str:
        try:
            context = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"material description is not valid JSON: {e}") from e
        if not isinstance(context, dict):
            raise ValueError("material description must be a JSON object")
        if not all(isinstance(k, str) and isinstance(v, str) for k, v in context.items()):
            raise ValueError("material description must map strings to strings")
        return value

    @property
    def wrapped_key_bytes(self) -> bytes:
        return decode64(self.wrapped_key)

    @property
    def iv_bytes(self) -> bytes:
        return decode64(self.iv)

    @property
    def encryption_context(self) -> Dict[str, str]:
        return json.loads(self.matdesc)

    @classmethod
    def build(
        cls,
        wrapped_key: bytes,
        iv: bytes,
        encryption_context: Mapping[str, str],
    ) -> "Envelope":
        """Assemble an envelope from raw key material for a new object."""
        return cls(
            wrapped_key=encode64(wrapped_key),
            iv=encode64(iv),
            cek_alg=CEK_ALGORITHM,
            wrap_alg=WRAP_ALGORITHM,
            matdesc=dump_matdesc(encryption_context),
        )

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, Any]) -> "Envelope":
        """
        Parse an envelope from stored object metadata.

        Header names are matched case-insensitively; unrelated metadata
        entries are ignored.

        Raises:
            EnvelopeFormatError: If a field is missing or malformed
        """
        if not isinstance(metadata, Mapping):
            raise EnvelopeFormatError(
                f"Envelope metadata must be a mapping, got {type(metadata).__name__}"
            )

        normalized = {str(k).lower(): v for k, v in metadata.items()}
        missing = [name for name in ENVELOPE_FIELDS if name not in normalized]
        if missing:
            raise EnvelopeFormatError(f"Envelope is missing required fields: {', '.join(missing)}")

        try:
            return cls.model_validate({name: normalized[name] for name in ENVELOPE_FIELDS})
        except ValidationError as e:
            raise EnvelopeFormatError(f"Malformed envelope: {e}") from e

    def to_metadata(self) -> Dict[str, str]:
        """Return the envelope as object metadata (wire field names)."""
        return self.model_dump(by_alias=True)
