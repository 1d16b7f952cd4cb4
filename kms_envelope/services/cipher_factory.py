"""
Cipher factory for envelope-encrypted object bodies.

Builds AES-256 ciphers in CBC mode with PKCS#5/PKCS#7 padding, the content
encryption algorithm recorded in every envelope as ``AES/CBC/PKCS5Padding``.

Ciphers are streaming transforms: feed arbitrary-length chunks to
``update()`` and call ``finalize()`` exactly once at the end.

    configured --update()--> streaming --finalize()--> finalized
    configured --finalize()-----------------------> finalized

Usage:
    iv = CipherFactory.random_iv()
    cipher = CipherFactory.encryption_cipher(key, iv)
    ciphertext = cipher.update(b"hello ") + cipher.update(b"world") + cipher.finalize()
"""

import os
from enum import Enum

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from kms_envelope.exceptions import CipherStateError, DecryptionFailedError

# Constants
KEY_LENGTH = 32  # AES-256
IV_LENGTH = 16  # AES block size
BLOCK_SIZE_BITS = algorithms.AES.block_size  # 128
CEK_ALGORITHM = "AES/CBC/PKCS5Padding"


class CipherState(str, Enum):
    """Lifecycle states of a StreamCipher."""

    CONFIGURED = "configured"
    STREAMING = "streaming"
    FINALIZED = "finalized"


class CipherMode(str, Enum):
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


class StreamCipher:
    """
    AES-256-CBC stream transform with PKCS#7 padding.

    Not safe for concurrent use; each object body gets its own instance.
    """

    def __init__(self, key: bytes, iv: bytes, mode: CipherMode):
        _check_length("key", key, KEY_LENGTH)
        _check_length("iv", iv, IV_LENGTH)

        self._mode = CipherMode(mode)
        self._iv = bytes(iv)
        self._state = CipherState.CONFIGURED

        cipher = Cipher(algorithms.AES(key), modes.CBC(self._iv))
        if self._mode is CipherMode.ENCRYPT:
            self._context = cipher.encryptor()
            self._padding = padding.PKCS7(BLOCK_SIZE_BITS).padder()
        else:
            self._context = cipher.decryptor()
            self._padding = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()

    @property
    def mode(self) -> CipherMode:
        return self._mode

    @property
    def iv(self) -> bytes:
        return self._iv

    @property
    def state(self) -> CipherState:
        return self._state

    @property
    def algorithm(self) -> str:
        return CEK_ALGORITHM

    def update(self, chunk: bytes) -> bytes:
        """
        Transform the next chunk of the stream.

        Output length may differ from input length; bytes are buffered until a
        full block (and, when decrypting, the final padded block) is known.

        Raises:
            CipherStateError: If the cipher was already finalized
            TypeError: If chunk is not bytes-like
        """
        if self._state is CipherState.FINALIZED:
            raise CipherStateError(f"Cannot update a finalized {self._mode.value} cipher")
        if not isinstance(chunk, (bytes, bytearray, memoryview)):
            raise TypeError(f"chunk must be bytes-like, got {type(chunk).__name__}")
        self._state = CipherState.STREAMING

        if self._mode is CipherMode.ENCRYPT:
            return self._context.update(self._padding.update(bytes(chunk)))
        return self._padding.update(self._context.update(bytes(chunk)))

    def finalize(self) -> bytes:
        """
        Flush the stream, applying (encrypt) or validating (decrypt) padding.

        Raises:
            CipherStateError: If finalize() was already called
            DecryptionFailedError: If ciphertext length or padding is invalid
        """
        if self._state is CipherState.FINALIZED:
            raise CipherStateError(f"{self._mode.value.capitalize()} cipher already finalized")
        self._state = CipherState.FINALIZED

        if self._mode is CipherMode.ENCRYPT:
            tail = self._padding.finalize()
            return self._context.update(tail) + self._context.finalize()

        try:
            tail = self._context.finalize()
        except ValueError as e:
            raise DecryptionFailedError(
                "Ciphertext length is not a multiple of the AES block size"
            ) from e

        try:
            return self._padding.update(tail) + self._padding.finalize()
        except ValueError as e:
            raise DecryptionFailedError("Invalid padding in decrypted data") from e

    def __repr__(self) -> str:
        return f"<StreamCipher alg={CEK_ALGORITHM} mode={self._mode.value} state={self._state.value}>"


class CipherFactory:
    """Stateless constructor of StreamCipher instances."""

    @staticmethod
    def random_iv() -> bytes:
        """Return a fresh cryptographically random 16-byte IV."""
        return os.urandom(IV_LENGTH)

    @staticmethod
    def encryption_cipher(key: bytes, iv: bytes) -> StreamCipher:
        """
        Create an encrypting cipher.

        Args:
            key: 32-byte AES key
            iv: 16-byte IV, normally from random_iv()

        Raises:
            ValueError: If key or iv has the wrong length
        """
        return StreamCipher(key, iv, CipherMode.ENCRYPT)

    @staticmethod
    def decryption_cipher(key: bytes, iv: bytes) -> StreamCipher:
        """Create a decrypting cipher; see encryption_cipher()."""
        return StreamCipher(key, iv, CipherMode.DECRYPT)


def _check_length(name: str, value: bytes, expected: int) -> None:
    if not isinstance(value, (bytes, bytearray)):
        raise ValueError(f"{name} must be bytes, got {type(value).__name__}")
    if len(value) != expected:
        raise ValueError(f"{name} must be {expected} bytes, got {len(value)}")
