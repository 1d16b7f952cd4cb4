"""
Helpers for streaming object bodies through a StreamCipher.

Object bodies are processed in fixed-size chunks so that large objects
never have to fit in memory. Each helper finalizes the cipher, so a cipher
can be used with exactly one helper call.
"""
from typing import BinaryIO

from kms_envelope.services.cipher_factory import CipherMode, StreamCipher
from kms_envelope.utils.logger import get_logger

logger = get_logger("utils.streaming")

CHUNK_SIZE = 64 * 1024  # 64KB chunks for body streaming


def transform_stream(
    cipher: StreamCipher,
    source: BinaryIO,
    sink: BinaryIO,
    chunk_size: int = CHUNK_SIZE,
) -> int:
    """
    Pipe ``source`` through ``cipher`` into ``sink``.

    Args:
        cipher: Freshly created cipher (encrypting or decrypting)
        source: Readable binary file-like object
        sink: Writable binary file-like object
        chunk_size: Bytes read per iteration

    Returns:
        Number of bytes written to sink

    Raises:
        ValueError: If chunk_size is not positive
        CipherStateError: If the cipher was already finalized
        DecryptionFailedError: If decrypting and the ciphertext is invalid
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    written = 0
    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            break
        out = cipher.update(chunk)
        if out:
            sink.write(out)
            written += len(out)

    tail = cipher.finalize()
    if tail:
        sink.write(tail)
        written += len(tail)

    logger.debug("Streamed object body", mode=cipher.mode.value, bytes_written=written)
    return written


def _require_mode(cipher: StreamCipher, mode: CipherMode) -> None:
    if cipher.mode is not mode:
        raise ValueError(f"Cipher mode is {cipher.mode.value}, expected {mode.value}")


def encrypt_stream(
    cipher: StreamCipher,
    source: BinaryIO,
    sink: BinaryIO,
    chunk_size: int = CHUNK_SIZE,
) -> int:
    """Encrypt ``source`` into ``sink``; see transform_stream()."""
    _require_mode(cipher, CipherMode.ENCRYPT)
    return transform_stream(cipher, source, sink, chunk_size)


def decrypt_stream(
    cipher: StreamCipher,
    source: BinaryIO,
    sink: BinaryIO,
    chunk_size: int = CHUNK_SIZE,
) -> int:
    """Decrypt ``source`` into ``sink``; see transform_stream()."""
    _require_mode(cipher, CipherMode.DECRYPT)
    return transform_stream(cipher, source, sink, chunk_size)


def encrypt_bytes(cipher: StreamCipher, data: bytes) -> bytes:
    """Encrypt an in-memory body in one shot."""
    _require_mode(cipher, CipherMode.ENCRYPT)
    return cipher.update(data) + cipher.finalize()


def decrypt_bytes(cipher: StreamCipher, data: bytes) -> bytes:
    """Decrypt an in-memory body in one shot."""
    _require_mode(cipher, CipherMode.DECRYPT)
    return cipher.update(data) + cipher.finalize()
