"""
Unit tests for stream helpers.

Tests cover:
- encrypt_stream() / decrypt_stream(): chunked file-like processing
- encrypt_bytes() / decrypt_bytes(): in-memory helpers
- Ciphers are finalized and cannot be reused
- Cipher direction must match the helper
"""

import io
import os

import pytest

from kms_envelope.exceptions import CipherStateError
from kms_envelope.services.cipher_factory import CipherFactory, CipherState
from kms_envelope.utils.streaming import (
    CHUNK_SIZE,
    decrypt_bytes,
    decrypt_stream,
    encrypt_bytes,
    encrypt_stream,
)


KEY = os.urandom(32)


class TestStreaming:
    """Tests for streaming helpers."""

    @pytest.mark.parametrize("size", [0, 1, 15, 16, 17, CHUNK_SIZE, CHUNK_SIZE * 3 + 5])
    def test_stream_round_trip(self, size):
        """Bodies of any size survive encrypt_stream -> decrypt_stream."""
        body = os.urandom(size)
        iv = CipherFactory.random_iv()

        encrypted = io.BytesIO()
        written = encrypt_stream(CipherFactory.encryption_cipher(KEY, iv), io.BytesIO(body), encrypted)

        assert written == len(encrypted.getvalue())
        assert written == (size // 16 + 1) * 16

        decrypted = io.BytesIO()
        decrypt_stream(
            CipherFactory.decryption_cipher(KEY, iv),
            io.BytesIO(encrypted.getvalue()),
            decrypted,
        )
        assert decrypted.getvalue() == body

    def test_small_chunk_size_matches_one_shot(self):
        """Chunk size does not change the ciphertext."""
        body = os.urandom(1000)
        iv = CipherFactory.random_iv()

        streamed = io.BytesIO()
        encrypt_stream(CipherFactory.encryption_cipher(KEY, iv), io.BytesIO(body), streamed, chunk_size=3)

        assert streamed.getvalue() == encrypt_bytes(CipherFactory.encryption_cipher(KEY, iv), body)

    def test_invalid_chunk_size(self):
        """chunk_size must be positive."""
        cipher = CipherFactory.encryption_cipher(KEY, CipherFactory.random_iv())
        with pytest.raises(ValueError, match="chunk_size"):
            encrypt_stream(cipher, io.BytesIO(b"x"), io.BytesIO(), chunk_size=0)

    def test_helpers_finalize_cipher(self):
        """A cipher cannot be used for a second body."""
        cipher = CipherFactory.encryption_cipher(KEY, CipherFactory.random_iv())
        encrypt_bytes(cipher, b"first")

        assert cipher.state is CipherState.FINALIZED
        with pytest.raises(CipherStateError):
            encrypt_bytes(cipher, b"second")

    def test_bytes_round_trip(self):
        """encrypt_bytes / decrypt_bytes round trip."""
        iv = CipherFactory.random_iv()
        ciphertext = encrypt_bytes(CipherFactory.encryption_cipher(KEY, iv), b"hello world")
        assert decrypt_bytes(CipherFactory.decryption_cipher(KEY, iv), ciphertext) == b"hello world"

    def test_mode_mismatch_rejected(self):
        """Helpers refuse a cipher built for the other direction before reading input."""
        iv = CipherFactory.random_iv()
        source = io.BytesIO(b"body")

        with pytest.raises(ValueError, match="expected encrypt"):
            encrypt_stream(CipherFactory.decryption_cipher(KEY, iv), source, io.BytesIO())
        with pytest.raises(ValueError, match="expected decrypt"):
            decrypt_bytes(CipherFactory.encryption_cipher(KEY, iv), b"x" * 16)

        assert source.tell() == 0
