"""
ChaCha20-Poly1305 Protected Values
==================================

Second layer for fields flagged as protected.

Inside the decrypted payload, protected values are still sealed under a
per-save random inner key, so a payload dump taken after the outer layer
is removed does not reveal passwords in clear.

Stored form: ``nonce (12) || ciphertext || tag (16)``.
"""

from __future__ import annotations

import secrets
from typing import Final

from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

CHACHA_KEY_SIZE: Final[int] = 32  # 256 bits
CHACHA_NONCE_SIZE: Final[int] = 12  # 96 bits (IETF variant)
CHACHA_TAG_SIZE: Final[int] = 16  # 128 bits Poly1305


class ProtectedValueCipher:
    """
    Seals individual field values under one inner key.

    Usage:
        cipher = ProtectedValueCipher(ProtectedValueCipher.generate_key())
        blob = cipher.seal("hunter2", aad=b"Password")
        value = cipher.unseal(blob, aad=b"Password")

    The field key is used as AAD so a sealed value cannot be moved to a
    different field unnoticed.
    """

    __slots__ = ("_aead",)

    def __init__(self, key: bytes) -> None:
        if len(key) != CHACHA_KEY_SIZE:
            raise ValueError(f"Key must be exactly {CHACHA_KEY_SIZE} bytes")
        self._aead = ChaCha20Poly1305(key)

    @staticmethod
    def generate_key() -> bytes:
        return secrets.token_bytes(CHACHA_KEY_SIZE)

    def seal(self, value: str, aad: bytes = b"") -> bytes:
        nonce = secrets.token_bytes(CHACHA_NONCE_SIZE)
        return nonce + self._aead.encrypt(nonce, value.encode("utf-8"), aad)

    def unseal(self, blob: bytes, aad: bytes = b"") -> str:
        """
        Recover a sealed value.

        Raises:
            ValueError: If the blob is truncated
            cryptography.exceptions.InvalidTag: If the blob was altered
        """
        if len(blob) < CHACHA_NONCE_SIZE + CHACHA_TAG_SIZE:
            raise ValueError("Protected value too short")
        nonce, ciphertext = blob[:CHACHA_NONCE_SIZE], blob[CHACHA_NONCE_SIZE:]
        return self._aead.decrypt(nonce, ciphertext, aad).decode("utf-8")

    def __repr__(self) -> str:
        return "ProtectedValueCipher()"
