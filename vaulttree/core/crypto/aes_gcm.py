"""
AES-256-GCM Payload Encryption
==============================

Encrypts the serialized tree inside a container.

Security Properties:
    - 256-bit key derived from the container credentials
    - 96-bit random nonce per save (NIST SP 800-38D)
    - 128-bit authentication tag
    - Container header bound as Additional Authenticated Data

A wrong password, a wrong key file and a tampered header or body all
surface the same way: the tag check fails and no plaintext is returned.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Final, Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

AES_KEY_SIZE: Final[int] = 32  # 256 bits
AES_NONCE_SIZE: Final[int] = 12  # 96 bits
AES_TAG_SIZE: Final[int] = 16  # 128 bits


@dataclass(frozen=True, slots=True)
class SealedPayload:
    """Ciphertext plus the nonce it was sealed with."""

    nonce: bytes
    ciphertext: bytes

    def __repr__(self) -> str:
        return f"SealedPayload(ciphertext_len={len(self.ciphertext)})"


class PayloadCipher:
    """
    AES-256-GCM over the container payload.

    Usage:
        cipher = PayloadCipher()
        sealed = cipher.seal(payload, key, aad=header)
        payload = cipher.open(sealed.ciphertext, sealed.nonce, key, aad=header)
    """

    __slots__ = ()

    @staticmethod
    def generate_nonce() -> bytes:
        return secrets.token_bytes(AES_NONCE_SIZE)

    def seal(
        self,
        plaintext: bytes,
        key: bytes,
        aad: Optional[bytes] = None,
        nonce: Optional[bytes] = None,
    ) -> SealedPayload:
        """
        Encrypt ``plaintext`` under ``key``.

        Args:
            plaintext: Serialized payload
            key: 32-byte master key
            aad: Header bytes to authenticate alongside the payload
            nonce: Nonce already written into the header; generated if None

        Raises:
            ValueError: If key or nonce has the wrong size
        """
        if len(key) != AES_KEY_SIZE:
            raise ValueError(f"Key must be exactly {AES_KEY_SIZE} bytes")
        if nonce is None:
            nonce = self.generate_nonce()
        elif len(nonce) != AES_NONCE_SIZE:
            raise ValueError(f"Nonce must be exactly {AES_NONCE_SIZE} bytes")

        ciphertext = AESGCM(key).encrypt(nonce, plaintext, aad)
        return SealedPayload(nonce=nonce, ciphertext=ciphertext)

    def open(
        self,
        ciphertext: bytes,
        nonce: bytes,
        key: bytes,
        aad: Optional[bytes] = None,
    ) -> bytes:
        """
        Decrypt and authenticate a payload.

        Raises:
            ValueError: If parameters are malformed
            cryptography.exceptions.InvalidTag: Wrong key or tampered data
        """
        if len(key) != AES_KEY_SIZE:
            raise ValueError(f"Key must be exactly {AES_KEY_SIZE} bytes")
        if len(nonce) != AES_NONCE_SIZE:
            raise ValueError(f"Nonce must be exactly {AES_NONCE_SIZE} bytes")
        if len(ciphertext) < AES_TAG_SIZE:
            raise ValueError("Ciphertext too short (missing authentication tag)")

        return AESGCM(key).decrypt(nonce, ciphertext, aad)
