"""
VaultTree Cryptographic Core
============================

Architecture:
    1. Argon2id: Master key from the composite of password and key file
    2. AES-256-GCM: Container payload encryption, header as AAD
    3. ChaCha20-Poly1305: Protected field values inside the payload

Security Properties:
    - All encryption is authenticated (AEAD)
    - Fresh salt, nonce and inner key on every save
    - Secure RNG for all random values

WARNING: This module handles sensitive cryptographic material.
         Incorrect usage can compromise security.
"""

from vaulttree.core.crypto.aes_gcm import PayloadCipher, SealedPayload
from vaulttree.core.crypto.chacha20 import ProtectedValueCipher
from vaulttree.core.crypto.kdf import Credentials, KdfParameters

__all__ = [
    "PayloadCipher",
    "SealedPayload",
    "ProtectedValueCipher",
    "Credentials",
    "KdfParameters",
]
