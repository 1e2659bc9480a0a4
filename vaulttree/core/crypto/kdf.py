"""
Key Derivation
==============

Turns container credentials into the 32-byte payload key.

    composite = SHA256( SHA256(password) || SHA256(key_file_bytes) )
    master    = Argon2id(composite, salt, time_cost, memory_cost, parallelism)

The key-file digest is omitted when no key file is configured. The Argon2
cost parameters travel in the container header, so a container keeps the
cost it was created with.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Optional

from argon2.low_level import Type, hash_secret_raw

# Argon2id defaults (OWASP recommended)
ARGON2_TIME_COST: Final[int] = 3
ARGON2_MEMORY_COST: Final[int] = 65536  # 64 MB in KiB
ARGON2_PARALLELISM: Final[int] = 4
MASTER_KEY_LENGTH: Final[int] = 32
SALT_LENGTH: Final[int] = 32


@dataclass(frozen=True, slots=True)
class KdfParameters:
    """Argon2id cost parameters."""

    time_cost: int = ARGON2_TIME_COST
    memory_cost: int = ARGON2_MEMORY_COST
    parallelism: int = ARGON2_PARALLELISM

    def __post_init__(self) -> None:
        if self.time_cost < 1:
            raise ValueError("Argon2 time cost must be at least 1")
        if self.parallelism < 1:
            raise ValueError("Argon2 parallelism must be at least 1")
        if self.memory_cost < 8 * self.parallelism:
            raise ValueError("Argon2 memory cost must be at least 8 KiB per lane")


def generate_salt() -> bytes:
    return secrets.token_bytes(SALT_LENGTH)


def composite_key(password: str, key_file_data: Optional[bytes] = None) -> bytes:
    """Combine the password and optional key-file content into one secret."""
    parts = [hashlib.sha256(password.encode("utf-8")).digest()]
    if key_file_data is not None:
        parts.append(hashlib.sha256(key_file_data).digest())
    return hashlib.sha256(b"".join(parts)).digest()


def derive_master_key(composite: bytes, salt: bytes, params: KdfParameters) -> bytes:
    """Stretch the composite key with Argon2id."""
    return hash_secret_raw(
        secret=composite,
        salt=salt,
        time_cost=params.time_cost,
        memory_cost=params.memory_cost,
        parallelism=params.parallelism,
        hash_len=MASTER_KEY_LENGTH,
        type=Type.ID,
    )


@dataclass(frozen=True)
class Credentials:
    """
    What is needed to open a container.

    The password is mandatory; the key file is optional.
    """

    password: str
    key_file: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.key_file is not None and not isinstance(self.key_file, Path):
            object.__setattr__(self, "key_file", Path(self.key_file))

    def __repr__(self) -> str:
        """Safe representation without the password."""
        return f"Credentials(password=***, key_file={self.key_file!r})"
