"""
Container Codec
===============

Encodes a :class:`Tree` into an encrypted container and back.

File Format:
    HEADER (66 bytes, little-endian):
        - MAGIC: 4 bytes ("VTKC")
        - VERSION: 2 bytes
        - FLAGS: 2 bytes (reserved, 0)
        - SALT: 32 bytes (Argon2id salt)
        - TIME_COST: 4 bytes
        - MEMORY_COST: 4 bytes (KiB)
        - PARALLELISM: 2 bytes
        - NONCE: 12 bytes (AES-GCM nonce)
        - CT_LEN: 4 bytes
    CIPHERTEXT: CT_LEN bytes (AES-256-GCM, header as AAD)

The plaintext is a UTF-8 JSON document describing the group tree.
Protected field values inside it are sealed again with ChaCha20-Poly1305
under a random inner key that is stored in the same document.

Every encode draws a fresh salt, nonce and inner key.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import struct
from pathlib import Path
from typing import Any, Final, Optional

from cryptography.exceptions import InvalidTag

from vaulttree.core.crypto.aes_gcm import AES_NONCE_SIZE, AES_TAG_SIZE, PayloadCipher
from vaulttree.core.crypto.chacha20 import ProtectedValueCipher
from vaulttree.core.crypto.kdf import (
    SALT_LENGTH,
    Credentials,
    KdfParameters,
    composite_key,
    derive_master_key,
    generate_salt,
)
from vaulttree.core.errors import DecodeError, EncodeError, StoreIOError
from vaulttree.core.tree.model import (
    Attachment,
    Entry,
    Field,
    Group,
    Tree,
    TreeMeta,
)

MAGIC_BYTES: Final[bytes] = b"VTKC"
FORMAT_VERSION: Final[int] = 1
HEADER_FORMAT: Final[str] = f"<4sHH{SALT_LENGTH}sIIH{AES_NONCE_SIZE}sI"
HEADER_SIZE: Final[int] = struct.calcsize(HEADER_FORMAT)
GENERATOR: Final[str] = "vaulttree"
MAX_MEMORY_COST: Final[int] = 4 * 1024 * 1024  # 4 GiB in KiB

_log = logging.getLogger("vaulttree.container")


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"), validate=True)


class ContainerCodec:
    """
    Reads and writes containers for one set of credentials.

    Usage:
        codec = ContainerCodec(Credentials("s3cret"))
        data = codec.encode(tree)
        tree = codec.decode(data)

    ``kdf`` sets the Argon2 cost for trees that do not carry their own
    (new trees). Trees read from disk keep the cost found in their header.
    """

    __slots__ = ("_credentials", "_kdf", "_payload_cipher")

    def __init__(
        self,
        credentials: Credentials,
        kdf: Optional[KdfParameters] = None,
    ) -> None:
        self._credentials = credentials
        self._kdf = kdf or KdfParameters()
        self._payload_cipher = PayloadCipher()

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    def _composite_key(self) -> bytes:
        if not self._credentials.password:
            raise DecodeError("database or password is not set")

        key_data: Optional[bytes] = None
        key_file = self._credentials.key_file
        if key_file is not None:
            try:
                key_data = Path(key_file).read_bytes()
            except OSError as e:
                raise StoreIOError(f"Unable to read key file at {key_file}", str(e)) from e

        return composite_key(self._credentials.password, key_data)

    def _kdf_for(self, tree: Tree) -> KdfParameters:
        meta = tree.meta
        if meta.kdf_time_cost and meta.kdf_memory_cost and meta.kdf_parallelism:
            return KdfParameters(
                time_cost=meta.kdf_time_cost,
                memory_cost=meta.kdf_memory_cost,
                parallelism=meta.kdf_parallelism,
            )
        return self._kdf

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode(self, tree: Tree) -> bytes:
        """
        Serialize and encrypt ``tree``.

        Raises:
            EncodeError: If the tree cannot be serialized or sealed
            StoreIOError: If the key file cannot be read
        """
        try:
            composite = self._composite_key()
        except DecodeError as e:
            raise EncodeError(e.summary) from e

        try:
            params = self._kdf_for(tree)
            inner_key = ProtectedValueCipher.generate_key()
            inner = ProtectedValueCipher(inner_key)

            document = {
                "generator": tree.meta.generator or GENERATOR,
                "inner_key": _b64(inner_key),
                "groups": [self._group_to_dict(group, inner) for group in tree.groups],
            }
            plaintext = json.dumps(document, ensure_ascii=False).encode("utf-8")

            salt = generate_salt()
            nonce = PayloadCipher.generate_nonce()
            header = struct.pack(
                HEADER_FORMAT,
                MAGIC_BYTES,
                FORMAT_VERSION,
                0,
                salt,
                params.time_cost,
                params.memory_cost,
                params.parallelism,
                nonce,
                len(plaintext) + AES_TAG_SIZE,
            )
            master = derive_master_key(composite, salt, params)
            sealed = self._payload_cipher.seal(plaintext, master, aad=header, nonce=nonce)
        except (TypeError, ValueError, UnicodeError, struct.error) as e:
            raise EncodeError("Unable to encode database", str(e)) from e

        return header + sealed.ciphertext

    def _group_to_dict(self, group: Group, inner: ProtectedValueCipher) -> dict[str, Any]:
        return {
            "uuid": group.uuid,
            "name": group.name,
            "groups": [self._group_to_dict(child, inner) for child in group.groups],
            "entries": [self._entry_to_dict(entry, inner) for entry in group.entries],
        }

    @staticmethod
    def _entry_to_dict(entry: Entry, inner: ProtectedValueCipher) -> dict[str, Any]:
        fields = []
        for item in entry.fields:
            if item.protected:
                value = _b64(inner.seal(item.value, aad=item.key.encode("utf-8")))
            else:
                value = item.value
            fields.append({"key": item.key, "value": value, "protected": item.protected})

        return {
            "uuid": entry.uuid,
            "fields": fields,
            "attachments": [
                {"name": attachment.name, "data": _b64(attachment.data)}
                for attachment in entry.attachments
            ],
        }

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def decode(self, data: bytes) -> Tree:
        """
        Decrypt and parse a container.

        Raises:
            DecodeError: Bad credentials, corruption or unknown format
            StoreIOError: If the key file cannot be read
        """
        composite = self._composite_key()

        if len(data) < HEADER_SIZE:
            raise DecodeError("Unable to decode database", "data too short for a container header")

        header = data[:HEADER_SIZE]
        (
            magic,
            version,
            _flags,
            salt,
            time_cost,
            memory_cost,
            parallelism,
            nonce,
            ct_len,
        ) = struct.unpack(HEADER_FORMAT, header)

        if magic != MAGIC_BYTES:
            raise DecodeError("Unable to decode database", "invalid file format (bad magic bytes)")
        if version != FORMAT_VERSION:
            raise DecodeError("Unable to decode database", f"unsupported format version: {version}")

        if memory_cost > MAX_MEMORY_COST:
            raise DecodeError("Unable to decode database", f"unreasonable KDF memory cost: {memory_cost} KiB")

        ciphertext = data[HEADER_SIZE:]
        if len(ciphertext) != ct_len:
            raise DecodeError("Unable to decode database", "container is truncated")

        try:
            params = KdfParameters(
                time_cost=time_cost,
                memory_cost=memory_cost,
                parallelism=parallelism,
            )
            master = derive_master_key(composite, salt, params)
            plaintext = self._payload_cipher.open(ciphertext, nonce, master, aad=header)
        except InvalidTag as e:
            raise DecodeError(
                "Unable to decode database with the given credentials",
                "authentication failed (wrong password, wrong key file or corrupted data)",
            ) from e
        except ValueError as e:
            raise DecodeError("Unable to decode database", str(e)) from e

        try:
            document = json.loads(plaintext.decode("utf-8"))
            inner = ProtectedValueCipher(_unb64(document["inner_key"]))
            groups = [self._group_from_dict(item, inner) for item in document["groups"]]
            generator = str(document.get("generator", GENERATOR))
        except InvalidTag as e:
            raise DecodeError("Unable to decode database", "protected value failed authentication") from e
        except (KeyError, TypeError, ValueError, binascii.Error) as e:
            raise DecodeError("Unable to decode database", f"malformed payload: {e}") from e

        meta = TreeMeta(
            generator=generator,
            kdf_time_cost=time_cost,
            kdf_memory_cost=memory_cost,
            kdf_parallelism=parallelism,
        )
        _log.debug(f"Decoded container with {len(groups)} top-level groups")
        return Tree(groups=groups, meta=meta)

    def _group_from_dict(self, data: dict[str, Any], inner: ProtectedValueCipher) -> Group:
        return Group(
            name=str(data["name"]),
            uuid=str(data["uuid"]),
            groups=[self._group_from_dict(child, inner) for child in data.get("groups", [])],
            entries=[self._entry_from_dict(entry, inner) for entry in data.get("entries", [])],
        )

    @staticmethod
    def _entry_from_dict(data: dict[str, Any], inner: ProtectedValueCipher) -> Entry:
        fields = []
        for item in data.get("fields", []):
            key = str(item["key"])
            protected = bool(item.get("protected", False))
            value = item["value"]
            if protected:
                value = inner.unseal(_unb64(value), aad=key.encode("utf-8"))
            fields.append(Field(key=key, value=str(value), protected=protected))

        attachments = [
            Attachment(name=str(item["name"]), data=_unb64(item["data"]))
            for item in data.get("attachments", [])
        ]

        return Entry(uuid=str(data["uuid"]), fields=fields, attachments=attachments)


def new_tree(root_name: Optional[str] = None) -> Tree:
    """Return an empty tree, optionally with one top-level group."""
    tree = Tree()
    if root_name:
        tree.groups.append(Group(name=root_name))
    return tree
