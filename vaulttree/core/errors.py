"""
Store Errors
============

Error taxonomy shared by the tree, container and store layers.

Every error carries a short human-readable ``summary`` and, where one is
available, a ``detail`` string describing the underlying cause. The cause
itself is chained with ``raise ... from``.
"""

from __future__ import annotations

from typing import Optional


class VaultTreeError(Exception):
    """Base exception for all store failures."""

    def __init__(self, summary: str, detail: Optional[str] = None) -> None:
        super().__init__(summary if detail is None else f"{summary}: {detail}")
        self.summary = summary
        self.detail = detail


class InvalidPathError(VaultTreeError):
    """Raised when an entry path has no enclosing group."""
    pass


class GroupNotFoundError(VaultTreeError):
    """Raised when a group in a path or by identifier does not exist."""
    pass


class EntryNotFoundError(VaultTreeError):
    """Raised when no entry matches a path or identifier."""
    pass


class DuplicateEntryError(VaultTreeError):
    """Raised when creating an entry whose title already exists in the group."""
    pass


class DecodeError(VaultTreeError):
    """
    Raised when a container cannot be decoded.

    Covers wrong credentials, corruption and unsupported formats alike.
    """
    pass


class EncodeError(VaultTreeError):
    """Raised when the tree cannot be serialized into a container."""
    pass


class StoreIOError(VaultTreeError):
    """Raised on open, create, write or rename failures."""
    pass


class ConfigurationError(VaultTreeError):
    """Raised when required configuration is missing or invalid."""
    pass


class SettingsParseFailure(VaultTreeError):
    """
    Raised by the agent settings parser.

    Never escapes :func:`vaulttree.core.attachments.agent_settings.decode`,
    which treats it as "no settings present".
    """
    pass
