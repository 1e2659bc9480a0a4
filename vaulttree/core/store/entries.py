"""
Entry Service
=============

Externally visible CRUD operations on a store.

Two addressing modes:

    By path:        ``lookup``, ``create_at_path``, ``delete_at_path``
    By identifier:  ``create``, ``read``, ``update``, ``delete``

Every mutating call runs under one controller transaction
(lock -> reload -> mutate -> flush -> unlock) and then reads the result
back from disk, so the returned record reflects what was persisted.

Change mappings accepted by ``create``/``update``:

    {
        "title": "github",
        "username": "octocat",
        "password": "hunter2",          # None removes the field
        "url": "https://github.com",
        "notes": "...",
        "attributes": {"TOTP": "..."},  # custom fields, None removes
        "ssh_key": SshKey(...),         # None clears key and settings
    }

Only the keys present are applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Final, Mapping, Optional, Sequence

from vaulttree.core.errors import GroupNotFoundError
from vaulttree.core.tree import mutator, resolver
from vaulttree.core.tree.model import (
    NOTES,
    PASSWORD,
    TITLE,
    URL,
    USERNAME,
    WELL_KNOWN_KEYS,
    Entry,
    Group,
    Matcher,
)
from vaulttree.core.tree.mutator import SshKey
from vaulttree.core.store.controller import StoreController

_log = logging.getLogger("vaulttree.entries")

# record attribute -> field key
WELL_KNOWN_ATTRIBUTES: Final[dict[str, str]] = {
    "title": TITLE,
    "username": USERNAME,
    "password": PASSWORD,
    "url": URL,
    "notes": NOTES,
}

_CHANGE_KEYS: Final[frozenset[str]] = frozenset(WELL_KNOWN_ATTRIBUTES) | {"attributes", "ssh_key"}


@dataclass(frozen=True)
class EntryRecord:
    """Snapshot of one entry as seen by callers."""

    group_uuid: str
    uuid: str
    title: str = ""
    username: str = ""
    password: str = field(default="", repr=False)
    url: str = ""
    notes: str = ""
    attributes: dict[str, str] = field(default_factory=dict, repr=False)
    ssh_key: Optional[SshKey] = None

    @classmethod
    def from_entry(cls, entry: Entry, group: Group) -> EntryRecord:
        attributes = {
            item.key: item.value
            for item in entry.fields
            if item.key not in WELL_KNOWN_KEYS
        }
        return cls(
            group_uuid=group.uuid,
            uuid=entry.uuid,
            title=entry.get_content(TITLE),
            username=entry.get_content(USERNAME),
            password=entry.get_content(PASSWORD),
            url=entry.get_content(URL),
            notes=entry.get_content(NOTES),
            attributes=attributes,
            ssh_key=mutator.get_ssh_key(entry),
        )


def _check_changes(changes: Mapping[str, Any]) -> None:
    unknown = set(changes) - _CHANGE_KEYS
    if unknown:
        raise ValueError(f"Unknown entry attributes: {', '.join(sorted(unknown))}")

    for key in changes.get("attributes") or {}:
        if key in WELL_KNOWN_KEYS:
            raise ValueError(f"'{key}' is a well-known field, set it by its own attribute")

    ssh_key = changes.get("ssh_key")
    if ssh_key is not None and ssh_key.private_key is None:
        raise ValueError("ssh_key requires a private key")


def apply_changes(entry: Entry, changes: Mapping[str, Any]) -> None:
    """
    Apply a change mapping to ``entry`` in place.

    Raises:
        ValueError: Unknown keys or an SSH key without key material
    """
    _check_changes(changes)

    for name, key in WELL_KNOWN_ATTRIBUTES.items():
        if name in changes:
            mutator.update(entry, key, changes[name])

    for key, value in (changes.get("attributes") or {}).items():
        mutator.update(entry, key, value)

    if "ssh_key" in changes:
        ssh_key = changes["ssh_key"]
        if ssh_key is None:
            mutator.clear_ssh_key(entry)
        else:
            mutator.set_ssh_key(entry, ssh_key.private_key, ssh_key.settings)


class EntryService:
    """
    CRUD front end for a :class:`StoreController`.

    Usage:
        service = EntryService(controller)
        record = service.create_at_path("Root/web/github", {"username": "octocat"})
        record = service.update(record.group_uuid, record.uuid, {"password": None})
    """

    __slots__ = ("_controller",)

    def __init__(self, controller: StoreController) -> None:
        self._controller = controller

    @property
    def controller(self) -> StoreController:
        return self._controller

    # ------------------------------------------------------------------
    # Path addressed
    # ------------------------------------------------------------------

    def lookup(self, path: str, matchers: Sequence[Matcher] = ()) -> EntryRecord:
        """
        Find an entry by path, narrowed by field matchers.

        Reloads according to the controller's read policy.

        Raises:
            InvalidPathError, GroupNotFoundError, EntryNotFoundError
        """
        _log.info(f"Looking up entry at {path!r}")
        with self._controller.read() as tree:
            entry, group = resolver.resolve(tree, path, matchers)
            return EntryRecord.from_entry(entry, group)

    def create_at_path(
        self,
        path: str,
        changes: Optional[Mapping[str, Any]] = None,
    ) -> EntryRecord:
        """
        Create an entry at ``path``, creating missing groups.

        The title always comes from the last path segment.

        Raises:
            InvalidPathError: Path has no group segment
            DuplicateEntryError: An entry with that title exists already
        """
        changes = dict(changes or {})
        changes.pop("title", None)
        _check_changes(changes)

        _log.info(f"Creating entry at {path!r}")
        with self._controller.transaction() as tree:
            entry = mutator.create(tree, path)
            apply_changes(entry, changes)
            group = resolver.resolve_group(tree, resolver.split_path(path)[:-1])
            group_uuid = group.uuid

        return self.read(group_uuid, entry.uuid)

    def delete_at_path(self, path: str) -> None:
        """
        Delete the entry at ``path``.

        Deleting under a missing group chain succeeds without changes.

        Raises:
            InvalidPathError: Path has no group segment
            EntryNotFoundError: The group exists but has no such entry
        """
        _log.info(f"Deleting entry at {path!r}")
        with self._controller.transaction() as tree:
            mutator.delete(tree, path)

    # ------------------------------------------------------------------
    # Identifier addressed
    # ------------------------------------------------------------------

    def create(self, group_uuid: str, changes: Mapping[str, Any]) -> EntryRecord:
        """
        Add a new entry to the group ``group_uuid``.

        Raises:
            ValueError: ``changes`` carries no title
            GroupNotFoundError: No such group
        """
        if not changes.get("title"):
            raise ValueError("title is required")
        _check_changes(changes)

        _log.info(f"Creating entry in group {group_uuid}")
        with self._controller.transaction() as tree:
            group = resolver.find_group(tree, group_uuid)
            if group is None:
                raise GroupNotFoundError(
                    f"group_uuid {group_uuid} is not found in the database"
                )
            entry = mutator.add_entry(group)
            apply_changes(entry, changes)
            group_uuid = group.uuid

        return self.read(group_uuid, entry.uuid)

    def read(self, group_uuid: str, entry_uuid: str) -> EntryRecord:
        """
        Read an entry by identifiers, always reloading first.

        Raises:
            GroupNotFoundError, EntryNotFoundError
        """
        _log.info(f"Reading entry {entry_uuid}")
        with self._controller.read(reload=True) as tree:
            entry, group = resolver.resolve_by_id(tree, group_uuid, entry_uuid)
            return EntryRecord.from_entry(entry, group)

    def update(
        self,
        group_uuid: str,
        entry_uuid: str,
        changes: Mapping[str, Any],
    ) -> EntryRecord:
        """
        Apply ``changes`` to an existing entry.

        Raises:
            ValueError: Unknown keys in ``changes``
            GroupNotFoundError, EntryNotFoundError
        """
        _check_changes(changes)

        _log.info(f"Updating entry {entry_uuid}")
        with self._controller.transaction() as tree:
            entry, _ = resolver.resolve_by_id(tree, group_uuid, entry_uuid)
            apply_changes(entry, changes)

        return self.read(group_uuid, entry_uuid)

    def delete(self, group_uuid: str, entry_uuid: str) -> None:
        """
        Remove an entry by identifiers.

        Raises:
            GroupNotFoundError, EntryNotFoundError
        """
        _log.info(f"Deleting entry {entry_uuid}")
        with self._controller.transaction() as tree:
            entry, group = resolver.resolve_by_id(tree, group_uuid, entry_uuid)
            mutator.remove_entry(group, entry)
