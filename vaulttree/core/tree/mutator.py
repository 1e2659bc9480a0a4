"""
Tree Mutation
=============

In-place edits of a :class:`Tree`.

None of these functions lock or touch the disk: callers hold the store
lock and flush afterwards (see :mod:`vaulttree.core.store.controller`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional

from vaulttree.core.attachments import agent_settings
from vaulttree.core.attachments.agent_settings import (
    PRIVATE_KEY_ATTACHMENT_NAME,
    SETTINGS_ATTACHMENT_NAME,
    AgentSettings,
)
from vaulttree.core.errors import DuplicateEntryError, EntryNotFoundError
from vaulttree.core.tree.model import (
    PROTECTED_BY_DEFAULT,
    TITLE,
    Attachment,
    Entry,
    Field,
    Group,
    Tree,
)
from vaulttree.core.tree.resolver import find_entry, split_path, walk_groups

_log = logging.getLogger("vaulttree.tree")


@dataclass(frozen=True)
class SshKey:
    """A private key plus the agent settings stored alongside it."""

    private_key: Optional[str]
    settings: AgentSettings

    def __repr__(self) -> str:
        """Safe representation without key material."""
        return f"SshKey(has_private_key={self.private_key is not None}, settings={self.settings!r})"


def _ensure_child(groups: list[Group], name: str) -> Group:
    for group in groups:
        if group.name == name:
            return group
    group = Group(name=name)
    groups.append(group)
    _log.debug(f"Created group {name!r}")
    return group


def create(tree: Tree, path: str) -> Entry:
    """
    Create an entry at ``path``, creating missing groups on the way.

    The new entry carries a single ``Title`` field set to the last path
    segment.

    Raises:
        InvalidPathError: Path has no group segment
        DuplicateEntryError: The group already has an entry with that title
    """
    parts = split_path(path)

    group = _ensure_child(tree.groups, parts[0])
    for name in parts[1:-1]:
        group = _ensure_child(group.groups, name)

    title = parts[-1]
    if find_entry(group, title) is not None:
        raise DuplicateEntryError(f"entry '{title}' already exists at '{path}'")

    entry = Entry(fields=[Field(TITLE, title)])
    group.entries.append(entry)
    return entry


def add_entry(group: Group) -> Entry:
    """Append an empty entry to ``group``."""
    entry = Entry()
    group.entries.append(entry)
    return entry


def update(
    entry: Entry,
    key: str,
    value: Optional[str],
    protected: Optional[bool] = None,
) -> None:
    """
    Set, replace or remove a field.

    Args:
        entry: Entry to edit
        key: Field key (case-sensitive)
        value: New value, or ``None`` to remove the field
        protected: Protection flag for a newly added field. Defaults to
            ``True`` for ``Password`` and ``False`` otherwise. Ignored when
            the field already exists.
    """
    existing = entry.get(key)

    if value is None:
        if existing is not None:
            entry.fields.remove(existing)
        return

    if existing is not None:
        existing.value = value
        return

    if protected is None:
        protected = key in PROTECTED_BY_DEFAULT
    entry.fields.append(Field(key, value, protected))


def delete(tree: Tree, path: str) -> None:
    """
    Remove the entry at ``path``.

    A missing group chain counts as already deleted. Sibling order is not
    preserved: the last entry takes the removed entry's slot.

    Raises:
        InvalidPathError: Path has no group segment
        EntryNotFoundError: The group exists but has no such entry
    """
    parts = split_path(path)
    names = parts[:-1]
    group, depth = walk_groups(tree, names)
    if group is None or depth < len(names):
        _log.debug(f"Group chain for {path!r} is absent, nothing to delete")
        return

    title = parts[-1]
    for index, entry in enumerate(group.entries):
        if entry.title == title:
            group.entries[index] = group.entries[-1]
            group.entries.pop()
            return

    raise EntryNotFoundError(f"entry '{title}' in path '{path}' not found")


def remove_entry(group: Group, entry: Entry) -> None:
    """Detach ``entry`` from ``group`` by identifier."""
    for index, item in enumerate(group.entries):
        if item.uuid == entry.uuid:
            del group.entries[index]
            return
    raise EntryNotFoundError(f"entry_uuid {entry.uuid} is not found in group {group.uuid}")


def get_attachment(entry: Entry, name: str) -> Optional[Attachment]:
    for attachment in entry.attachments:
        if attachment.name == name:
            return attachment
    return None


def set_attachment(entry: Entry, name: str, data: bytes) -> Attachment:
    """Replace the content of attachment ``name``, adding it if missing."""
    attachment = get_attachment(entry, name)
    if attachment is None:
        attachment = Attachment(name=name)
        entry.attachments.append(attachment)
    attachment.data = bytes(data)
    return attachment


def remove_attachment(entry: Entry, name: str) -> None:
    attachment = get_attachment(entry, name)
    if attachment is not None:
        entry.attachments.remove(attachment)


def set_ssh_key(entry: Entry, private_key: str, settings: AgentSettings) -> None:
    """
    Store ``private_key`` and its agent settings on ``entry``.

    The key always lands in the ``id_rsa`` attachment; the settings are
    rewritten to reference it.
    """
    if settings.private_key_attachment != PRIVATE_KEY_ATTACHMENT_NAME:
        settings = replace(settings, private_key_attachment=PRIVATE_KEY_ATTACHMENT_NAME)
    set_attachment(entry, SETTINGS_ATTACHMENT_NAME, agent_settings.encode(settings))
    set_attachment(entry, PRIVATE_KEY_ATTACHMENT_NAME, private_key.encode("utf-8"))


def clear_ssh_key(entry: Entry) -> None:
    remove_attachment(entry, SETTINGS_ATTACHMENT_NAME)
    remove_attachment(entry, PRIVATE_KEY_ATTACHMENT_NAME)


def get_ssh_key(entry: Entry) -> Optional[SshKey]:
    """
    Read the SSH key stored on ``entry``.

    Returns ``None`` when there is no settings attachment or it cannot be
    parsed. A settings attachment pointing at a missing key yields an
    :class:`SshKey` whose ``private_key`` is ``None``.
    """
    attachment = get_attachment(entry, SETTINGS_ATTACHMENT_NAME)
    if attachment is None:
        return None

    settings = agent_settings.decode(attachment.data)
    if settings is None:
        return None

    key_attachment = get_attachment(entry, settings.private_key_attachment)
    private_key = None
    if key_attachment is not None:
        private_key = key_attachment.data.decode("utf-8", errors="replace")

    return SshKey(private_key=private_key, settings=settings)
