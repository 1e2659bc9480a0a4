"""
Path Resolution
===============

Locates groups and entries inside a :class:`Tree`.

Two addressing modes are supported:

    Path mode:
        ``"Root/child1/child2/secret"`` names a chain of groups followed by
        an entry title. Sibling groups and entries are matched by display
        name with first-match-wins; duplicates further down the list are
        never reached. Optional matchers disambiguate same-titled entries.

    Identifier mode:
        A group identifier plus an entry identifier, as returned by an
        earlier read. Display names are ignored, so these lookups stay
        valid across renames.
"""

from __future__ import annotations

import re
from typing import Final, Iterable, Optional, Sequence

from vaulttree.core.errors import (
    EntryNotFoundError,
    GroupNotFoundError,
    InvalidPathError,
)
from vaulttree.core.tree.model import Entry, Group, Matcher, Tree

PATH_SEPARATOR: Final[str] = "/"
_UUID_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[0-9a-f]{32}$")


def split_path(path: str) -> list[str]:
    """
    Split an entry path into segments.

    A single leading separator is tolerated. The result always holds at
    least one group segment and the entry title.

    Raises:
        InvalidPathError: If fewer than two segments remain
    """
    parts = path.split(PATH_SEPARATOR)
    if parts and parts[0] == "":
        parts = parts[1:]
    if len(parts) < 2:
        raise InvalidPathError(
            f"entry path '{path}' does not contain any group",
            "paths take the form 'group/.../title'",
        )
    return parts


def walk_groups(tree: Tree, names: Sequence[str]) -> tuple[Optional[Group], int]:
    """
    Follow ``names`` from the root as far as possible.

    Returns:
        The deepest group reached and the number of segments consumed.
        ``(None, 0)`` when the first segment has no match.
    """
    group: Optional[Group] = None
    for depth, name in enumerate(names):
        found = tree.child(name) if group is None else group.child(name)
        if found is None:
            return group, depth
        group = found
    return group, len(names)


def resolve_group(tree: Tree, names: Sequence[str]) -> Group:
    """
    Resolve a chain of group names starting at the top-level groups.

    Raises:
        GroupNotFoundError: At the first segment without a matching child
    """
    if not names:
        raise InvalidPathError("group path is empty")
    group, depth = walk_groups(tree, names)
    if group is None or depth < len(names):
        missing = names[depth]
        raise GroupNotFoundError(
            f"group '{missing}' in path '{PATH_SEPARATOR.join(names)}' not found"
        )
    return group


def entry_matches(entry: Entry, title: str, matchers: Iterable[Matcher]) -> bool:
    """True if ``entry`` has the given title and satisfies every matcher."""
    if entry.title != title:
        return False
    return all(matcher.matches(entry) for matcher in matchers)


def find_entry(group: Group, title: str, matchers: Sequence[Matcher] = ()) -> Optional[Entry]:
    """Return the first entry in ``group`` with ``title`` satisfying ``matchers``."""
    for entry in group.entries:
        if entry_matches(entry, title, matchers):
            return entry
    return None


def resolve(
    tree: Tree,
    path: str,
    matchers: Sequence[Matcher] = (),
) -> tuple[Entry, Group]:
    """
    Resolve ``path`` to an entry and the group that owns it.

    Args:
        tree: The tree to search
        path: Slash-delimited ``group/.../title`` path
        matchers: Field predicates every candidate must satisfy

    Returns:
        ``(entry, group)``

    Raises:
        InvalidPathError: Path has no group segment
        GroupNotFoundError: A group along the path is missing
        EntryNotFoundError: No entry in the group qualifies
    """
    parts = split_path(path)
    group = resolve_group(tree, parts[:-1])

    title = parts[-1]
    entry = find_entry(group, title, matchers)
    if entry is None:
        raise EntryNotFoundError(f"entry '{title}' in path '{path}' not found")

    return entry, group


def _is_uuid(value: str) -> bool:
    return bool(_UUID_PATTERN.match(value.lower())) if value else False


def find_group_in(group_uuid: str, root: Group) -> Optional[Group]:
    """Depth-first search of the subtree rooted at ``root``."""
    if not _is_uuid(group_uuid):
        return None
    wanted = group_uuid.lower()
    stack = [root]
    while stack:
        group = stack.pop()
        if group.uuid == wanted:
            return group
        stack.extend(reversed(group.groups))
    return None


def find_group(tree: Tree, group_uuid: str) -> Optional[Group]:
    """Search every top-level subtree for the group with ``group_uuid``."""
    for top in tree.groups:
        found = find_group_in(group_uuid, top)
        if found is not None:
            return found
    return None


def find_entry_in(entry_uuid: str, group: Group) -> Optional[Entry]:
    """Scan the direct entries of ``group`` for ``entry_uuid``."""
    if not _is_uuid(entry_uuid):
        return None
    wanted = entry_uuid.lower()
    for entry in group.entries:
        if entry.uuid == wanted:
            return entry
    return None


def resolve_by_id(tree: Tree, group_uuid: str, entry_uuid: str) -> tuple[Entry, Group]:
    """
    Resolve an entry by group and entry identifiers.

    Raises:
        GroupNotFoundError: No group carries ``group_uuid``
        EntryNotFoundError: The group has no direct entry ``entry_uuid``
    """
    group = find_group(tree, group_uuid)
    if group is None:
        raise GroupNotFoundError(f"group_uuid {group_uuid} is not found in the database")

    entry = find_entry_in(entry_uuid, group)
    if entry is None:
        raise EntryNotFoundError(f"entry_uuid {entry_uuid} is not found in the database")

    return entry, group
