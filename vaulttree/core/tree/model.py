"""
Credential Tree Model
=====================

In-memory representation of a decoded container.

Structure:
    Tree
     └── groups: [Group]
           ├── groups: [Group] ...
           └── entries: [Entry]
                 ├── fields: [Field]
                 └── attachments: [Attachment]

Nodes hold no parent references. Navigation always starts at the tree
root and walks downward, so a node's owner is identified by the path or
identifier used to reach it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Final, Optional


TITLE: Final[str] = "Title"
USERNAME: Final[str] = "UserName"
PASSWORD: Final[str] = "Password"
URL: Final[str] = "URL"
NOTES: Final[str] = "Notes"

WELL_KNOWN_KEYS: Final[tuple[str, ...]] = (TITLE, USERNAME, PASSWORD, URL, NOTES)
PROTECTED_BY_DEFAULT: Final[frozenset[str]] = frozenset({PASSWORD})


def new_uuid() -> str:
    """Generate a fresh 128-bit identifier as 32 lowercase hex characters."""
    return uuid.uuid4().hex


@dataclass
class Field:
    """A named value on an entry."""

    key: str
    value: str
    protected: bool = False

    def __repr__(self) -> str:
        """Safe representation that never shows the value."""
        return f"Field(key={self.key!r}, protected={self.protected})"


@dataclass
class Attachment:
    """A named binary blob on an entry."""

    name: str
    data: bytes = b""

    def __repr__(self) -> str:
        return f"Attachment(name={self.name!r}, size={len(self.data)})"


@dataclass
class Entry:
    """
    A single credential record.

    Fields are kept in document order and keyed case-sensitively; at most
    one field exists per key.
    """

    uuid: str = field(default_factory=new_uuid)
    fields: list[Field] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)

    def get(self, key: str) -> Optional[Field]:
        """Return the field stored under ``key``, if any."""
        for item in self.fields:
            if item.key == key:
                return item
        return None

    def get_content(self, key: str) -> str:
        """Return the value stored under ``key``, or an empty string."""
        item = self.get(key)
        return item.value if item is not None else ""

    @property
    def title(self) -> str:
        return self.get_content(TITLE)

    def __repr__(self) -> str:
        return f"Entry(uuid={self.uuid!r}, title={self.title!r})"


@dataclass
class Group:
    """A named folder of sub-groups and entries."""

    name: str
    uuid: str = field(default_factory=new_uuid)
    groups: list[Group] = field(default_factory=list)
    entries: list[Entry] = field(default_factory=list)

    def child(self, name: str) -> Optional[Group]:
        """Return the first direct sub-group called ``name``."""
        for group in self.groups:
            if group.name == name:
                return group
        return None

    def __repr__(self) -> str:
        return (
            f"Group(name={self.name!r}, uuid={self.uuid!r}, "
            f"groups={len(self.groups)}, entries={len(self.entries)})"
        )


@dataclass(frozen=True)
class Matcher:
    """Key/value predicate used to disambiguate same-titled entries."""

    key: str
    value: str

    def matches(self, entry: Entry) -> bool:
        return entry.get_content(self.key) == self.value


@dataclass
class TreeMeta:
    """Container-level settings carried alongside the tree."""

    generator: str = "vaulttree"
    kdf_time_cost: Optional[int] = None
    kdf_memory_cost: Optional[int] = None
    kdf_parallelism: Optional[int] = None


@dataclass
class Tree:
    """The implicit root: an ordered forest of top-level groups."""

    groups: list[Group] = field(default_factory=list)
    meta: TreeMeta = field(default_factory=TreeMeta)

    def child(self, name: str) -> Optional[Group]:
        """Return the first top-level group called ``name``."""
        for group in self.groups:
            if group.name == name:
                return group
        return None

    def iter_groups(self):
        """Yield every group depth-first, parents before children."""
        stack = list(reversed(self.groups))
        while stack:
            group = stack.pop()
            yield group
            stack.extend(reversed(group.groups))

    def __repr__(self) -> str:
        return f"Tree(groups={len(self.groups)})"
