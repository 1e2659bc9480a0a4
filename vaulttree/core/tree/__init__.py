"""
Credential Tree
===============

In-memory model plus the resolver and mutator that operate on it.
Nothing here locks or performs I/O.
"""

from vaulttree.core.tree.model import (
    Attachment,
    Entry,
    Field,
    Group,
    Matcher,
    Tree,
    TreeMeta,
)
from vaulttree.core.tree.mutator import SshKey
from vaulttree.core.tree.resolver import resolve, resolve_by_id, resolve_group

__all__ = [
    "Attachment",
    "Entry",
    "Field",
    "Group",
    "Matcher",
    "Tree",
    "TreeMeta",
    "SshKey",
    "resolve",
    "resolve_by_id",
    "resolve_group",
]
