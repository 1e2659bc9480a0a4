"""
Store module - Ownership, locking and persistence of a loaded tree.
"""

from vaulttree.core.store.controller import StoreController, StoreState
from vaulttree.core.store.entries import EntryRecord, EntryService
from vaulttree.core.store.watcher import ChangeWatcher

__all__ = [
    "StoreController",
    "StoreState",
    "EntryRecord",
    "EntryService",
    "ChangeWatcher",
]
