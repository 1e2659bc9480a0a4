"""
VaultTree - Hierarchical Encrypted Credential Store
===================================================

Groups of sub-groups and entries, persisted in a single encrypted
container and addressed by slash-delimited paths or by identifiers.

Security Notice:
- Field values are never logged
- The container on disk is replaced atomically, never half-written
- Protected fields stay encrypted inside the decrypted payload
"""

from vaulttree.core.config import StoreConfig
from vaulttree.core.logging import get_secure_logger
from vaulttree.core.store import EntryRecord, EntryService, StoreController

__version__ = "0.1.0"

__all__ = [
    "StoreConfig",
    "StoreController",
    "EntryService",
    "EntryRecord",
    "get_secure_logger",
    "__version__",
]
