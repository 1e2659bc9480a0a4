"""
Core module - Configuration, logging, errors and the store components.
"""

from vaulttree.core.config import StoreConfig
from vaulttree.core.errors import VaultTreeError
from vaulttree.core.logging import SecureLogFilter, configure_logging, get_secure_logger

__all__ = [
    "StoreConfig",
    "VaultTreeError",
    "SecureLogFilter",
    "configure_logging",
    "get_secure_logger",
]
