"""
Utils module - Utility functions and helpers.
"""

from vaulttree.utils.paths import (
    discard,
    restrict_permissions,
    sibling_temp_file,
    stat_signature,
    write_and_sync,
)
from vaulttree.utils.validators import (
    validate_database_path,
    validate_key_file,
    validate_password,
)

__all__ = [
    "discard",
    "restrict_permissions",
    "sibling_temp_file",
    "stat_signature",
    "write_and_sync",
    "validate_database_path",
    "validate_key_file",
    "validate_password",
]
