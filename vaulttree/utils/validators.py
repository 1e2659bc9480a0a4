"""
Validation Utilities
====================

Input validation for configuration values.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from vaulttree.core.errors import ConfigurationError


def validate_database_path(path: str | Path, must_exist: bool = False) -> Path:
    """
    Validate the container location.

    Args:
        path: Location of the container file
        must_exist: If True, the file must already exist

    Returns:
        Absolute, resolved Path

    Raises:
        ConfigurationError: If validation fails
    """
    if not str(path).strip():
        raise ConfigurationError("database or password is not set")

    try:
        resolved = Path(path).expanduser().resolve()
    except (ValueError, RuntimeError) as e:
        raise ConfigurationError(f"Invalid database path: {path}", str(e)) from e

    if resolved.exists() and resolved.is_dir():
        raise ConfigurationError(f"Database path is a directory: {resolved}")

    if must_exist and not resolved.exists():
        raise ConfigurationError(f"Database does not exist: {resolved}")

    if not resolved.parent.is_dir():
        raise ConfigurationError(f"Database directory does not exist: {resolved.parent}")

    return resolved


def validate_key_file(path: Optional[str | Path]) -> Optional[Path]:
    """Validate an optional key file path; empty values mean "no key file"."""
    if path is None or not str(path).strip():
        return None

    resolved = Path(path).expanduser().resolve()
    if not resolved.is_file():
        raise ConfigurationError(f"Key file not found: {resolved}")
    return resolved


def validate_password(value: Optional[str]) -> str:
    """
    Validate the container password.

    Raises:
        ConfigurationError: If the password is missing or contains NUL bytes
    """
    if not value:
        raise ConfigurationError("database or password is not set")
    if "\x00" in value:
        raise ConfigurationError("password contains invalid characters")
    return value
