"""
Store Configuration
===================

Immutable configuration for a credential store, loaded from environment
variables.

Required:
    VAULTTREE_DATABASE              container location
    VAULTTREE_PASSWORD              container password

Optional:
    VAULTTREE_KEY_FILE              secondary key file
    VAULTTREE_RELOAD_ON_READ        reload before every read (true/false)
    VAULTTREE_LOG_LEVEL             DEBUG/INFO/WARNING/ERROR/CRITICAL
    VAULTTREE_LOGGING__ENABLE_CONSOLE
    VAULTTREE_LOGGING__LOG_DIR
    VAULTTREE_WATCH__ENABLED        watch the container for changes
    VAULTTREE_WATCH__POLL_INTERVAL  seconds between checks
    VAULTTREE_KDF__TIME_COST        Argon2id cost for new containers
    VAULTTREE_KDF__MEMORY_COST
    VAULTTREE_KDF__PARALLELISM

A missing database or password fails at load time, not on first use.
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final, Mapping, Optional

from vaulttree.core.crypto.kdf import (
    ARGON2_MEMORY_COST,
    ARGON2_PARALLELISM,
    ARGON2_TIME_COST,
    Credentials,
    KdfParameters,
)
from vaulttree.core.errors import ConfigurationError
from vaulttree.utils.validators import (
    validate_database_path,
    validate_key_file,
    validate_password,
)

DEFAULT_ENV_PREFIX: Final[str] = "VAULTTREE"

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean for {name}: {value!r}")


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid integer for {name}: {value!r}") from e


def _parse_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid number for {name}: {value!r}") from e


@dataclass(frozen=True, slots=True)
class KdfConfig:
    """Argon2id cost used when writing a brand-new container."""

    time_cost: int = ARGON2_TIME_COST
    memory_cost: int = ARGON2_MEMORY_COST
    parallelism: int = ARGON2_PARALLELISM

    def __post_init__(self) -> None:
        try:
            self.parameters()
        except ValueError as e:
            raise ConfigurationError("Invalid KDF settings", str(e)) from e

    def parameters(self) -> KdfParameters:
        return KdfParameters(
            time_cost=self.time_cost,
            memory_cost=self.memory_cost,
            parallelism=self.parallelism,
        )


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Immutable logging configuration."""

    level: str = "INFO"
    enable_console: bool = True
    log_dir: Optional[Path] = None
    max_file_size_bytes: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5

    def __post_init__(self) -> None:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.level.upper() not in valid_levels:
            raise ConfigurationError(f"Invalid log level: {self.level}")


@dataclass(frozen=True, slots=True)
class WatchConfig:
    """Change watcher settings."""

    enabled: bool = True
    poll_interval: float = 1.0

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ConfigurationError("Watch poll interval must be positive")


@dataclass(frozen=True)
class StoreConfig:
    """
    Everything needed to open and serve one container.

    Usage:
        config = StoreConfig.load()
        controller = StoreController.open(config)
    """

    database: Path
    password: str = field(repr=False)
    key_file: Optional[Path] = None
    reload_on_read: bool = False
    kdf: KdfConfig = field(default_factory=KdfConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)

    def __post_init__(self) -> None:
        object.__setattr__(self, "database", validate_database_path(self.database))
        object.__setattr__(self, "password", validate_password(self.password))
        object.__setattr__(self, "key_file", validate_key_file(self.key_file))

    @property
    def credentials(self) -> Credentials:
        return Credentials(password=self.password, key_file=self.key_file)

    @property
    def config_hash(self) -> str:
        """Short fingerprint of the non-secret settings."""
        config_str = f"{self.database}|{self.key_file}|{self.kdf}|{self.watch}|{self.reload_on_read}"
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def load(
        cls,
        env_prefix: str = DEFAULT_ENV_PREFIX,
        environ: Optional[Mapping[str, str]] = None,
    ) -> StoreConfig:
        """
        Build configuration from environment variables.

        Args:
            env_prefix: Variable prefix (default: VAULTTREE)
            environ: Mapping to read instead of ``os.environ``

        Raises:
            ConfigurationError: Missing database/password or invalid values
        """
        values = cls._parse_env(env_prefix, os.environ if environ is None else environ)

        database = values.get("database", "")
        password = values.get("password", "")
        if not database or not password:
            raise ConfigurationError(
                "database or password is not set",
                f"set {env_prefix.upper()}_DATABASE and {env_prefix.upper()}_PASSWORD",
            )

        kdf_kwargs: dict[str, Any] = {}
        for name in ("time_cost", "memory_cost", "parallelism"):
            key = f"kdf.{name}"
            if key in values:
                kdf_kwargs[name] = _parse_int(key, values[key])

        logging_kwargs: dict[str, Any] = {}
        if "log_level" in values:
            logging_kwargs["level"] = values["log_level"].upper()
        if "logging.level" in values:
            logging_kwargs["level"] = values["logging.level"].upper()
        if "logging.enable_console" in values:
            logging_kwargs["enable_console"] = _parse_bool(
                "logging.enable_console", values["logging.enable_console"]
            )
        if "logging.log_dir" in values:
            logging_kwargs["log_dir"] = Path(values["logging.log_dir"])

        watch_kwargs: dict[str, Any] = {}
        if "watch.enabled" in values:
            watch_kwargs["enabled"] = _parse_bool("watch.enabled", values["watch.enabled"])
        if "watch.poll_interval" in values:
            watch_kwargs["poll_interval"] = _parse_float(
                "watch.poll_interval", values["watch.poll_interval"]
            )

        reload_on_read = False
        if "reload_on_read" in values:
            reload_on_read = _parse_bool("reload_on_read", values["reload_on_read"])

        return cls(
            database=Path(database),
            password=password,
            key_file=Path(values["key_file"]) if values.get("key_file") else None,
            reload_on_read=reload_on_read,
            kdf=KdfConfig(**kdf_kwargs),
            logging=LoggingConfig(**logging_kwargs),
            watch=WatchConfig(**watch_kwargs),
        )

    @staticmethod
    def _parse_env(prefix: str, environ: Mapping[str, str]) -> dict[str, str]:
        """Collect ``PREFIX_SECTION__KEY`` variables as ``section.key``."""
        values: dict[str, str] = {}
        prefix_upper = f"{prefix.upper()}_"

        for key, value in environ.items():
            if key.startswith(prefix_upper):
                config_key = key[len(prefix_upper):].lower().replace("__", ".")
                values[config_key] = value

        return values

    def __repr__(self) -> str:
        """Safe string representation without the password."""
        return (
            f"StoreConfig(database={str(self.database)!r}, "
            f"key_file={str(self.key_file) if self.key_file else None!r}, "
            f"hash={self.config_hash})"
        )
