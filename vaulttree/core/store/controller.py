"""
Store Controller
================

Owns the in-memory tree of one container and serializes every access to it.

States:
    UNLOADED  -> never loaded
    LOADED    -> a tree is available
    RELOADING -> re-reading the container (previous tree kept until success)
    FLUSHING  -> writing the tree back
    FAILED    -> the initial load failed; no tree exists

Mutations run as:

    lock -> reload -> mutate -> flush -> unlock

so each one is atomic with respect to other mutations and to reloads
triggered by the change watcher, which takes the same lock. Reads hold the
lock too and reload only when asked to (or when the in-memory tree holds
edits that never reached disk).

Flushing writes a temporary file beside the container and renames it over
the original, so the container on disk is never half-written. There is no
locking across processes: two controllers on one file can still race.
"""

from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

from vaulttree.core.config import StoreConfig
from vaulttree.core.container.codec import ContainerCodec, new_tree
from vaulttree.core.crypto.kdf import Credentials, KdfParameters
from vaulttree.core.errors import StoreIOError, VaultTreeError
from vaulttree.core.logging import configure_logging
from vaulttree.core.store.watcher import ChangeWatcher
from vaulttree.core.tree.model import Tree
from vaulttree.utils.paths import (
    discard,
    restrict_permissions,
    sibling_temp_file,
    write_and_sync,
)


class StoreState(Enum):
    """Lifecycle of a :class:`StoreController`."""
    UNLOADED = "unloaded"
    LOADED = "loaded"
    RELOADING = "reloading"
    FLUSHING = "flushing"
    FAILED = "failed"


class StoreController:
    """
    Single owner of a container's tree.

    Usage:
        controller = StoreController(path, Credentials("s3cret"))
        controller.load()

        with controller.transaction() as tree:
            mutator.create(tree, "Root/web/github")

        with controller.read() as tree:
            entry, group = resolver.resolve(tree, "Root/web/github")

    Thread Safety:
        All public methods acquire the controller lock. The lock is not
        reentrant: do not call ``reload()`` or ``flush()`` from inside a
        ``transaction()`` or ``read()`` block.
    """

    __slots__ = (
        "_location", "_codec", "_lock", "_tree", "_state", "_failure",
        "_stale", "_reload_on_read", "_watcher", "_log",
    )

    def __init__(
        self,
        location: Path | str,
        credentials: Credentials,
        kdf: Optional[KdfParameters] = None,
        reload_on_read: bool = False,
    ) -> None:
        self._location = Path(location)
        self._codec = ContainerCodec(credentials, kdf=kdf)
        self._lock = threading.Lock()
        self._tree: Optional[Tree] = None
        self._state = StoreState.UNLOADED
        self._failure: Optional[VaultTreeError] = None
        self._stale = False
        self._reload_on_read = reload_on_read
        self._watcher: Optional[ChangeWatcher] = None
        self._log = logging.getLogger("vaulttree.store")

    @classmethod
    def open(cls, config: StoreConfig) -> StoreController:
        """
        Create a controller from configuration, load it and start watching.

        The ``vaulttree`` loggers are configured from ``config.logging``.

        Raises:
            StoreIOError: The container cannot be read
            DecodeError: The credentials are wrong or the container corrupt
        """
        configure_logging(config.logging)
        controller = cls(
            config.database,
            config.credentials,
            kdf=config.kdf.parameters(),
            reload_on_read=config.reload_on_read,
        )
        controller.load()
        if config.watch.enabled:
            controller.start_watching(config.watch.poll_interval)
        return controller

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def location(self) -> Path:
        return self._location

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def failure(self) -> Optional[VaultTreeError]:
        """The error that put the controller in ``FAILED``, if any."""
        return self._failure

    @property
    def is_watching(self) -> bool:
        return self._watcher is not None and self._watcher.is_running

    # ------------------------------------------------------------------
    # Load / reload
    # ------------------------------------------------------------------

    def _read_container(self) -> Tree:
        try:
            data = self._location.read_bytes()
        except OSError as e:
            raise StoreIOError(
                f"Unable to open database at {self._location}", str(e)
            ) from e
        return self._codec.decode(data)

    def _load_locked(self) -> None:
        try:
            tree = self._read_container()
        except VaultTreeError as e:
            self._state = StoreState.FAILED
            self._failure = e
            self._log.error(f"Loading database failed: {e.summary}")
            raise

        self._tree = tree
        self._state = StoreState.LOADED
        self._failure = None
        self._stale = False
        self._log.info(f"Loaded database from {self._location}")

    def _reload_locked(self) -> None:
        if self._tree is None:
            self._load_locked()
            return

        self._log.info("Reloading database")
        self._state = StoreState.RELOADING
        try:
            tree = self._read_container()
        except VaultTreeError as e:
            self._log.warning(f"Reload failed, keeping previous tree: {e.summary}")
            raise
        finally:
            self._state = StoreState.LOADED

        self._tree = tree
        self._stale = False

    def load(self) -> None:
        """
        Read and decode the container.

        On failure the controller enters ``FAILED`` and the error is raised.
        """
        with self._lock:
            self._load_locked()

    def reload(self) -> None:
        """
        Re-read the container and replace the tree wholesale.

        On failure the previous tree is kept and the error is raised. A
        controller that was never loaded behaves as in :meth:`load`.
        """
        with self._lock:
            self._reload_locked()

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    def _require_tree(self) -> Tree:
        if self._tree is None:
            detail = self._failure.summary if self._failure is not None else None
            raise StoreIOError("database is not loaded", detail)
        return self._tree

    def _flush_locked(self) -> None:
        tree = self._require_tree()
        self._state = StoreState.FLUSHING
        try:
            data = self._codec.encode(tree)

            try:
                fd, temp_path = sibling_temp_file(self._location)
            except OSError as e:
                self._log.error("Error while creating temp file for database")
                raise StoreIOError(
                    f"Unable to create temporary file in {self._location.parent}", str(e)
                ) from e

            try:
                write_and_sync(fd, data)
                restrict_permissions(temp_path)
            except OSError as e:
                self._log.error(f"Error while saving database to {temp_path}")
                discard(temp_path)
                raise StoreIOError(f"Unable to write database to {temp_path}", str(e)) from e

            try:
                os.replace(temp_path, self._location)
            except OSError as e:
                self._log.error(f"Error while moving temp file to {self._location}")
                discard(temp_path)
                raise StoreIOError(
                    f"Unable to replace database at {self._location}", str(e)
                ) from e
        finally:
            self._state = StoreState.LOADED

        self._stale = False
        self._log.info(f"Saved database to {self._location}")

    def flush(self) -> None:
        """
        Encode the tree and atomically replace the container with it.

        Raises:
            EncodeError: Nothing was written
            StoreIOError: The temp file could not be written or renamed;
                the container on disk is unchanged
        """
        with self._lock:
            self._flush_locked()

    def initialize(self, root_group: Optional[str] = None) -> bool:
        """
        Write an empty container if none exists at the location.

        Args:
            root_group: Optional name of a single top-level group

        Returns:
            True if a container was created, False if one already existed
        """
        with self._lock:
            if self._location.exists():
                return False
            previous = self._tree
            self._tree = new_tree(root_group)
            try:
                self._flush_locked()
            except VaultTreeError:
                self._tree = previous
                if previous is None:
                    self._state = StoreState.UNLOADED
                raise
            self._state = StoreState.LOADED
            self._failure = None
            self._log.info(f"Created new database at {self._location}")
            return True

    # ------------------------------------------------------------------
    # Locked access
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self, reload: bool = True, flush: bool = True) -> Iterator[Tree]:
        """
        Hold the lock for a reload -> mutate -> flush sequence.

        The tree is flushed only if the block exits normally. If the block
        raises, or the flush fails, the in-memory tree is marked stale and
        is reloaded before it is served again.
        """
        with self._lock:
            self._log.debug("Acquired lock")
            if reload or self._stale or self._tree is None:
                self._reload_locked()
            tree = self._require_tree()
            try:
                yield tree
                if flush:
                    self._flush_locked()
            except BaseException:
                self._stale = True
                raise

    @contextmanager
    def read(self, reload: Optional[bool] = None) -> Iterator[Tree]:
        """
        Hold the lock while reading the tree.

        Args:
            reload: Reload first; defaults to the controller's read policy.
                A stale tree is always reloaded.
        """
        if reload is None:
            reload = self._reload_on_read
        with self._lock:
            if reload or self._stale or self._tree is None:
                self._reload_locked()
            yield self._require_tree()

    # ------------------------------------------------------------------
    # Watching
    # ------------------------------------------------------------------

    def _reload_on_change(self) -> None:
        self.reload()

    def start_watching(self, poll_interval: float = 1.0) -> None:
        """Reload automatically when the container changes on disk."""
        if self.is_watching:
            return
        self._watcher = ChangeWatcher(self._location, self._reload_on_change, poll_interval)
        self._watcher.start()

    def stop_watching(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None

    def close(self) -> None:
        self.stop_watching()

    def __enter__(self) -> StoreController:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"StoreController(location={str(self._location)!r}, state={self._state.value})"
