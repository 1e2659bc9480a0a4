"""Tests for the store controller: locking, reload and atomic flush."""

import os
import threading

import pytest

from vaulttree.core.container.codec import ContainerCodec
from vaulttree.core.crypto.kdf import Credentials
from vaulttree.core.errors import (
    DecodeError,
    EncodeError,
    EntryNotFoundError,
    StoreIOError,
)
from vaulttree.core.store import controller as controller_module
from vaulttree.core.store.controller import StoreController, StoreState
from vaulttree.core.tree import mutator, resolver
from vaulttree.core.tree.model import USERNAME


class TestLoad:
    """Tests for load and the state machine."""

    def test_load(self, controller):
        """Test a successful load."""
        assert controller.state is StoreState.LOADED
        assert controller.failure is None

    def test_load_wrong_password(self, container_path, fast_kdf):
        """Test that a failed load enters FAILED."""
        ctrl = StoreController(container_path, Credentials("wrong"), kdf=fast_kdf)
        with pytest.raises(DecodeError):
            ctrl.load()
        assert ctrl.state is StoreState.FAILED
        assert isinstance(ctrl.failure, DecodeError)

    def test_load_missing_file(self, tmp_path, credentials, fast_kdf):
        """Test StoreIOError for a missing container."""
        ctrl = StoreController(tmp_path / "missing.vtkc", credentials, kdf=fast_kdf)
        with pytest.raises(StoreIOError):
            ctrl.load()
        assert ctrl.state is StoreState.FAILED

    def test_failed_controller_serves_nothing(self, tmp_path, credentials, fast_kdf):
        """Test that no tree is available after a failed load."""
        ctrl = StoreController(tmp_path / "missing.vtkc", credentials, kdf=fast_kdf)
        with pytest.raises(StoreIOError):
            ctrl.load()
        with pytest.raises(StoreIOError):
            with ctrl.read():
                pass

    def test_initialize(self, tmp_path, credentials, fast_kdf):
        """Test creating a fresh container."""
        path = tmp_path / "new.vtkc"
        ctrl = StoreController(path, credentials, kdf=fast_kdf)
        assert ctrl.initialize("Root") is True
        assert ctrl.initialize("Root") is False
        assert ctrl.state is StoreState.LOADED

        other = StoreController(path, credentials, kdf=fast_kdf)
        other.load()
        with other.read() as tree:
            assert [group.name for group in tree.groups] == ["Root"]

    def test_initialize_permissions(self, tmp_path, credentials, fast_kdf):
        """Test that the container is owner-only."""
        if os.name == "nt":
            pytest.skip("POSIX permissions")
        path = tmp_path / "new.vtkc"
        StoreController(path, credentials, kdf=fast_kdf).initialize()
        assert (path.stat().st_mode & 0o777) == 0o600

    def test_initialize_failure_leaves_nothing_loaded(self, tmp_path, credentials, fast_kdf, monkeypatch):
        """Test that a failed initial write does not serve the unsaved tree."""
        path = tmp_path / "new.vtkc"
        ctrl = StoreController(path, credentials, kdf=fast_kdf)

        def failing_encode(self, tree):
            raise EncodeError("Unable to encode database")

        monkeypatch.setattr(ContainerCodec, "encode", failing_encode)
        with pytest.raises(EncodeError):
            ctrl.initialize("Root")

        assert not path.exists()
        assert ctrl.state is StoreState.UNLOADED
        with pytest.raises(StoreIOError):
            with ctrl.read():
                pass


class TestReload:
    """Tests for reload semantics."""

    def test_reload_replaces_tree(self, controller, container_path, codec):
        """Test that an external write is picked up wholesale."""
        tree = codec.decode(container_path.read_bytes())
        mutator.create(tree, "Root/external")
        container_path.write_bytes(codec.encode(tree))

        controller.reload()
        with controller.read() as current:
            resolver.resolve(current, "Root/external")

    def test_reload_failure_keeps_tree(self, controller, container_path):
        """Test that a failed reload retains the previous tree."""
        container_path.write_bytes(b"corrupted")
        with pytest.raises(DecodeError):
            controller.reload()
        assert controller.state is StoreState.LOADED
        with controller.read(reload=False) as tree:
            resolver.resolve(tree, "Root/child1/child2/secret")

    def test_reload_on_unloaded_loads(self, container_path, credentials, fast_kdf):
        """Test that reload on a fresh controller acts as load."""
        ctrl = StoreController(container_path, credentials, kdf=fast_kdf)
        ctrl.reload()
        assert ctrl.state is StoreState.LOADED

    def test_read_policy(self, container_path, credentials, fast_kdf, codec):
        """Test reload_on_read controls whether reads see external writes."""
        lazy = StoreController(container_path, credentials, kdf=fast_kdf)
        eager = StoreController(container_path, credentials, kdf=fast_kdf, reload_on_read=True)
        lazy.load()
        eager.load()

        tree = codec.decode(container_path.read_bytes())
        mutator.create(tree, "Root/external")
        container_path.write_bytes(codec.encode(tree))

        with lazy.read() as current:
            assert resolver.find_entry(current.groups[0], "external") is None
        with eager.read() as current:
            assert resolver.find_entry(current.groups[0], "external") is not None


class TestTransaction:
    """Tests for mutate-and-flush."""

    def test_transaction_persists(self, controller, container_path, codec):
        """Test that a transaction's edits reach disk."""
        with controller.transaction() as tree:
            mutator.create(tree, "Root/new/entry")
        on_disk = codec.decode(container_path.read_bytes())
        resolver.resolve(on_disk, "Root/new/entry")

    def test_transaction_reloads_first(self, controller, container_path, codec):
        """Test that mutations start from the on-disk state."""
        tree = codec.decode(container_path.read_bytes())
        mutator.create(tree, "Root/external")
        container_path.write_bytes(codec.encode(tree))

        with controller.transaction() as current:
            mutator.create(current, "Root/mine")

        on_disk = codec.decode(container_path.read_bytes())
        resolver.resolve(on_disk, "Root/external")
        resolver.resolve(on_disk, "Root/mine")

    def test_exception_discards_edits(self, controller, container_path):
        """Test that a failing block flushes nothing and is not served later."""
        before = container_path.read_bytes()
        with pytest.raises(RuntimeError):
            with controller.transaction() as tree:
                mutator.create(tree, "Root/half-done")
                raise RuntimeError("boom")

        assert container_path.read_bytes() == before
        with controller.read(reload=False) as tree:
            with pytest.raises(EntryNotFoundError):
                resolver.resolve(tree, "Root/half-done")

    def test_stale_tree_reloaded_without_reload_flag(self, controller, container_path, codec):
        """Test that a failed block's edits never reach disk through a later transaction."""
        with pytest.raises(RuntimeError):
            with controller.transaction() as tree:
                mutator.create(tree, "Root/half-done")
                raise RuntimeError("boom")

        with controller.transaction(reload=False):
            pass

        on_disk = codec.decode(container_path.read_bytes())
        with pytest.raises(EntryNotFoundError):
            resolver.resolve(on_disk, "Root/half-done")

    def test_concurrent_creates(self, controller, container_path, codec):
        """Test that simultaneous creates on disjoint paths both persist."""
        barrier = threading.Barrier(2)
        errors = []

        def worker(path):
            try:
                barrier.wait()
                with controller.transaction() as tree:
                    mutator.create(tree, path)
            except Exception as e:
                errors.append(e)

        threads = [
            threading.Thread(target=worker, args=("Root/a/one",)),
            threading.Thread(target=worker, args=("Root/b/two",)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        on_disk = codec.decode(container_path.read_bytes())
        resolver.resolve(on_disk, "Root/a/one")
        resolver.resolve(on_disk, "Root/b/two")
        resolver.resolve(on_disk, "Root/child1/child2/secret")


class TestFlush:
    """Tests for the temp-file-then-rename flush."""

    def test_no_temp_files_left(self, controller, container_path):
        """Test that a flush leaves only the container behind."""
        controller.flush()
        assert sorted(p.name for p in container_path.parent.iterdir()) == [container_path.name]

    def test_rename_failure_leaves_target(self, controller, container_path, monkeypatch):
        """Test that a failed rename keeps the old container and no temp file."""
        before = container_path.read_bytes()

        def failing_replace(src, dst):
            raise OSError("rename refused")

        monkeypatch.setattr(controller_module.os, "replace", failing_replace)
        with pytest.raises(StoreIOError):
            with controller.transaction() as tree:
                mutator.create(tree, "Root/never")

        assert container_path.read_bytes() == before
        assert sorted(p.name for p in container_path.parent.iterdir()) == [container_path.name]
        assert controller.state is StoreState.LOADED

    def test_encode_failure_leaves_target(self, controller, container_path, monkeypatch):
        """Test that an encode failure never touches the container."""
        before = container_path.read_bytes()

        def failing_encode(self, tree):
            raise EncodeError("Unable to encode database")

        monkeypatch.setattr(ContainerCodec, "encode", failing_encode)
        with pytest.raises(EncodeError):
            controller.flush()
        assert container_path.read_bytes() == before

    def test_flush_after_failure_reloads(self, controller, container_path, monkeypatch):
        """Test that unflushed edits are dropped on the next read."""
        def failing_replace(src, dst):
            raise OSError("rename refused")

        monkeypatch.setattr(controller_module.os, "replace", failing_replace)
        with pytest.raises(StoreIOError):
            with controller.transaction() as tree:
                entry, _ = resolver.resolve(tree, "Root/child1/child2/secret")
                mutator.update(entry, USERNAME, "changed")
        monkeypatch.undo()

        with controller.read(reload=False) as tree:
            entry, _ = resolver.resolve(tree, "Root/child1/child2/secret")
            assert entry.get_content(USERNAME) == "foo"


class TestWatching:
    """Tests for watcher integration."""

    def test_context_manager_stops_watcher(self, container_path, credentials, fast_kdf):
        """Test that leaving the context stops the watcher thread."""
        with StoreController(container_path, credentials, kdf=fast_kdf) as ctrl:
            ctrl.load()
            ctrl.start_watching(poll_interval=0.05)
            assert ctrl.is_watching
        assert not ctrl.is_watching

    def test_repr(self, controller):
        """Test repr shows location and state only."""
        text = repr(controller)
        assert "loaded" in text
        assert "correct horse" not in text
