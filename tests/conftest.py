"""
Shared test fixtures.

Containers are written with the cheapest Argon2 cost the KDF accepts so
that tests stay fast.
"""

from __future__ import annotations

import logging

import pytest

from vaulttree.core.container.codec import ContainerCodec
from vaulttree.core.crypto.kdf import Credentials, KdfParameters
from vaulttree.core.store.controller import StoreController
from vaulttree.core.tree.model import USERNAME, Entry, Field, Group, Tree, TITLE


@pytest.fixture
def restore_package_logger():
    """Undo configure_logging on the shared 'vaulttree' logger."""
    logger = logging.getLogger("vaulttree")
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def fast_kdf():
    """Minimal Argon2id cost."""
    return KdfParameters(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def credentials():
    return Credentials(password="correct horse battery staple")


@pytest.fixture
def codec(credentials, fast_kdf):
    return ContainerCodec(credentials, kdf=fast_kdf)


def make_entry(title, **values):
    fields = [Field(TITLE, title)]
    for key, value in values.items():
        fields.append(Field(key, value))
    return Entry(fields=fields)


@pytest.fixture
def sample_tree():
    """Root/child1/child2 holding two entries both titled 'secret'."""
    child2 = Group(
        name="child2",
        entries=[
            make_entry("secret", **{USERNAME: "foo"}),
            make_entry("secret", **{USERNAME: "lorem"}),
        ],
    )
    child1 = Group(name="child1", groups=[child2])
    root = Group(name="Root", groups=[child1])
    return Tree(groups=[root])


@pytest.fixture
def container_path(tmp_path, codec, sample_tree):
    """A container on disk holding ``sample_tree``."""
    path = tmp_path / "store.vtkc"
    path.write_bytes(codec.encode(sample_tree))
    return path


@pytest.fixture
def controller(container_path, credentials, fast_kdf):
    """A loaded controller over ``container_path`` (not watching)."""
    ctrl = StoreController(container_path, credentials, kdf=fast_kdf)
    ctrl.load()
    yield ctrl
    ctrl.close()
