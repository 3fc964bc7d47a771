"""Shared fixtures for elFinder app tests."""

from typing import Final

import pytest

from server.apps.elfinder.logic.adapter import Adapter
from server.apps.elfinder.logic.cache import ResponseCache
from server.apps.elfinder.logic.connector import Connector
from server.apps.elfinder.options import ConnectorOptions
from server.apps.elfinder.path import VirtualPath, encode_path

PUBLIC_URL: Final = 'https://files.example.com'

_MUTATIONS: Final = frozenset((
    'create_marker',
    'write',
    'copy_object',
    'copy_then_delete',
    'delete_object',
))


class SpyStorage:
    """Storage wrapper recording every mutating call."""

    def __init__(self, storage) -> None:
        """Wrap a storage backend.

        Args:
            storage: Real storage backend.
        """
        self._storage = storage
        self.mutations: list[tuple[str, tuple]] = []

    def __getattr__(self, name: str):
        """Delegate to the wrapped storage, recording mutations."""
        attribute = getattr(self._storage, name)
        if name not in _MUTATIONS:
            return attribute

        def recorded(*args):
            self.mutations.append((name, args))
            return attribute(*args)

        return recorded


def identifier(path: str) -> str:
    """Identifier of an absolute path."""
    return encode_path(path)


@pytest.fixture
def cache():
    """Create an empty response cache.

    Returns:
        ResponseCache instance.
    """
    return ResponseCache(expiry_seconds=3000)


@pytest.fixture
def adapter(storage, cache):
    """Create adapter over the mocked bucket.

    Args:
        storage: Storage fixture.
        cache: Cache fixture.

    Returns:
        Adapter instance.
    """
    return Adapter(storage, cache)


@pytest.fixture
def root(adapter):
    """Root of the virtual tree.

    Args:
        adapter: Adapter fixture.

    Returns:
        Root VirtualPath.
    """
    return VirtualPath(adapter, '')


@pytest.fixture
def options():
    """Default connector options.

    Returns:
        ConnectorOptions instance.
    """
    return ConnectorOptions(url=PUBLIC_URL)


@pytest.fixture
def spy_storage(storage):
    """Storage recording mutating calls.

    Args:
        storage: Storage fixture.

    Returns:
        SpyStorage instance.
    """
    return SpyStorage(storage)


@pytest.fixture
def connector(options, spy_storage, cache):
    """Create connector over the spied storage.

    Args:
        options: Options fixture.
        spy_storage: Spied storage fixture.
        cache: Cache fixture.

    Returns:
        Connector instance.
    """
    return Connector(options, spy_storage, cache)


@pytest.fixture
def tree(bucket):
    """Fill the bucket with a small tree.

    Args:
        bucket: Mocked bucket fixture.

    Returns:
        The bucket.
    """
    bucket.put_object(Key='docs/', Body=b'')
    bucket.put_object(Key='docs/report.pdf', Body=b'%PDF-1.4')
    bucket.put_object(Key='docs/Notes.txt', Body=b'notes')
    bucket.put_object(Key='docs/archive/', Body=b'')
    bucket.put_object(Key='docs/archive/old.txt', Body=b'old')
    bucket.put_object(Key='Photos/', Body=b'')
    bucket.put_object(Key='Photos/cat.jpg', Body=b'jpeg')
    bucket.put_object(Key='readme.txt', Body=b'hello')
    return bucket
