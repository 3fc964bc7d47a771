"""Tests for the S3 storage backend."""

import pytest
from botocore.exceptions import ClientError

from server.apps.files.exceptions import ObjectNotFoundError
from server.apps.files.infrastructure.storage import EPOCH, ObjectStorage


@pytest.fixture
def populated(bucket):
    """Fill the bucket with a small tree.

    Args:
        bucket: Mocked bucket fixture.

    Returns:
        The bucket.
    """
    bucket.put_object(Key='docs/', Body=b'')
    bucket.put_object(Key='docs/report.pdf', Body=b'%PDF')
    bucket.put_object(Key='docs/archive/old.txt', Body=b'old')
    bucket.put_object(Key='readme.txt', Body=b'hello')
    bucket.put_object(Key='photos/cat.jpg', Body=b'jpeg')
    return bucket


class TestListPrefix:
    """Tests for list_prefix."""

    def test_root(self, storage, populated):
        """Test listing the bucket root."""
        listing = storage.list_prefix('')

        assert sorted(listing.folders) == ['docs', 'photos']
        assert listing.files == ['readme.txt']

    def test_nested(self, storage, populated):
        """Test deeper keys collapse into folder names."""
        listing = storage.list_prefix('docs/')

        assert listing.folders == ['archive']
        assert listing.files == ['report.pdf']

    def test_excludes_marker(self, storage, populated):
        """Test the directory marker is not listed as a file."""
        listing = storage.list_prefix('docs/')

        assert '' not in listing.files

    def test_empty_prefix(self, storage, populated):
        """Test listing a prefix without objects."""
        listing = storage.list_prefix('missing/')

        assert listing.folders == []
        assert listing.files == []


class TestProbes:
    """Tests for existence, size and mtime probes."""

    def test_object_exists(self, storage, populated):
        """Test existing and missing keys."""
        assert storage.object_exists('readme.txt') is True
        assert storage.object_exists('docs/') is True
        assert storage.object_exists('nope.txt') is False

    def test_prefix_exists_without_marker(self, storage, populated):
        """Test implicit directories exist through descendants."""
        assert storage.object_exists('photos/') is False
        assert storage.prefix_exists('photos/') is True
        assert storage.prefix_exists('videos/') is False

    def test_object_size(self, storage, populated):
        """Test size of existing and missing objects."""
        assert storage.object_size('readme.txt') == 5
        assert storage.object_size('nope.txt') == 0

    def test_modified_time(self, storage, populated):
        """Test mtime of existing and missing objects."""
        assert storage.modified_time('readme.txt') > EPOCH
        assert storage.modified_time('nope.txt') == EPOCH


class TestMutations:
    """Tests for writes, copies and deletes."""

    def test_create_marker(self, storage, bucket):
        """Test creating a zero-length object."""
        assert storage.create_marker('empty/') is True

        assert bucket.Object('empty/').content_length == 0

    def test_write_overwrites(self, storage, bucket):
        """Test write replaces the whole content."""
        storage.write('notes.txt', b'first version')
        storage.write('notes.txt', b'second')

        assert storage.read('notes.txt') == b'second'

    def test_read_missing(self, storage, bucket):
        """Test reading a missing key raises a distinct error."""
        with pytest.raises(ObjectNotFoundError) as exc_info:
            storage.read('nope.txt')

        assert exc_info.value.key == 'nope.txt'

    def test_copy_object(self, storage, populated):
        """Test server-side copy keeps the source."""
        assert storage.copy_object('readme.txt', 'copy.txt') is True

        assert storage.read('copy.txt') == b'hello'
        assert storage.object_exists('readme.txt') is True

    def test_copy_then_delete(self, storage, populated):
        """Test rename primitive moves the object."""
        assert storage.copy_then_delete('readme.txt', 'docs/readme.txt')

        assert storage.read('docs/readme.txt') == b'hello'
        assert storage.object_exists('readme.txt') is False

    def test_copy_then_delete_missing_source(self, storage, populated):
        """Test moving a missing object fails without raising."""
        assert storage.copy_then_delete('nope.txt', 'other.txt') is False
        assert storage.object_exists('other.txt') is False

    def test_copy_then_delete_leaks_source(
        self,
        storage,
        populated,
        monkeypatch,
    ):
        """Test a failed delete still reports the move as done."""
        monkeypatch.setattr(
            ObjectStorage,
            'delete_object',
            lambda self, key: False,
        )

        assert storage.copy_then_delete('readme.txt', 'moved.txt') is True
        assert storage.object_exists('readme.txt') is True
        assert storage.object_exists('moved.txt') is True

    def test_delete_object(self, storage, populated):
        """Test deleting an object."""
        assert storage.delete_object('readme.txt') is True

        assert storage.object_exists('readme.txt') is False

    def test_write_store_error(self, storage, bucket, monkeypatch):
        """Test store errors on writes return False instead of raising."""
        def put_object(**kwargs):
            raise ClientError(
                {'Error': {'Code': 'InternalError', 'Message': 'boom'}},
                'PutObject',
            )

        monkeypatch.setattr(storage.client, 'put_object', put_object)

        assert storage.write('notes.txt', b'data') is False
