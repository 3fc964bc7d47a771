"""Tests for the path aware adapter."""

from server.apps.elfinder.logic.adapter import Adapter
from server.apps.elfinder.path import PathKind, VirtualPath
from server.apps.files.infrastructure.storage import EPOCH


class TestProbes:
    """Tests for cached probes."""

    def test_exists(self, root, tree):
        """Test files, marked and implicit directories exist."""
        assert root.join('readme.txt').exists() is True
        assert root.join('docs').exists() is True
        assert root.join('missing.txt').exists() is False
        assert root.exists() is True

    def test_implicit_directory(self, root, bucket):
        """Test a directory without marker exists through its objects."""
        bucket.put_object(Key='nested/deep/file.txt', Body=b'x')

        assert root.join('nested', PathKind.DIRECTORY).exists() is True
        assert root.join('nested/deep').exists() is True

    def test_size(self, root, tree):
        """Test file sizes, directories and missing files are 0."""
        assert root.join('readme.txt').size() == 5
        assert root.join('docs').size() == 0
        assert root.join('missing.txt').size() == 0

    def test_mtime(self, root, tree):
        """Test missing nodes get the zero timestamp."""
        assert root.join('readme.txt').mtime() > EPOCH
        assert root.join('missing.txt').mtime() == EPOCH

    def test_exists_is_cached(self, root, tree, bucket, cache):
        """Test probes are memoized until the cache is cleared."""
        path = root.join('readme.txt')
        assert path.exists() is True

        # Deleted behind the adapter's back
        bucket.Object('readme.txt').delete()
        assert path.exists() is True

        cache.clear_cache('readme.txt')
        assert path.exists() is False

    def test_path_type_heuristic(self, adapter, root):
        """Test names without extension are taken for directories."""
        assert adapter.path_type(root.join('a.txt')) is PathKind.FILE
        assert adapter.path_type(root.join('folder')) is PathKind.DIRECTORY
        assert adapter.path_type(root) is PathKind.DIRECTORY


class TestMutations:
    """Tests for mutations and cache invalidation."""

    def test_mkdir(self, root, bucket):
        """Test mkdir writes a marker and refreshes the listing."""
        assert root.children() == []

        directory = root.join('new', PathKind.DIRECTORY)
        assert directory.mkdir() is True

        assert bucket.Object('new/').content_length == 0
        assert [child.name for child in root.children()] == ['new']

    def test_touch(self, root, bucket):
        """Test touch creates an empty file."""
        new_file = root.join('empty.txt', PathKind.FILE)
        assert new_file.exists() is False

        assert new_file.touch() is True

        assert new_file.exists() is True
        assert new_file.size() == 0

    def test_write_refreshes_size(self, root, tree):
        """Test overwriting content invalidates the cached size."""
        path = root.join('readme.txt')
        assert path.size() == 5

        assert path.write(b'a longer text') is True

        assert path.size() == 13
        assert path.read() == b'a longer text'

    def test_delete_file(self, root, tree):
        """Test deleting a file updates the parent listing."""
        docs = root.join('docs')
        assert 'Notes.txt' in [child.name for child in docs.children()]

        assert root.join('docs/Notes.txt').unlink() is True

        assert 'Notes.txt' not in [child.name for child in docs.children()]

    def test_delete_directory_marker(self, root, tree, bucket):
        """Test deleting a directory only removes its marker."""
        assert root.join('docs/archive').unlink() is True

        keys = {obj.key for obj in bucket.objects.all()}
        assert 'docs/archive/' not in keys
        assert 'docs/archive/old.txt' in keys

    def test_rename_file(self, root, tree, bucket):
        """Test rename copies then deletes the source."""
        source = root.join('readme.txt')
        destination = root.join('docs/readme.md', PathKind.FILE)

        assert source.rename(destination) is True

        assert source.exists() is False
        assert destination.exists() is True
        assert bucket.Object('docs/readme.md').get()['Body'].read() == b'hello'

    def test_rename_directory_unsupported(self, root, tree, spy_storage, cache):
        """Test directories are never renamed."""
        spied_root = VirtualPath(Adapter(spy_storage, cache), '')
        source = spied_root.join('docs')

        assert source.rename(spied_root.join('documents')) is False
        assert spy_storage.mutations == []

    def test_copy(self, adapter, root, tree):
        """Test copy keeps the source."""
        source = root.join('readme.txt')
        destination = root.join('docs/readme.txt', PathKind.FILE)

        assert adapter.copy(source, destination) is True

        assert source.exists() is True
        assert destination.exists() is True

    def test_mutation_clears_parent_listing(self, root, tree, cache):
        """Test the cached parent listing is dropped on mutation."""
        docs = root.join('docs')
        assert 'new.txt' not in [child.name for child in docs.children()]

        root.join('docs/new.txt', PathKind.FILE).touch()

        assert 'new.txt' in [child.name for child in docs.children()]

    def test_sibling_entries_survive(self, root, tree, cache):
        """Test unrelated cache entries are kept on mutation."""
        photos = root.join('Photos')
        photos.children()
        entries = len(cache)

        root.join('docs/new.txt', PathKind.FILE).touch()

        assert len(cache) == entries


def test_close(adapter):
    """Test closing marks the adapter as released."""
    assert adapter.closed is False

    adapter.close()

    assert adapter.closed is True
