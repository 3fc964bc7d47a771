"""Path aware adapter over the object storage.

Translates virtual paths into store keys, memoizes probes in the
response cache and invalidates it on every mutation.
"""

import logging
from datetime import datetime
from typing import IO, TYPE_CHECKING, final

from server.apps.elfinder.logic.cache import Operation, ResponseCache
from server.apps.elfinder.path import PathKind, VirtualPath
from server.apps.files.infrastructure.metadata import get_file_extension

if TYPE_CHECKING:
    from server.apps.files.infrastructure.storage import ObjectStorage

logger = logging.getLogger(__name__)


@final
class Adapter:
    """Per-request handle on the bucket.

    Acquired when a request starts and closed when it ends. The cache
    is shared between requests, the adapter itself is not.
    """

    def __init__(self, storage: 'ObjectStorage', cache: ResponseCache) -> None:
        """Initialize adapter.

        Args:
            storage: Object storage backend.
            cache: Response cache shared by all requests.
        """
        self._storage = storage
        self._cache = cache
        self._closed = False

    @property
    def closed(self) -> bool:
        """Check if the adapter was released."""
        return self._closed

    def close(self) -> None:
        """Release the adapter at the end of a request."""
        self._closed = True
        logger.debug('Adapter closed')

    def children(
        self,
        path: VirtualPath,
        with_directories: bool = True,
    ) -> list[VirtualPath]:
        """List direct children of a directory.

        Args:
            path: Directory to list.
            with_directories: Include child directories.

        Returns:
            Child directories first, then files.
        """
        listing = self._cache.cached(
            Operation.CHILDREN,
            path.directory_key,
            lambda: self._storage.list_prefix(path.directory_key),
        )
        result = []
        if with_directories:
            result.extend(
                path.join(folder, PathKind.DIRECTORY)
                for folder in listing.folders
            )
        result.extend(
            path.join(file_name, PathKind.FILE)
            for file_name in listing.files
        )
        return result

    def exists(self, path: VirtualPath) -> bool:
        """Check whether a node exists.

        A directory exists through its marker or through any object
        below it.
        """
        if path.is_root:
            return True
        return self._cache.cached(
            Operation.EXIST,
            path.store_key,
            lambda: self._probe_exists(path),
        )

    def path_type(self, path: VirtualPath) -> PathKind:
        """Infer the kind of a path whose kind is unknown.

        Known limitation: a name without extension is taken for a
        directory, so extension-less files are misclassified unless the
        caller knows their kind.
        """
        if path.is_root:
            return PathKind.DIRECTORY
        return self._cache.cached(
            Operation.PATH_TYPE,
            path.key,
            lambda: _guess_kind(path.name),
        )

    def size(self, path: VirtualPath) -> int:
        """Object size in bytes, 0 for directories."""
        if path.is_directory():
            return 0
        return self._cache.cached(
            Operation.SIZE,
            path.file_key,
            lambda: self._storage.object_size(path.file_key),
        )

    def mtime(self, path: VirtualPath) -> datetime:
        """Modification time of the object or directory marker."""
        return self._cache.cached(
            Operation.MTIME,
            path.store_key,
            lambda: self._storage.modified_time(path.store_key),
        )

    def touch(self, path: VirtualPath) -> bool:
        """Create an empty file object."""
        if not self._storage.create_marker(path.file_key):
            return False
        self._invalidate(path)
        return True

    def mkdir(self, path: VirtualPath) -> bool:
        """Create a directory marker object."""
        if not self._storage.create_marker(path.directory_key):
            return False
        self._invalidate(path)
        return True

    def write(self, path: VirtualPath, content: bytes | IO[bytes]) -> bool:
        """Overwrite the content of a file."""
        if not self._storage.write(path.file_key, content):
            return False
        self._invalidate(path)
        return True

    def read(self, path: VirtualPath) -> bytes:
        """Read the content of a file.

        Raises:
            ObjectNotFoundError: If the file does not exist.
        """
        return self._storage.read(path.file_key)

    def delete(self, path: VirtualPath) -> bool:
        """Delete a file or a directory marker."""
        if not self._storage.delete_object(path.store_key):
            return False
        self._invalidate(path)
        return True

    def rename(self, path: VirtualPath, destination: VirtualPath) -> bool:
        """Rename a file with copy-then-delete.

        Directories cannot be renamed: every key below them would have
        to be rewritten one by one.

        Args:
            path: File to rename.
            destination: New path of the file.

        Returns:
            True if the file was copied to the destination.
        """
        if path.is_directory():
            logger.info('Refusing to rename directory: %s', path)
            return False
        renamed = self._storage.copy_then_delete(
            path.file_key,
            destination.file_key,
        )
        if renamed:
            self._invalidate(path)
            self._invalidate(destination)
        return renamed

    def move(self, path: VirtualPath, destination: VirtualPath) -> bool:
        """Move a file into another directory, see `rename`."""
        return self.rename(path, destination)

    def copy(self, path: VirtualPath, destination: VirtualPath) -> bool:
        """Copy a file, directories are not supported."""
        if path.is_directory():
            logger.info('Refusing to copy directory: %s', path)
            return False
        copied = self._storage.copy_object(
            path.file_key,
            destination.file_key,
        )
        if copied:
            self._invalidate(destination)
        return copied

    def _probe_exists(self, path: VirtualPath) -> bool:
        if path.is_file():
            return self._storage.object_exists(path.file_key)
        return self._storage.object_exists(
            path.directory_key,
        ) or self._storage.prefix_exists(path.directory_key)

    def _invalidate(self, path: VirtualPath) -> None:
        # The node and everything below it, plus the parent listing
        self._cache.clear_cache(path.key)
        self._cache.clear_cache(path.parent.key, recursive=False)


def _guess_kind(name: str) -> PathKind:
    if get_file_extension(name):
        return PathKind.FILE
    return PathKind.DIRECTORY
