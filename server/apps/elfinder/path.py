"""Virtual paths over the flat bucket key space.

A virtual path is a node of the synthesized tree. Its path is relative
to the configured store root and never has leading or trailing
separators; the root itself is the empty path.

Directories are stored as zero-length marker objects whose key ends with
``/``, files have no trailing separator. Which key a path maps to depends
on its kind, so the kind is fixed once known.
"""

import base64
import enum
import logging
from collections.abc import Iterator
from datetime import datetime
from typing import IO, TYPE_CHECKING, Final, final, override

if TYPE_CHECKING:
    from server.apps.elfinder.logic.adapter import Adapter

logger = logging.getLogger(__name__)

# Character used to split store keys
SEPARATOR: Final = '/'


@enum.unique
class PathKind(enum.StrEnum):
    """Kind of a node in the virtual tree."""

    FILE = 'file'
    DIRECTORY = 'directory'
    UNKNOWN = 'unknown'


def normalize(path: str) -> str:
    """Collapse empty and ``.`` segments and strip separators.

    Args:
        path: Raw path (e.g., ``//docs/./a.txt/``).

    Returns:
        Normalized path (e.g., ``docs/a.txt``), empty for the root.
    """
    segments = [
        segment for segment in path.split(SEPARATOR)
        if segment not in {'', '.'}
    ]
    return SEPARATOR.join(segments)


def is_safe_path(path: str) -> bool:
    """Validate a decoded path for security.

    Checks for path traversal attempts and null bytes.

    Args:
        path: Decoded path string.

    Returns:
        True if the path is safe to resolve under the root.
    """
    if '\x00' in path:
        return False
    return '..' not in path.split(SEPARATOR)


def encode_path(path: str) -> str:
    """Encode an absolute path into an opaque identifier.

    URL-safe base64 with the ``=`` padding stripped.

    Args:
        path: Absolute path (e.g., ``/docs/a.txt``).

    Returns:
        Identifier (e.g., ``L2RvY3MvYS50eHQ``).
    """
    encoded = base64.urlsafe_b64encode(path.encode('utf-8'))
    return encoded.decode('ascii').rstrip('=')


def decode_path(identifier: str) -> str | None:
    """Decode an identifier back into the absolute path.

    The stripped padding is restored from the length modulo 4.

    Args:
        identifier: Identifier produced by `encode_path`.

    Returns:
        Absolute path, or None when the identifier is not valid base64.
    """
    padded = identifier + '=' * (-len(identifier) % 4)
    try:
        raw = base64.b64decode(padded, altchars=b'-_', validate=True)
        return raw.decode('utf-8')
    except ValueError:
        # binascii.Error and UnicodeDecodeError are both ValueErrors
        logger.debug('Invalid identifier: %r', identifier)
        return None


def decode_identifier(
    identifier: str,
    root: 'VirtualPath',
) -> 'VirtualPath | None':
    """Resolve a client identifier into a path under the root.

    Args:
        identifier: Identifier sent by the client.
        root: Root path of the tree.

    Returns:
        VirtualPath with unknown kind, or None for invalid identifiers.
    """
    decoded = decode_path(identifier)
    if decoded is None:
        return None

    if not is_safe_path(decoded):
        logger.warning('Unsafe path rejected: %r', decoded)
        return None

    return root.join(decoded)


@final
class VirtualPath:
    """Node of the tree synthesized from bucket keys.

    Lives for one request only. All store access goes through the
    adapter, which caches probes per path.
    """

    def __init__(
        self,
        adapter: 'Adapter',
        root: str,
        path: str = '',
        kind: PathKind = PathKind.UNKNOWN,
    ) -> None:
        """Initialize virtual path.

        Args:
            adapter: Adapter performing store calls for this request.
            root: Store prefix the tree is rooted at.
            path: Path relative to the root.
            kind: Known kind, UNKNOWN to infer it on first use.
        """
        self._adapter = adapter
        self._root = normalize(root)
        self._path = normalize(path)
        if not self._path:
            kind = PathKind.DIRECTORY
        self._kind = kind

    @property
    def adapter(self) -> 'Adapter':
        """Adapter this path performs store calls with."""
        return self._adapter

    @property
    def path(self) -> str:
        """Path relative to the root, empty for the root."""
        return self._path

    @property
    def absolute(self) -> str:
        """Absolute path string, as matched by permission rules."""
        return SEPARATOR + self._path

    @property
    def name(self) -> str:
        """Last path component, empty for the root."""
        return self._path.rsplit(SEPARATOR, 1)[-1]

    @property
    def kind(self) -> PathKind:
        """Kind as known so far, without probing the store."""
        return self._kind

    @property
    def ftype(self) -> str:
        """Human readable kind for messages."""
        return PathKind.DIRECTORY if self.is_directory() else PathKind.FILE

    @property
    def key(self) -> str:
        """Store key relative to the bucket, without trailing separator."""
        if not self._root:
            return self._path
        if not self._path:
            return self._root
        return f'{self._root}{SEPARATOR}{self._path}'

    @property
    def file_key(self) -> str:
        """Key of the object when this path is a file."""
        return self.key

    @property
    def directory_key(self) -> str:
        """Key of the marker object when this path is a directory."""
        key = self.key
        if not key:
            return ''
        return key + SEPARATOR

    @property
    def store_key(self) -> str:
        """Key matching the kind of this path."""
        if self.is_directory():
            return self.directory_key
        return self.file_key

    @property
    def identifier(self) -> str:
        """Opaque identifier the client refers to this path with."""
        return encode_path(self.absolute)

    @property
    def is_root(self) -> bool:
        """Check if this path is the root of the tree."""
        return not self._path

    @property
    def parent(self) -> 'VirtualPath':
        """Parent directory, the root is its own parent."""
        parent_path = ''
        if SEPARATOR in self._path:
            parent_path = self._path.rsplit(SEPARATOR, 1)[0]
        return VirtualPath(
            self._adapter,
            self._root,
            parent_path,
            PathKind.DIRECTORY,
        )

    def join(
        self,
        name: str,
        kind: PathKind = PathKind.UNKNOWN,
    ) -> 'VirtualPath':
        """Create the path of a child.

        Args:
            name: Child name, may contain separators.
            kind: Known kind of the child.

        Returns:
            Child VirtualPath.
        """
        return VirtualPath(
            self._adapter,
            self._root,
            f'{self._path}{SEPARATOR}{name}',
            kind,
        )

    def as_directory(self) -> 'VirtualPath':
        """Same path with its kind set to directory.

        For callers that know the node must be a directory, so that
        folder names like ``v1.2`` skip the extension heuristic.
        """
        return VirtualPath(
            self._adapter,
            self._root,
            self._path,
            PathKind.DIRECTORY,
        )

    def is_directory(self) -> bool:
        """Check if this path is a directory.

        When the kind is unknown it is inferred once by the adapter and
        kept for the lifetime of this path.
        """
        if self._kind is PathKind.UNKNOWN:
            self._kind = self._adapter.path_type(self)
        return self._kind is PathKind.DIRECTORY

    def is_file(self) -> bool:
        """Check if this path is a file."""
        return not self.is_directory()

    def is_readable(self) -> bool:
        """Store-level readability.

        Bucket credentials grant access to every key, per key ACLs are
        not consulted.
        """
        return True

    def is_writable(self) -> bool:
        """Store-level writability, see `is_readable`."""
        return True

    def exists(self) -> bool:
        """Check if the node exists in the store."""
        return self._adapter.exists(self)

    def size(self) -> int:
        """Size in bytes, 0 for directories and missing files."""
        return self._adapter.size(self)

    def mtime(self) -> datetime:
        """Last modification time."""
        return self._adapter.mtime(self)

    def children(self, with_directories: bool = True) -> list['VirtualPath']:
        """List direct children, folders first, then files.

        Args:
            with_directories: Include child directories.

        Returns:
            Children in store listing order.
        """
        return self._adapter.children(self, with_directories)

    def files(self) -> list['VirtualPath']:
        """List direct child files."""
        return self.children(with_directories=False)

    def child_directories(
        self,
        recursive: bool = False,
    ) -> Iterator['VirtualPath']:
        """Lazily enumerate subdirectories.

        Args:
            recursive: Also yield every deeper subdirectory, depth first.

        Yields:
            Directory paths.
        """
        for child in self.children():
            if not child.is_directory():
                continue
            yield child
            if recursive:
                yield from child.child_directories(recursive=True)

    def read(self) -> bytes:
        """Read file content."""
        return self._adapter.read(self)

    def write(self, content: bytes | IO[bytes]) -> bool:
        """Overwrite file content."""
        return self._adapter.write(self, content)

    def touch(self) -> bool:
        """Create an empty file."""
        return self._adapter.touch(self)

    def mkdir(self) -> bool:
        """Create the directory marker."""
        return self._adapter.mkdir(self)

    def unlink(self) -> bool:
        """Delete the node (a directory only loses its marker)."""
        return self._adapter.delete(self)

    def rename(self, destination: 'VirtualPath') -> bool:
        """Rename this node, see `Adapter.rename`."""
        return self._adapter.rename(self, destination)

    @override
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VirtualPath):
            return NotImplemented
        return (self._root, self._path) == (other._root, other._path)

    @override
    def __hash__(self) -> int:
        return hash((self._root, self._path))

    @override
    def __str__(self) -> str:
        return self.absolute

    @override
    def __repr__(self) -> str:
        return f'VirtualPath({self.absolute!r}, kind={self._kind.value!r})'
