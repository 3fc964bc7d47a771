"""Node descriptors sent to the client."""

import logging
from typing import Any, final

from server.apps.elfinder.options import ConnectorOptions
from server.apps.elfinder.path import PathKind, VirtualPath
from server.apps.elfinder.permissions import PermissionResolver, PermissionSet
from server.apps.files.infrastructure.metadata import (
    DIRECTORY_MIME_TYPE,
    detect_mime_type,
    is_image,
)

logger = logging.getLogger(__name__)


def sort_by_name(paths: list[VirtualPath]) -> list[VirtualPath]:
    """Sort paths by case-insensitive name."""
    return sorted(paths, key=lambda path: path.name.lower())


@final
class NodeDescriber:
    """Builds descriptors, trees and permissions for one request.

    Remembers whether some image still lacks a thumbnail so the
    connector can ask the client for a ``tmb`` round trip.
    """

    def __init__(
        self,
        root: VirtualPath,
        options: ConnectorOptions,
        resolver: PermissionResolver,
    ) -> None:
        """Initialize describer.

        Args:
            root: Root of the tree.
            options: Connector options.
            resolver: Permission resolver.
        """
        self._root = root
        self._options = options
        self._resolver = resolver
        self.pending_thumbnails = False

    @property
    def thumb_directory(self) -> VirtualPath | None:
        """Directory holding thumbnails, None when disabled."""
        if not self._options.thumbs:
            return None
        return self._root.join(
            self._options.thumbs_directory,
            PathKind.DIRECTORY,
        )

    def perms_for(self, path: VirtualPath) -> PermissionSet:
        """Permissions of a path."""
        return self._resolver.permissions_for(path)

    def is_visible(self, path: VirtualPath) -> bool:
        """Check if a path shows up in listings and trees."""
        if path == self.thumb_directory:
            return False
        return not self.perms_for(path).hidden

    def visible_children(
        self,
        path: VirtualPath,
        with_directories: bool = True,
    ) -> list[VirtualPath]:
        """Children without hidden entries, sorted by name."""
        return sort_by_name([
            child for child in path.children(with_directories)
            if self.is_visible(child)
        ])

    def thumbnail_for(self, path: VirtualPath) -> VirtualPath:
        """Thumbnail object of an image, named after its identifier."""
        thumb_directory = self.thumb_directory
        if thumb_directory is None:
            raise RuntimeError('Thumbnails are disabled')
        return thumb_directory.join(f'{path.identifier}.png', PathKind.FILE)

    def mime_for(self, path: VirtualPath) -> str:
        """MIME type of a file."""
        return detect_mime_type(path.name)

    def cwd_for(self, path: VirtualPath) -> dict[str, Any]:
        """Describe the directory being opened.

        Args:
            path: Current working directory.

        Returns:
            Descriptor with ``rel`` path shown by the client.
        """
        rel = self._options.home
        if not path.is_root:
            rel = f'{self._options.home}/{path.path}'
        return {
            'name': path.name,
            'hash': path.identifier,
            'mime': DIRECTORY_MIME_TYPE,
            'rel': rel,
            'size': 0,
            'date': path.mtime().isoformat(),
            **self.perms_for(path).as_dict(),
        }

    def cdc_for(self, path: VirtualPath) -> dict[str, Any] | None:
        """Describe a node of a listing.

        Args:
            path: Node to describe.

        Returns:
            Descriptor, None for the thumbnails directory.
        """
        if path == self.thumb_directory:
            return None

        perms = self.perms_for(path)
        descriptor: dict[str, Any] = {
            'name': path.name,
            'hash': path.identifier,
            'date': path.mtime().isoformat(),
            **perms.as_dict(),
        }
        if path.is_directory():
            descriptor.update(size=0, mime=DIRECTORY_MIME_TYPE)
            return descriptor

        mime = self.mime_for(path)
        descriptor.update(
            size=path.size(),
            mime=mime,
            url=self._options.public_url(path.file_key),
        )
        image_handler = self._options.image_handler
        if image_handler is not None and perms.read and is_image(mime):
            descriptor.update(resize=True, dim=image_handler.size(path))
            if self._options.thumbs:
                self._describe_thumbnail(path, descriptor)
        return descriptor

    def tree_for(self, path: VirtualPath) -> list[dict[str, Any]]:
        """Describe the visible subdirectories of a directory.

        Nested levels are only expanded when ``tree_sub_folders`` is set.

        Args:
            path: Directory to describe.

        Returns:
            Directory nodes sorted by name, each with its ``dirs``.
        """
        directories = sort_by_name([
            child for child in path.child_directories()
            if self.is_visible(child)
        ])
        return [
            {
                'name': child.name,
                'hash': child.identifier,
                'dirs': (
                    self.tree_for(child)
                    if self._options.tree_sub_folders
                    else []
                ),
                **self.perms_for(child).as_dict(),
            }
            for child in directories
        ]

    def root_tree(self) -> dict[str, Any]:
        """Tree of the whole file system, labelled with the home name."""
        return {
            'name': self._options.home,
            'hash': self._root.identifier,
            'dirs': self.tree_for(self._root),
            **self.perms_for(self._root).as_dict(),
        }

    def _describe_thumbnail(
        self,
        path: VirtualPath,
        descriptor: dict[str, Any],
    ) -> None:
        thumbnail = self.thumbnail_for(path)
        if thumbnail.exists():
            descriptor['tmb'] = self._options.public_url(thumbnail.file_key)
        else:
            self.pending_thumbnails = True
