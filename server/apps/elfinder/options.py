"""Connector options built from Django settings."""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final, Protocol, final

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from server.apps.elfinder.permissions import (
    PERMISSION_NAMES,
    PermissionRule,
    PermissionSet,
)

if TYPE_CHECKING:
    from server.apps.elfinder.path import VirtualPath

# Control characters and \ ? * : " > < | / are not allowed in names
_VALID_NAME: Final = re.compile(r'^[^\x00-\x1f\\?*:"><|/]+$')

_SIZE_PATTERN: Final = re.compile(r'(\d+)\s*([KMG]?)', re.IGNORECASE)

_SIZE_UNITS: Final = {
    '': 1,
    'K': 1024,
    'M': 1024 ** 2,
    'G': 1024 ** 3,
}

_IMAGE_HANDLER_METHODS: Final = ('size', 'resize', 'thumbnail')

DEFAULT_PERMS: Final = PermissionSet(
    read=True,
    write=True,
    locked=True,
    hidden=False,
)


class ImageHandler(Protocol):
    """Image collaborator used for dimensions and thumbnails."""

    def size(self, path: 'VirtualPath') -> str:
        """Dimensions of an image as ``WIDTHxHEIGHT``."""

    def resize(self, path: 'VirtualPath', width: int, height: int) -> bool:
        """Resize an image in place."""

    def thumbnail(
        self,
        source_url: str,
        destination: 'VirtualPath',
        width: int,
        height: int,
    ) -> bool:
        """Render a thumbnail of the image at `source_url`."""


def default_name_validator(name: str) -> bool:
    """Check a new file or folder name.

    Args:
        name: Name sent by the client.

    Returns:
        True if the name has no forbidden characters and is not ``.``.
    """
    if not isinstance(name, str) or name.strip() == '.':
        return False
    return _VALID_NAME.match(name) is not None


def default_original_filename(upload: Any) -> str:
    """Name of an uploaded file as sent by the browser."""
    return upload.name


def parse_size(size: str | int) -> int:
    """Parse a human size like ``50M`` into bytes.

    Args:
        size: Integer byte count or digits with an optional K/M/G unit.

    Returns:
        Size in bytes, 0 if it cannot be parsed.
    """
    if isinstance(size, int):
        return size
    match = _SIZE_PATTERN.match(size.strip())
    if match is None:
        return 0
    amount, unit = match.groups()
    return int(amount) * _SIZE_UNITS[unit.upper()]


@final
@dataclass(frozen=True)
class ConnectorOptions:
    """Everything the connector needs to know about its deployment."""

    url: str
    root: str = ''
    home: str = 'Home'
    default_perms: PermissionSet = DEFAULT_PERMS
    perms: Sequence[PermissionRule] = ()
    disabled_commands: Sequence[str] = (
        'archive',
        'duplicate',
        'extract',
        'resize',
        'tmb',
    )
    allow_dot_files: bool = True
    upload_max_size: str | int = '50M'
    name_validator: Callable[[str], bool] = default_name_validator
    original_filename: Callable[[Any], str] = default_original_filename
    tree_sub_folders: bool = False
    thumbs: bool = False
    thumbs_directory: str = '.thumbs'
    thumbs_size: int = 48
    thumbs_at_once: int = 5
    image_handler: ImageHandler | None = field(default=None)

    def __post_init__(self) -> None:
        """Validate options.

        Raises:
            ImproperlyConfigured: If the url is missing or the image
                handler lacks a required method.
        """
        if not self.url:
            raise ImproperlyConfigured('Missing required elFinder url option')
        if self.image_handler is not None and not all(
            callable(getattr(self.image_handler, method, None))
            for method in _IMAGE_HANDLER_METHODS
        ):
            raise ImproperlyConfigured('elFinder image handler is invalid')

    @property
    def upload_max_size_in_bytes(self) -> int:
        """Upload limit in bytes."""
        return parse_size(self.upload_max_size)

    def public_url(self, key: str) -> str:
        """Public url of a store key."""
        return f'{self.url.rstrip("/")}/{key}'

    @classmethod
    def from_settings(cls) -> 'ConnectorOptions':
        """Build options from the ``ELFINDER_*`` settings.

        Returns:
            ConnectorOptions instance.
        """
        default_perms = {
            **DEFAULT_PERMS.as_dict(),
            **getattr(settings, 'ELFINDER_DEFAULT_PERMS', {}),
        }
        validator_path = getattr(settings, 'ELFINDER_NAME_VALIDATOR', None)
        handler_path = getattr(settings, 'ELFINDER_IMAGE_HANDLER', None)
        return cls(
            url=settings.ELFINDER_URL,
            root=getattr(settings, 'ELFINDER_ROOT', ''),
            home=getattr(settings, 'ELFINDER_HOME', 'Home'),
            default_perms=PermissionSet(
                **{name: default_perms[name] for name in PERMISSION_NAMES},
            ),
            perms=tuple(
                PermissionRule(pattern, overrides)
                for pattern, overrides in getattr(settings, 'ELFINDER_PERMS', ())
            ),
            disabled_commands=tuple(
                getattr(settings, 'ELFINDER_DISABLED_COMMANDS', ()),
            ),
            allow_dot_files=getattr(settings, 'ELFINDER_ALLOW_DOT_FILES', True),
            upload_max_size=getattr(settings, 'ELFINDER_UPLOAD_MAX_SIZE', '50M'),
            name_validator=(
                import_string(validator_path)
                if validator_path
                else default_name_validator
            ),
            tree_sub_folders=getattr(
                settings,
                'ELFINDER_TREE_SUB_FOLDERS',
                False,
            ),
            thumbs=getattr(settings, 'ELFINDER_THUMBS', False),
            thumbs_directory=getattr(
                settings,
                'ELFINDER_THUMBS_DIRECTORY',
                '.thumbs',
            ),
            thumbs_size=getattr(settings, 'ELFINDER_THUMBS_SIZE', 48),
            thumbs_at_once=getattr(settings, 'ELFINDER_THUMBS_AT_ONCE', 5),
            image_handler=import_string(handler_path)() if handler_path else None,
        )
