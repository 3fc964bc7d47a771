"""Commands understood by the connector."""

import enum


@enum.unique
class Command(enum.StrEnum):
    """Protocol command names.

    Every member needs a handler in the connector table.
    """

    OPEN = 'open'
    LS = 'ls'
    TREE = 'tree'
    MKDIR = 'mkdir'
    MKFILE = 'mkfile'
    RENAME = 'rename'
    UPLOAD = 'upload'
    PASTE = 'paste'
    RM = 'rm'
    GET = 'get'
    FILE = 'file'
    PUT = 'put'
    PING = 'ping'
    TMB = 'tmb'
    DUPLICATE = 'duplicate'
    EXTRACT = 'extract'
    ARCHIVE = 'archive'
    RESIZE = 'resize'

    @classmethod
    def parse(cls, name: object) -> 'Command | None':
        """Look up a command by name.

        Args:
            name: Raw ``cmd`` request parameter.

        Returns:
            Command, or None for unknown names.
        """
        try:
            return cls(name)
        except ValueError:
            return None
