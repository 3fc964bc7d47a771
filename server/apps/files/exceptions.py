"""Exceptions for files app."""


class ObjectNotFoundError(Exception):
    """Raised when reading an object that does not exist in the bucket."""

    def __init__(self, key: str) -> None:
        """Initialize ObjectNotFoundError.

        Args:
            key: Store key that was requested.
        """
        self.key = key
        super().__init__(f'Object not found: {key}')
