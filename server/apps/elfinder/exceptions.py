"""Exceptions for elFinder app."""

from collections.abc import Mapping


class ConnectorError(Exception):
    """Fatal command error reported to the client.

    Replaces whatever payload the command built so far. Store mutations
    already performed are not rolled back.
    """

    def __init__(
        self,
        message: str,
        error_data: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize ConnectorError.

        Args:
            message: Client-visible error message.
            error_data: Per-item details keyed by item name.
        """
        self.message = message
        self.error_data = dict(error_data or {})
        super().__init__(message)
