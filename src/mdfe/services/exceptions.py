from __future__ import annotations

from typing import Any


class ManagerError(Exception):
    """Base error for every failure surfaced by the ManagerSaaS client."""

    def __init__(self, message: str, response: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.response = response


class EnvelopeError(ManagerError):
    """ManagerSaaS answered with the ``EXCEPTION,<...>,<message>`` text envelope."""


class TransportError(ManagerError):
    """The HTTP layer failed before a response body was received."""


class FlattenDepthError(ManagerError, ValueError):
    """Nested form data is deeper than the flattening cap allows."""
