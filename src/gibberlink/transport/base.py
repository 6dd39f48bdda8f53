"""Push transport interface.

This is the (small) contract that push channel transports should follow.
The push channel state machine lives in :mod:`gibberlink.push`; transports
only move text frames.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Union


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all transport-layer errors."""


class TransportConnectionError(TransportError):
    """The transport could not establish or maintain a connection."""


class TransportClosed(TransportError):
    """The connection was closed gracefully, by either side."""


class Transport(ABC):
    """Minimal contract for a push channel transport.

    :meth:`recv` is only ever called from the push channel's receiver
    thread, and :meth:`send` only from its sender thread; :meth:`close`
    may be called from any thread and must cause a blocked :meth:`recv`
    to raise :class:`TransportClosed`.
    """

    @abstractmethod
    def open(self) -> None:
        """Establish the underlying connection/socket."""

    @abstractmethod
    def close(self) -> None:
        """Tear down the underlying connection/socket."""

    @abstractmethod
    def send(self, data: str) -> None:
        """Send one JSON-encoded event."""

    @abstractmethod
    def recv(self) -> Union[str, bytes]:
        """Block until the next inbound event arrives, and return it."""

    @property
    def is_open(self) -> bool:
        """Whether the transport is currently connected."""
        return False
