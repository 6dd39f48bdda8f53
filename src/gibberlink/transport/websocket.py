"""WebSocket push transport."""

from __future__ import annotations

import urllib.parse
from typing import Optional, Union

from websockets.exceptions import ConnectionClosedOK, WebSocketException
from websockets.sync.client import ClientConnection, connect

from ..protocol import fields
from .base import Transport, TransportClosed, TransportConnectionError


def url(gateway_url: str, session_id: str, path: str = fields.MESSAGES) -> str:
    """Derive the push channel URL from the HTTP gateway URL:
    http becomes ws, https becomes wss, and the session id is passed as
    the ``sessionId`` query parameter.
    """

    parts = urllib.parse.urlsplit(gateway_url)

    if parts.scheme == "https":
        scheme = "wss"
    elif parts.scheme == "http":
        scheme = "ws"
    else:
        scheme = parts.scheme

    base = parts.path.rstrip("/")
    query = urllib.parse.urlencode({fields.SESSION_ID: session_id})
    return urllib.parse.urlunsplit((scheme, parts.netloc, base + path, query, ""))


class Client(Transport):
    """WebSocket client, using the threaded (sync) websockets API."""

    def __init__(self, address: str, key: Optional[str] = None, open_timeout: Optional[float] = None):
        self.address = address
        self.key = key
        self.open_timeout = open_timeout
        self.connection: Optional[ClientConnection] = None

    @property
    def is_open(self) -> bool:
        return self.connection is not None

    def open(self) -> None:
        headers = dict()
        if self.key is not None:
            headers[fields.API_KEY_HEADER] = self.key

        try:
            self.connection = connect(
                self.address,
                additional_headers=headers,
                open_timeout=self.open_timeout,
            )
        except (OSError, TimeoutError, WebSocketException) as exc:
            raise TransportConnectionError(f"{self.address}: {exc}") from exc

    def close(self) -> None:
        connection = self.connection
        if connection is not None:
            connection.close()

    def send(self, data: str) -> None:
        if self.connection is None:
            raise TransportConnectionError("not connected")

        try:
            self.connection.send(data)
        except ConnectionClosedOK as exc:
            raise TransportClosed(str(exc)) from exc
        except (OSError, WebSocketException) as exc:
            raise TransportConnectionError(str(exc)) from exc

    def recv(self) -> Union[str, bytes]:
        if self.connection is None:
            raise TransportConnectionError("not connected")

        try:
            return self.connection.recv()
        except ConnectionClosedOK as exc:
            raise TransportClosed(str(exc)) from exc
        except (OSError, WebSocketException) as exc:
            raise TransportConnectionError(str(exc)) from exc
