"""Push channel transport implementations.

The websocket and zeromq modules are imported on first use.
"""

from .base import (
    Transport,
    TransportError,
    TransportClosed,
    TransportConnectionError,
)

backends = ("ws", "zmq")


def client(configuration, session_id):
    """Factory for a :class:`Transport` bound to *session_id*, as described
    by the *configuration* (a :class:`gibberlink.config.Configuration`).
    """

    name = configuration.push

    if name == "ws":
        from . import websocket

        address = websocket.url(configuration.url, session_id, configuration.push_path)
        return websocket.Client(address, configuration.key, configuration.timeout)

    if name == "zmq":
        from . import zeromq

        if configuration.push_address is None:
            raise ValueError("the zmq push backend requires a push address")
        return zeromq.Client(configuration.push_address, session_id, configuration.push_send_address)

    raise ValueError(f"unknown push backend: {name!r}")
