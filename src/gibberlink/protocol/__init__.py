from . import fields
from . import message
from . import request

from .message import (
    DeliveryRecord,
    Features,
    OutboundMessage,
    Outcome,
    Session,
    TransportKind,
)
from .request import RequestFailed


"""
Gibberlink Protocol Layer
=========================

This package defines what the client exchanges with the gateway: the data
model of a session and of each send attempt, the canonical wire field names,
and the request/response (control channel) client.

The push channel is not defined here; it lives in :mod:`gibberlink.push`
and :mod:`gibberlink.transport`, and depends on this package, never the
other way around.

---------------------------------------------------------------------

Layer Architecture Overview
---------------------------

Test run (run.py)
    Paced sequence of sends, continue-on-error

    │
    ▼
Session controller (controller.py)
    Handshake, send, decode, transcript, close
    Owns the Session, the push channel, the correlator

    │                                   │
    ▼                                   ▼
Control channel (protocol/request.py)   Push channel (push.py)
    One HTTP request per call               State machine, subscriptions,
                                            best-effort outbound mirror
                                        │
                                        ▼
                                    Push transports (transport/)
                                        WebSocket, ZeroMQ

Both channels feed the correlator (stats.py), which is the only shared
mutable structure.

---------------------------------------------------------------------
"""


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
