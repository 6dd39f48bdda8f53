"""ZeroMQ push transport.

Inbound events arrive on a SUB socket subscribed to the session's topic;
outbound events, if the gateway exposes an address for them, leave on a
DEALER socket whose identity is the session id.

Frames, in both directions:
    topic_with_trailing_dot, payload_json
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Sequence, Tuple

import zmq

from .base import Transport, TransportClosed, TransportConnectionError

logger = logging.getLogger(__name__)
zmq_context = zmq.Context()


def to_frames(topic: str, data: str) -> Tuple[bytes, bytes]:
    # Trailing dot to prevent leading substring matches on other sessions.
    return ((topic + ".").encode(), data.encode())


def from_frames(parts: Sequence[bytes]) -> Tuple[str, bytes]:
    if len(parts) < 2:
        raise ValueError("invalid push message: %d frames" % (len(parts)))

    topic = parts[0].decode()
    if topic.endswith("."):
        topic = topic[:-1]
    return topic, parts[1]


class Client(Transport):
    """SUB client for one session, with an optional DEALER for sending."""

    poll_interval = 0.25

    def __init__(self, address: str, session_id: str, send_address: Optional[str] = None):
        self.address = address
        self.send_address = send_address
        self.topic = session_id
        self.sub: Optional[zmq.Socket] = None
        self.dealer: Optional[zmq.Socket] = None
        self.shutdown = False

        # ZeroMQ makes no attempt to be thread-safe; closing the SUB socket
        # is left to whichever thread is inside recv(), if any.
        self._receiving = False
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self.sub is not None and self.shutdown == False

    def open(self) -> None:
        try:
            sub = zmq_context.socket(zmq.SUB)
            sub.setsockopt(zmq.LINGER, 0)
            sub.connect(self.address)
            sub.setsockopt(zmq.SUBSCRIBE, (self.topic + ".").encode())

            if self.send_address is not None:
                dealer = zmq_context.socket(zmq.DEALER)
                dealer.setsockopt(zmq.LINGER, 0)
                dealer.identity = self.topic.encode()
                dealer.connect(self.send_address)
                self.dealer = dealer
        except zmq.ZMQError as exc:
            raise TransportConnectionError(f"{self.address}: {exc}") from exc

        self.sub = sub

    def close(self) -> None:
        with self._lock:
            self.shutdown = True

            if self.dealer is not None:
                self.dealer.close()
                self.dealer = None

            if self._receiving == False and self.sub is not None:
                self.sub.close()
                self.sub = None

    def send(self, data: str) -> None:
        dealer = self.dealer
        if dealer is None:
            raise TransportConnectionError("no outbound address configured")

        try:
            dealer.send_multipart(to_frames(self.topic, data))
        except zmq.ZMQError as exc:
            raise TransportConnectionError(str(exc)) from exc

    def recv(self) -> bytes:
        with self._lock:
            if self.shutdown or self.sub is None:
                raise TransportClosed("closed")
            self._receiving = True
            sub = self.sub

        poller = zmq.Poller()
        poller.register(sub, zmq.POLLIN)

        try:
            while True:
                if self.shutdown:
                    raise TransportClosed("closed")

                try:
                    sockets = dict(poller.poll(self.poll_interval * 1000))
                    if sub in sockets:
                        parts = sub.recv_multipart()
                    else:
                        continue
                except zmq.ZMQError as exc:
                    raise TransportConnectionError(str(exc)) from exc

                try:
                    topic, data = from_frames(parts)
                except ValueError as exc:
                    logger.warning("dropping push message from %s: %s", self.address, exc)
                    continue

                if topic == self.topic:
                    return data
        finally:
            with self._lock:
                self._receiving = False
                if self.shutdown and self.sub is not None:
                    self.sub.close()
                    self.sub = None
