import queue
import time

import pytest

import gibberlink
from gibberlink import json
from gibberlink.protocol.request import RequestFailed
from gibberlink.transport import Transport, TransportClosed, TransportConnectionError


_closed = object()


class FakeTransport(Transport):
    """ In-memory push transport. Inbound events are fed with :func:`push`;
        outbound events accumulate in :attr:`sent`.
    """

    def __init__(self, fail_open=False):
        self.fail_open = fail_open
        self.fail_send = False
        self.opened = False
        self.closed = False
        self.sent = list()
        self.inbound = queue.SimpleQueue()

    @property
    def is_open(self):
        return self.opened and not self.closed

    def open(self):
        if self.fail_open:
            raise TransportConnectionError('connection refused')
        self.opened = True

    def close(self):
        self.closed = True
        self.inbound.put(_closed)

    def send(self, data):
        if self.fail_send:
            raise TransportConnectionError('broken pipe')
        self.sent.append(data)

    def recv(self):
        item = self.inbound.get()
        if item is _closed:
            self.inbound.put(_closed)
            raise TransportClosed('closed')
        if isinstance(item, Exception):
            raise item
        return item

    # Helpers for the tests.

    def push(self, event):
        self.inbound.put(json.dumps_text(event))

    def push_raw(self, raw):
        self.inbound.put(raw)

    def fail(self, cause='connection reset'):
        self.inbound.put(TransportConnectionError(cause))

    def remote_close(self):
        self.inbound.put(_closed)


class FakeGateway:
    """ Stand-in for :class:`gibberlink.protocol.request.Client`. Each
        entry in :attr:`outcomes` is either an encode response or an
        exception to raise; once they run out, sends succeed.
    """

    def __init__(self):
        self.calls = list()
        self.health_response = {'status': 'ok'}
        self.handshake_response = {'sessionId': 'abc123'}
        self.outcomes = list()
        self.decoded = {'kind': 'compute-request', 'payload': {'op': 'sum'}}
        self.transcripts = {'m1': {'msgId': 'm1', 'json': {'op': 'sum'}}}
        self.closed = False
        self._count = 0

    def _answer(self, response):
        if isinstance(response, Exception):
            raise response
        return response

    def names(self):
        return [call[0] for call in self.calls]

    def health(self):
        self.calls.append(('health',))
        return self._answer(self.health_response)

    def handshake(self, transport, target, features):
        self.calls.append(('handshake', transport, target, features))
        return self._answer(self.handshake_response)

    def encode(self, session_id, target, payload, require_transcript=True):
        self.calls.append(('encode', session_id, target, payload, require_transcript))
        self._count += 1

        if self.outcomes:
            return self._answer(self.outcomes.pop(0))

        return {'msgId': 'm%d' % (self._count), 'size': 42}

    def decode(self, bytes_base64):
        self.calls.append(('decode', bytes_base64))
        return self._answer(self.decoded)

    def transcript(self, msg_id, view=None):
        self.calls.append(('transcript', msg_id, view))
        try:
            return self.transcripts[msg_id]
        except KeyError:
            raise RequestFailed('transcript', 'HTTP 404: Transcript not found', 404)

    def close(self):
        self.closed = True


class PushFactory:
    """ Builds push channels on top of :class:`FakeTransport` instances, and
        remembers them.
    """

    def __init__(self):
        self.fail_open = False
        self.channels = list()
        self.transports = list()

    def __call__(self, configuration, session):
        transport = FakeTransport(fail_open=self.fail_open)
        channel = gibberlink.PushChannel(session.id, transport)
        self.transports.append(transport)
        self.channels.append(channel)
        return channel

    @property
    def transport(self):
        return self.transports[-1]

    @property
    def channel(self):
        return self.channels[-1]


def wait_for(predicate, timeout=2.0):
    """ Poll *predicate* until it returns True, or fail the test.
    """

    expiration = time.time() + timeout

    while time.time() < expiration:
        if predicate():
            return
        time.sleep(0.005)

    raise AssertionError('condition not met within %.1f seconds' % (timeout))


@pytest.fixture
def waiter():
    return wait_for


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def push_factory():
    return PushFactory()


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def make_controller(gateway, push_factory):

    def make(**overrides):
        configuration = gibberlink.config.Configuration(**overrides)
        return gibberlink.SessionController(configuration, client=gateway, push_factory=push_factory)

    return make


@pytest.fixture
def controller(make_controller):
    instance = make_controller()
    yield instance
    instance.close()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
