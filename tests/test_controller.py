import base64

import pytest

import gibberlink
from gibberlink import errors
from gibberlink.protocol.request import RequestFailed
from gibberlink.push import PushState


def test_handshake(controller, gateway, push_factory):
    """ Health check, handshake, push channel: the session and the push
        channel come up together.
    """

    controller.check_reachability()
    session = controller.handshake()

    assert session.id == 'abc123'
    assert controller.session is session
    assert controller.session_id == 'abc123'
    assert session.transport is gibberlink.protocol.TransportKind.WS
    assert session.target == 'ws://localhost:9999'

    assert controller.push is push_factory.channel
    assert controller.push.session_id == 'abc123'
    assert controller.push.state is PushState.OPEN
    assert controller.correlator.attached

    assert gateway.names() == ['health', 'handshake']


def test_handshake_arguments(controller, gateway):

    features = gibberlink.protocol.Features(compression='none', fec=False)
    session = controller.handshake('udp', 'udp://peer:9000', features)

    name, transport, target, requested = gateway.calls[0]
    assert transport is gibberlink.protocol.TransportKind.UDP
    assert target == 'udp://peer:9000'
    assert requested is features
    assert session.features is features


def test_handshake_negotiated(controller, gateway):

    gateway.handshake_response = {
        'sessionId': 'abc123',
        'negotiated': {'compression': 'none', 'fec': True, 'crypto': False, 'maxMtu': 1200},
        'expiresAt': '2030-01-01T00:00:00.000Z',
    }

    session = controller.handshake()

    assert session.negotiated.compression == 'none'
    assert session.negotiated.max_mtu == 1200
    assert session.expires_at == '2030-01-01T00:00:00.000Z'


def test_unreachable(controller, gateway):

    gateway.health_response = {'status': 'degraded'}

    with pytest.raises(errors.Unreachable):
        controller.check_reachability()

    gateway.health_response = RequestFailed('health', 'connection refused')

    with pytest.raises(errors.Unreachable) as caught:
        controller.check_reachability()

    assert 'connection refused' in str(caught.value)
    assert controller.session is None


def test_handshake_without_session_id(controller, gateway, push_factory):

    for response in ({}, {'sessionId': ''}, {'sessionId': 42}, ['abc123']):
        gateway.handshake_response = response

        with pytest.raises(errors.HandshakeFailed):
            controller.handshake()

        assert controller.session is None
        assert controller.push is None

    # No push channel is attempted without a session identifier.

    assert push_factory.channels == []


def test_handshake_rejected(controller, gateway):

    gateway.handshake_response = RequestFailed('handshake', 'HTTP 401: Invalid API key', 401)

    with pytest.raises(errors.HandshakeFailed) as caught:
        controller.handshake()

    assert 'Invalid API key' in str(caught.value)
    assert controller.session is None


def test_push_required(controller, push_factory):

    push_factory.fail_open = True

    with pytest.raises(errors.HandshakeFailed):
        controller.handshake()

    assert controller.session is None
    assert controller.push is None
    assert controller.correlator.attached == False
    assert push_factory.channel.state is PushState.FAILED

    with pytest.raises(errors.NoActiveSession):
        controller.send({'op': 'sum'})


def test_push_backend_misconfigured(gateway):
    """ The zmq backend without an address cannot build a channel; with the
        default policy that is a failed handshake, not a stray ValueError.
    """

    configuration = gibberlink.config.Configuration(push='zmq')
    controller = gibberlink.SessionController(configuration, client=gateway)

    with pytest.raises(errors.HandshakeFailed) as caught:
        controller.handshake()

    assert 'push address' in str(caught.value)
    assert isinstance(caught.value.__cause__, ValueError)
    assert controller.session is None
    assert controller.push is None
    assert controller.correlator.attached == False


def test_push_backend_misconfigured_optional(gateway):

    configuration = gibberlink.config.Configuration(push='zmq', push_policy='optional')
    controller = gibberlink.SessionController(configuration, client=gateway)

    session = controller.handshake()
    assert controller.session is session
    assert controller.push is None

    assert controller.send({'op': 'sum'}).succeeded
    controller.close()


def test_push_optional(make_controller, push_factory):

    controller = make_controller(push_policy='optional')
    push_factory.fail_open = True

    session = controller.handshake()
    assert controller.session is session
    assert controller.push.state is PushState.FAILED

    record = controller.send({'op': 'sum'})
    assert record.succeeded

    controller.close()


def test_send_before_handshake(controller, gateway):
    """ No request is made at all without a session.
    """

    with pytest.raises(errors.NoActiveSession):
        controller.send({'op': 'sum'})

    assert gateway.calls == []
    assert controller.correlator.snapshot().sent == 0


def test_send(controller, gateway, waiter):

    controller.handshake()
    record = controller.send({'op': 'sum', 'a': 2, 'b': 3})

    assert record.succeeded
    assert record.msg_id == 'm1'
    assert record.size == 42
    assert record.latency >= 0

    name, session_id, target, payload, require_transcript = gateway.calls[-1]
    assert session_id == 'abc123'
    assert target == 'ws://localhost:9999'
    assert payload == {'op': 'sum', 'a': 2, 'b': 3}
    assert require_transcript == True

    statistics = controller.correlator.snapshot()
    assert statistics.sent == 1
    assert statistics.errors == 0
    assert statistics.total_bytes == 42


def test_send_records_only_when_definite(controller, gateway, monkeypatch):
    """ Statistics stay untouched while the encode request is in flight,
        whether it ends up succeeding or failing.
    """

    controller.handshake()

    in_flight = list()
    encode = gateway.encode

    def observed(*args, **kwargs):
        in_flight.append(controller.correlator.snapshot().sent)
        return encode(*args, **kwargs)

    monkeypatch.setattr(gateway, 'encode', observed)

    assert controller.send({'op': 'sum'}).succeeded
    assert in_flight == [0]
    assert controller.correlator.snapshot().sent == 1

    gateway.outcomes.append(RequestFailed('send', 'HTTP 500: Internal error', 500))

    assert controller.send({'op': 'sum'}).succeeded == False
    assert in_flight == [0, 1]

    statistics = controller.correlator.snapshot()
    assert statistics.sent == 2
    assert statistics.errors == 1


def test_send_is_mirrored(controller, push_factory, waiter):

    controller.handshake()
    controller.send({'op': 'sum'})

    transport = push_factory.transport
    waiter(lambda: len(transport.sent) == 1)

    mirrored = gibberlink.json.loads(transport.sent[0])
    assert mirrored['type'] == 'send'
    assert mirrored['payload'] == {'op': 'sum'}
    assert mirrored['timestamp'].endswith('Z')


def test_mirror_failure_does_not_fail_send(controller, push_factory, waiter):

    controller.handshake()
    push_factory.transport.fail_send = True

    record = controller.send({'op': 'sum'})

    assert record.succeeded
    waiter(lambda: push_factory.channel.mirror_failures == 1)
    assert controller.correlator.snapshot().errors == 0


def test_send_failures(controller, gateway):
    """ A failed send is returned as a record and counted; the session
        stays usable.
    """

    controller.handshake()

    gateway.outcomes.append(RequestFailed('send', 'HTTP 500: Internal error', 500))
    gateway.outcomes.append({'size': 42})
    gateway.outcomes.append({'msgId': 'm3', 'size': 'large'})

    for count in range(3):
        record = controller.send({'op': 'sum'})
        assert record.succeeded == False
        assert isinstance(record.error, errors.SendFailed)
        assert record.msg_id is None

    record = controller.send({'op': 'sum'})
    assert record.succeeded

    statistics = controller.correlator.snapshot()
    assert statistics.sent == 4
    assert statistics.errors == 3
    assert controller.session is not None


def test_invalid_payload_counts_as_failure(controller, gateway):

    controller.handshake()

    record = controller.send([1, 2, 3])

    assert record.succeeded == False
    assert isinstance(record.error, errors.InvalidPayload)
    assert 'encode' not in gateway.names()

    statistics = controller.correlator.snapshot()
    assert statistics.sent == 1
    assert statistics.errors == 1


def test_passthrough_payload(make_controller, gateway):

    controller = make_controller(payload_policy='passthrough')
    controller.handshake()

    record = controller.send([1, 2, 3])
    assert record.succeeded
    assert gateway.calls[-1][3] == [1, 2, 3]

    controller.close()


def test_push_events_are_counted(controller, push_factory, waiter):

    controller.handshake()

    for count in range(3):
        push_factory.transport.push({'type': 'recv', 'n': count})

    waiter(lambda: controller.correlator.snapshot().received == 3)


def test_push_failure_keeps_session(controller, push_factory, waiter):
    """ Once the push channel fails, sends carry on over the control
        channel and the push channel is not reopened.
    """

    controller.handshake()
    push_factory.transport.fail('connection reset')

    waiter(lambda: controller.push.state is PushState.FAILED)

    record = controller.send({'op': 'sum'})
    assert record.succeeded
    assert push_factory.transport.sent == []
    assert len(push_factory.channels) == 1


def test_push_remote_close_keeps_session(controller, push_factory, waiter):

    controller.handshake()
    push_factory.transport.remote_close()

    waiter(lambda: controller.push.state is PushState.CLOSED)

    assert controller.send({'op': 'sum'}).succeeded
    assert controller.session_id == 'abc123'


def test_close(controller, push_factory):

    controller.handshake()
    channel = controller.push

    controller.close()
    controller.close()

    assert controller.session is None
    assert controller.push is None
    assert channel.state is PushState.CLOSED

    with pytest.raises(errors.NoActiveSession):
        controller.send({'op': 'sum'})


def test_no_events_counted_after_close(controller, push_factory):

    controller.handshake()
    channel = controller.push

    controller.close()

    # An event already in flight when the session closed.

    channel._deliver({'type': 'late'})
    controller.correlator.record_event({'type': 'late'})

    assert controller.correlator.snapshot().received == 0


def test_new_handshake_replaces_session(controller, gateway, push_factory):

    controller.handshake()
    first = push_factory.channel

    gateway.handshake_response = {'sessionId': 'def456'}
    session = controller.handshake()

    assert session.id == 'def456'
    assert first.state is PushState.CLOSED
    assert push_factory.channel is not first
    assert push_factory.channel.session_id == 'def456'
    assert push_factory.channel.state is PushState.OPEN


def test_decode_without_session(controller, gateway):

    decoded = controller.decode('AAEC')
    assert decoded == gateway.decoded
    assert gateway.calls == [('decode', 'AAEC')]


def test_decode_bytes(controller, gateway):

    controller.decode(b'\x00\x01\x02')
    assert gateway.calls[-1] == ('decode', base64.b64encode(b'\x00\x01\x02').decode())


def test_decode_during_session(controller, gateway):

    controller.handshake()
    assert controller.decode('AAEC') == gateway.decoded
    assert controller.session_id == 'abc123'


def test_decode_failures(controller, gateway):

    with pytest.raises(errors.DecodeFailed):
        controller.decode('not base64!')

    assert gateway.calls == []

    gateway.decoded = RequestFailed('decode', 'HTTP 400: Invalid frame', 400)

    with pytest.raises(errors.DecodeFailed) as caught:
        controller.decode('AAEC')

    assert 'Invalid frame' in str(caught.value)


def test_transcript(controller, gateway):

    transcript = controller.fetch_transcript('m1')
    assert transcript['msgId'] == 'm1'
    assert gateway.calls == [('transcript', 'm1', None)]

    controller.fetch_transcript('m1', 'english')
    assert gateway.calls[-1] == ('transcript', 'm1', 'english')

    with pytest.raises(ValueError):
        controller.fetch_transcript('m1', 'klingon')


def test_transcript_not_found(controller):

    with pytest.raises(errors.NotFound) as caught:
        controller.fetch_transcript('m404')

    assert isinstance(caught.value, errors.TranscriptFailed)
    assert 'm404' in str(caught.value)


def test_transcript_failure(controller, gateway, monkeypatch):

    def broken(msg_id, view=None):
        raise RequestFailed('transcript', 'HTTP 500: Internal error', 500)

    monkeypatch.setattr(gateway, 'transcript', broken)

    with pytest.raises(errors.TranscriptFailed) as caught:
        controller.fetch_transcript('m1')

    assert not isinstance(caught.value, errors.NotFound)


def test_independent_controllers(make_controller, gateway, push_factory):

    one = make_controller()
    other = make_controller(target='udp://peer:9000', transport='udp')

    one.handshake()
    one.send({'op': 'sum'})

    assert other.session is None
    assert other.correlator.snapshot().sent == 0
    assert one.correlator is not other.correlator
    assert one.config is not other.config

    gateway.handshake_response = {'sessionId': 'def456'}
    other.handshake()

    assert one.session_id == 'abc123'
    assert other.session_id == 'def456'
    assert push_factory.channels[0].state is PushState.OPEN

    one.close()
    assert other.push.state is PushState.OPEN
    other.close()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
