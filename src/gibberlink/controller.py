""" The :class:`SessionController` owns one gateway session: it drives the
    health check and handshake, brings up the push channel, and exposes the
    send, decode, and transcript operations. Everything it needs is held on
    the instance; independent controllers can run side by side in one
    process without sharing any state.
"""

import base64
import binascii
import logging
import time

from . import config
from . import errors
from . import push
from . import stats
from .protocol import fields
from .protocol import message
from .protocol import request

logger = logging.getLogger(__name__)


class SessionController:
    """ Manage a session against the gateway described by *configuration*
        (a :class:`config.Configuration`; a default one is used if not
        provided).

        The *correlator* receives one :class:`message.DeliveryRecord` per send
        attempt, and every event arriving on the push channel while the
        session is live. The *client* is the control channel
        (:class:`request.Client`), and *push_factory* is called with the
        configuration and the new :class:`message.Session` to create the
        push channel; both are normally left to their defaults.

        :ivar session: The live :class:`message.Session`, or None.
        :ivar push: The session's :class:`push.PushChannel`, or None.
    """

    def __init__(self, configuration=None, correlator=None, client=None, push_factory=None):

        if configuration is None:
            configuration = config.Configuration()

        if correlator is None:
            correlator = stats.Correlator()

        if client is None:
            client = request.Client(configuration.url, configuration.key, configuration.timeout)

        if push_factory is None:
            push_factory = push.channel

        self.config = configuration
        self.correlator = correlator
        self.client = client
        self.push_factory = push_factory

        self.session = None
        self.push = None


    @property
    def session_id(self):
        session = self.session
        if session is None:
            return None
        return session.id


    def check_reachability(self):
        """ Probe the gateway's health endpoint. Returns the health document
            if the gateway reports an affirmative status; anything else,
            including a network failure, raises :class:`errors.Unreachable`.
        """

        try:
            health = self.client.health()
        except request.RequestFailed as e:
            raise errors.Unreachable('health check', e.cause) from e

        if not isinstance(health, dict):
            raise errors.Unreachable('health check', 'malformed response')

        status = health.get(fields.STATUS)
        if status != fields.STATUS_OK:
            raise errors.Unreachable('health check', 'gateway status is ' + repr(status))

        logger.info("gateway %s is reachable", self.config.url)
        return health


    def handshake(self, transport=None, target=None, features=None):
        """ Negotiate a new session and bring up its push channel. Arguments
            that are not provided are taken from the configuration; *features*
            is a :class:`message.Features` instance.

            If the push channel cannot be opened, the configured push policy
            applies: with 'require' the handshake fails, with 'optional' the
            session proceeds without a push channel. Any existing session is
            closed first. On failure :class:`errors.HandshakeFailed` is raised
            and no session is set.
        """

        if transport is None:
            transport = self.config.transport

        if target is None:
            target = self.config.target

        if features is None:
            features = self.config.requested_features()

        transport = message.TransportKind(transport)

        self.close()

        logger.info("handshake: transport=%s target=%s", transport.value, target)

        try:
            response = self.client.handshake(transport, target, features)
        except request.RequestFailed as e:
            raise errors.HandshakeFailed('handshake', e.cause) from e

        session = _session(response, transport, target, features)

        try:
            channel = self.push_factory(self.config, session)
        except (ValueError, errors.PushChannelError) as e:
            if self.config.push_policy == config.PUSH_REQUIRE:
                raise errors.HandshakeFailed('handshake', e) from e

            logger.warning("handshake: proceeding without push channel: %s", e)
            channel = None

        if channel is not None:
            channel.register(self.correlator.record_event, 'message')
            channel.register(self._push_error, 'error')
            channel.register(self._push_closed, 'close')

            self.correlator.attach()

            try:
                channel.open()
            except errors.PushChannelError as e:
                if self.config.push_policy == config.PUSH_REQUIRE:
                    self.correlator.detach()
                    channel.close()
                    raise errors.HandshakeFailed('handshake', e) from e

                logger.warning("handshake: proceeding without push channel: %s", e)

        self.session = session
        self.push = channel

        logger.info("handshake successful, session id: %s", session.id)
        return session


    def send(self, payload):
        """ Submit one *payload* for encoding and transmission within the
            current session, and return the resulting
            :class:`message.DeliveryRecord`. Raises
            :class:`errors.NoActiveSession` if there is no session; any
            other failure is reported in the returned record, with
            :class:`errors.SendFailed` as the cause, and is also counted by
            the correlator.
        """

        session = self.session

        if session is None:
            raise errors.NoActiveSession('send')

        outbound = message.OutboundMessage(payload, session.target)
        begin = time.perf_counter()

        try:
            payload = message.validate_payload(payload, self.config.payload_policy)
            response = self.client.encode(session.id, session.target, payload, True)
            latency = time.perf_counter() - begin
            outbound.msg_id, outbound.size = _accepted(response)

        except (errors.GatewayError, ValueError, TypeError) as e:
            latency = time.perf_counter() - begin

            if isinstance(e, errors.SendFailed):
                error = e
            elif isinstance(e, errors.GatewayError):
                error = errors.SendFailed('send', e.cause)
            else:
                error = errors.SendFailed('send', e)

            record = message.DeliveryRecord.failure(error, latency)
            self.correlator.record(record)
            logger.error("message failed: %s", error.cause)
            return record

        record = message.DeliveryRecord.success(outbound, latency)
        self.correlator.record(record)

        logger.info("message sent, id: %s, latency: %dms, size: %s",
                    record.msg_id, round(latency * 1000), stats.format_bytes(record.size))

        self._mirror(payload)
        return record


    def _mirror(self, payload):
        """ Best-effort copy of a successful send onto the push channel. This
            never fails the send; see :class:`push.PushChannel`.
        """

        channel = self.push

        if channel is None or channel.is_open == False:
            return

        event = dict()
        event[fields.TYPE] = fields.SEND
        event[fields.PAYLOAD] = payload
        event[fields.TIMESTAMP] = message.timestamp()

        channel.send(event)


    def decode(self, encoded):
        """ Ask the gateway to decode a frame. The *encoded* argument is
            either base64 text or raw bytes. Does not require or consult a
            session. Raises :class:`errors.DecodeFailed`.
        """

        if isinstance(encoded, (bytes, bytearray, memoryview)):
            encoded = base64.b64encode(bytes(encoded)).decode()
        else:
            encoded = str(encoded).strip()
            try:
                base64.b64decode(encoded, validate=True)
            except (binascii.Error, ValueError) as e:
                raise errors.DecodeFailed('decode', 'input is not valid base64') from e

        try:
            return self.client.decode(encoded)
        except request.RequestFailed as e:
            raise errors.DecodeFailed('decode', e.cause) from e


    def fetch_transcript(self, msg_id, view=None):
        """ Retrieve the transcript for *msg_id*, optionally in a specific
            *view* ('full', 'plain', or 'english'). Does not require or
            consult a session. Raises :class:`errors.NotFound` if the gateway
            has no such transcript, :class:`errors.TranscriptFailed` for any
            other failure.
        """

        if view is not None and view not in fields.VIEWS:
            raise ValueError('invalid transcript view: ' + repr(view))

        try:
            return self.client.transcript(msg_id, view)
        except request.RequestFailed as e:
            if e.status == 404:
                raise errors.NotFound('transcript', "no transcript for message '%s'" % (msg_id)) from e
            raise errors.TranscriptFailed('transcript', e.cause) from e


    def close(self):
        """ Tear down the push channel, if any, and discard the session.
            Push events arriving after this call are not counted. Safe to
            call any number of times.
        """

        channel = self.push
        session = self.session

        self.correlator.detach()
        self.push = None
        self.session = None

        if channel is not None:
            channel.close()

        if session is not None:
            logger.info("session %s closed", session.id)


    def _push_error(self, error):
        logger.warning("push channel failed, mirrored sends will be skipped: %s", error.cause)


    def _push_closed(self):
        logger.info("push channel disconnected")


# end of class SessionController



def _session(response, transport, target, features):
    """ Build a :class:`message.Session` from a handshake *response*, or
        raise :class:`errors.HandshakeFailed` if it has no usable id.
    """

    if not isinstance(response, dict):
        raise errors.HandshakeFailed('handshake', 'malformed response')

    session_id = response.get(fields.SESSION_ID)

    if not isinstance(session_id, str) or session_id == '':
        raise errors.HandshakeFailed('handshake', 'response has no session id')

    negotiated = response.get(fields.NEGOTIATED)

    if isinstance(negotiated, dict):
        try:
            negotiated = message.Features.from_dict(negotiated)
        except (TypeError, ValueError):
            negotiated = None
    else:
        negotiated = None

    expires_at = response.get(fields.EXPIRES_AT)
    return message.Session(session_id, transport, target, features, negotiated, expires_at)



def _accepted(response):
    """ Extract (msg_id, size) from an encode response.
    """

    if not isinstance(response, dict):
        raise errors.SendFailed('send', 'malformed response')

    msg_id = response.get(fields.MSG_ID)

    if msg_id is None or msg_id == '':
        raise errors.SendFailed('send', 'response has no message id')

    size = response.get(fields.SIZE) or 0

    try:
        size = int(size)
    except (TypeError, ValueError):
        raise errors.SendFailed('send', 'invalid size: ' + repr(size))

    return str(msg_id), size


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
