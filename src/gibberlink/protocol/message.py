""" Data structures exchanged with the gateway: the negotiated session, the
    outbound messages submitted for encoding, and the immutable record of
    each send attempt.
"""

from __future__ import annotations

import datetime
import enum
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .. import errors
from . import fields


class TransportKind(str, enum.Enum):
    """ The closed set of transports a gateway session can be bound to.
    """

    WS = 'ws'
    UDP = 'udp'
    AUDIO = 'audio'


@dataclass(frozen=True)
class Features:
    """ The feature set requested during a handshake. The defaults are the
        ones the reference client has always asked for.
    """

    compression: str = 'zstd'
    fec: bool = True
    crypto: bool = False
    max_mtu: int = 1500

    def to_dict(self) -> dict:
        return {
            fields.COMPRESSION: self.compression,
            fields.FEC: self.fec,
            fields.CRYPTO: self.crypto,
            fields.MAX_MTU: self.max_mtu,
        }

    @classmethod
    def from_dict(cls, block: Mapping[str, Any]) -> 'Features':
        """ Build a :class:`Features` from a wire-format block; any absent
            field keeps its default.
        """

        default = cls()
        return cls(
            compression=str(block.get(fields.COMPRESSION, default.compression)),
            fec=bool(block.get(fields.FEC, default.fec)),
            crypto=bool(block.get(fields.CRYPTO, default.crypto)),
            max_mtu=int(block.get(fields.MAX_MTU, default.max_mtu)),
        )


@dataclass(frozen=True)
class Session:
    """ A gateway session, as established by a successful handshake. The
        identifier is assigned by the gateway and never changes; a new
        handshake always produces a new :class:`Session`.

        :ivar negotiated: The gateway's view of the negotiated features, if
            the handshake response included one.
        :ivar expires_at: Expiration as reported by the gateway, if any.
    """

    id: str
    transport: TransportKind
    target: str
    features: Features
    negotiated: Optional[Features] = None
    expires_at: Optional[Any] = None


class Outcome(str, enum.Enum):
    SUCCESS = 'success'
    FAILED = 'failed'


@dataclass
class OutboundMessage:
    """ One payload submitted for encoding. The *msg_id* and *size* are
        only populated once the gateway accepts the submission.
    """

    payload: Any
    target: str
    submitted: float = field(default_factory=time.time)
    msg_id: Optional[str] = None
    size: Optional[int] = None


@dataclass(frozen=True)
class DeliveryRecord:
    """ The outcome of exactly one send attempt. The *latency* is in seconds,
        measured from submission to the control-channel response; *error* is
        the :class:`errors.SendFailed` instance for failed attempts.
    """

    msg_id: Optional[str]
    outcome: Outcome
    latency: float
    size: int = 0
    error: Optional[errors.SendFailed] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @classmethod
    def success(cls, message: OutboundMessage, latency: float) -> 'DeliveryRecord':
        return cls(message.msg_id, Outcome.SUCCESS, latency, message.size or 0)

    @classmethod
    def failure(cls, error: errors.SendFailed, latency: float = 0.0) -> 'DeliveryRecord':
        return cls(None, Outcome.FAILED, latency, 0, error)


# Payload handling. A payload is a JSON object: string keys, with values that
# are JSON scalars, lists, or nested objects. What happens to anything else
# is decided by the payload policy.

REJECT = 'reject'
PASSTHROUGH = 'passthrough'
payload_policies = (REJECT, PASSTHROUGH)

_scalars = (str, int, float, bool, type(None))


def _check_value(value, path):

    if isinstance(value, _scalars):
        return

    if isinstance(value, Mapping):
        for key, nested in value.items():
            if not isinstance(key, str):
                raise errors.InvalidPayload('send', "non-string key %r at %s" % (key, path))
            _check_value(nested, path + '.' + key)
        return

    if isinstance(value, (list, tuple)):
        for index, nested in enumerate(value):
            _check_value(nested, "%s[%d]" % (path, index))
        return

    raise errors.InvalidPayload('send', "unsupported %s value at %s" % (type(value).__name__, path))


def validate_payload(payload, policy=REJECT):
    """ Confirm the *payload* is a JSON object, returning it unchanged.
        With the 'reject' policy a non-conforming payload raises
        :class:`errors.InvalidPayload` before anything is sent; with the
        'passthrough' policy it is returned as-is, and the gateway gets to
        decide what to do with it.
    """

    if policy not in payload_policies:
        raise ValueError('invalid payload policy: ' + repr(policy))

    if policy == PASSTHROUGH:
        return payload

    if not isinstance(payload, Mapping):
        raise errors.InvalidPayload('send', 'payload must be a JSON object, not ' + type(payload).__name__)

    _check_value(payload, 'payload')
    return payload


def timestamp():
    """ Current time as an ISO-8601 UTC string, the format the gateway uses.
    """

    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
