""" Exception classes for the gibberlink client. Every error carries the
    name of the operation that failed and the underlying cause, if any, so
    that the caller can diagnose a failure without blindly retrying it. No
    operation in this package retries on its own.
"""


class GatewayError(Exception):
    """ Base class for all client-side gateway errors. The *operation* is
        a short name such as 'handshake' or 'send'; *cause* is either a
        descriptive string or the exception that triggered this one.
    """

    def __init__(self, operation, cause=None):

        self.operation = operation
        self.cause = cause

        if cause is None:
            text = operation + ' failed'
        else:
            text = "%s failed: %s" % (operation, cause)

        Exception.__init__(self, text)


class Unreachable(GatewayError):
    """ The health check did not return an affirmative status. Fatal: no
        session can be formed.
    """


class HandshakeFailed(GatewayError):
    """ The gateway did not assign a session identifier, or the push channel
        could not be established under the 'require' push policy. Fatal.
    """


class NoActiveSession(GatewayError):
    """ A session-scoped operation was attempted before a successful
        handshake, or after the session was closed.
    """

    def __init__(self, operation):
        GatewayError.__init__(self, operation, 'no active session, establish a handshake first')


class SendFailed(GatewayError):
    """ One send attempt failed. Not fatal; recorded and counted.
    """


class InvalidPayload(SendFailed):
    """ The payload is not a JSON object and the payload policy is 'reject'.
    """


class DecodeFailed(GatewayError):
    pass


class TranscriptFailed(GatewayError):
    pass


class NotFound(TranscriptFailed):
    """ The gateway has no transcript for the requested message identifier.
    """


class PushChannelError(GatewayError):
    """ The push channel could not be opened, or failed after opening. Not
        fatal to a run; the channel transitions to FAILED.
    """


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
