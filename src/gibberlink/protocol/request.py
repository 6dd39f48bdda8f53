""" Classes and methods implemented here implement the request/response
    (control channel) side of the gateway API. Each method issues exactly one
    HTTP request and blocks until the gateway responds or the request fails;
    nothing is retried.
"""

import logging
import urllib.parse

import requests

from .. import errors
from . import fields

logger = logging.getLogger(__name__)


class RequestFailed(errors.GatewayError):
    """ A control channel request did not produce a usable response. The
        *status* is the HTTP status code, or None if no response arrived
        at all (connection refused, DNS failure, and so on).
    """

    def __init__(self, operation, cause, status=None):
        self.status = status
        errors.GatewayError.__init__(self, operation, cause)


class Client:
    """ Issue requests to a single gateway at *url*, authenticating with the
        API *key*. A :class:`requests.Session` is used so that the underlying
        connection is reused across requests; a preconfigured *session* can
        be supplied instead. The *timeout* is passed through to
        :mod:`requests`; the default of None leaves it to the transport.
    """

    def __init__(self, url, key, timeout=None, session=None):

        self.url = url.rstrip('/')
        self.key = key
        self.timeout = timeout

        if session is None:
            session = requests.Session()

        session.headers[fields.API_KEY_HEADER] = key
        self.session = session


    def close(self):
        self.session.close()


    def _request(self, operation, method, path, body=None, params=None):
        """ Issue one request and return the decoded JSON body. Anything
            short of a 2xx response with a JSON body raises
            :class:`RequestFailed`.
        """

        url = self.url + path
        logger.debug("%s: %s %s", operation, method, url)

        try:
            response = self.session.request(method, url, json=body, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise RequestFailed(operation, e) from e

        try:
            document = response.json()
        except ValueError:
            document = None

        if response.status_code < 200 or response.status_code >= 300:
            raise RequestFailed(operation, _describe(response, document), response.status_code)

        if document is None:
            raise RequestFailed(operation, 'response is not JSON', response.status_code)

        return document


    def health(self):
        return self._request('health', 'GET', fields.HEALTH)


    def handshake(self, transport, target, features):
        """ Submit the desired *transport*, *target*, and *features* (a
            :class:`message.Features` instance).
        """

        body = dict()
        body[fields.TRANSPORT] = getattr(transport, 'value', transport)
        body[fields.TARGET] = target
        body[fields.FEATURES] = features.to_dict()

        return self._request('handshake', 'POST', fields.HANDSHAKE, body)


    def encode(self, session_id, target, payload, require_transcript=True):

        body = dict()
        body[fields.SESSION_ID] = session_id
        body[fields.TARGET] = target
        body[fields.PAYLOAD] = payload
        body[fields.REQUIRE_TRANSCRIPT] = require_transcript

        return self._request('send', 'POST', fields.ENCODE, body)


    def decode(self, bytes_base64):

        body = {fields.BYTES_BASE64: bytes_base64}
        return self._request('decode', 'POST', fields.DECODE, body)


    def transcript(self, msg_id, view=None):

        if view is None:
            params = None
        else:
            params = {fields.VIEW: view}

        path = fields.TRANSCRIPT + urllib.parse.quote(str(msg_id), safe='')
        return self._request('transcript', 'GET', path, params=params)


# end of class Client



def _describe(response, document):
    """ Summarize an unsuccessful response, using the gateway's error body
        if it has one.
    """

    text = "HTTP %d" % (response.status_code)

    if isinstance(document, dict):
        error = document.get(fields.ERROR)
        detail = document.get(fields.MESSAGE)

        if error and detail:
            text += ": %s: %s" % (error, detail)
        elif error or detail:
            text += ': ' + str(error or detail)

    return text


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
