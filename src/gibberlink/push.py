""" The push channel: an asynchronous event stream scoped to one session,
    independent of the request/response control channel. A
    :class:`PushChannel` is a single-use state machine::

        UNCONNECTED -> CONNECTING -> OPEN -> CLOSED
                            |          |
                            +----------+---> FAILED

    A channel that is CLOSED or FAILED stays that way; there is no automatic
    reconnection. A new handshake brings up a new channel.
"""

import enum
import logging
import queue
import threading

from . import errors
from . import json
from . import transport
from . import weakref

logger = logging.getLogger(__name__)


class PushState(str, enum.Enum):
    UNCONNECTED = 'unconnected'
    CONNECTING = 'connecting'
    OPEN = 'open'
    CLOSED = 'closed'
    FAILED = 'failed'


_transitions = dict()
_transitions[PushState.UNCONNECTED] = set((PushState.CONNECTING, PushState.CLOSED))
_transitions[PushState.CONNECTING] = set((PushState.OPEN, PushState.FAILED, PushState.CLOSED))
_transitions[PushState.OPEN] = set((PushState.CLOSED, PushState.FAILED))
_transitions[PushState.CLOSED] = set()
_transitions[PushState.FAILED] = set()

events = ('open', 'message', 'close', 'error')

_end = object()


class Subscription:
    """ A lazy, non-terminating sequence of inbound events. Iterating blocks
        until the next event arrives; the iteration ends when the subscription
        is cancelled via :func:`unsubscribe`, or when the channel closes or
        fails. A :class:`Subscription` can also be used as a context manager,
        which unsubscribes on exit.
    """

    def __init__(self, channel):

        self.channel = channel
        self.active = True
        self._queue = queue.SimpleQueue()


    def __iter__(self):
        return self


    def __next__(self):

        event = self._queue.get()

        if event is _end:
            self._queue.put(_end)
            raise StopIteration

        return event


    def __enter__(self):
        return self


    def __exit__(self, *exc_info):
        self.unsubscribe()


    def get(self, timeout=None):
        """ Return the next event, waiting at most *timeout* seconds.
            :class:`queue.Empty` is raised on timeout, and immediately once
            the subscription has ended.
        """

        event = self._queue.get(timeout=timeout)

        if event is _end:
            self._queue.put(_end)
            raise queue.Empty

        return event


    def unsubscribe(self):
        self.channel._remove(self)
        self._end()


    def _put(self, event):
        if self.active:
            self._queue.put(event)


    def _end(self):
        if self.active:
            self.active = False
            self._queue.put(_end)


# end of class Subscription



class PushChannel:
    """ Supervise the push channel for the session identified by
        *session_id*, using the supplied :class:`transport.Transport`. The
        channel only holds the identifier; it never modifies the session.

        Inbound events are decoded as JSON and delivered to every callback
        registered for 'message', and to every active :class:`Subscription`.
        Malformed payloads are logged and dropped. Handlers run on the
        channel's receiver thread and should return quickly.

        Outbound events are best-effort: :func:`send` only enqueues, and a
        separate sender thread transmits. Outbound failures are logged and
        counted in :attr:`mirror_failures`; they never change the channel
        state on their own.
    """

    join_timeout = 1.0

    def __init__(self, session_id, transport):

        self.session_id = session_id
        self.transport = transport
        self.mirror_failures = 0

        self._state = PushState.UNCONNECTED
        self._lock = threading.Lock()
        self._closing = False
        self._callbacks = dict()
        self._subscriptions = list()
        self._outbox = queue.SimpleQueue()

        for event in events:
            self._callbacks[event] = list()

        self.receiver = None
        self.sender = None


    @property
    def state(self):
        return self._state


    @property
    def is_open(self):
        return self._state is PushState.OPEN and self._closing == False


    def register(self, callback, event='message'):
        """ Register a *callback* to be invoked for every *event*, one of
            'open', 'message' (called with the decoded event), 'close', or
            'error' (called with a :class:`errors.PushChannelError`). Only a
            weak reference to the callback is retained.
        """

        if callable(callback):
            pass
        else:
            raise TypeError('callback must be callable')

        if event not in events:
            raise ValueError('unknown push channel event: ' + repr(event))

        reference = weakref.ref(callback)

        with self._lock:
            self._callbacks[event].append(reference)


    def unregister(self, callback, event='message'):

        with self._lock:
            references = self._callbacks[event]
            for reference in list(references):
                if reference() == callback:
                    references.remove(reference)


    def subscribe(self):
        """ Return a new :class:`Subscription` to inbound events. Subscribing
            to a channel that has already closed or failed returns a
            subscription that is already exhausted.
        """

        subscription = Subscription(self)

        with self._lock:
            terminal = self._closing or self._state in (PushState.CLOSED, PushState.FAILED)
            if terminal == False:
                self._subscriptions.append(subscription)

        if terminal:
            subscription._end()

        return subscription


    def open(self):
        """ Connect the transport and start the background threads. Raises
            :class:`errors.PushChannelError` if the transport cannot connect,
            in which case the channel is FAILED.
        """

        if self._transition(PushState.CONNECTING) == False:
            raise errors.PushChannelError('push', "cannot open a channel in state '%s'" % (self._state.value))

        logger.debug("push %s: connecting", self.session_id)

        try:
            self.transport.open()
        except transport.TransportError as e:
            self._finish(PushState.FAILED, e)
            raise errors.PushChannelError('push', e) from e

        if self._transition(PushState.OPEN) == False:
            # close() got here first.
            self.transport.close()
            raise errors.PushChannelError('push', 'closed while connecting')

        self.receiver = threading.Thread(target=self._receive, daemon=True)
        self.sender = threading.Thread(target=self._send, daemon=True)
        self.receiver.start()
        self.sender.start()

        logger.info("push %s: connected", self.session_id)
        self._fire('open')


    def send(self, event):
        """ Enqueue *event* for best-effort delivery. Returns True if the
            event was queued, False if the channel is not open. Never blocks.
        """

        if self.is_open:
            self._outbox.put(event)
            return True

        return False


    def close(self):
        """ Tear down the channel regardless of its state. Events that arrive
            after this call are not delivered. Calling it again is a no-op.
        """

        with self._lock:
            if self._closing:
                return
            self._closing = True
            subscriptions = list(self._subscriptions)
            self._subscriptions = list()

        for subscription in subscriptions:
            subscription._end()

        self._outbox.put(_end)
        self._join(self.sender)

        try:
            self.transport.close()
        except transport.TransportError as e:
            logger.warning("push %s: error while closing: %s", self.session_id, e)

        self._join(self.receiver)

        if self._transition(PushState.CLOSED):
            logger.info("push %s: closed", self.session_id)
            self._fire('close')


    def _join(self, thread):

        if thread is None or thread is threading.current_thread():
            return

        thread.join(self.join_timeout)


    def _transition(self, new_state):
        """ Move to *new_state* if that is a legal transition from the
            current state. Returns True if the state changed.
        """

        with self._lock:
            if new_state in _transitions[self._state]:
                self._state = new_state
                return True

        return False


    def _finish(self, new_state, cause=None):
        """ Handle a remote close (CLOSED) or a transport error (FAILED).
            A local :func:`close` takes precedence over both.
        """

        if self._closing:
            return

        if self._transition(new_state) == False:
            return

        self._outbox.put(_end)

        with self._lock:
            subscriptions = list(self._subscriptions)
            self._subscriptions = list()

        for subscription in subscriptions:
            subscription._end()

        if new_state is PushState.FAILED:
            error = errors.PushChannelError('push', cause)
            logger.error("push %s: %s", self.session_id, error)
            self._fire('error', error)
        else:
            logger.info("push %s: closed by remote", self.session_id)
            self._fire('close')


    def _fire(self, event, *args):
        """ Invoke any/all callbacks registered via :func:`register` for
            the *event*. An exception raised by one callback is logged and
            does not prevent the others from running.
        """

        with self._lock:
            references = list(self._callbacks[event])

        invalid = list()

        for reference in references:
            callback = reference()

            if callback is None:
                invalid.append(reference)
                continue

            try:
                callback(*args)
            except Exception:
                logger.exception("push %s: '%s' callback failed", self.session_id, event)

        if invalid:
            with self._lock:
                for reference in invalid:
                    try:
                        self._callbacks[event].remove(reference)
                    except ValueError:
                        pass


    def _receive(self):
        """ This is the 'main' method for the receiver thread. It runs until
            the transport closes or fails.
        """

        while True:
            try:
                raw = self.transport.recv()
            except transport.TransportClosed:
                self._finish(PushState.CLOSED)
                return
            except transport.TransportError as e:
                self._finish(PushState.FAILED, e)
                return

            if self._closing:
                return

            try:
                event = json.loads(raw)
            except ValueError as e:
                logger.warning("push %s: dropping malformed event: %s", self.session_id, e)
                continue

            self._deliver(event)


    def _deliver(self, event):

        if self._closing:
            return

        self._fire('message', event)

        with self._lock:
            subscriptions = list(self._subscriptions)

        for subscription in subscriptions:
            subscription._put(event)


    def _remove(self, subscription):

        with self._lock:
            try:
                self._subscriptions.remove(subscription)
            except ValueError:
                pass


    def _send(self):
        """ This is the 'main' method for the sender thread, draining the
            outbox until the channel goes away.
        """

        while True:
            event = self._outbox.get()

            if event is _end:
                return

            try:
                self.transport.send(json.dumps_text(event))
            except (transport.TransportError, TypeError, ValueError) as e:
                with self._lock:
                    self.mirror_failures += 1
                logger.warning("push %s: outbound event dropped: %s", self.session_id, e)


# end of class PushChannel



def channel(configuration, session):
    """ Factory for a :class:`PushChannel` for the given *session*, using the
        push backend named in the *configuration*.
    """

    return PushChannel(session.id, transport.client(configuration, session.id))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
