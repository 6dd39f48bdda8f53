""" The test-run orchestrator: bring up a session, issue a bounded sequence
    of paced sends, and report the resulting statistics. Individual sends
    are allowed to fail; an unreachable gateway or a failed handshake ends
    the run.
"""

import enum
import logging
import threading

from . import errors
from . import stats
from .controller import SessionController
from .protocol import message

logger = logging.getLogger(__name__)


class RunState(str, enum.Enum):
    IDLE = 'idle'
    CONNECTING = 'connecting'
    HANDSHAKE_IN_FLIGHT = 'handshake'
    RUNNING = 'running'
    REPORTING = 'reporting'
    DONE = 'done'


class TestRun:
    """ Drive *count* sequential sends of *payload* through *controller*
        (a :class:`SessionController`), pausing *delay* seconds between
        attempts. Arguments left as None are taken from the controller's
        configuration.

        Sends are issued strictly one at a time, so that the latency of each
        one is attributable to a single in-flight request.

        :ivar state: The current :class:`RunState`.
        :ivar history: Every :class:`RunState` entered, in order.
        :ivar statistics: The final :class:`stats.RunStatistics`, once the run
            reaches the REPORTING state.
    """

    # Keep pytest from collecting this class.
    __test__ = False

    def __init__(self, controller, count=None, delay=None, payload=None):

        configuration = controller.config

        if count is None:
            count = configuration.count

        if delay is None:
            delay = configuration.delay

        if payload is None:
            payload = configuration.payload

        count = int(count)
        delay = float(delay)

        if count < 0:
            raise ValueError('count must be zero or more')

        if delay < 0:
            raise ValueError('delay must be zero or more')

        self.controller = controller
        self.count = count
        self.delay = delay
        self.payload = payload

        self.state = RunState.IDLE
        self.history = [RunState.IDLE]
        self.statistics = None
        self.attempted = 0
        self._aborted = threading.Event()


    def abort(self):
        """ Stop the run before the next send. A send already in flight is
            allowed to complete; a pause between sends is cut short.
        """

        self._aborted.set()


    @property
    def aborted(self):
        return self._aborted.is_set()


    def run(self):
        """ Execute the complete run and return the final
            :class:`stats.RunStatistics`. :class:`errors.Unreachable` and
            :class:`errors.HandshakeFailed` propagate to the caller after the
            run moves to DONE. The controller is always closed on the way out.
        """

        try:
            self._enter(RunState.CONNECTING)
            logger.info("connecting to gateway: %s", self.controller.config.url)
            self.controller.check_reachability()

            self._enter(RunState.HANDSHAKE_IN_FLIGHT)
            self.controller.handshake()

            self._enter(RunState.RUNNING)
            self._send_all()

            self._enter(RunState.REPORTING)
            self.statistics = self.controller.correlator.snapshot()

            for line in stats.render(self.statistics):
                logger.info(line)

        except (errors.Unreachable, errors.HandshakeFailed) as e:
            logger.error("run aborted: %s", e)
            raise

        finally:
            self.controller.close()
            self._enter(RunState.DONE)

        return self.statistics


    def _enter(self, state):
        logger.debug("run state: %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)


    def _send_all(self):

        logger.info("starting test with %d messages", self.count)

        for index in range(self.count):
            if self.aborted:
                logger.warning("run aborted after %d of %d messages", index, self.count)
                break

            self.attempted += 1

            try:
                record = self.controller.send(self._payload(index))
            except errors.GatewayError as e:
                logger.error("message %d failed: %s", index + 1, e)
            else:
                if record.succeeded == False:
                    logger.error("message %d failed: %s", index + 1, record.error)

            if index < self.count - 1:
                self._pause()


    def _payload(self, index):
        """ The configured payload, tagged with a 1-based test id and the
            submission time. Payloads that are not JSON objects are sent
            unchanged, and left to the payload policy.
        """

        if isinstance(self.payload, dict):
            payload = dict(self.payload)
            payload['testId'] = index + 1
            payload['timestamp'] = message.timestamp()
            return payload

        return self.payload


    def _pause(self):

        if self.delay > 0:
            self._aborted.wait(self.delay)


# end of class TestRun



def run(configuration, correlator=None):
    """ Convenience wrapper: build a :class:`SessionController` for the
        *configuration* and execute one :class:`TestRun` with it.
    """

    controller = SessionController(configuration, correlator)
    return TestRun(controller).run()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
