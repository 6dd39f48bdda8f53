""" Delivery correlation and run statistics. A :class:`Correlator` has two
    independent producers: completed send attempts, each reported as exactly
    one :class:`DeliveryRecord`, and push channel events. It counts what
    happened on each channel; it does not attempt to prove that a given push
    event corresponds to a given send.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, List, Tuple

from .protocol.message import DeliveryRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunStatistics:
    """ Read-only snapshot of a :class:`Correlator`. The *total_latency* and
        *total_bytes* only include successful sends; *received* counts push
        channel events, which may be more or fewer than *sent*.
    """

    sent: int = 0
    received: int = 0
    errors: int = 0
    total_latency: float = 0.0
    total_bytes: int = 0

    @property
    def successes(self) -> int:
        return self.sent - self.errors

    @property
    def success_rate(self) -> float:
        """ Fraction of send attempts that succeeded; 1.0 if nothing was sent.
        """

        if self.sent == 0:
            return 1.0
        return self.successes / self.sent

    @property
    def average_latency(self) -> float:
        if self.successes == 0:
            return 0.0
        return self.total_latency / self.successes


class Correlator:
    """ Accumulates :class:`RunStatistics` from both channels. Every counter
        only ever increases, and every mutation happens under one lock, so
        increments from the send path and from the push channel's receiver
        thread are never lost.

        Push events are only counted while the correlator is attached to a
        live session; :func:`detach` is called when the session closes, after
        which late-arriving events are ignored.
    """

    def __init__(self):

        self._lock = threading.Lock()
        self._records: List[DeliveryRecord] = list()
        self._attached = False

        self._sent = 0
        self._received = 0
        self._errors = 0
        self._total_latency = 0.0
        self._total_bytes = 0


    @property
    def attached(self) -> bool:
        return self._attached


    def attach(self) -> None:
        with self._lock:
            self._attached = True


    def detach(self) -> None:
        with self._lock:
            self._attached = False


    def record(self, record: DeliveryRecord) -> None:
        """ Account for one completed send attempt. Called exactly once per
            attempt, and only once the outcome is known.
        """

        with self._lock:
            self._records.append(record)
            self._sent += 1

            if record.succeeded:
                self._total_latency += record.latency
                self._total_bytes += record.size
            else:
                self._errors += 1


    def record_event(self, event: Any) -> bool:
        """ Account for one push channel event. Returns False, and changes
            nothing, if the correlator is not attached.
        """

        with self._lock:
            if self._attached == False:
                return False
            self._received += 1

        logger.info("received: %s", event)
        return True


    @property
    def records(self) -> Tuple[DeliveryRecord, ...]:
        with self._lock:
            return tuple(self._records)


    def snapshot(self) -> RunStatistics:
        with self._lock:
            return RunStatistics(
                sent=self._sent,
                received=self._received,
                errors=self._errors,
                total_latency=self._total_latency,
                total_bytes=self._total_bytes,
            )


# end of class Correlator



def format_bytes(count):
    """ Human-readable byte count: 0B, 512B, 1.5KB, 2MB, and so on.
    """

    if count <= 0:
        return '0B'

    sizes = ('B', 'KB', 'MB', 'GB')
    index = 0
    while count >= 1024 ** (index + 1) and index < len(sizes) - 1:
        index += 1

    value = round(count / (1024 ** index), 1)

    if value == int(value):
        value = int(value)

    return str(value) + sizes[index]



def render(statistics):
    """ Return the report for a :class:`RunStatistics` snapshot as a list
        of lines.
    """

    lines = list()
    lines.append('Test statistics:')
    lines.append("   Messages sent: %d" % (statistics.sent))
    lines.append("   Messages received: %d" % (statistics.received))
    lines.append("   Errors: %d" % (statistics.errors))
    lines.append("   Success rate: %d%%" % (round(statistics.success_rate * 100)))
    lines.append("   Average latency: %dms" % (round(statistics.average_latency * 1000)))
    lines.append("   Total bytes sent: " + format_bytes(statistics.total_bytes))

    return lines


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
