import threading

import gibberlink
from gibberlink import stats
from gibberlink.protocol import message


def success(size=42, latency=0.01):
    outbound = message.OutboundMessage({'op': 'sum'}, 'ws://localhost:9999')
    outbound.msg_id = 'm1'
    outbound.size = size
    return message.DeliveryRecord.success(outbound, latency)


def failure():
    error = gibberlink.errors.SendFailed('send', 'HTTP 500')
    return message.DeliveryRecord.failure(error, 0.2)


def test_empty():

    statistics = stats.Correlator().snapshot()

    assert statistics.sent == 0
    assert statistics.received == 0
    assert statistics.errors == 0
    assert statistics.success_rate == 1.0
    assert statistics.average_latency == 0.0


def test_record():

    correlator = stats.Correlator()

    correlator.record(success(size=100, latency=0.010))
    correlator.record(success(size=50, latency=0.030))
    correlator.record(failure())

    statistics = correlator.snapshot()

    assert statistics.sent == 3
    assert statistics.errors == 1
    assert statistics.successes == 2
    assert statistics.total_bytes == 150

    # Latency and bytes only cover successful sends.

    assert abs(statistics.total_latency - 0.040) < 1e-9
    assert abs(statistics.average_latency - 0.020) < 1e-9
    assert abs(statistics.success_rate - 2 / 3) < 1e-9

    assert len(correlator.records) == 3
    assert correlator.records[2].succeeded == False


def test_snapshot_is_frozen():

    correlator = stats.Correlator()
    before = correlator.snapshot()

    correlator.record(success())

    assert before.sent == 0
    assert correlator.snapshot().sent == 1


def test_events_require_attachment():

    correlator = stats.Correlator()

    assert correlator.record_event({'type': 'recv'}) == False
    assert correlator.snapshot().received == 0

    correlator.attach()
    assert correlator.attached
    assert correlator.record_event({'type': 'recv'}) == True
    assert correlator.record_event({'type': 'recv'}) == True

    correlator.detach()
    assert correlator.record_event({'type': 'late'}) == False

    assert correlator.snapshot().received == 2


def test_received_is_independent_of_sent():

    correlator = stats.Correlator()
    correlator.attach()

    for count in range(5):
        correlator.record_event({'n': count})

    correlator.record(success())

    statistics = correlator.snapshot()
    assert statistics.received == 5
    assert statistics.sent == 1


def test_concurrent_updates():

    correlator = stats.Correlator()
    correlator.attach()

    iterations = 500
    record = success(size=1)

    def sends():
        for count in range(iterations):
            correlator.record(record)

    def events():
        for count in range(iterations):
            correlator.record_event(count)

    threads = list()
    for count in range(4):
        threads.append(threading.Thread(target=sends))
        threads.append(threading.Thread(target=events))

    for thread in threads:
        thread.start()

    for thread in threads:
        thread.join()

    statistics = correlator.snapshot()
    assert statistics.sent == 4 * iterations
    assert statistics.received == 4 * iterations
    assert statistics.total_bytes == 4 * iterations
    assert statistics.errors == 0


def test_format_bytes():

    assert stats.format_bytes(0) == '0B'
    assert stats.format_bytes(512) == '512B'
    assert stats.format_bytes(1024) == '1KB'
    assert stats.format_bytes(1536) == '1.5KB'
    assert stats.format_bytes(1024 * 1024 * 2) == '2MB'
    assert stats.format_bytes(1024 ** 4) == '1024GB'


def test_render():

    statistics = stats.RunStatistics(sent=4, received=3, errors=1, total_latency=0.3, total_bytes=2048)
    lines = stats.render(statistics)

    assert lines[0] == 'Test statistics:'
    assert '   Messages sent: 4' in lines
    assert '   Messages received: 3' in lines
    assert '   Errors: 1' in lines
    assert '   Success rate: 75%' in lines
    assert '   Average latency: 100ms' in lines
    assert '   Total bytes sent: 2KB' in lines


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
