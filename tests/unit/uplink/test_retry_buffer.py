"""Unit tests for the bounded drop-oldest RetryBuffer."""

import threading

import pytest

from telemetry_uplink.uplink.retry_buffer import BufferedFix, RetryBuffer
from tests.infrastructure.helpers import make_fix, make_fixes


class TestRetryBufferCapacity:
    """Capacity and eviction behaviour."""

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            RetryBuffer(0)

    def test_overflow_keeps_newest(self):
        """C=3, enqueue F1..F5 leaves [F3, F4, F5]."""
        buffer = RetryBuffer(3)
        f1, f2, f3, f4, f5 = make_fixes(5)

        evicted = [buffer.enqueue(f) for f in (f1, f2, f3, f4, f5)]

        assert evicted == [None, None, None, f1, f2]
        assert buffer.snapshot() == [f3, f4, f5]
        assert buffer.evicted == 2

    def test_never_exceeds_capacity(self):
        buffer = RetryBuffer(4)
        for fix in make_fixes(20):
            buffer.enqueue(fix)
            assert len(buffer) <= 4
        assert buffer.is_full

    def test_evicts_exactly_the_oldest(self):
        buffer = RetryBuffer(2)
        fixes = make_fixes(3)
        buffer.enqueue(fixes[0])
        buffer.enqueue(fixes[1])

        assert buffer.enqueue(fixes[2]) is fixes[0]
        assert buffer.snapshot() == fixes[1:]


class TestRetryBufferDrain:
    """Draining is FIFO, finite and destructive."""

    def test_drain_yields_oldest_first(self):
        buffer = RetryBuffer(10)
        fixes = make_fixes(4)
        for fix in fixes:
            buffer.enqueue(fix)

        assert list(buffer.drain()) == fixes
        assert len(buffer) == 0

    def test_second_drain_is_empty(self):
        buffer = RetryBuffer(10)
        for fix in make_fixes(3):
            buffer.enqueue(fix)

        list(buffer.drain())
        assert list(buffer.drain()) == []

    def test_partial_drain_leaves_rest(self):
        buffer = RetryBuffer(10)
        fixes = make_fixes(4)
        for fix in fixes:
            buffer.enqueue(fix)

        drain = buffer.drain()
        assert next(drain) == fixes[0]
        assert buffer.snapshot() == fixes[1:]

    def test_drain_stops_at_entries_present_when_started(self):
        buffer = RetryBuffer(10)
        fixes = make_fixes(3)
        for fix in fixes:
            buffer.enqueue(fix)

        drained = []
        late = make_fixes(3, start=10)
        for fix, newcomer in zip(buffer.drain(), late):
            drained.append(fix)
            buffer.enqueue(newcomer)

        assert drained == fixes
        assert buffer.snapshot() == late

    def test_clear_reports_count(self):
        buffer = RetryBuffer(10)
        for fix in make_fixes(3):
            buffer.enqueue(fix)
        assert buffer.clear() == 3
        assert not buffer


class TestRetryBufferRequeue:
    """Failed transmissions go back to the front."""

    def test_requeue_restores_position(self):
        buffer = RetryBuffer(5)
        fixes = make_fixes(3)
        for fix in fixes:
            buffer.enqueue(fix)

        entry = buffer.pop_oldest()
        assert entry.fix == fixes[0]
        assert buffer.requeue_front(entry) is None
        assert buffer.snapshot() == fixes

    def test_requeue_into_full_buffer_drops_entry(self):
        buffer = RetryBuffer(2)
        fixes = make_fixes(3)
        buffer.enqueue(fixes[0])
        entry = buffer.pop_oldest()
        buffer.enqueue(fixes[1])
        buffer.enqueue(fixes[2])

        assert buffer.requeue_front(entry) == fixes[0]
        assert buffer.snapshot() == fixes[1:]

    def test_pop_oldest_on_empty(self):
        assert RetryBuffer(1).pop_oldest() is None


class TestRetryBufferAge:

    def test_oldest_age_uses_clock(self):
        now = [100.0]
        buffer = RetryBuffer(5, clock=lambda: now[0])
        assert buffer.oldest_age() is None

        buffer.enqueue(make_fix(1))
        now[0] = 103.5
        buffer.enqueue(make_fix(2))
        assert buffer.oldest_age() == pytest.approx(3.5)

    def test_buffered_fix_records_enqueue_time(self):
        buffer = RetryBuffer(5, clock=lambda: 42.0)
        buffer.enqueue(make_fix(1))
        entry = buffer.pop_oldest()
        assert isinstance(entry, BufferedFix)
        assert entry.enqueued_at == 42.0


class TestRetryBufferThreading:

    def test_concurrent_enqueue_respects_capacity(self):
        """Producers on several threads never push the buffer past capacity."""
        buffer = RetryBuffer(50)
        fixes = make_fixes(200)

        def producer(chunk):
            for fix in chunk:
                buffer.enqueue(fix)

        threads = [threading.Thread(target=producer, args=(fixes[i::4],)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(buffer) == 50
        assert buffer.evicted == 150
