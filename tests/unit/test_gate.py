"""
Unit tests for the connection gate.
"""

import random
import threading
import time

import pytest

from minihttpd.core.gate import ConnectionGate


class TestConnectionGate:
    """Tests for ConnectionGate."""

    def test_admits_up_to_limit(self):
        gate = ConnectionGate(max_connections=3)

        assert [gate.try_acquire() for _ in range(4)] == [True, True, True, False]
        assert gate.in_use == 3
        assert gate.available == 0

    def test_reject_has_no_side_effect(self):
        gate = ConnectionGate(max_connections=1)
        gate.try_acquire()

        assert gate.try_acquire() is False
        assert gate.in_use == 1

    def test_release_frees_slot(self):
        gate = ConnectionGate(max_connections=1)
        assert gate.try_acquire()

        gate.release()

        assert gate.in_use == 0
        assert gate.try_acquire()

    def test_release_without_acquire_raises(self):
        gate = ConnectionGate(max_connections=2)

        with pytest.raises(RuntimeError):
            gate.release()

        assert gate.in_use == 0

    @pytest.mark.parametrize("limit", [0, -1])
    def test_invalid_limit(self, limit):
        with pytest.raises(ValueError):
            ConnectionGate(max_connections=limit)

    def test_peak_tracks_high_water_mark(self):
        gate = ConnectionGate(max_connections=5)
        for _ in range(3):
            gate.try_acquire()
        for _ in range(3):
            gate.release()

        assert gate.in_use == 0
        assert gate.peak == 3

    def test_concurrent_hammer_never_exceeds_limit(self):
        """
        Many threads acquiring and releasing at once: the count never goes
        above the limit and ends balanced at zero.
        """
        gate = ConnectionGate(max_connections=4)
        over_limit = []
        admitted = []
        start = threading.Event()

        def worker():
            start.wait()
            for _ in range(200):
                if gate.try_acquire():
                    admitted.append(1)
                    if gate.in_use > gate.max_connections:
                        over_limit.append(gate.in_use)
                    time.sleep(random.random() / 10000)
                    gate.release()

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        start.set()
        for t in threads:
            t.join(timeout=30)

        assert over_limit == []
        assert admitted
        assert gate.in_use == 0
        assert 1 <= gate.peak <= 4

    def test_repr(self):
        gate = ConnectionGate(max_connections=2)
        gate.try_acquire()
        assert repr(gate) == "ConnectionGate(in_use=1, max_connections=2)"
