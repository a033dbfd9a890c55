#!/usr/bin/env python3
"""
RDProbe - Bounded connection tests.
"""

import pytest

from rdprobe.core.connection import ConnectionTracker, bounded_connection
from rdprobe.core.errors import DialFailure


def test_yields_dialed_stream_and_closes_it(dialer):
    with bounded_connection(dialer, "10.0.0.5", 3389, 2.0) as conn:
        assert conn.close_calls == 0
    assert conn.close_calls == 1
    assert dialer.calls == [("tcp", "10.0.0.5:3389", 2.0)]


def test_closes_stream_when_block_raises(dialer):
    with pytest.raises(RuntimeError):
        with bounded_connection(dialer, "10.0.0.5", 3389) as conn:
            raise RuntimeError("decoder blew up")
    assert conn.close_calls == 1


def test_dial_failure_yields_nothing(stub_dialer):
    failing = stub_dialer(error=DialFailure("h:1", "refused"))
    entered = []
    with pytest.raises(DialFailure):
        with bounded_connection(failing, "h", 1):
            entered.append(True)
    assert entered == []
    assert failing.sockets == []


def test_close_error_is_not_raised(dialer):
    class _BadClose:
        def close(self):
            raise OSError("already closed")

    dialer.dial = lambda network, address, timeout: _BadClose()
    with bounded_connection(dialer, "10.0.0.5", 3389):
        pass


def test_tracker_registers_for_duration_of_block(dialer):
    tracker = ConnectionTracker()
    with bounded_connection(dialer, "10.0.0.5", 3389, tracker=tracker, run_id="r1"):
        assert tracker.active("r1") == 1
    assert tracker.active("r1") == 0


def test_tracker_abort_shuts_down_open_connections(dialer):
    tracker = ConnectionTracker()
    with bounded_connection(dialer, "10.0.0.5", 3389, tracker=tracker, run_id="r1") as conn:
        assert tracker.abort("r1") == 1
        assert tracker.abort("other") == 0
        assert conn.shutdown_calls == 1
    assert conn.close_calls == 1


def test_tracker_abort_skips_objects_without_shutdown():
    tracker = ConnectionTracker()
    tracker.add("r1", object())
    assert tracker.abort("r1") == 0
