"""
Centralized pytest fixtures for RDProbe test suite.

Stub dialers, sockets and decoders that count what the probes do to them.
"""

import threading
import time

import pytest

from rdprobe.core.probes import RDPProber
from rdprobe.core.runs import DialerRegistry


RUN_ID = "run-test-1"


class StubSocket:
    def __init__(self, address):
        self.address = address
        self.close_calls = 0
        self.shutdown_calls = 0

    def close(self):
        self.close_calls += 1

    def shutdown(self, _how):
        self.shutdown_calls += 1


class StubDialer:
    """Dialer that hands out StubSockets, or raises ``error`` if set."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []
        self.sockets = []
        self._lock = threading.Lock()

    def dial(self, network, address, timeout):
        with self._lock:
            self.calls.append((network, address, timeout))
        if self.error is not None:
            raise self.error
        sock = StubSocket(address)
        with self._lock:
            self.sockets.append(sock)
        return sock


class StubDecoder:
    """Decoder with fixed answers, optional latency and invocation counters."""

    def __init__(
        self,
        presence=("", False),
        auth=(None, False),
        delay=0.0,
        error=None,
    ):
        self.presence = presence
        self.auth = auth
        self.delay = delay
        self.error = error
        self.presence_calls = 0
        self.auth_calls = 0
        self.seen_timeouts = []
        self._lock = threading.Lock()

    def _answer(self, counter, answer, timeout):
        with self._lock:
            setattr(self, counter, getattr(self, counter) + 1)
            self.seen_timeouts.append(timeout)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return answer

    def detect_rdp(self, conn, timeout):
        return self._answer("presence_calls", self.presence, timeout)

    def detect_rdp_auth(self, conn, timeout):
        return self._answer("auth_calls", self.auth, timeout)


@pytest.fixture
def run_id():
    return RUN_ID


@pytest.fixture
def dialer():
    return StubDialer()


@pytest.fixture
def registry(dialer):
    reg = DialerRegistry()
    reg.register(RUN_ID, dialer)
    return reg


@pytest.fixture
def make_prober(registry):
    """Factory fixture: RDPProber over the shared registry with a given decoder."""

    def _factory(decoder, **kwargs):
        return RDPProber(registry, decoder, **kwargs)

    return _factory


@pytest.fixture
def stub_decoder():
    """The StubDecoder class, for tests that build their own decoders."""
    return StubDecoder


@pytest.fixture
def stub_dialer():
    """The StubDialer class, for tests that need extra runs or failing dialers."""
    return StubDialer
