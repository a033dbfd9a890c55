#!/usr/bin/env python3
"""
RDProbe - Bounded Connection Acquirer
Copyright (C) 2026  Dorin Badea
GPLv3 License

One probe, one connection: ``bounded_connection`` dials through the run's
dialer with a fixed deadline and closes the stream when the block exits,
whatever happened inside it. Connections are never reused.
"""

from __future__ import annotations

import logging
import socket
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Set

from rdprobe.core.dialer import Dialer, join_host_port
from rdprobe.utils.constants import DEFAULT_PROBE_TIMEOUT

logger = logging.getLogger("rdprobe.connection")


class ConnectionTracker:
    """Open connections grouped by run, so a cancelled run can abort them."""

    def __init__(self):
        self._lock = threading.Lock()
        self._active: Dict[str, Set[Any]] = {}

    def add(self, run_id: str, conn: Any) -> None:
        with self._lock:
            self._active.setdefault(run_id, set()).add(conn)

    def discard(self, run_id: str, conn: Any) -> None:
        with self._lock:
            conns = self._active.get(run_id)
            if conns is None:
                return
            conns.discard(conn)
            if not conns:
                del self._active[run_id]

    def active(self, run_id: str) -> int:
        with self._lock:
            return len(self._active.get(run_id, ()))

    def abort(self, run_id: str) -> int:
        """
        Shut down every open connection of a run.

        Blocked reads on those sockets return immediately; the owning probe
        still closes its socket on the way out.

        Returns:
            Number of connections shut down
        """
        with self._lock:
            conns = list(self._active.get(run_id, ()))
        aborted = 0
        for conn in conns:
            shutdown = getattr(conn, "shutdown", None)
            if not callable(shutdown):
                continue
            try:
                shutdown(socket.SHUT_RDWR)
                aborted += 1
            except OSError as exc:
                logger.debug("shutdown during abort failed: %s", exc)
        return aborted


def _close(conn: Any, address: str) -> None:
    try:
        conn.close()
    except OSError as exc:
        logger.debug("close %s failed: %s", address, exc)


@contextmanager
def bounded_connection(
    dialer: Dialer,
    host: str,
    port: int,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
    *,
    tracker: Optional[ConnectionTracker] = None,
    run_id: Optional[str] = None,
) -> Iterator[Any]:
    """
    Open exactly one TCP stream to ``host:port`` and close it on exit.

    Dialer errors propagate unchanged and nothing is yielded. Once the dial
    succeeds the stream is closed exactly once, on success, on decoder error
    and on any other exception.
    """
    address = join_host_port(host, port)
    conn = dialer.dial("tcp", address, timeout)
    tracked = tracker is not None and run_id is not None
    if tracked:
        tracker.add(run_id, conn)
    try:
        yield conn
    finally:
        if tracked:
            tracker.discard(run_id, conn)
        _close(conn, address)
