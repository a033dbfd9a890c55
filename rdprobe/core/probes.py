#!/usr/bin/env python3
"""
RDProbe - RDP Probes
Copyright (C) 2026  Dorin Badea
GPLv3 License

Presence and authentication probes, memoized per (run, host, port, kind).

Both probes walk the same path:
    NotStarted -> DialerResolved -> Connected -> Decoded -> Success | Failure
A failing step goes straight to Failure; the connection is already closed by
then. Negative detections are results, failures are exceptions.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, Set, Tuple

from rdprobe.core.connection import ConnectionTracker, bounded_connection
from rdprobe.core.decoders import RDPDecoder
from rdprobe.core.dialer import Dialer
from rdprobe.core.errors import ProbeCancelled, RunNotInitialized
from rdprobe.core.memo import FailurePolicy, RunScopedCache
from rdprobe.core.models import AuthResult, PresenceResult, ProbeKey, ProbeKind
from rdprobe.core.runs import DialerRegistry
from rdprobe.utils.constants import DEFAULT_PROBE_TIMEOUT

logger = logging.getLogger("rdprobe.probes")


class RDPProber:
    """
    Run-scoped RDP prober.

    Usage:
        registry = DialerRegistry()
        registry.register(run_id, TCPDialer())
        prober = RDPProber(registry, decoder)
        presence = prober.probe_presence(run_id, "10.0.0.5", 3389)
        ...
        prober.end_run(run_id)
    """

    def __init__(
        self,
        registry: DialerRegistry,
        decoder: RDPDecoder,
        *,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        failure_policy: FailurePolicy = FailurePolicy.CACHE,
        tracker: Optional[ConnectionTracker] = None,
    ):
        self.registry = registry
        self.decoder = decoder
        self.timeout = float(timeout)
        self.failure_policy = FailurePolicy.parse(failure_policy)
        self._cache: RunScopedCache[ProbeKey, Any] = RunScopedCache(self.failure_policy)
        self._tracker = tracker or ConnectionTracker()
        self._cancel_lock = threading.Lock()
        self._cancelled: Set[str] = set()

    # ---------- Public operations ----------

    def probe_presence(self, run_id: str, host: str, port: int) -> PresenceResult:
        """
        Check whether ``host:port`` runs an RDP server and which OS it reports.

        Raises:
            RunNotInitialized: no dialer is registered for ``run_id``
            ProbeCancelled: the run was cancelled
            Any dialer or decoder error, unchanged
        """
        key = ProbeKey(run_id, host, port, ProbeKind.PRESENCE)
        return self._cache.get_or_compute(run_id, key, lambda: self._is_rdp(run_id, host, port))

    def probe_auth(self, run_id: str, host: str, port: int) -> AuthResult:
        """
        Check whether the RDP server on ``host:port`` requires authentication,
        returning its service metadata when it does.

        Raises:
            Same as ``probe_presence``.
        """
        key = ProbeKey(run_id, host, port, ProbeKind.AUTH)
        return self._cache.get_or_compute(
            run_id, key, lambda: self._check_rdp_auth(run_id, host, port)
        )

    is_rdp = probe_presence
    check_rdp_auth = probe_auth

    # ---------- Run lifecycle ----------

    def cancel_run(self, run_id: str) -> None:
        """Fail current and future probes of a run and abort its open connections."""
        with self._cancel_lock:
            self._cancelled.add(run_id)
        aborted = self._tracker.abort(run_id)
        logger.info("Run %s cancelled (%d connections aborted)", run_id, aborted)

    def is_cancelled(self, run_id: str) -> bool:
        with self._cancel_lock:
            return run_id in self._cancelled

    def end_run(self, run_id: str) -> None:
        """Forget everything cached for a finished run."""
        self._cache.discard_run(run_id)
        with self._cancel_lock:
            self._cancelled.discard(run_id)

    # ---------- Probe bodies ----------

    def _resolve_dialer(self, run_id: str) -> Dialer:
        dialer = self.registry.resolve(run_id)
        if dialer is None:
            raise RunNotInitialized(run_id)
        return dialer

    def _run_probe(
        self,
        run_id: str,
        host: str,
        port: int,
        kind: ProbeKind,
        decode: Callable[[Any, float], Tuple[Any, bool]],
    ) -> Tuple[Any, bool]:
        if self.is_cancelled(run_id):
            raise ProbeCancelled(run_id)
        dialer = self._resolve_dialer(run_id)
        logger.debug("%s %s:%s dialer resolved (run %s)", kind.value, host, port, run_id)
        try:
            with bounded_connection(
                dialer, host, port, self.timeout, tracker=self._tracker, run_id=run_id
            ) as conn:
                # The stream is tracked by now, so a later cancel_run aborts it
                if self.is_cancelled(run_id):
                    raise ProbeCancelled(run_id, "cancelled before decoding")
                logger.debug("%s %s:%s connected", kind.value, host, port)
                detail, detected = decode(conn, self.timeout)
        except ProbeCancelled:
            raise
        except Exception as exc:
            if self.is_cancelled(run_id):
                raise ProbeCancelled(run_id, str(exc)) from exc
            logger.debug("%s %s:%s failed: %s", kind.value, host, port, exc)
            raise
        # A decoder reading EOF from an aborted stream may still answer "not RDP"
        if self.is_cancelled(run_id):
            raise ProbeCancelled(run_id, "cancelled during decoding")
        logger.debug("%s %s:%s decoded: %s", kind.value, host, port, bool(detected))
        return detail, bool(detected)

    def _is_rdp(self, run_id: str, host: str, port: int) -> PresenceResult:
        server, is_rdp = self._run_probe(
            run_id, host, port, ProbeKind.PRESENCE, self.decoder.detect_rdp
        )
        if not is_rdp:
            return PresenceResult()
        return PresenceResult(is_rdp=True, os_label=str(server or ""))

    def _check_rdp_auth(self, run_id: str, host: str, port: int) -> AuthResult:
        plugin_info, auth = self._run_probe(
            run_id, host, port, ProbeKind.AUTH, self.decoder.detect_rdp_auth
        )
        if not auth:
            return AuthResult()
        return AuthResult(auth_required=True, service_info=plugin_info)
