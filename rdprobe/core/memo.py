#!/usr/bin/env python3
"""
RDProbe - Memoized Probe Executor
Copyright (C) 2026  Dorin Badea
GPLv3 License

Single-flight result cache scoped to a scan run.

Each key owns one ``concurrent.futures.Future`` slot. The first caller to claim
a slot runs the computation and publishes its outcome (value or exception);
every other caller for that key waits on the same slot and receives the same
outcome. The lock only guards the claim of a slot and is never held while a
computation runs, so distinct keys proceed in parallel.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from enum import Enum
from typing import Callable, Dict, Generic, Hashable, List, TypeVar

from rdprobe.core.errors import ProbeCancelled

logger = logging.getLogger("rdprobe.memo")

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class FailurePolicy(str, Enum):
    """What happens to a key whose computation raised.

    CACHE keeps the failure for the rest of the run, so an unreachable host is
    not probed again. RETRY hands the failure to the callers already waiting
    and then forgets it, so the next call probes again.
    """

    CACHE = "cache"
    RETRY = "retry"

    @classmethod
    def parse(cls, value) -> "FailurePolicy":
        if isinstance(value, cls):
            return value
        token = str(value or "").strip().lower()
        for member in cls:
            if member.value == token:
                return member
        raise ValueError(f"unknown failure policy: {value!r}")


class SingleFlightCache(Generic[K, V]):
    """Keyed cache that runs each computation at most once."""

    def __init__(self, failure_policy: FailurePolicy = FailurePolicy.CACHE):
        self.failure_policy = FailurePolicy.parse(failure_policy)
        self._lock = threading.Lock()
        self._slots: Dict[K, Future] = {}

    def get_or_compute(self, key: K, compute: Callable[[], V]) -> V:
        """
        Return the outcome for ``key``, running ``compute`` only if no caller
        has claimed the key yet.

        Raises:
            Whatever ``compute`` raised, to the owner and to every waiter.
        """
        with self._lock:
            slot = self._slots.get(key)
            owner = slot is None
            if owner:
                slot = Future()
                self._slots[key] = slot

        if not owner:
            if slot.done():
                logger.debug("cache hit: %s", key)
            else:
                logger.debug("waiting on in-flight probe: %s", key)
            return slot.result()

        try:
            value = compute()
        except BaseException as exc:
            slot.set_exception(exc)
            if self._should_evict(exc):
                self._evict(key, slot)
            raise
        slot.set_result(value)
        return value

    def _should_evict(self, exc: BaseException) -> bool:
        # Interrupts and cancellations are not outcomes of the target.
        if isinstance(exc, ProbeCancelled) or not isinstance(exc, Exception):
            return True
        return self.failure_policy is FailurePolicy.RETRY

    def _evict(self, key: K, slot: Future) -> None:
        with self._lock:
            if self._slots.get(key) is slot:
                del self._slots[key]

    def __contains__(self, key: object) -> bool:
        with self._lock:
            slot = self._slots.get(key)  # type: ignore[arg-type]
        return slot is not None and slot.done()

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def clear(self) -> None:
        with self._lock:
            self._slots.clear()


class RunScopedCache(Generic[K, V]):
    """
    ``SingleFlightCache`` instances indexed by run identity.

    Entries live until ``discard_run`` is called for their run; there is no
    TTL or size bound.
    """

    def __init__(self, failure_policy: FailurePolicy = FailurePolicy.CACHE):
        self.failure_policy = FailurePolicy.parse(failure_policy)
        self._lock = threading.Lock()
        self._runs: Dict[str, SingleFlightCache[K, V]] = {}

    def for_run(self, run_id: str) -> SingleFlightCache[K, V]:
        with self._lock:
            cache = self._runs.get(run_id)
            if cache is None:
                cache = SingleFlightCache(self.failure_policy)
                self._runs[run_id] = cache
            return cache

    def get_or_compute(self, run_id: str, key: K, compute: Callable[[], V]) -> V:
        return self.for_run(run_id).get_or_compute(key, compute)

    def discard_run(self, run_id: str) -> bool:
        """Drop every entry of a run. Returns True if the run had a cache."""
        with self._lock:
            cache = self._runs.pop(run_id, None)
        if cache is None:
            return False
        logger.debug("discarded %d cached probes for run %s", len(cache), run_id)
        return True

    def run_ids(self) -> List[str]:
        with self._lock:
            return list(self._runs)
