#!/usr/bin/env python3
"""
RDProbe - Run-scoped Dialer Registry

Maps a run identity to the dialer that run must use. The registry is an
ordinary object handed to the prober, so separate runs stay isolated without
any module-level state.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional

from rdprobe.core.dialer import Dialer
from rdprobe.core.errors import MissingRunIdentity
from rdprobe.utils.constants import RUN_ID_CONTEXT_KEY

logger = logging.getLogger("rdprobe.runs")


def run_id_from_context(ctx: Optional[Mapping[str, Any]], key: str = RUN_ID_CONTEXT_KEY) -> str:
    """
    Extract the run identity from a host-supplied context mapping.

    Raises:
        MissingRunIdentity: if the key is absent, empty or not a string
    """
    if ctx is None:
        raise MissingRunIdentity(f"no context supplied (expected '{key}')")
    value = ctx.get(key)
    if not isinstance(value, str) or not value.strip():
        raise MissingRunIdentity(f"context has no usable '{key}' value")
    return value


class DialerRegistry:
    """Thread-safe lookup from run identity to ``Dialer``."""

    def __init__(self):
        self._lock = threading.Lock()
        self._dialers: Dict[str, Dialer] = {}

    def register(self, run_id: str, dialer: Dialer) -> None:
        if not run_id:
            raise ValueError("run_id must be a non-empty string")
        with self._lock:
            replaced = run_id in self._dialers
            self._dialers[run_id] = dialer
        if replaced:
            logger.warning("Dialer for run %s replaced", run_id)
        else:
            logger.debug("Dialer registered for run %s", run_id)

    def unregister(self, run_id: str) -> bool:
        with self._lock:
            return self._dialers.pop(run_id, None) is not None

    def resolve(self, run_id: str) -> Optional[Dialer]:
        """Return the run's dialer, or None when the run was never registered."""
        with self._lock:
            return self._dialers.get(run_id)

    def run_ids(self) -> List[str]:
        with self._lock:
            return list(self._dialers)

    def __contains__(self, run_id: object) -> bool:
        with self._lock:
            return run_id in self._dialers
