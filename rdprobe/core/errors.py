#!/usr/bin/env python3
"""
RDProbe - Error Types
Copyright (C) 2026  Dorin Badea
GPLv3 License

Failures are raised, never encoded as zero-valued results. A negative detection
(no RDP listener, or RDP without mandatory authentication) is a normal result.
"""

from typing import Optional


class RDProbeError(Exception):
    """Base class for every error raised by RDProbe."""

    pass


class RunNotInitialized(RDProbeError):
    """Raised when no dialer is registered for a run identity.

    This is a setup defect in the hosting environment: retrying without
    registering the run first will never succeed.
    """

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"dialers not initialized for {run_id}")


class MissingRunIdentity(RDProbeError):
    """Raised when a host context carries no usable run identity."""

    pass


class DialFailure(RDProbeError):
    """Network-level failure while opening a connection (refused, timeout, DNS...)."""

    def __init__(self, address: str, reason: str):
        self.address = address
        self.reason = reason
        super().__init__(f"dial {address} failed: {reason}")


class DecodeFailure(RDProbeError):
    """Raised by decoders on malformed data or an incomplete handshake."""

    pass


class ProbeCancelled(RDProbeError):
    """Raised when the run a probe belongs to has been cancelled."""

    def __init__(self, run_id: str, detail: Optional[str] = None):
        self.run_id = run_id
        msg = f"run {run_id} cancelled"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class DecoderLoadError(RDProbeError):
    """Raised when a decoder cannot be resolved from its dotted path."""

    pass
