#!/usr/bin/env python3
"""RDProbe core subpackage."""

from rdprobe.core.connection import ConnectionTracker, bounded_connection
from rdprobe.core.decoders import FunctionDecoder, RDPDecoder, load_decoder
from rdprobe.core.dialer import Dialer, TCPDialer
from rdprobe.core.errors import (
    DecodeFailure,
    DecoderLoadError,
    DialFailure,
    MissingRunIdentity,
    ProbeCancelled,
    RDProbeError,
    RunNotInitialized,
)
from rdprobe.core.memo import FailurePolicy, RunScopedCache, SingleFlightCache
from rdprobe.core.models import AuthResult, PresenceResult, ProbeKey, ProbeKind, ServiceRDP
from rdprobe.core.probes import RDPProber
from rdprobe.core.runs import DialerRegistry, run_id_from_context

__all__ = [
    "AuthResult",
    "ConnectionTracker",
    "DecodeFailure",
    "DecoderLoadError",
    "DialFailure",
    "Dialer",
    "DialerRegistry",
    "FailurePolicy",
    "FunctionDecoder",
    "MissingRunIdentity",
    "PresenceResult",
    "ProbeCancelled",
    "ProbeKey",
    "ProbeKind",
    "RDPDecoder",
    "RDPProber",
    "RDProbeError",
    "RunNotInitialized",
    "RunScopedCache",
    "ServiceRDP",
    "SingleFlightCache",
    "TCPDialer",
    "bounded_connection",
    "load_decoder",
    "run_id_from_context",
]
