#!/usr/bin/env python3
"""RDProbe utilities subpackage."""

from rdprobe.utils.constants import (
    VERSION,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_RDP_PORT,
    MAX_INPUT_LENGTH,
)

__all__ = [
    "VERSION",
    "DEFAULT_PROBE_TIMEOUT",
    "DEFAULT_RDP_PORT",
    "MAX_INPUT_LENGTH",
]
