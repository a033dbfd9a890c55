#!/usr/bin/env python3
"""
RDProbe - Target Parsing
Copyright (C) 2026  Dorin Badea
GPLv3 License

Turns command-line target tokens into (host, port) pairs.
"""

from __future__ import annotations

import ipaddress
import re
from typing import Iterable, List, Optional, Tuple

from rdprobe.utils.constants import MAX_INPUT_LENGTH

_HOSTNAME_RE = re.compile(r"^[a-zA-Z0-9\.\-_]+$")


def sanitize_host(host) -> Optional[str]:
    """Return a validated IP address or hostname, or None if invalid."""
    if not isinstance(host, str):
        return None
    host = host.strip()
    if not host or len(host) > MAX_INPUT_LENGTH:
        return None
    try:
        return str(ipaddress.ip_address(host))
    except ValueError:
        pass
    if _HOSTNAME_RE.match(host):
        return host
    return None


def parse_port_spec(port_spec: str) -> List[int]:
    """
    Parse "3389", "3389,3390" or "3389-3391" into a sorted list of ports.

    Raises:
        ValueError: on malformed or out-of-range entries
    """
    ports = set()
    for part in str(port_spec or "").split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start_s, end_s = (p.strip() for p in part.split("-", 1))
            start, end = int(start_s), int(end_s)
            if start > end:
                raise ValueError(f"invalid port range: {part}")
            candidates = range(start, end + 1)
        else:
            candidates = [int(part)]
        for port in candidates:
            if not 1 <= port <= 65535:
                raise ValueError(f"port out of range: {port}")
            ports.add(port)
    if not ports:
        raise ValueError("no ports given")
    return sorted(ports)


def _split_token(raw: str) -> Tuple[str, Optional[str]]:
    if raw.startswith("["):
        end = raw.find("]")
        if end == -1:
            return raw, None
        host = raw[1:end]
        rest = raw[end + 1 :]
        if rest.startswith(":"):
            return host, rest[1:]
        # Trailing garbage after "]" fails port parsing
        return host, rest or None
    if raw.count(":") == 1:
        host, port = raw.split(":", 1)
        return host, port
    return raw, None


def parse_target_tokens(
    tokens: Iterable[str], default_ports: List[int]
) -> Tuple[List[Tuple[str, int]], List[str]]:
    """
    Parse targets into (host, port) pairs.

    Accepts host, host:port and [ipv6]:port; comma-separated lists are split.
    Tokens without a port expand to every default port.

    Returns:
        (valid pairs without duplicates, invalid tokens)
    """
    valid: List[Tuple[str, int]] = []
    invalid: List[str] = []
    seen = set()

    for token in tokens:
        for raw in str(token or "").split(","):
            raw = raw.strip()
            if not raw:
                continue
            host_part, port_part = _split_token(raw)
            host = sanitize_host(host_part)
            if host is None:
                invalid.append(raw)
                continue
            if port_part is None:
                ports = list(default_ports)
            else:
                try:
                    ports = parse_port_spec(port_part)
                except ValueError:
                    invalid.append(raw)
                    continue
            for port in ports:
                pair = (host, port)
                if pair in seen:
                    continue
                seen.add(pair)
                valid.append(pair)

    return valid, invalid
