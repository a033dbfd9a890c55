#!/usr/bin/env python3
"""
RDProbe - TCP Dialer
Copyright (C) 2026  Dorin Badea
GPLv3 License

The ``Dialer`` protocol is what a run provides for opening connections.
``TCPDialer`` is the plain implementation used by the CLI: direct TCP with an
optional exclusion list and a minimum delay between dials.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
import threading
import time
from typing import Any, Iterable, List, Protocol, Set, Tuple, Union

from rdprobe.core.errors import DialFailure

logger = logging.getLogger("rdprobe.dialer")

_Network = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


class Dialer(Protocol):
    """Opens one stream per call, honoring the run's network policy."""

    def dial(self, network: str, address: str, timeout: float) -> Any: ...


def join_host_port(host: str, port: Any) -> str:
    """Format ``host:port``, bracketing IPv6 literals."""
    if ":" in host and not host.startswith("["):
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def split_host_port(address: str) -> Tuple[str, int]:
    """
    Inverse of ``join_host_port``.

    Raises:
        ValueError: if the address has no port or the port is not an integer
    """
    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise ValueError(f"missing port in address {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, int(port)


def parse_exclusions(entries: Iterable[str]) -> Tuple[List[_Network], Set[str]]:
    """Split exclusion entries into IP networks and literal hostnames."""
    networks: List[_Network] = []
    hostnames: Set[str] = set()
    for raw in entries or []:
        token = str(raw or "").strip()
        if not token:
            continue
        try:
            networks.append(ipaddress.ip_network(token, strict=False))
        except ValueError:
            hostnames.add(token.lower())
    return networks, hostnames


class TCPDialer:
    """Direct TCP dialer built on ``socket.create_connection``."""

    def __init__(self, rate_limit: float = 0.0, exclude: Iterable[str] = ()):
        self.rate_limit = max(0.0, float(rate_limit or 0.0))
        self._networks, self._hostnames = parse_exclusions(exclude)
        self._rate_lock = threading.Lock()
        self._next_slot = 0.0

    def is_excluded(self, host: str) -> bool:
        if host.lower() in self._hostnames:
            return True
        try:
            ip = ipaddress.ip_address(host)
        except ValueError:
            return False
        return any(ip.version == net.version and ip in net for net in self._networks)

    def _throttle(self) -> None:
        if self.rate_limit <= 0:
            return
        with self._rate_lock:
            now = time.monotonic()
            start = max(now, self._next_slot)
            self._next_slot = start + self.rate_limit
        delay = start - now
        if delay > 0:
            time.sleep(delay)

    def dial(self, network: str, address: str, timeout: float) -> socket.socket:
        """
        Open a TCP connection to ``address`` with a connect deadline.

        The returned socket keeps ``timeout`` for later reads and writes.

        Raises:
            DialFailure: on any network-level failure or excluded address
        """
        if network != "tcp":
            raise DialFailure(address, f"unsupported network {network!r}")
        try:
            host, port = split_host_port(address)
        except ValueError as exc:
            raise DialFailure(address, str(exc)) from exc
        if self.is_excluded(host):
            raise DialFailure(address, "address excluded by run policy")

        self._throttle()
        try:
            return socket.create_connection((host, port), timeout=timeout)
        except (OSError, OverflowError) as exc:
            reason = str(exc) or exc.__class__.__name__
            logger.debug("dial %s failed: %s", address, reason)
            raise DialFailure(address, reason) from exc
