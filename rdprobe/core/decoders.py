#!/usr/bin/env python3
"""
RDProbe - Decoder Interface

The RDP handshake itself lives outside this package. A decoder is any object
with the two detection methods below; both read and write only the stream
they are given and respect the timeout.
"""

from __future__ import annotations

import importlib
import inspect
from typing import Any, Callable, Protocol, Tuple

from rdprobe.core.errors import DecoderLoadError


class RDPDecoder(Protocol):
    def detect_rdp(self, conn: Any, timeout: float) -> Tuple[str, bool]:
        """Return ``(os_label, is_rdp)``."""
        ...

    def detect_rdp_auth(self, conn: Any, timeout: float) -> Tuple[Any, bool]:
        """Return ``(service_info, auth_required)``."""
        ...


class FunctionDecoder:
    """Adapts a pair of plain functions to the ``RDPDecoder`` interface."""

    def __init__(
        self,
        detect_rdp: Callable[[Any, float], Tuple[str, bool]],
        detect_rdp_auth: Callable[[Any, float], Tuple[Any, bool]],
    ):
        self._detect_rdp = detect_rdp
        self._detect_rdp_auth = detect_rdp_auth

    def detect_rdp(self, conn: Any, timeout: float) -> Tuple[str, bool]:
        return self._detect_rdp(conn, timeout)

    def detect_rdp_auth(self, conn: Any, timeout: float) -> Tuple[Any, bool]:
        return self._detect_rdp_auth(conn, timeout)


def is_decoder(obj: Any) -> bool:
    return callable(getattr(obj, "detect_rdp", None)) and callable(
        getattr(obj, "detect_rdp_auth", None)
    )


def load_decoder(path: str) -> RDPDecoder:
    """
    Resolve a decoder from ``package.module:attribute``.

    The attribute may be a decoder object, a decoder class (instantiated with
    no arguments) or a zero-argument factory returning a decoder.

    Raises:
        DecoderLoadError: if the path cannot be imported or does not name a decoder
    """
    dotted = (path or "").strip()
    if not dotted:
        raise DecoderLoadError("empty decoder path")
    if ":" in dotted:
        module_name, _, attr_path = dotted.partition(":")
    else:
        module_name, _, attr_path = dotted.rpartition(".")
    if not module_name or not attr_path:
        raise DecoderLoadError(f"decoder path must look like 'module:attribute', got {dotted!r}")

    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise DecoderLoadError(f"cannot import decoder module {module_name!r}: {exc}") from exc
    for part in attr_path.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise DecoderLoadError(f"{module_name!r} has no attribute {attr_path!r}") from exc

    if inspect.isclass(target) or (not is_decoder(target) and callable(target)):
        try:
            target = target()
        except TypeError as exc:
            raise DecoderLoadError(f"cannot build decoder from {dotted!r}: {exc}") from exc
    if not is_decoder(target):
        raise DecoderLoadError(f"{dotted!r} does not provide detect_rdp/detect_rdp_auth")
    return target
