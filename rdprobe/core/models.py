"""
RDProbe - Core Data Models
Copyright (C) 2026 Dorin Badea
GPLv3 License

Typed results returned by the presence and authentication probes, plus the
key used to memoize them within a run.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, is_dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class ProbeKind(str, Enum):
    """Which probe a cache entry belongs to."""

    PRESENCE = "presence"
    AUTH = "auth"


@dataclass(frozen=True)
class ProbeKey:
    """Identifies one cacheable unit of work inside a run."""

    run_id: str
    host: str
    port: int
    kind: ProbeKind

    @property
    def target(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class ServiceRDP:
    """Service metadata reported by an RDP listener that requires authentication."""

    os_fingerprint: str = ""
    os_version: str = ""
    target_name: str = ""
    netbios_computer_name: str = ""
    netbios_domain_name: str = ""
    dns_computer_name: str = ""
    dns_domain_name: str = ""
    forest_name: str = ""

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class PresenceResult:
    """Outcome of the presence probe. ``os_label`` is empty unless ``is_rdp``."""

    is_rdp: bool = False
    os_label: str = ""

    def __post_init__(self):
        if not self.is_rdp and self.os_label:
            raise ValueError("os_label must be empty when is_rdp is False")

    def to_dict(self) -> Dict[str, Any]:
        return {"is_rdp": self.is_rdp, "os": self.os_label}


@dataclass(frozen=True)
class AuthResult:
    """Outcome of the authentication probe.

    ``service_info`` is the decoder's record (a ``ServiceRDP`` or any mapping)
    and is only present when ``auth_required`` is True.
    """

    auth_required: bool = False
    service_info: Optional[Any] = None

    def __post_init__(self):
        if not self.auth_required and self.service_info is not None:
            raise ValueError("service_info must be absent when auth_required is False")

    def to_dict(self) -> Dict[str, Any]:
        info = self.service_info
        if info is None:
            serialized = None
        elif isinstance(info, ServiceRDP):
            serialized = info.to_dict()
        elif is_dataclass(info) and not isinstance(info, type):
            serialized = asdict(info)
        elif isinstance(info, Mapping):
            serialized = dict(info)
        else:
            serialized = str(info)
        return {"auth": self.auth_required, "service_info": serialized}
