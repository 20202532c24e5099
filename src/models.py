"""
Resource records managed by the reconcilers.

Records are plain dataclasses. A field set to ``None`` is unknown: either
not declared by the user or not yet computed by the backend.
"""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class AppConfig:
    """An application on the control plane. ``id`` and ``name`` match once created."""

    name: Optional[str] = None
    id: Optional[str] = None
    network: Optional[str] = None
    org: Optional[str] = None
    preferred_region: Optional[str] = None
    regions: List[str] = field(default_factory=list)

    def with_defaults(self) -> "AppConfig":
        """
        Return a copy with server-defaulted string fields set to "".

        ``org`` is left unknown so that create resolves the default
        organization.
        """
        return AppConfig(
            name=self.name,
            id=self.id,
            network=self.network if self.network is not None else "",
            org=self.org,
            preferred_region=(
                self.preferred_region if self.preferred_region is not None else ""
            ),
            regions=list(self.regions),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        values = _known_fields(cls, data)
        values["regions"] = list(values.get("regions") or [])
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MachineConfig:
    """A compute instance belonging to an application."""

    name: Optional[str] = None
    region: Optional[str] = None
    id: Optional[str] = None
    app: Optional[str] = None
    image: Optional[str] = None
    cpus: Optional[int] = None
    memory_mb: Optional[int] = None
    cpu_kind: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MachineConfig":
        return cls(**_known_fields(cls, data))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class IpAddressConfig:
    """An IP address allocated to an application. Immutable once allocated."""

    id: Optional[str] = None
    app: Optional[str] = None
    region: Optional[str] = None
    address: Optional[str] = None
    type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IpAddressConfig":
        return cls(**_known_fields(cls, data))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MachineState(Enum):
    """Runtime state of a machine as reported by the machines API."""

    CREATED = "created"
    STARTING = "starting"
    STARTED = "started"
    STOPPING = "stopping"
    STOPPED = "stopped"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "MachineState":
        """Map a backend state string to a MachineState, UNKNOWN if unrecognised."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN
