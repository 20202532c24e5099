"""
Core plugin types and dataclasses.

This module contains shared types used across the plugin system.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)


class Operation(Enum):
    """Lifecycle operations a reconciler implements."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    IMPORT = "import"


@dataclass
class ResourceDeclaration:
    """A declared resource as loaded from a declaration file."""

    kind: str
    name: str
    spec: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        """Address of the resource in tracked state, e.g. ``app.web``."""
        return f"{self.kind}.{self.name}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceDeclaration":
        return cls(
            kind=data["kind"],
            name=data["name"],
            spec=dict(data.get("spec") or {}),
        )
