"""Exceptions raised by the remote API clients."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union


class ClientError(Exception):
    """Base class for remote API client errors."""

    pass


@dataclass
class GraphQLErrorEntry:
    """One entry of a GraphQL ``errors`` list."""

    message: str
    path: List[Union[str, int]] = field(default_factory=list)

    @property
    def path_string(self) -> str:
        """Render the path as ``app.ipAddresses[0].id``."""
        rendered = ""
        for part in self.path:
            if isinstance(part, int):
                rendered += f"[{part}]"
            elif rendered:
                rendered += f".{part}"
            else:
                rendered = str(part)
        return rendered

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphQLErrorEntry":
        return cls(
            message=str(data.get("message", "")),
            path=list(data.get("path") or []),
        )


class GraphQLErrorList(ClientError):
    """Structured error list returned by the control API."""

    def __init__(self, entries: List[GraphQLErrorEntry]):
        self.entries = entries
        super().__init__("; ".join(e.message for e in entries))

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


class ControlAPITransportError(ClientError):
    """The control API could not be reached or returned a non-GraphQL reply."""

    pass


class MachinesTransportError(ClientError):
    """The machines API could not be reached."""

    pass
