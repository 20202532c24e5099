"""
Remote API clients.

ControlAPIClient speaks GraphQL to the control plane; MachinesClient speaks
JSON-over-HTTP to the machines API through the wireguard tunnel.
"""

from clients.errors import (
    ClientError,
    ControlAPITransportError,
    GraphQLErrorEntry,
    GraphQLErrorList,
    MachinesTransportError,
)
from clients.graphql import ControlAPIClient
from clients.machines import (
    CreateMachineRequest,
    GuestConfig,
    ImageConfig,
    Machine,
    MachinesClient,
    MachinesResponse,
)

__all__ = [
    "ClientError",
    "ControlAPITransportError",
    "GraphQLErrorEntry",
    "GraphQLErrorList",
    "MachinesTransportError",
    "ControlAPIClient",
    "CreateMachineRequest",
    "GuestConfig",
    "ImageConfig",
    "Machine",
    "MachinesClient",
    "MachinesResponse",
]
