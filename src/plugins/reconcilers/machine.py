"""
Machine Reconciler - Converges machines through the machines API.

Every operation needs the wireguard tunnel to the private network to be
open. Machines cannot be updated in place; teardown is delegated to the
lifecycle state machine.
"""

import asyncio
import logging
from typing import Optional

from pydantic import ValidationError

from clients.errors import MachinesTransportError
from clients.machines import (
    CreateMachineRequest,
    GuestConfig,
    ImageConfig,
    Machine,
    MachinesClient,
    MachinesResponse,
)
from config import LifecycleConfig
from diagnostics import Diagnostics, ErrorKind
from models import MachineConfig
from plugins.reconcilers.base import (
    ReconcileResult,
    ReconcilerDependencies,
    ReconcilerPlugin,
)
from plugins.reconcilers.lifecycle import MachineDestroyer

logger = logging.getLogger(__name__)

TUNNEL_SUMMARY = "fly wireguard tunnel must be open"


def machine_from_response(machine: Machine, app: Optional[str]) -> MachineConfig:
    """Build a record from a backend machine, keeping the owning app."""
    return MachineConfig(
        name=machine.name,
        region=machine.region,
        id=machine.id,
        app=app,
        image=machine.config.image,
        cpus=machine.config.guest.cpus,
        memory_mb=machine.config.guest.memory_mb,
        cpu_kind=machine.config.guest.cpu_kind,
    )


def build_create_request(desired: MachineConfig) -> CreateMachineRequest:
    """Build a create request, sending only the sizing fields that were set."""
    guest = None
    if (
        desired.cpus is not None
        or desired.memory_mb is not None
        or desired.cpu_kind is not None
    ):
        guest = GuestConfig(
            cpus=desired.cpus,
            memory_mb=desired.memory_mb,
            cpu_type=desired.cpu_kind,
        )
    return CreateMachineRequest(
        name=desired.name,
        config=ImageConfig(image=desired.image),
        guest=guest,
    )


class MachineReconciler(ReconcilerPlugin[MachineConfig]):
    """Reconciler for machines."""

    kind = "machine"
    record_type = MachineConfig
    # region is chosen by the backend and never sent on create
    diff_fields = ("name", "app", "image", "cpus", "memory_mb", "cpu_kind")

    def __init__(
        self,
        client: MachinesClient,
        lifecycle: Optional[LifecycleConfig] = None,
        sleep=asyncio.sleep,
    ):
        self.client = client
        self.destroyer = MachineDestroyer(client, lifecycle, sleep=sleep)

    @classmethod
    def from_dependencies(cls, deps: ReconcilerDependencies) -> "MachineReconciler":
        return cls(client=deps.machines, lifecycle=deps.lifecycle)

    async def validate_open_tunnel(self) -> Optional[str]:
        """
        Probe the machines API through the tunnel.

        Returns:
            None when the tunnel is open, otherwise a description of the
            failure.
        """
        try:
            response = await self.client.probe()
        except MachinesTransportError as e:
            return str(e)

        if response.status != 404:
            return (
                f"unexpected probe response {response.status} {response.reason} "
                f"from {response.url}"
            )
        return None

    def _decode(
        self, response: MachinesResponse, diagnostics: Diagnostics
    ) -> Optional[Machine]:
        try:
            return Machine.model_validate(response.body)
        except ValidationError as e:
            diagnostics.add_error(
                ErrorKind.DECODE_FAILED, "Failed to decode machine response", str(e)
            )
            return None

    async def create(self, desired: MachineConfig) -> ReconcileResult[MachineConfig]:
        result: ReconcileResult[MachineConfig] = ReconcileResult()

        tunnel_error = await self.validate_open_tunnel()
        if tunnel_error:
            result.diagnostics.add_error(
                ErrorKind.TUNNEL_UNAVAILABLE, TUNNEL_SUMMARY, tunnel_error
            )
            return result

        request = build_create_request(desired)
        try:
            response = await self.client.create_machine(desired.app, request)
        except MachinesTransportError as e:
            result.diagnostics.add_error(
                ErrorKind.REQUEST_FAILED, "Failed to create machine", str(e)
            )
            return result

        if not response.ok:
            result.diagnostics.add_error(
                ErrorKind.REQUEST_FAILED, "Request failed", response.describe()
            )
            return result

        machine = self._decode(response, result.diagnostics)
        if machine is None:
            return result

        result.state = machine_from_response(machine, desired.app)
        logger.info(f"Created machine {machine.id} for app {desired.app}")
        return result

    async def read(self, state: MachineConfig) -> ReconcileResult[MachineConfig]:
        result: ReconcileResult[MachineConfig] = ReconcileResult(state=state)

        tunnel_error = await self.validate_open_tunnel()
        if tunnel_error:
            result.diagnostics.add_error(
                ErrorKind.TUNNEL_UNAVAILABLE, TUNNEL_SUMMARY, tunnel_error
            )
            return result

        try:
            response = await self.client.get_machine(state.app, state.id)
        except MachinesTransportError as e:
            result.diagnostics.add_error(
                ErrorKind.REQUEST_FAILED, "Failed to get machine", str(e)
            )
            return result

        if response.status != 200:
            result.diagnostics.add_error(
                ErrorKind.REQUEST_FAILED,
                "Machine read request failed",
                response.describe(),
            )
            return result

        machine = self._decode(response, result.diagnostics)
        if machine is not None:
            result.state = machine_from_response(machine, state.app)
        return result

    async def update(
        self, plan: MachineConfig, state: MachineConfig
    ) -> ReconcileResult[MachineConfig]:
        result: ReconcileResult[MachineConfig] = ReconcileResult(state=state)
        result.diagnostics.add_error(
            ErrorKind.UNSUPPORTED_OPERATION,
            "Machine update not available",
            "Machines cannot be updated in place; delete and recreate",
        )
        return result

    async def delete(self, state: MachineConfig) -> ReconcileResult[MachineConfig]:
        result: ReconcileResult[MachineConfig] = ReconcileResult(state=state)

        tunnel_error = await self.validate_open_tunnel()
        if tunnel_error:
            # Teardown still runs when the probe fails.
            result.diagnostics.add_warning(
                ErrorKind.TUNNEL_UNAVAILABLE, TUNNEL_SUMMARY, tunnel_error
            )
            logger.warning(f"Tunnel probe failed, continuing teardown: {tunnel_error}")

        outcome = await self.destroyer.run(state.app, state.id)
        if not outcome.destroyed:
            result.diagnostics.add_error(
                outcome.error_kind, outcome.error_summary, outcome.error_detail
            )
            return result

        result.removed = True
        return result

    def import_state(self, import_id: str) -> ReconcileResult[MachineConfig]:
        result: ReconcileResult[MachineConfig] = ReconcileResult()
        app, sep, machine_id = import_id.partition("/")
        if not sep or not app or not machine_id:
            result.diagnostics.add_error(
                ErrorKind.IMPORT_FAILED,
                "Invalid machine import ID",
                f"Expected '<app>/<machine id>', got {import_id!r}",
            )
            return result
        result.state = MachineConfig(id=machine_id, app=app)
        return result
