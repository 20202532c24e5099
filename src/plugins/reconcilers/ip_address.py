"""
IP Address Reconciler - Allocates and releases application IP addresses.

IP addresses are immutable once allocated; any change is a delete and
recreate.
"""

import logging
from typing import Any, Dict, Optional

from clients.errors import ClientError
from clients.graphql import ControlAPIClient
from diagnostics import ErrorKind
from models import IpAddressConfig
from plugins.reconcilers.base import (
    ReconcileResult,
    ReconcilerDependencies,
    ReconcilerPlugin,
    record_client_error,
    record_lookup_error,
)

logger = logging.getLogger(__name__)


def ip_from_response(ip: Dict[str, Any], app: Optional[str]) -> IpAddressConfig:
    return IpAddressConfig(
        id=ip.get("id"),
        app=app,
        region=ip.get("region"),
        address=ip.get("address"),
        type=ip.get("type"),
    )


class IpAddressReconciler(ReconcilerPlugin[IpAddressConfig]):
    """Reconciler for IP addresses."""

    kind = "ip_address"
    record_type = IpAddressConfig
    diff_fields = ("app", "type", "region")

    def __init__(self, client: ControlAPIClient):
        self.client = client

    @classmethod
    def from_dependencies(cls, deps: ReconcilerDependencies) -> "IpAddressReconciler":
        return cls(client=deps.control_api)

    async def create(
        self, desired: IpAddressConfig
    ) -> ReconcileResult[IpAddressConfig]:
        result: ReconcileResult[IpAddressConfig] = ReconcileResult()

        try:
            response = await self.client.allocate_ip_address(
                app_id=desired.app,
                address_type=desired.type,
                region=desired.region,
            )
        except ClientError as e:
            record_client_error(
                result.diagnostics, e, ErrorKind.REQUEST_FAILED, "IP allocation failed"
            )
            return result

        ip = response["allocateIpAddress"]["ipAddress"]
        result.state = ip_from_response(ip, desired.app)
        logger.info(f"Allocated {result.state.type} address {result.state.address}")
        return result

    async def read(self, state: IpAddressConfig) -> ReconcileResult[IpAddressConfig]:
        result: ReconcileResult[IpAddressConfig] = ReconcileResult(state=state)

        try:
            response = await self.client.get_ip_address(state.app, state.address)
        except ClientError as e:
            if record_lookup_error(result.diagnostics, e, "Read: query failed"):
                logger.info(f"IP address {state.address} no longer exists")
                result.removed = True
            return result

        ip = (response.get("app") or {}).get("ipAddress") or {}
        result.state = ip_from_response(ip, state.app)
        return result

    async def update(
        self, plan: IpAddressConfig, state: IpAddressConfig
    ) -> ReconcileResult[IpAddressConfig]:
        result: ReconcileResult[IpAddressConfig] = ReconcileResult(state=state)
        result.diagnostics.add_error(
            ErrorKind.UNSUPPORTED_OPERATION,
            "IP address update not available",
            "Not allowed by backend; delete and recreate",
        )
        return result

    async def delete(
        self, state: IpAddressConfig
    ) -> ReconcileResult[IpAddressConfig]:
        result: ReconcileResult[IpAddressConfig] = ReconcileResult(state=state)

        if state.id:
            try:
                await self.client.release_ip_address(state.id)
            except ClientError as e:
                record_client_error(
                    result.diagnostics,
                    e,
                    ErrorKind.REQUEST_FAILED,
                    "IP release failed",
                )
                logger.warning(
                    f"Release of IP address {state.id} failed, detaching it anyway"
                )

        result.removed = True
        return result

    def import_state(self, import_id: str) -> ReconcileResult[IpAddressConfig]:
        result: ReconcileResult[IpAddressConfig] = ReconcileResult()
        app, sep, address = import_id.partition("/")
        if not sep or not app or not address:
            result.diagnostics.add_error(
                ErrorKind.IMPORT_FAILED,
                "Invalid IP address import ID",
                f"Expected '<app>/<address>', got {import_id!r}",
            )
            return result
        result.state = IpAddressConfig(app=app, address=address)
        return result
