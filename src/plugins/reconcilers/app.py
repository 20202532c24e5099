"""
Application Reconciler - Converges applications on the control API.

The backend uses the application name as its canonical identifier, so
``id`` and ``name`` hold the same value once the app exists.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List

from clients.errors import ClientError
from clients.graphql import ControlAPIClient
from diagnostics import ErrorKind
from drift import check_immutable_fields
from models import AppConfig
from plugins.reconcilers.base import (
    ReconcileResult,
    ReconcilerDependencies,
    ReconcilerPlugin,
    record_client_error,
    record_lookup_error,
)

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = ("org", "preferred_region", "name", "network")


def _region_inputs(regions: List[str]) -> List[Dict[str, Any]]:
    return [{"code": code} for code in regions]


def _region_codes(autoscaling: Dict[str, Any]) -> List[str]:
    return [r["code"] for r in (autoscaling or {}).get("regions") or []]


def app_from_response(app: Dict[str, Any], regions: List[str]) -> AppConfig:
    """Build a record entirely from a backend ``app`` object."""
    autoscaling = app.get("autoscaling") or {}
    return AppConfig(
        name=app.get("name"),
        id=app.get("name"),
        network=app.get("network") or "",
        org=(app.get("organization") or {}).get("id"),
        preferred_region=autoscaling.get("preferredRegion") or "",
        regions=regions,
    )


class AppReconciler(ReconcilerPlugin[AppConfig]):
    """Reconciler for applications."""

    kind = "app"
    record_type = AppConfig
    diff_fields = ("name", "network", "org", "preferred_region", "regions")

    def __init__(self, client: ControlAPIClient):
        self.client = client

    @classmethod
    def from_dependencies(cls, deps: ReconcilerDependencies) -> "AppReconciler":
        return cls(client=deps.control_api)

    async def create(self, desired: AppConfig) -> ReconcileResult[AppConfig]:
        result: ReconcileResult[AppConfig] = ReconcileResult()
        data = desired.with_defaults()

        if data.org is None:
            try:
                default_org = await self.client.get_default_org()
            except ClientError as e:
                result.diagnostics.add_error(
                    ErrorKind.CONFIG_RESOLUTION,
                    "Could not detect default organization",
                    str(e),
                )
                return result
            data.org = default_org["id"]
            logger.info(f"Using default organization {data.org} for app {data.name}")

        if data.regions:
            try:
                response = await self.client.create_app_with_autoscale(
                    name=data.name,
                    org_id=data.org,
                    regions=_region_inputs(data.regions),
                    preferred_region=data.preferred_region,
                    network=data.network,
                )
            except ClientError as e:
                record_client_error(
                    result.diagnostics,
                    e,
                    ErrorKind.REQUEST_FAILED,
                    "Create app failed (creating with autoscale config)",
                )
                return result

            autoscale_app = (response.get("updateAutoscaleConfig") or {}).get("app")
            regions = _region_codes((autoscale_app or {}).get("autoscaling"))
        else:
            try:
                response = await self.client.create_app(
                    name=data.name,
                    org_id=data.org,
                    preferred_region=data.preferred_region,
                    network=data.network,
                )
            except ClientError as e:
                record_client_error(
                    result.diagnostics, e, ErrorKind.REQUEST_FAILED, "Create app failed"
                )
                return result
            regions = []

        result.state = app_from_response(response["createApp"]["app"], regions)
        logger.info(f"Created app {result.state.name}")
        return result

    async def read(self, state: AppConfig) -> ReconcileResult[AppConfig]:
        result: ReconcileResult[AppConfig] = ReconcileResult(state=state)
        app_key = state.id if state.id is not None else state.name

        try:
            response = await self.client.get_full_app(app_key)
        except ClientError as e:
            if record_lookup_error(result.diagnostics, e, "Read: query failed"):
                logger.info(f"App {app_key} no longer exists")
                result.removed = True
            return result

        app = response.get("app") or {}
        result.state = app_from_response(app, _region_codes(app.get("autoscaling")))
        return result

    async def update(
        self, plan: AppConfig, state: AppConfig
    ) -> ReconcileResult[AppConfig]:
        result: ReconcileResult[AppConfig] = ReconcileResult(state=state)
        logger.debug(f"Updating app: existing {state}, planned {plan}")

        result.diagnostics.extend(
            check_immutable_fields(plan, state, IMMUTABLE_FIELDS, "app")
        )

        if plan.regions:
            try:
                await self.client.update_autoscale_config(
                    app_id=state.name,
                    regions=_region_inputs(plan.regions),
                    reset_regions=True,
                )
            except ClientError as e:
                result.diagnostics.add_error(
                    ErrorKind.UPDATE_FAILED, "Update regions failed", str(e)
                )
                return result
            result.state = replace(state, regions=list(plan.regions))

        return result

    async def delete(self, state: AppConfig) -> ReconcileResult[AppConfig]:
        result: ReconcileResult[AppConfig] = ReconcileResult(state=state)

        try:
            await self.client.delete_app(state.name)
        except ClientError as e:
            record_client_error(
                result.diagnostics, e, ErrorKind.REQUEST_FAILED, "Delete app failed"
            )
            logger.warning(
                f"Delete of app {state.name} failed, detaching it anyway: {e}"
            )

        result.removed = True
        return result

    def import_state(self, import_id: str) -> ReconcileResult[AppConfig]:
        return ReconcileResult(state=AppConfig(id=import_id, name=import_id))
