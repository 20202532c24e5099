"""Unit tests for the controller driving reconcilers against tracked state."""

from unittest.mock import AsyncMock

import pytest

from clients.errors import (
    ControlAPITransportError,
    GraphQLErrorEntry,
    GraphQLErrorList,
)
from conftest import machine_body, machines_response
from controller import Controller
from diagnostics import ErrorKind
from plugins.base import Operation, ResourceDeclaration
from plugins.reconcilers.app import AppReconciler
from plugins.reconcilers.base import NOT_FOUND_MESSAGE, ReconcilerDependencies
from plugins.reconcilers.ip_address import IpAddressReconciler
from plugins.reconcilers.machine import MachineReconciler
from plugins.registry import PluginRegistry
from statefile import StateStore


@pytest.fixture
def registry(control_api, machines_client, fast_lifecycle):
    registry = PluginRegistry()
    for plugin_class in (AppReconciler, MachineReconciler, IpAddressReconciler):
        registry.register_reconciler_plugin(plugin_class)
    registry.create_reconcilers(
        ReconcilerDependencies(
            control_api=control_api,
            machines=machines_client,
            lifecycle=fast_lifecycle,
        )
    )
    return registry


@pytest.fixture
def store(tmp_path):
    return StateStore(tmp_path / "state.json")


@pytest.fixture
def controller(registry, store):
    return Controller(registry, store)


@pytest.fixture
def web_state():
    return {
        "name": "web",
        "id": "web",
        "network": "default",
        "org": "org-123",
        "preferred_region": "ord",
        "regions": ["ord", "ams"],
    }


def app_declaration(**spec):
    return ResourceDeclaration(kind="app", name="web", spec=spec)


# ==================== Apply Tests ====================


@pytest.mark.asyncio
class TestApply:
    """Tests for Controller.apply."""

    async def test_apply_creates_untracked(
        self, controller, store, control_api, app_payload
    ):
        control_api.create_app = AsyncMock(
            return_value={"createApp": {"app": app_payload}}
        )

        report = await controller.apply(app_declaration())

        assert report.success
        assert report.operation is Operation.CREATE
        assert store.get("app.web")["org"] == "org-123"

    async def test_apply_converged_is_noop(
        self, controller, store, control_api, web_state
    ):
        store.put("app.web", "app", web_state)
        control_api.update_autoscale_config = AsyncMock()

        report = await controller.apply(app_declaration(regions=["ord", "ams"]))

        assert report.operation is Operation.READ
        assert report.success
        control_api.update_autoscale_config.assert_not_awaited()

    async def test_apply_updates_changed_regions(
        self, controller, store, control_api, web_state
    ):
        store.put("app.web", "app", web_state)
        control_api.update_autoscale_config = AsyncMock(return_value={})

        report = await controller.apply(app_declaration(regions=["fra"]))

        assert report.operation is Operation.UPDATE
        assert report.success
        assert store.get("app.web")["regions"] == ["fra"]

    async def test_failed_region_update_is_retried(
        self, controller, store, control_api, web_state
    ):
        store.put("app.web", "app", web_state)
        control_api.update_autoscale_config = AsyncMock(
            side_effect=[ControlAPITransportError("timeout"), {}]
        )

        first = await controller.apply(app_declaration(regions=["fra"]))

        assert first.operation is Operation.UPDATE
        assert first.diagnostics.kinds() == [ErrorKind.UPDATE_FAILED]
        assert store.get("app.web")["regions"] == ["ord", "ams"]

        second = await controller.apply(app_declaration(regions=["fra"]))

        assert second.operation is Operation.UPDATE
        assert second.success
        assert control_api.update_autoscale_config.await_count == 2
        assert store.get("app.web")["regions"] == ["fra"]

    async def test_reapply_machine_ignores_backend_region(
        self, controller, store, machines_client
    ):
        machines_client.create_machine = AsyncMock(
            return_value=machines_response(body=machine_body(region="iad"))
        )
        declaration = ResourceDeclaration(
            kind="machine",
            name="web-1",
            spec={"region": "ord", "app": "web", "image": "nginx:latest"},
        )

        first = await controller.apply(declaration)
        second = await controller.apply(declaration)

        assert first.operation is Operation.CREATE
        assert store.get("machine.web-1")["region"] == "iad"
        assert second.operation is Operation.READ
        assert second.success

    async def test_reapply_machine_with_new_image_updates(
        self, controller, store, machines_client
    ):
        store.put(
            "machine.web-1",
            "machine",
            {
                "name": "web-1",
                "region": "iad",
                "id": "3d8d9016b4e7d8",
                "app": "web",
                "image": "nginx:latest",
            },
        )
        declaration = ResourceDeclaration(
            kind="machine",
            name="web-1",
            spec={"region": "ord", "app": "web", "image": "nginx:1.25"},
        )

        report = await controller.apply(declaration)

        assert report.operation is Operation.UPDATE
        assert report.diagnostics.kinds() == [ErrorKind.UNSUPPORTED_OPERATION]

    async def test_apply_immutable_change_reports_error(
        self, controller, store, web_state
    ):
        store.put("app.web", "app", web_state)

        report = await controller.apply(app_declaration(org="org-456"))

        assert not report.success
        assert report.diagnostics.kinds() == [ErrorKind.IMMUTABLE_FIELD]
        assert store.get("app.web")["org"] == "org-123"

    async def test_apply_invalid_declaration(self, controller, store, control_api):
        control_api.create_app = AsyncMock()

        report = await controller.apply(app_declaration(size="huge"))

        assert report.diagnostics.kinds() == [ErrorKind.INVALID_DECLARATION]
        control_api.create_app.assert_not_awaited()
        assert len(store) == 0

    async def test_apply_all_stops_at_first_failure(self, controller, control_api):
        control_api.create_app = AsyncMock(
            side_effect=ControlAPITransportError("timeout")
        )
        control_api.allocate_ip_address = AsyncMock()
        declarations = [
            app_declaration(),
            ResourceDeclaration(
                kind="ip_address", name="v4", spec={"app": "web", "type": "v4"}
            ),
        ]

        reports = await controller.apply_all(declarations)

        assert len(reports) == 1
        control_api.allocate_ip_address.assert_not_awaited()


# ==================== Refresh Tests ====================


@pytest.mark.asyncio
class TestRefresh:
    """Tests for Controller.refresh."""

    async def test_refresh_updates_state(
        self, controller, store, control_api, app_payload
    ):
        store.put("app.web", "app", {"name": "web", "id": "web", "regions": []})
        control_api.get_full_app = AsyncMock(return_value={"app": app_payload})

        reports = await controller.refresh()

        assert [r.success for r in reports] == [True]
        assert store.get("app.web")["regions"] == ["ord", "ams"]

    async def test_refresh_drops_missing(self, controller, store, control_api):
        store.put("app.web", "app", {"name": "web", "id": "web", "regions": []})
        control_api.get_full_app = AsyncMock(
            side_effect=GraphQLErrorList(
                [GraphQLErrorEntry(NOT_FOUND_MESSAGE, ["app"])]
            )
        )

        reports = await controller.refresh()

        assert reports[0].operation is Operation.READ
        assert "app.web" not in store

    async def test_refresh_failure_keeps_state(
        self, controller, store, control_api, web_state
    ):
        store.put("app.web", "app", web_state)
        control_api.get_full_app = AsyncMock(
            side_effect=ControlAPITransportError("timeout")
        )

        reports = await controller.refresh()

        assert not reports[0].success
        assert store.get("app.web") == web_state


# ==================== Destroy Tests ====================


@pytest.mark.asyncio
class TestDestroy:
    """Tests for Controller.destroy."""

    async def test_destroy_in_reverse_order(
        self, controller, store, control_api, web_state
    ):
        store.put("app.web", "app", web_state)
        store.put(
            "ip_address.v4",
            "ip_address",
            {"id": "ip_v4_abc", "app": "web", "address": "137.66.1.1", "type": "v4"},
        )
        calls = []
        control_api.release_ip_address = AsyncMock(
            side_effect=lambda *a: calls.append("ip") or {}
        )
        control_api.delete_app = AsyncMock(
            side_effect=lambda *a: calls.append("app") or {}
        )

        reports = await controller.destroy()

        assert calls == ["ip", "app"]
        assert [r.key for r in reports] == ["ip_address.v4", "app.web"]
        assert len(store) == 0

    async def test_destroy_selected_keys(
        self, controller, store, control_api, web_state
    ):
        store.put("app.web", "app", web_state)
        store.put("app.api", "app", dict(web_state, name="api", id="api"))
        control_api.delete_app = AsyncMock(return_value={})

        await controller.destroy(["app.api"])

        control_api.delete_app.assert_awaited_once_with("api")
        assert "app.web" in store

    async def test_failed_machine_delete_stays_tracked(
        self, controller, store, machines_client
    ):
        store.put("machine.web-1", "machine", {"id": "m1", "app": "web"})
        machines_client.get_machine = AsyncMock(
            return_value=machines_response(body=machine_body(state="stopping"))
        )

        reports = await controller.destroy()

        assert reports[0].diagnostics.kinds() == [ErrorKind.DELETE_TIMEOUT]
        assert "machine.web-1" in store


# ==================== Import Tests ====================


@pytest.mark.asyncio
class TestImport:
    """Tests for Controller.import_resource."""

    async def test_import_reads_and_tracks(
        self, controller, store, control_api, app_payload
    ):
        control_api.get_full_app = AsyncMock(return_value={"app": app_payload})

        report = await controller.import_resource("app", "web", "web")

        assert report.success
        assert report.operation is Operation.IMPORT
        assert store.get("app.web")["org"] == "org-123"

    async def test_import_missing_object(self, controller, store, control_api):
        control_api.get_full_app = AsyncMock(
            side_effect=GraphQLErrorList(
                [GraphQLErrorEntry(NOT_FOUND_MESSAGE, ["app"])]
            )
        )

        report = await controller.import_resource("app", "web", "ghost")

        assert report.diagnostics.kinds() == [ErrorKind.IMPORT_FAILED]
        assert "app.web" not in store

    async def test_import_invalid_id(self, controller, store):
        report = await controller.import_resource("machine", "web-1", "no-slash")

        assert report.diagnostics.kinds() == [ErrorKind.IMPORT_FAILED]
        assert len(store) == 0
