"""Unit tests for the IP address reconciler."""

from unittest.mock import AsyncMock

import pytest

from clients.errors import (
    ControlAPITransportError,
    GraphQLErrorEntry,
    GraphQLErrorList,
)
from diagnostics import ErrorKind
from models import IpAddressConfig
from plugins.reconcilers.base import NOT_FOUND_MESSAGE
from plugins.reconcilers.ip_address import IpAddressReconciler


@pytest.fixture
def reconciler(control_api):
    return IpAddressReconciler(control_api)


@pytest.fixture
def stored():
    return IpAddressConfig(
        id="ip_v4_abc", app="web", region="global", address="137.66.1.1", type="v4"
    )


@pytest.mark.asyncio
class TestIpAddressCreate:
    """Tests for IpAddressReconciler.create."""

    async def test_allocate(self, reconciler, control_api, ip_payload, stored):
        control_api.allocate_ip_address = AsyncMock(
            return_value={"allocateIpAddress": {"ipAddress": ip_payload}}
        )

        result = await reconciler.create(IpAddressConfig(app="web", type="v4"))

        assert result.success
        assert result.state == stored
        control_api.allocate_ip_address.assert_awaited_once_with(
            app_id="web", address_type="v4", region=None
        )

    async def test_allocate_failure(self, reconciler, control_api):
        control_api.allocate_ip_address = AsyncMock(
            side_effect=ControlAPITransportError("timeout")
        )

        result = await reconciler.create(IpAddressConfig(app="web", type="v6"))

        assert result.state is None
        errors = result.diagnostics.errors()
        assert errors[0].kind is ErrorKind.REQUEST_FAILED
        assert errors[0].summary == "IP allocation failed"

    async def test_allocate_structured_error(self, reconciler, control_api):
        control_api.allocate_ip_address = AsyncMock(
            side_effect=GraphQLErrorList(
                [GraphQLErrorEntry("App not found", ["allocateIpAddress"])]
            )
        )

        result = await reconciler.create(IpAddressConfig(app="nope", type="v4"))

        assert result.diagnostics.kinds() == [ErrorKind.STRUCTURED_BACKEND]
        assert result.diagnostics.errors()[0].detail == "allocateIpAddress"


@pytest.mark.asyncio
class TestIpAddressRead:
    """Tests for IpAddressReconciler.read."""

    async def test_read(self, reconciler, control_api, ip_payload, stored):
        control_api.get_ip_address = AsyncMock(
            return_value={"app": {"ipAddress": ip_payload}}
        )

        result = await reconciler.read(IpAddressConfig(app="web", address="137.66.1.1"))

        assert result.state == stored
        control_api.get_ip_address.assert_awaited_once_with("web", "137.66.1.1")

    async def test_read_not_found(self, reconciler, control_api, stored):
        control_api.get_ip_address = AsyncMock(
            side_effect=GraphQLErrorList(
                [GraphQLErrorEntry(NOT_FOUND_MESSAGE, ["app", "ipAddress"])]
            )
        )

        result = await reconciler.read(stored)

        assert result.removed is True
        assert len(result.diagnostics) == 0

    async def test_read_error_path_in_detail(self, reconciler, control_api, stored):
        control_api.get_ip_address = AsyncMock(
            side_effect=GraphQLErrorList(
                [GraphQLErrorEntry("Internal error", ["app", "ipAddresses", 0, "id"])]
            )
        )

        result = await reconciler.read(stored)

        assert result.removed is False
        assert result.state is stored
        assert result.diagnostics.errors()[0].detail == "app.ipAddresses[0].id"


@pytest.mark.asyncio
class TestIpAddressUpdateDelete:
    """Tests for IpAddressReconciler.update and delete."""

    async def test_update_unsupported(self, reconciler, stored):
        result = await reconciler.update(stored, stored)

        errors = result.diagnostics.errors()
        assert errors[0].kind is ErrorKind.UNSUPPORTED_OPERATION
        assert errors[0].summary == "IP address update not available"
        assert errors[0].detail == "Not allowed by backend; delete and recreate"

    async def test_delete_releases(self, reconciler, control_api, stored):
        control_api.release_ip_address = AsyncMock(return_value={})

        result = await reconciler.delete(stored)

        assert result.removed is True
        control_api.release_ip_address.assert_awaited_once_with("ip_v4_abc")

    async def test_delete_without_id_skips_release(self, reconciler, control_api):
        control_api.release_ip_address = AsyncMock()

        result = await reconciler.delete(IpAddressConfig(app="web", id=""))

        assert result.removed is True
        control_api.release_ip_address.assert_not_awaited()

    async def test_delete_failure_still_removes(self, reconciler, control_api, stored):
        control_api.release_ip_address = AsyncMock(
            side_effect=ControlAPITransportError("timeout")
        )

        result = await reconciler.delete(stored)

        assert result.removed is True
        assert result.diagnostics.kinds() == [ErrorKind.REQUEST_FAILED]


class TestIpAddressImport:
    """Tests for IpAddressReconciler.import_state."""

    def test_import(self, reconciler):
        result = reconciler.import_state("web/137.66.1.1")

        assert result.state == IpAddressConfig(app="web", address="137.66.1.1")

    def test_invalid_import_id(self, reconciler):
        result = reconciler.import_state("137.66.1.1")

        assert result.diagnostics.kinds() == [ErrorKind.IMPORT_FAILED]
