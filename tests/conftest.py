"""Pytest configuration and fixtures."""

from unittest.mock import AsyncMock

import pytest

from clients.machines import MachinesResponse
from config import LifecycleConfig


def machine_body(state="started", **overrides):
    """Machine representation as returned by the machines API."""
    body = {
        "id": "3d8d9016b4e7d8",
        "name": "web-1",
        "state": state,
        "region": "ord",
        "instance_id": "01GB3Z1ZJ4D9",
        "private_ip": "fdaa:0:3b99:a7b:7f:6b32:d8a5:2",
        "config": {
            "env": None,
            "init": {"exec": None, "entrypoint": None, "cmd": None, "tty": False},
            "image": "nginx:latest",
            "metadata": None,
            "restart": {"policy": ""},
            "guest": {"cpu_kind": "shared", "cpus": 1, "memory_mb": 256},
        },
        "image_ref": {
            "registry": "registry-1.docker.io",
            "repository": "library/nginx",
            "tag": "latest",
            "digest": "sha256:abc123",
            "labels": {"maintainer": "NGINX Docker Maintainers"},
        },
        "created_at": "2022-08-10T12:00:00Z",
    }
    body.update(overrides)
    return body


def machines_response(status=200, body=None, reason="OK", url=None):
    return MachinesResponse(
        status=status,
        reason=reason,
        url=url or "http://127.0.0.1:4280/v1/apps/web/machines/3d8d9016b4e7d8",
        body=body,
    )


@pytest.fixture
def app_payload():
    """Backend ``app`` object for an app named 'web'."""
    return {
        "id": "web",
        "name": "web",
        "network": "default",
        "organization": {"id": "org-123", "slug": "personal"},
        "autoscaling": {
            "preferredRegion": "ord",
            "regions": [{"code": "ord"}, {"code": "ams"}],
        },
    }


@pytest.fixture
def ip_payload():
    """Backend ``ipAddress`` object."""
    return {
        "id": "ip_v4_abc",
        "address": "137.66.1.1",
        "type": "v4",
        "region": "global",
        "createdAt": "2022-08-10T12:00:00Z",
    }


@pytest.fixture
def control_api():
    """Mock control API client."""
    client = AsyncMock()
    client.get_default_org = AsyncMock(return_value={"id": "org-123"})
    return client


@pytest.fixture
def machines_client():
    """Mock machines API client with an open tunnel."""
    client = AsyncMock()
    client.probe = AsyncMock(
        return_value=machines_response(
            status=404, reason="Not Found", url="http://127.0.0.1:4280/bogus"
        )
    )
    return client


@pytest.fixture
def fast_lifecycle():
    return LifecycleConfig(max_retries=10, poll_interval=0)


@pytest.fixture
def sleep():
    return AsyncMock()
