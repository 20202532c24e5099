"""
Machines API Client - JSON-over-HTTP calls to the machines endpoint.

The machines API is only reachable through a wireguard tunnel to the
private network. Responses are returned as MachinesResponse records
regardless of HTTP status; only transport failures raise.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import aiohttp
from pydantic import BaseModel, ConfigDict, Field

from clients.errors import MachinesTransportError
from config import MachinesAPIConfig

logger = logging.getLogger(__name__)

# Path that no handler serves; a 404 proves the tunnel reaches the API.
PROBE_PATH = "/bogus"


# Request models


class GuestConfig(BaseModel):
    """Guest sizing. Unset fields are omitted so the backend applies defaults."""

    cpus: Optional[int] = None
    memory_mb: Optional[int] = None
    cpu_type: Optional[str] = None


class ImageConfig(BaseModel):
    image: str


class CreateMachineRequest(BaseModel):
    """Request body for creating a machine."""

    name: str
    config: ImageConfig
    guest: Optional[GuestConfig] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


# Response models


class MachineGuest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cpu_kind: str = ""
    cpus: int = 0
    memory_mb: int = 0


class MachineSpec(BaseModel):
    model_config = ConfigDict(extra="ignore")

    image: str = ""
    guest: MachineGuest = Field(default_factory=MachineGuest)


class Machine(BaseModel):
    """Machine representation returned by create and get."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    state: str = ""
    region: str = ""
    instance_id: Optional[str] = None
    private_ip: Optional[str] = None
    config: MachineSpec = Field(default_factory=MachineSpec)
    created_at: Optional[datetime] = None


@dataclass
class MachinesResponse:
    """Status, request URL and decoded JSON body of a machines API call."""

    status: int
    reason: str
    url: str
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def describe(self) -> str:
        """Render status, URL and body for a diagnostic detail."""
        return f"{self.status} {self.reason}, {self.url}, {self.body!r}"


class MachinesClient:
    """
    Client for the machines API.

    Opens a session per request, which keeps one instance safe to share
    across concurrent reconciler operations.
    """

    def __init__(self, config: MachinesAPIConfig):
        self.base_url = config.base_url
        self.timeout = config.timeout
        self._token = config.token

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def machines_url(self, app: str, machine_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/v1/apps/{app}/machines"
        if machine_id:
            url = f"{url}/{machine_id}"
        return url

    async def _request(
        self, method: str, url: str, payload: Optional[Dict[str, Any]] = None
    ) -> MachinesResponse:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(
                    method, url, headers=self._get_headers(), json=payload
                ) as response:
                    try:
                        body = await response.json(content_type=None)
                    except ValueError:
                        body = None
                    return MachinesResponse(
                        status=response.status,
                        reason=response.reason or "",
                        url=url,
                        body=body,
                    )
        except aiohttp.ClientError as e:
            raise MachinesTransportError(f"{method} {url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise MachinesTransportError(
                f"{method} {url} timed out after {self.timeout}s"
            ) from e

    async def probe(self) -> MachinesResponse:
        """Request an unserved path to check the tunnel is open."""
        return await self._request("GET", f"{self.base_url}{PROBE_PATH}")

    async def create_machine(
        self, app: str, request: CreateMachineRequest
    ) -> MachinesResponse:
        payload = request.to_payload()
        logger.debug(f"Create machine request for app {app}: {payload}")
        return await self._request("POST", self.machines_url(app), payload)

    async def get_machine(self, app: str, machine_id: str) -> MachinesResponse:
        return await self._request("GET", self.machines_url(app, machine_id))

    async def stop_machine(self, app: str, machine_id: str) -> MachinesResponse:
        return await self._request(
            "POST", f"{self.machines_url(app, machine_id)}/stop"
        )

    async def delete_machine(self, app: str, machine_id: str) -> MachinesResponse:
        return await self._request("DELETE", self.machines_url(app, machine_id))
