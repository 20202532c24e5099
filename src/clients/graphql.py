"""
Control API Client - GraphQL operations against the platform control plane.

Each operation returns the ``data`` object of the GraphQL response. Errors
surface either as a GraphQLErrorList (the server answered with an
``errors`` list) or as a ControlAPITransportError.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from clients.errors import (
    ControlAPITransportError,
    GraphQLErrorEntry,
    GraphQLErrorList,
)
from config import ControlAPIConfig

logger = logging.getLogger(__name__)

APP_FIELDS = """
    id
    name
    network
    organization { id slug }
    autoscaling { preferredRegion regions { code } }
"""

IP_FIELDS = """
    id
    address
    type
    region
    createdAt
"""

DEFAULT_ORG_QUERY = """
query {
  personalOrganization { id slug name }
}
"""

CREATE_APP_MUTATION = f"""
mutation($input: CreateAppInput!) {{
  createApp(input: $input) {{
    app {{ {APP_FIELDS} }}
  }}
}}
"""

CREATE_APP_WITH_AUTOSCALE_MUTATION = f"""
mutation($input: CreateAppInput!, $autoscale: UpdateAutoscaleConfigInput!) {{
  createApp(input: $input) {{
    app {{ {APP_FIELDS} }}
  }}
  updateAutoscaleConfig(input: $autoscale) {{
    app {{ autoscaling {{ preferredRegion regions {{ code }} }} }}
  }}
}}
"""

GET_FULL_APP_QUERY = f"""
query($name: String!) {{
  app(name: $name) {{ {APP_FIELDS} }}
}}
"""

UPDATE_AUTOSCALE_MUTATION = """
mutation($input: UpdateAutoscaleConfigInput!) {
  updateAutoscaleConfig(input: $input) {
    app { autoscaling { preferredRegion regions { code } } }
  }
}
"""

DELETE_APP_MUTATION = """
mutation($appId: ID!) {
  deleteApp(appId: $appId) {
    organization { id }
  }
}
"""

ALLOCATE_IP_MUTATION = f"""
mutation($input: AllocateIPAddressInput!) {{
  allocateIpAddress(input: $input) {{
    ipAddress {{ {IP_FIELDS} }}
  }}
}}
"""

GET_IP_QUERY = f"""
query($app: String!, $address: String!) {{
  app(name: $app) {{
    ipAddress(address: $address) {{ {IP_FIELDS} }}
  }}
}}
"""

RELEASE_IP_MUTATION = """
mutation($input: ReleaseIPAddressInput!) {
  releaseIpAddress(input: $input) {
    app { name }
  }
}
"""


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset and empty-string inputs so the server applies its defaults."""
    return {k: v for k, v in values.items() if v is not None and v != ""}


class ControlAPIClient:
    """
    Thin GraphQL client for the control API.

    A new aiohttp session is opened per request, so one client instance can
    be shared by concurrently running reconciler operations.
    """

    def __init__(self, config: ControlAPIConfig):
        self.endpoint = config.endpoint
        self.timeout = config.timeout
        self._token = config.token

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def execute(
        self, query: str, variables: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Execute a GraphQL document.

        Args:
            query: The GraphQL document.
            variables: Variables for the document.

        Returns:
            The ``data`` object of the response.

        Raises:
            GraphQLErrorList: The response carried a non-empty ``errors`` list.
            ControlAPITransportError: The request failed or the reply was not
                a GraphQL response.
        """
        payload = {"query": query, "variables": variables or {}}
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    self.endpoint, headers=self._get_headers(), json=payload
                ) as response:
                    try:
                        body = await response.json(content_type=None)
                    except ValueError:
                        body = None
                    status = response.status
        except aiohttp.ClientError as e:
            raise ControlAPITransportError(
                f"POST {self.endpoint} failed: {e}"
            ) from e
        except asyncio.TimeoutError as e:
            raise ControlAPITransportError(
                f"POST {self.endpoint} timed out after {self.timeout}s"
            ) from e

        if not isinstance(body, dict):
            raise ControlAPITransportError(
                f"Unexpected response from {self.endpoint}: HTTP {status}"
            )

        errors = body.get("errors")
        if errors:
            raise GraphQLErrorList([GraphQLErrorEntry.from_dict(e) for e in errors])

        if status != 200:
            raise ControlAPITransportError(
                f"Unexpected response from {self.endpoint}: HTTP {status}"
            )

        return body.get("data") or {}

    # Organizations

    async def get_default_org(self) -> Dict[str, Any]:
        """Return the caller's personal organization."""
        data = await self.execute(DEFAULT_ORG_QUERY)
        org = data.get("personalOrganization")
        if not org:
            raise ControlAPITransportError("No personal organization returned")
        return org

    # Applications

    async def create_app(
        self,
        name: str,
        org_id: str,
        preferred_region: Optional[str] = None,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        variables = {
            "input": _compact(
                {
                    "name": name,
                    "organizationId": org_id,
                    "preferredRegion": preferred_region,
                    "network": network,
                }
            )
        }
        logger.info(f"Creating app {name} in org {org_id}")
        return await self.execute(CREATE_APP_MUTATION, variables)

    async def create_app_with_autoscale(
        self,
        name: str,
        org_id: str,
        regions: List[Dict[str, Any]],
        preferred_region: Optional[str] = None,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create an app and set its autoscale regions in a single document."""
        variables = {
            "input": _compact(
                {
                    "name": name,
                    "organizationId": org_id,
                    "preferredRegion": preferred_region,
                    "network": network,
                }
            ),
            "autoscale": {"appId": name, "regions": regions},
        }
        logger.info(
            f"Creating app {name} in org {org_id} with "
            f"{len(regions)} autoscale regions"
        )
        return await self.execute(CREATE_APP_WITH_AUTOSCALE_MUTATION, variables)

    async def get_full_app(self, name: str) -> Dict[str, Any]:
        return await self.execute(GET_FULL_APP_QUERY, {"name": name})

    async def update_autoscale_config(
        self, app_id: str, regions: List[Dict[str, Any]], reset_regions: bool
    ) -> Dict[str, Any]:
        variables = {
            "input": {
                "appId": app_id,
                "regions": regions,
                "resetRegions": reset_regions,
            }
        }
        logger.info(f"Updating autoscale regions for app {app_id}")
        return await self.execute(UPDATE_AUTOSCALE_MUTATION, variables)

    async def delete_app(self, app_id: str) -> Dict[str, Any]:
        logger.info(f"Deleting app {app_id}")
        return await self.execute(DELETE_APP_MUTATION, {"appId": app_id})

    # IP addresses

    async def allocate_ip_address(
        self, app_id: str, address_type: str, region: Optional[str] = None
    ) -> Dict[str, Any]:
        variables = {
            "input": _compact(
                {"appId": app_id, "type": address_type, "region": region}
            )
        }
        logger.info(f"Allocating {address_type} address for app {app_id}")
        return await self.execute(ALLOCATE_IP_MUTATION, variables)

    async def get_ip_address(self, app_name: str, address: str) -> Dict[str, Any]:
        return await self.execute(
            GET_IP_QUERY, {"app": app_name, "address": address}
        )

    async def release_ip_address(self, ip_address_id: str) -> Dict[str, Any]:
        logger.info(f"Releasing IP address {ip_address_id}")
        return await self.execute(
            RELEASE_IP_MUTATION, {"input": {"ipAddressId": ip_address_id}}
        )
