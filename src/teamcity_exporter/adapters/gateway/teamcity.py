"""TeamCity REST API adapter implementing BuildServerGateway.

Talks to the ``/httpAuth/app/rest`` API with HTTP basic authentication and
JSON responses. Every failure, whether transport, HTTP status or an
unexpected payload, is raised as GatewayError so callers can treat them
uniformly.
"""

from typing import Any

import httpx

from teamcity_exporter.core.models import (
    Branch,
    BuildDetails,
    BuildLocator,
    BuildType,
    Property,
)
from teamcity_exporter.core.ports import GatewayError

REST_PREFIX = "/httpAuth/app/rest"


class TeamCityClient:
    """Async TeamCity client.

    Example:
        ```python
        async with TeamCityClient("https://ci.example.com", "user", "pass") as tc:
            build_types = await tc.list_build_configurations()
        ```
    """

    def __init__(
        self,
        base_url: str,
        username: str = "",
        password: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Root URL of the TeamCity server.
            username: User for HTTP basic authentication.
            password: Password for HTTP basic authentication.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport, used to inject fakes in tests.
        """
        auth = httpx.BasicAuth(username, password) if username else None
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + REST_PREFIX,
            auth=auth,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "TeamCityClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, str] | None = None) -> Any:
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise GatewayError(
                f"GET {path} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise GatewayError(f"GET {path} failed: {e!s}") from e
        except ValueError as e:
            raise GatewayError(f"GET {path} returned malformed JSON") from e

    @staticmethod
    def _items(payload: Any, key: str, path: str) -> list[dict[str, Any]]:
        """Extract the list stored under key, treating a missing key as empty."""
        if not isinstance(payload, dict):
            raise GatewayError(f"GET {path} returned unexpected payload")
        items = payload.get(key) or []
        if not isinstance(items, list):
            raise GatewayError(f"GET {path} returned unexpected '{key}' field")
        return items

    async def list_build_configurations(self) -> list[BuildType]:
        """Return every build configuration visible to the credentials."""
        path = "/buildTypes"
        payload = await self._get(path)
        try:
            return [
                BuildType(
                    id=item["id"],
                    name=item.get("name", ""),
                    project_id=item.get("projectId", ""),
                )
                for item in self._items(payload, "buildType", path)
            ]
        except (KeyError, TypeError, AttributeError) as e:
            raise GatewayError(f"GET {path} returned malformed build type") from e

    async def list_branches(self, build_type_id: str) -> list[Branch]:
        """Return the branches known for a build configuration."""
        path = f"/buildTypes/id:{build_type_id}/branches"
        payload = await self._get(path)
        try:
            return [
                Branch(name=item["name"], default=bool(item.get("default", False)))
                for item in self._items(payload, "branch", path)
            ]
        except (KeyError, TypeError, AttributeError) as e:
            raise GatewayError(f"GET {path} returned malformed branch") from e

    async def query_builds(self, locator: BuildLocator) -> list[BuildDetails]:
        """Return the builds matching a locator."""
        path = "/builds"
        payload = await self._get(path, params={"locator": locator.render()})
        try:
            return [
                BuildDetails(
                    id=int(item["id"]),
                    build_type_id=item.get("buildTypeId", locator.build_type),
                    number=str(item.get("number", "")),
                    status=item.get("status", ""),
                    state=item.get("state", ""),
                    branch_name=item.get("branchName", ""),
                    web_url=item.get("webUrl", ""),
                )
                for item in self._items(payload, "build", path)
            ]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise GatewayError(f"GET {path} returned malformed build") from e

    async def get_build_statistics(self, build_id: int) -> list[Property]:
        """Return the statistics properties of one build."""
        path = f"/builds/id:{build_id}/statistics"
        payload = await self._get(path)
        try:
            return [
                Property(name=item["name"], value=str(item["value"]))
                for item in self._items(payload, "property", path)
            ]
        except (KeyError, TypeError, AttributeError) as e:
            raise GatewayError(f"GET {path} returned malformed property") from e
