"""Reachability and credential checks for TeamCity instances."""

import logging

import httpx

from teamcity_exporter.config import InstanceConfig
from teamcity_exporter.core.metrics import INSTANCE_STATUS, instance_gauge
from teamcity_exporter.core.ports import MetricsStoragePort

logger = logging.getLogger(__name__)


class InstanceProber:
    """Issues an authenticated GET against an instance and records its status.

    The status gauge is 1 when the instance answers and accepts the
    credentials, and 0 on any transport error or an HTTP 401.
    """

    def __init__(
        self,
        storage: MetricsStoragePort,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._storage = storage
        self._transport = transport

    async def probe(self, instance: InstanceConfig) -> int:
        """Probe one instance, write its status gauge and return the status."""
        status = await self._check(instance)
        await self._storage.write(instance_gauge(INSTANCE_STATUS, instance.name, status))
        return status

    async def _check(self, instance: InstanceConfig) -> int:
        auth = (
            httpx.BasicAuth(instance.username, instance.password)
            if instance.username
            else None
        )
        try:
            async with httpx.AsyncClient(
                auth=auth, timeout=instance.timeout, transport=self._transport
            ) as client:
                response = await client.get(instance.url)
        except httpx.HTTPError as e:
            logger.error("Instance '%s' is unreachable: %s", instance.name, e)
            return 0

        if response.status_code == httpx.codes.UNAUTHORIZED:
            logger.error("Unauthorized instance '%s'", instance.name)
            return 0

        logger.debug(
            "Instance '%s' answered with HTTP %d", instance.name, response.status_code
        )
        return 1
