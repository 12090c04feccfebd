"""Application assembly: storage, schedulers and the FastAPI app."""

import asyncio
import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI

from teamcity_exporter import __version__
from teamcity_exporter.adapters.frameworks.fastapi import create_exporter_router
from teamcity_exporter.adapters.gateway.teamcity import TeamCityClient
from teamcity_exporter.adapters.storage.in_memory import InMemoryMetricsStorage
from teamcity_exporter.adapters.storage.ring_buffer import RingBufferLogStorage
from teamcity_exporter.config import ExporterConfig, InstanceConfig
from teamcity_exporter.core.metrics import EXPORTER_BUILD_INFO, gauge
from teamcity_exporter.core.ports import LogStoragePort, MetricsStoragePort
from teamcity_exporter.prober import InstanceProber
from teamcity_exporter.scheduler import InstanceScheduler

logger = logging.getLogger(__name__)

GatewayFactory = Callable[[InstanceConfig], TeamCityClient]


def default_gateway_factory(instance: InstanceConfig) -> TeamCityClient:
    return TeamCityClient(
        instance.url,
        username=instance.username,
        password=instance.password,
        timeout=instance.timeout,
    )


def create_app(
    config: ExporterConfig,
    metrics_storage: MetricsStoragePort | None = None,
    log_storage: LogStoragePort | None = None,
    metrics_path: str = "/metrics",
    gateway_factory: GatewayFactory = default_gateway_factory,
) -> FastAPI:
    """Create the exporter application.

    Scraping starts when the application's lifespan starts: one gateway
    client and one scheduler task per configured instance. Both are torn
    down on shutdown.

    Args:
        config: Validated exporter configuration.
        metrics_storage: Metric store shared by all schedulers and the
            metrics endpoint. A new in-memory store is used when omitted.
        log_storage: Store backing the /logs endpoint.
        metrics_path: Path under which metrics are exposed.
        gateway_factory: Builds the gateway client for an instance.

    Returns:
        FastAPI application.
    """
    if metrics_storage is None:
        metrics_storage = InMemoryMetricsStorage()
    if log_storage is None:
        log_storage = RingBufferLogStorage()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        await metrics_storage.write(
            gauge(EXPORTER_BUILD_INFO, 1.0, labels=[("version", __version__)])
        )
        prober = InstanceProber(metrics_storage)
        clients = [gateway_factory(instance) for instance in config.instances]
        schedulers = [
            InstanceScheduler(
                instance,
                client,
                metrics_storage,
                prober=prober,
                collapse_single_branch=config.collapse_single_branch,
            )
            for instance, client in zip(config.instances, clients)
        ]
        tasks = [
            asyncio.create_task(s.run_forever(), name=f"schedule:{s.instance.name}")
            for s in schedulers
        ]
        app.state.schedulers = schedulers
        try:
            yield
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            for scheduler in schedulers:
                await scheduler.shutdown()
            for client in clients:
                await client.aclose()
            logger.info("Stopped %d scheduler(s)", len(schedulers))

    app = FastAPI(title="Teamcity Exporter", version=__version__, lifespan=lifespan)
    app.state.metrics_storage = metrics_storage
    app.state.log_storage = log_storage
    app.include_router(
        create_exporter_router(log_storage, metrics_storage, metrics_path=metrics_path)
    )
    return app
