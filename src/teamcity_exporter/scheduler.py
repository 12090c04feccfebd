"""Per-instance scrape scheduling."""

import asyncio
import logging
import time

from teamcity_exporter.config import InstanceConfig
from teamcity_exporter.core.metrics import (
    INSTANCE_LAST_SCRAPE_DURATION,
    INSTANCE_LAST_SCRAPE_FINISH_TIME,
    instance_gauge,
)
from teamcity_exporter.core.ports import BuildServerGateway, MetricsStoragePort
from teamcity_exporter.pipeline import run_pipeline
from teamcity_exporter.prober import InstanceProber

logger = logging.getLogger(__name__)


class InstanceScheduler:
    """Launches one scrape of an instance per tick of a fixed-interval timer.

    The interval is measured from tick to tick, not from the end of the
    previous scrape. Each scrape runs as its own task. Unless the instance
    sets ``allow_overlap``, a tick that arrives while the previous scrape is
    still running is skipped.
    """

    def __init__(
        self,
        instance: InstanceConfig,
        gateway: BuildServerGateway,
        storage: MetricsStoragePort,
        prober: InstanceProber | None = None,
        collapse_single_branch: bool = True,
    ) -> None:
        self.instance = instance
        self._gateway = gateway
        self._storage = storage
        self._prober = prober
        self._collapse_single_branch = collapse_single_branch
        self._scrapes: set[asyncio.Task[None]] = set()
        self._probes: set[asyncio.Task[int]] = set()

    @property
    def busy(self) -> bool:
        """True while at least one scrape of this instance is in flight."""
        return bool(self._scrapes)

    async def scrape(self) -> None:
        """Run one pipeline pass and record its finish time and duration."""
        started = time.monotonic()
        logger.debug("Starting scrape of instance '%s'", self.instance.name)
        try:
            await run_pipeline(
                self.instance,
                self._gateway,
                self._storage,
                self._collapse_single_branch,
            )
        except Exception:
            logger.exception("Scrape of instance '%s' failed", self.instance.name)

        duration = time.monotonic() - started
        await self._storage.write(
            instance_gauge(INSTANCE_LAST_SCRAPE_FINISH_TIME, self.instance.name, time.time())
        )
        await self._storage.write(
            instance_gauge(INSTANCE_LAST_SCRAPE_DURATION, self.instance.name, duration)
        )
        logger.info(
            "Finished scrape of instance '%s' in %.3fs", self.instance.name, duration
        )

    def tick(self) -> asyncio.Task[None] | None:
        """Launch a scrape without waiting for it.

        Returns:
            The scrape task, or None when the tick was skipped.
        """
        if self.busy and not self.instance.allow_overlap:
            logger.warning(
                "Skipping scrape of instance '%s': previous scrape still running",
                self.instance.name,
            )
            return None

        task = asyncio.create_task(self.scrape(), name=f"scrape:{self.instance.name}")
        self._scrapes.add(task)
        task.add_done_callback(self._scrapes.discard)

        if self._prober is not None:
            probe = asyncio.create_task(
                self._prober.probe(self.instance), name=f"probe:{self.instance.name}"
            )
            self._probes.add(probe)
            probe.add_done_callback(self._probes.discard)
        return task

    async def run_forever(self) -> None:
        """Tick immediately, then once per scrape interval until cancelled."""
        loop = asyncio.get_running_loop()
        interval = self.instance.scrape_interval
        next_tick = loop.time()
        logger.info(
            "Scheduling instance '%s' every %ss", self.instance.name, interval
        )
        while True:
            self.tick()
            next_tick += interval
            # missed ticks are dropped rather than fired in a burst
            while next_tick <= loop.time():
                next_tick += interval
            await asyncio.sleep(next_tick - loop.time())

    async def shutdown(self) -> None:
        """Cancel in-flight scrapes and probes and wait for them to finish."""
        pending = [*self._scrapes, *self._probes]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
