"""Concurrent scrape pipeline for one TeamCity instance.

A scrape runs four stages connected by queues:

    prepare_filters -> fetch_builds -> fetch_statistics -> parse_statistics

The fetch stages start one task per item and wait for all of them before
closing their output, so the run finishes exactly when every spawned query
has finished. A failed query only drops the item it was made for.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterator
from typing import Any

from teamcity_exporter.config import InstanceConfig
from teamcity_exporter.core.metrics import gauge, statistic_metric_name
from teamcity_exporter.core.models import (
    Build,
    BuildFilter,
    BuildLocator,
    BuildStatistics,
    MetricSample,
)
from teamcity_exporter.core.ports import (
    BuildServerGateway,
    GatewayError,
    MetricsStoragePort,
)

logger = logging.getLogger(__name__)

_CLOSED = object()


async def _consume(queue: asyncio.Queue[Any]) -> AsyncIterator[Any]:
    """Yield queue items until the closing sentinel arrives."""
    while True:
        item = await queue.get()
        if item is _CLOSED:
            return
        yield item


async def expand_filters(
    instance: InstanceConfig,
    gateway: BuildServerGateway,
    collapse_single_branch: bool = True,
) -> AsyncIterator[BuildFilter]:
    """Expand an instance's configured filters into concrete build filters.

    Wildcard build types are resolved by listing all build configurations,
    queried at most once per expansion. Wildcard branches are resolved per
    build type. A build type with a single branch yields one filter with an
    empty branch, since that branch is the default one and TeamCity ignores
    an explicit default-branch locator.

    Filters are yielded one at a time as soon as they are known.
    """
    build_types: list[str] | None = None
    build_types_failed = False

    for configured in instance.builds_filters:
        selector = configured.filter

        if selector.build_type:
            candidates = [selector.build_type]
        else:
            if build_types is None and not build_types_failed:
                try:
                    found = await gateway.list_build_configurations()
                    build_types = [bt.id for bt in found]
                except GatewayError as e:
                    build_types_failed = True
                    logger.error(
                        "Failed to query available build configurations for instance '%s': %s",
                        instance.name,
                        e,
                    )
            if build_types is None:
                logger.warning(
                    "Skipping filter '%s' of instance '%s': build configurations unavailable",
                    configured.name,
                    instance.name,
                )
                continue
            candidates = build_types

        for build_type in candidates:
            if selector.branch:
                branches = [selector.branch]
            else:
                try:
                    found_branches = await gateway.list_branches(build_type)
                except GatewayError as e:
                    logger.error(
                        "Failed to query branches for '%s' build configuration: %s",
                        build_type,
                        e,
                    )
                    continue
                if len(found_branches) > 1 or (
                    found_branches and not collapse_single_branch
                ):
                    branches = [b.name for b in found_branches]
                else:
                    branches = [""]

            for branch in branches:
                yield BuildFilter(
                    name=configured.name,
                    instance=instance.name,
                    locator=BuildLocator(build_type=build_type, branch=branch, count="1"),
                )


async def prepare_filters(
    instance: InstanceConfig,
    gateway: BuildServerGateway,
    outbox: asyncio.Queue[Any],
    collapse_single_branch: bool = True,
) -> None:
    """Publish expanded filters to outbox, then close it."""
    try:
        async for build_filter in expand_filters(
            instance, gateway, collapse_single_branch
        ):
            await outbox.put(build_filter)
    finally:
        outbox.put_nowait(_CLOSED)


async def fetch_builds(
    gateway: BuildServerGateway,
    inbox: asyncio.Queue[Any],
    outbox: asyncio.Queue[Any],
) -> None:
    """Query the builds of every incoming filter concurrently."""

    async def fetch(build_filter: BuildFilter) -> None:
        try:
            builds = await gateway.query_builds(build_filter.locator)
        except GatewayError as e:
            logger.error(
                "Failed to query builds by filter '%s' (%s): %s",
                build_filter.name,
                build_filter.locator.render(),
                e,
            )
            return
        for details in builds:
            await outbox.put(Build(details=details, filter=build_filter))

    try:
        async with asyncio.TaskGroup() as tg:
            async for build_filter in _consume(inbox):
                tg.create_task(fetch(build_filter))
    finally:
        outbox.put_nowait(_CLOSED)


async def fetch_statistics(
    gateway: BuildServerGateway,
    inbox: asyncio.Queue[Any],
    outbox: asyncio.Queue[Any],
) -> None:
    """Query the statistics of every incoming build concurrently."""

    async def fetch(build: Build) -> None:
        try:
            properties = await gateway.get_build_statistics(build.details.id)
        except GatewayError as e:
            logger.error(
                "Failed to query build statistics for build %s: %s",
                build.details.web_url or build.details.id,
                e,
            )
            return
        await outbox.put(BuildStatistics(build=build, properties=tuple(properties)))

    try:
        async with asyncio.TaskGroup() as tg:
            async for build in _consume(inbox):
                tg.create_task(fetch(build))
    finally:
        outbox.put_nowait(_CLOSED)


def parse_statistic_value(raw: str) -> float:
    """Parse a statistic value as a float.

    Stricter than ``float()``: surrounding whitespace and digit-group
    underscores are rejected.

    Raises:
        ValueError: If raw is not a plain number.
    """
    if raw != raw.strip() or "_" in raw:
        raise ValueError(f"invalid number: {raw!r}")
    return float(raw)


def statistics_samples(stats: BuildStatistics) -> Iterator[MetricSample]:
    """Convert the numeric properties of one build into gauge samples.

    Properties whose value is not a number are logged and skipped.
    """
    build_filter = stats.build.filter
    details = stats.build.details
    base_labels = [
        ("exporter_instance", build_filter.instance),
        ("exporter_filter", build_filter.name),
        ("build_configuration", details.build_type_id),
        ("branch", details.branch_name),
    ]

    for prop in stats.properties:
        try:
            value = parse_statistic_value(prop.value)
        except ValueError as e:
            logger.error(
                "Failed to convert string '%s' to float for '%s': %s",
                prop.value,
                prop.name,
                e,
            )
            continue

        name, other = statistic_metric_name(prop.name)
        labels = list(base_labels)
        if other is not None:
            labels.append(("other", other))
        yield gauge(name, value, labels=labels)


async def parse_statistics(
    inbox: asyncio.Queue[Any],
    storage: MetricsStoragePort,
) -> None:
    """Write a sample for every numeric statistic of every incoming build."""
    async for stats in _consume(inbox):
        for sample in statistics_samples(stats):
            await storage.write(sample)


async def run_pipeline(
    instance: InstanceConfig,
    gateway: BuildServerGateway,
    storage: MetricsStoragePort,
    collapse_single_branch: bool = True,
) -> None:
    """Run one complete scrape of an instance into storage."""
    filters: asyncio.Queue[Any] = asyncio.Queue()
    builds: asyncio.Queue[Any] = asyncio.Queue()
    statistics: asyncio.Queue[Any] = asyncio.Queue()

    async with asyncio.TaskGroup() as tg:
        tg.create_task(
            prepare_filters(instance, gateway, filters, collapse_single_branch)
        )
        tg.create_task(fetch_builds(gateway, filters, builds))
        tg.create_task(fetch_statistics(gateway, builds, statistics))
        tg.create_task(parse_statistics(statistics, storage))
