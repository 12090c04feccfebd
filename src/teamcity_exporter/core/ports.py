"""Port interfaces for storage and build-server adapters.

These protocols define the contracts that adapters must implement.
The core pipeline depends only on these interfaces, not concrete implementations.
"""

from collections.abc import AsyncIterable
from typing import Protocol, runtime_checkable

from teamcity_exporter.core.models import (
    Branch,
    BuildDetails,
    BuildLocator,
    BuildType,
    LogEntry,
    MetricSample,
    Property,
)


class GatewayError(Exception):
    """A build-server query failed."""


@runtime_checkable
class LogStoragePort(Protocol):
    """Port for log storage operations.

    Adapters implementing this protocol can store and retrieve log entries.
    Examples: RingBufferLogStorage.
    """

    async def write(self, entry: LogEntry) -> None:
        """Write a log entry to storage."""
        ...

    def write_sync(self, entry: LogEntry) -> None:
        """Write a log entry from non-async code such as logging handlers."""
        ...

    def read(
        self, since: float = 0, level: str | None = None
    ) -> AsyncIterable[LogEntry]:
        """Read log entries since the given timestamp.

        Args:
            since: Unix timestamp. Returns entries with timestamp > since.
                   Default 0 returns all entries.
            level: Optional level filter (e.g. "ERROR").

        Returns:
            Async iterable of LogEntry objects, ordered by timestamp ascending.
        """
        ...


@runtime_checkable
class MetricsStoragePort(Protocol):
    """Port for the latest-value metric store.

    Adapters keep at most one sample per identity hash. Writing a sample
    whose identity already exists replaces the previous one.
    Examples: InMemoryMetricsStorage.
    """

    async def set(self, key: str, sample: MetricSample) -> None:
        """Store a sample under an identity hash, replacing any existing one."""
        ...

    async def write(self, sample: MetricSample) -> None:
        """Store a sample under its own identity hash."""
        ...

    def scrape(self) -> AsyncIterable[MetricSample]:
        """Scrape all current metric samples.

        Returns:
            Async iterable over a snapshot of the current samples.
        """
        ...


@runtime_checkable
class BuildServerGateway(Protocol):
    """Port for build-server queries.

    Every method may raise GatewayError. Callers treat all failures alike.
    """

    async def list_build_configurations(self) -> list[BuildType]:
        """Return every build configuration visible to the credentials."""
        ...

    async def list_branches(self, build_type_id: str) -> list[Branch]:
        """Return the branches known for a build configuration."""
        ...

    async def query_builds(self, locator: BuildLocator) -> list[BuildDetails]:
        """Return the builds matching a locator."""
        ...

    async def get_build_statistics(self, build_id: int) -> list[Property]:
        """Return the statistics properties of one build."""
        ...
