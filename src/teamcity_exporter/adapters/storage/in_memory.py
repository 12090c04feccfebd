"""In-memory latest-value storage for metric samples."""

import threading
from collections.abc import AsyncIterable

from teamcity_exporter.core.models import MetricSample


class InMemoryMetricsStorage:
    """In-memory implementation of MetricsStoragePort.

    Keeps one sample per identity hash. A write for an existing identity
    replaces the stored sample as a whole, so readers never see a partially
    updated entry. Scrapes iterate over a copy taken under the lock, which
    keeps them safe while pipelines keep writing.
    """

    def __init__(self) -> None:
        self._samples: dict[str, MetricSample] = {}
        self._lock = threading.Lock()

    async def set(self, key: str, sample: MetricSample) -> None:
        """Store a sample under an identity hash, replacing any existing one."""
        self.set_sync(key, sample)

    async def write(self, sample: MetricSample) -> None:
        """Store a sample under its own identity hash."""
        self.set_sync(sample.identity, sample)

    def set_sync(self, key: str, sample: MetricSample) -> None:
        """Synchronous variant of set() for non-async callers."""
        with self._lock:
            self._samples[key] = sample

    def snapshot(self) -> dict[str, MetricSample]:
        """Return a copy of the current identity-hash to sample mapping."""
        with self._lock:
            return dict(self._samples)

    async def scrape(self) -> AsyncIterable[MetricSample]:
        """Scrape all current metric samples."""
        for sample in self.snapshot().values():
            yield sample

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)
