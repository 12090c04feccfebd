"""Storage adapters implementing core ports."""

from teamcity_exporter.adapters.storage.in_memory import InMemoryMetricsStorage
from teamcity_exporter.adapters.storage.ring_buffer import RingBufferLogStorage

__all__ = [
    "InMemoryMetricsStorage",
    "RingBufferLogStorage",
]
