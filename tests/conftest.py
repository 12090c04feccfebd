"""Shared test fixtures for all test modules."""

import httpx
import pytest

from teamcity_exporter.adapters.storage.in_memory import InMemoryMetricsStorage
from teamcity_exporter.adapters.storage.ring_buffer import RingBufferLogStorage
from tests.fakes import FakeGateway


@pytest.fixture
def metrics_storage() -> InMemoryMetricsStorage:
    """Fixture providing an empty metric store."""
    return InMemoryMetricsStorage()


@pytest.fixture
def log_storage() -> RingBufferLogStorage:
    """Fixture providing an empty log store."""
    return RingBufferLogStorage(max_size=100)


@pytest.fixture
def gateway() -> FakeGateway:
    """Fixture providing an empty fake build server."""
    return FakeGateway()


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Returns a callable that accepts an ASGI app and yields a client
    with ASGITransport configured.

    Usage:
        async def test_something(asgi_test_client):
            app = create_app(config, metrics_storage)
            async with asgi_test_client(app) as client:
                response = await client.get("/metrics")
    """

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client
