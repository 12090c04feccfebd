"""BDD step definitions for scrape features.

Steps drive the real pipeline, prober and FastAPI app against the
in-memory FakeGateway and httpx mock transports.
"""

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
from pytest_bdd import given, parsers, then, when

from teamcity_exporter.adapters.storage.in_memory import InMemoryMetricsStorage
from teamcity_exporter.app import create_app
from teamcity_exporter.config import ExporterConfig, InstanceConfig
from teamcity_exporter.core.models import Property
from teamcity_exporter.pipeline import run_pipeline
from teamcity_exporter.prober import InstanceProber
from tests.fakes import FakeGateway, make_instance

_SAMPLE_LINE = re.compile(r"^(?P<name>[a-zA-Z_:][a-zA-Z0-9_:]*)(?:\{(?P<labels>.*)\})? (?P<value>\S+)$")
_LABEL = re.compile(r'(?P<name>[a-zA-Z_][a-zA-Z0-9_]*)="(?P<value>(?:[^"\\]|\\.)*)"')


@dataclass
class ExportedSample:
    name: str
    labels: dict[str, str]
    value: float


@dataclass
class ScrapeScenarioContext:
    """State shared between the steps of one scenario."""

    storage: InMemoryMetricsStorage = field(default_factory=InMemoryMetricsStorage)
    gateway: FakeGateway = field(default_factory=FakeGateway)
    instance: InstanceConfig | None = None
    probe_status: int = 200
    body: str = ""


def run_async(coro: Any) -> Any:
    """Run a coroutine to completion from a synchronous step."""
    return asyncio.run(coro)


def parse_exposition(body: str) -> list[ExportedSample]:
    """Parse the sample lines of a Prometheus text exposition."""
    samples = []
    for line in body.splitlines():
        if not line or line.startswith("#"):
            continue
        match = _SAMPLE_LINE.match(line)
        assert match is not None, f"unparseable line: {line}"
        labels = {
            m.group("name"): m.group("value")
            for m in _LABEL.finditer(match.group("labels") or "")
        }
        samples.append(
            ExportedSample(
                name=match.group("name"), labels=labels, value=float(match.group("value"))
            )
        )
    return samples


@pytest.fixture
def ctx() -> ScrapeScenarioContext:
    """Fresh scenario context for each test."""
    return ScrapeScenarioContext()


# === Background Steps ===
@given("an empty metric store")
def step_empty_store(ctx: ScrapeScenarioContext) -> None:
    ctx.storage = InMemoryMetricsStorage()


# === Build Server Steps ===
@given(parsers.parse('a build server with build type "{build_type}" on branches "{branches}"'))
def step_build_server(ctx: ScrapeScenarioContext, build_type: str, branches: str) -> None:
    ctx.gateway.build_types.append(build_type)
    ctx.gateway.branches[build_type] = [b.strip() for b in branches.split(",")]


@given(
    parsers.parse(
        'every branch has a build with statistic "{name}" = "{value}"'
    )
)
def step_builds_with_statistic(ctx: ScrapeScenarioContext, name: str, value: str) -> None:
    for build_type, branches in ctx.gateway.branches.items():
        for branch in branches:
            existing = ctx.gateway.builds.get((build_type, branch))
            if existing:
                ctx.gateway.statistics[existing[0].id].append(Property(name, value))
            else:
                ctx.gateway.add_build(build_type, branch, {name: value})


@given(parsers.parse('an instance "{name}" with one unrestricted filter'))
def step_instance(ctx: ScrapeScenarioContext, name: str) -> None:
    ctx.instance = make_instance(name=name, filters=[{"name": "all"}])


@given(parsers.parse('an instance "{name}" whose base URL answers HTTP {status:d}'))
def step_probed_instance(ctx: ScrapeScenarioContext, name: str, status: int) -> None:
    ctx.instance = make_instance(name=name)
    ctx.probe_status = status


# === Action Steps ===
@when("the instance is scraped")
def step_scrape(ctx: ScrapeScenarioContext) -> None:
    assert ctx.instance is not None
    run_async(run_pipeline(ctx.instance, ctx.gateway, ctx.storage))


@when("the instance is probed")
def step_probe(ctx: ScrapeScenarioContext) -> None:
    assert ctx.instance is not None
    status = ctx.probe_status
    prober = InstanceProber(
        ctx.storage,
        transport=httpx.MockTransport(lambda request: httpx.Response(status)),
    )
    run_async(prober.probe(ctx.instance))


@when("the metrics endpoint is requested")
def step_request_metrics(ctx: ScrapeScenarioContext) -> None:
    assert ctx.instance is not None
    app = create_app(ExporterConfig(instances=(ctx.instance,)), metrics_storage=ctx.storage)

    async def fetch() -> str:
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as client:
            response = await client.get("/metrics")
            assert response.status_code == 200
            return response.text

    ctx.body = run_async(fetch())


# === Assertion Steps ===
@then(parsers.parse('the response contains {count:d} samples named "{name}"'))
def step_sample_count(ctx: ScrapeScenarioContext, count: int, name: str) -> None:
    samples = [s for s in parse_exposition(ctx.body) if s.name == name]
    assert len(samples) == count


@then(
    parsers.parse(
        'every "{name}" sample has {label}="{label_value}" and value {value:g}'
    )
)
def step_every_sample(
    ctx: ScrapeScenarioContext, name: str, label: str, label_value: str, value: float
) -> None:
    samples = [s for s in parse_exposition(ctx.body) if s.name == name]
    assert samples
    for sample in samples:
        assert sample.labels[label] == label_value
        assert sample.value == value


@then(parsers.parse('the "{name}" samples differ only in their "{label}" label'))
def step_differ_only_in(ctx: ScrapeScenarioContext, name: str, label: str) -> None:
    samples = [s for s in parse_exposition(ctx.body) if s.name == name]
    others = [{k: v for k, v in s.labels.items() if k != label} for s in samples]
    assert all(o == others[0] for o in others)
    assert len({s.labels[label] for s in samples}) == len(samples)


@then(parsers.parse('builds of "{build_type}" were queried without a branch'))
def step_queried_without_branch(ctx: ScrapeScenarioContext, build_type: str) -> None:
    locators = [
        call[1]
        for call in ctx.gateway.calls
        if call[0] == "query_builds" and call[1].build_type == build_type
    ]
    assert [loc.branch for loc in locators] == [""]


@then(parsers.parse('the exported status of "{instance}" is {value:d}'))
def step_exported_status(ctx: ScrapeScenarioContext, instance: str, value: int) -> None:
    (status,) = [
        s
        for s in parse_exposition(ctx.body)
        if s.name == "teamcity_instance_status" and s.labels.get("instance") == instance
    ]
    assert status.value == value
