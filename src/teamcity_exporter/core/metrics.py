"""Metric naming and helper functions for creating MetricSample objects."""

import time
from collections.abc import Iterable

from teamcity_exporter.core.models import Label, MetricSample

NAMESPACE = "teamcity"

INSTANCE_STATUS = f"{NAMESPACE}_instance_status"
INSTANCE_LAST_SCRAPE_FINISH_TIME = f"{NAMESPACE}_instance_last_scrape_finish_time"
INSTANCE_LAST_SCRAPE_DURATION = f"{NAMESPACE}_instance_last_scrape_duration"
EXPORTER_BUILD_INFO = f"{NAMESPACE}_exporter_build_info"

HELP_TEXT = {
    INSTANCE_STATUS: "Teamcity instance status",
    INSTANCE_LAST_SCRAPE_FINISH_TIME: "Teamcity instance last scrape finish time",
    INSTANCE_LAST_SCRAPE_DURATION: "Teamcity instance last scrape duration",
    EXPORTER_BUILD_INFO: "A metric with a constant '1' value labeled by version",
}


def gauge(
    name: str,
    value: float,
    labels: Iterable[tuple[str, str]] = (),
    help: str | None = None,
) -> MetricSample:
    """Create a gauge metric sample.

    Args:
        name: Metric name (e.g., "teamcity_instance_status")
        value: Current gauge value
        labels: Ordered (name, value) label pairs
        help: Help text; defaults to the known text for fixed metrics,
            otherwise the metric name

    Returns:
        MetricSample with current timestamp
    """
    return MetricSample(
        name=name,
        value=float(value),
        labels=tuple(Label(n, v) for n, v in labels),
        help=help if help is not None else HELP_TEXT.get(name, name),
        timestamp=time.time(),
    )


def instance_gauge(name: str, instance: str, value: float) -> MetricSample:
    """Create one of the fixed per-instance gauges."""
    return gauge(name, value, labels=[("instance", instance)])


def to_snake_case(raw: str) -> str:
    """Convert a camelCase or PascalCase statistic name to snake_case.

    An underscore is inserted before an upper-case letter that starts a new
    word, so acronyms stay together ("BuildDurationNetTime" becomes
    "build_duration_net_time", "CodeCoverageLOC" becomes "code_coverage_loc").
    Characters that are not valid in a metric name become underscores.
    """
    out: list[str] = []
    length = len(raw)
    for i, char in enumerate(raw):
        if (
            i > 0
            and char.isupper()
            and (raw[i - 1].islower() or (i + 1 < length and raw[i + 1].islower()))
            and out[-1] != "_"
        ):
            out.append("_")
        if char.isascii() and (char.isalnum() or char == "_"):
            out.append(char.lower())
        else:
            out.append("_")
    return "".join(out)


def statistic_metric_name(raw: str) -> tuple[str, str | None]:
    """Split a raw statistic name into a metric name and an optional remainder.

    The part before the first colon becomes the metric name; anything after
    it is returned separately so it can be attached as the ``other`` label.

    Example:
        >>> statistic_metric_name("buildStageDuration:firstStepPreparation")
        ('teamcity_build_stage_duration', 'firstStepPreparation')
    """
    head, sep, rest = raw.partition(":")
    name = f"{NAMESPACE}_{to_snake_case(head)}"
    return name, (rest if sep else None)
