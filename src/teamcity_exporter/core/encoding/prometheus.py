"""Prometheus text format encoder for metric samples."""

import math
from collections.abc import AsyncIterable, Iterable

from teamcity_exporter.core.models import MetricSample

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def _format_value(value: float) -> str:
    """Format a float the way the Prometheus text format expects."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if float(value).is_integer() and abs(value) < 1e15:
        return f"{value:.1f}"
    return repr(value)


def _format_sample(sample: MetricSample) -> str:
    if not sample.labels:
        return f"{sample.name} {_format_value(sample.value)}"
    labels = ",".join(
        f'{label.name}="{_escape_label_value(label.value)}"' for label in sample.labels
    )
    return f"{sample.name}{{{labels}}} {_format_value(sample.value)}"


def encode_metrics(samples: Iterable[MetricSample]) -> str:
    """Encode metric samples to Prometheus text exposition format.

    Samples are grouped by metric name with one HELP and TYPE line per
    group. Groups and the samples inside them are sorted so the output is
    stable between scrapes.

    Args:
        samples: An iterable of MetricSample objects.

    Returns:
        Prometheus text format string. Empty string if no samples.
    """
    groups: dict[str, list[MetricSample]] = {}
    for sample in samples:
        groups.setdefault(sample.name, []).append(sample)

    if not groups:
        return ""

    lines = []
    for name in sorted(groups):
        group = sorted(groups[name], key=lambda s: s.label_values)
        lines.append(f"# HELP {name} {_escape_help(group[0].help or name)}")
        lines.append(f"# TYPE {name} gauge")
        lines.extend(_format_sample(sample) for sample in group)

    return "\n".join(lines) + "\n"


async def encode_current(samples: AsyncIterable[MetricSample]) -> str:
    """Collect an async sample stream and encode it to Prometheus text format."""
    return encode_metrics([sample async for sample in samples])
