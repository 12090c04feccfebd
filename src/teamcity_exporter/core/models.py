"""Core domain models for build-server data and exported samples."""

from dataclasses import dataclass, field
from typing import NamedTuple

from teamcity_exporter.core.identity import identity_hash


@dataclass(frozen=True)
class LogEntry:
    """A structured log entry.

    Attributes:
        timestamp: Unix timestamp in seconds.
        level: Log level (e.g., INFO, ERROR, DEBUG).
        message: The log message.
        attributes: Additional structured fields.
    """

    timestamp: float
    level: str
    message: str
    attributes: dict[str, str | int | float | bool] = field(default_factory=dict)


class Label(NamedTuple):
    """A single metric dimension."""

    name: str
    value: str


@dataclass(frozen=True)
class MetricSample:
    """A single gauge measurement.

    Labels are kept as an ordered tuple because label schemas are built at
    run time: two samples with the same name may carry different label
    names. Identity is therefore computed from the name and the label
    values only.

    Attributes:
        name: Metric name (e.g., teamcity_build_duration).
        value: The gauge value.
        labels: Ordered label pairs.
        help: Help text rendered in the exposition output.
        timestamp: Unix timestamp in seconds when the sample was taken.
    """

    name: str
    value: float
    labels: tuple[Label, ...] = ()
    help: str = ""
    timestamp: float = 0.0

    @property
    def label_values(self) -> tuple[str, ...]:
        return tuple(label.value for label in self.labels)

    @property
    def identity(self) -> str:
        """Deterministic store key for (name, ordered label values)."""
        return identity_hash(self.name, *self.label_values)


@dataclass(frozen=True)
class BuildLocator:
    """Query descriptor used to select builds on the build server.

    Attributes:
        build_type: Build configuration id.
        branch: Branch name; empty means the default branch.
        count: Maximum number of builds to return.
    """

    build_type: str = ""
    branch: str = ""
    count: str = "1"

    def render(self) -> str:
        """Render the locator in TeamCity's ``dimension:value`` syntax."""
        parts = []
        if self.build_type:
            parts.append(f"buildType:(id:{self.build_type})")
        if self.branch:
            parts.append(f"branch:(name:{self.branch})")
        if self.count:
            parts.append(f"count:{self.count}")
        return ",".join(parts)


@dataclass(frozen=True)
class BuildFilter:
    """A concrete, expanded build selection for one instance.

    Attributes:
        name: Name of the configured filter this was expanded from.
        instance: Name of the owning instance.
        locator: The locator sent to the gateway.
    """

    name: str
    instance: str
    locator: BuildLocator


@dataclass(frozen=True)
class BuildType:
    id: str
    name: str = ""
    project_id: str = ""


@dataclass(frozen=True)
class Branch:
    name: str
    default: bool = False


@dataclass(frozen=True)
class BuildDetails:
    """A build record as returned by the build server."""

    id: int
    build_type_id: str
    number: str = ""
    status: str = ""
    state: str = ""
    branch_name: str = ""
    web_url: str = ""


@dataclass(frozen=True)
class Build:
    """A build record paired with the filter that selected it."""

    details: BuildDetails
    filter: BuildFilter


@dataclass(frozen=True)
class Property:
    """A single build statistic as a raw name/value string pair."""

    name: str
    value: str


@dataclass(frozen=True)
class BuildStatistics:
    """A build paired with its statistics properties."""

    build: Build
    properties: tuple[Property, ...] = ()
