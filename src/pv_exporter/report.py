"""
ReportBuilder - Weave Scope plugin report synthesis.

This module turns a published Snapshot into the "reporter" payload Scope
polls from the plugin socket. It performs no I/O: it only reads the
snapshot it is given.

Wire shape (must match Scope's plugin protocol exactly):
{
    "PersistentVolume": {
        "nodes": {"<uid>;<persistent_volume>": {"metrics": {"readIops": {...}}}},
        "metric_templates": {"readIops": {"id": "readIops", ...}}
    },
    "Plugins": [{"id": "openebs", "interfaces": ["reporter"], ...}]
}

Notes:
- Fields Scope declares as omitempty are dropped when empty or zero
- Whole floats are written without a fractional part, as Scope's own
  encoder does
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    field_serializer,
    model_serializer,
)

from pv_exporter.types import MetricField, Snapshot, VolumeMetrics, VolumeUID

TOPOLOGY_DELIMITER = ";"
PERSISTENT_VOLUME_TAG = "<persistent_volume>"

# Declared display range of every metric
METRIC_MIN = 0.0
METRIC_MAX = 100.0


def get_topology_key(uid: VolumeUID) -> str:
    """Return the Scope node ID for a PersistentVolume UID."""
    return f"{uid}{TOPOLOGY_DELIMITER}{PERSISTENT_VOLUME_TAG}"


def _compact_float(value: float) -> float | int:
    if math.isfinite(value) and value.is_integer():
        return int(value)
    return value


# =============================================================================
# Wire models
# =============================================================================


class WireModel(BaseModel):
    """Base for report models; drops empty omit_empty fields on dump."""

    model_config = ConfigDict(populate_by_name=True)

    omit_empty: ClassVar[frozenset[str]] = frozenset()

    @model_serializer(mode="wrap")
    def _drop_empty(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        return {k: v for k, v in data.items() if k not in self.omit_empty or v}


class Sample(WireModel):
    """One timestamped value."""

    date: datetime
    value: float

    @field_serializer("value")
    def _serialize_value(self, value: float) -> float | int:
        return _compact_float(value)


class Metric(WireModel):
    """Samples of one metric plus its declared range."""

    omit_empty: ClassVar[frozenset[str]] = frozenset({"samples"})

    samples: list[Sample] = Field(default_factory=list)
    min: float = METRIC_MIN
    max: float = METRIC_MAX

    @field_serializer("min", "max")
    def _serialize_bounds(self, value: float) -> float | int:
        return _compact_float(value)


class MetricTemplate(WireModel):
    """How Scope labels and formats a metric."""

    omit_empty: ClassVar[frozenset[str]] = frozenset({"label", "format", "priority"})

    id: str
    label: str = ""
    format: str = ""
    priority: float = 0.0

    @field_serializer("priority")
    def _serialize_priority(self, value: float) -> float | int:
        return _compact_float(value)


class Node(WireModel):
    """Metrics attached to one topology node."""

    metrics: dict[str, Metric] = Field(default_factory=dict)


class Topology(WireModel):
    """The PersistentVolume topology section."""

    nodes: dict[str, Node] = Field(default_factory=dict)
    metric_templates: dict[str, MetricTemplate] = Field(default_factory=dict)


class PluginSpec(WireModel):
    """Plugin descriptor shown in Scope's plugin list."""

    omit_empty: ClassVar[frozenset[str]] = frozenset({"description", "api_version"})

    id: str
    label: str
    description: str = ""
    interfaces: list[str] = Field(default_factory=lambda: ["reporter"])
    api_version: str = ""


class Report(WireModel):
    """Complete reporter payload."""

    persistent_volume: Topology = Field(alias="PersistentVolume")
    plugins: list[PluginSpec] = Field(alias="Plugins")


METRIC_TEMPLATES: dict[MetricField, MetricTemplate] = {
    MetricField.READ_IOPS: MetricTemplate(
        id="readIops", label="Iops(R)", format="", priority=0.1
    ),
    MetricField.WRITE_IOPS: MetricTemplate(
        id="writeIops", label="Iops(W)", format="", priority=0.2
    ),
    MetricField.READ_LATENCY: MetricTemplate(
        id="readLatency", label="Latency(R)", format="millisecond", priority=0.3
    ),
    MetricField.WRITE_LATENCY: MetricTemplate(
        id="writeLatency", label="Latency(W)", format="millisecond", priority=0.4
    ),
    MetricField.READ_THROUGHPUT: MetricTemplate(
        id="readThroughput", label="Throughput(R)", format="bytes", priority=0.5
    ),
    MetricField.WRITE_THROUGHPUT: MetricTemplate(
        id="writeThroughput", label="Throughput(W)", format="bytes", priority=0.6
    ),
}

DEFAULT_PLUGIN = PluginSpec(
    id="openebs",
    label="OpenEBS Plugin",
    description="Adds graphs of metrics of OpenEBS PV",
    interfaces=["reporter"],
    api_version="1",
)


# =============================================================================
# Builder
# =============================================================================


@dataclass
class ReportBuilder:
    """
    Renders Snapshots into Scope reports.

    Attributes:
        plugin: Descriptor placed in the Plugins list.
        metric_min: Declared lower bound of every metric.
        metric_max: Declared upper bound of every metric.

    Example:
        builder = ReportBuilder()
        report = builder.build(store.current_snapshot())
        body = builder.render(report)
    """

    plugin: PluginSpec = field(default_factory=lambda: DEFAULT_PLUGIN.model_copy(deep=True))
    metric_min: float = METRIC_MIN
    metric_max: float = METRIC_MAX

    def metric_templates(self) -> dict[str, MetricTemplate]:
        return {
            metric.value: template.model_copy()
            for metric, template in METRIC_TEMPLATES.items()
        }

    def node_metrics(self, values: VolumeMetrics, now: datetime) -> dict[str, Metric]:
        """Build the six metrics of one node, values reported unchanged."""
        metrics = {}
        for metric in MetricField:
            metrics[metric.value] = Metric(
                samples=[Sample(date=now, value=values.get(metric))],
                min=self.metric_min,
                max=self.metric_max,
            )
        return metrics

    def build(self, snapshot: Snapshot, now: datetime | None = None) -> Report:
        """
        Build a report from a snapshot.

        Args:
            snapshot: The published snapshot to render.
            now: Sample timestamp, defaults to the current UTC time.

        Returns:
            Report with one node per volume in the snapshot. Templates and
            the plugin descriptor are always present.
        """
        now = now or datetime.now(timezone.utc)
        nodes = {
            get_topology_key(uid): Node(metrics=self.node_metrics(values, now))
            for uid, values in snapshot.metrics.items()
        }
        return Report(
            persistent_volume=Topology(
                nodes=nodes,
                metric_templates=self.metric_templates(),
            ),
            plugins=[self.plugin.model_copy(deep=True)],
        )

    @staticmethod
    def render(report: Report) -> bytes:
        """Serialize a report to wire JSON."""
        return report.model_dump_json(by_alias=True).encode()
