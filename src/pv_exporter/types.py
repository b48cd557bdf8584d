"""
Shared data types for the exporter.

This module defines the internal data structures that flow through one
refresh cycle: raw samples, per-volume metric records, and the published
snapshot. These are internal types - not API models.

All types use frozen dataclasses so a published value can be shared between
the refresh loop and report handlers without copying. Pydantic models are
reserved for API responses (see responses.py and report.py).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Mapping

# Type aliases for common patterns
VolumeName = str
"""Human-readable PersistentVolume name as it appears in metric labels."""

VolumeUID = str
"""Kubernetes-assigned unique identifier of a PersistentVolume."""

QueryResult = dict[VolumeName, float]
"""Sanitized values of one query, keyed by volume name."""

VolumeIdentity = dict[VolumeName, VolumeUID]
"""Mapping of volume name to UID from the most recent PV listing."""


class MetricField(str, Enum):
    """The six per-volume statistics. Values are the wire metric names."""

    READ_IOPS = "readIops"
    WRITE_IOPS = "writeIops"
    READ_LATENCY = "readLatency"
    WRITE_LATENCY = "writeLatency"
    READ_THROUGHPUT = "readThroughput"
    WRITE_THROUGHPUT = "writeThroughput"

    @property
    def attr(self) -> str:
        """Attribute name of this field on VolumeMetrics."""
        return _FIELD_ATTRS[self]


_FIELD_ATTRS = {
    MetricField.READ_IOPS: "read_iops",
    MetricField.WRITE_IOPS: "write_iops",
    MetricField.READ_LATENCY: "read_latency",
    MetricField.WRITE_LATENCY: "write_latency",
    MetricField.READ_THROUGHPUT: "read_throughput",
    MetricField.WRITE_THROUGHPUT: "write_throughput",
}


@dataclass(frozen=True)
class RawSample:
    """
    One decoded backend result entry.

    Attributes:
        volume_name: Value of the volume label on the series.
        raw_value: Second element of the Prometheus value pair, before sanitization.
    """

    volume_name: VolumeName
    raw_value: str | float


@dataclass(frozen=True)
class VolumeMetrics:
    """
    I/O statistics for a single PersistentVolume.

    Fields missing from a refresh cycle stay at 0.0.

    Attributes:
        read_iops: Read operations per second.
        write_iops: Write operations per second.
        read_latency: Average read latency in milliseconds.
        write_latency: Average write latency in milliseconds.
        read_throughput: Read throughput.
        write_throughput: Write throughput.
    """

    read_iops: float = 0.0
    write_iops: float = 0.0
    read_latency: float = 0.0
    write_latency: float = 0.0
    read_throughput: float = 0.0
    write_throughput: float = 0.0

    def get(self, metric: MetricField) -> float:
        return getattr(self, metric.attr)


@dataclass(frozen=True)
class Snapshot:
    """
    The immutable result of one published refresh cycle.

    Attributes:
        metrics: Per-volume metrics keyed by PV UID (read-only view).
        as_of: When the snapshot was published (UTC).
    """

    metrics: Mapping[VolumeUID, VolumeMetrics] = field(
        default_factory=lambda: MappingProxyType({})
    )
    as_of: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(
        cls, metrics: Mapping[VolumeUID, VolumeMetrics], as_of: datetime | None = None
    ) -> "Snapshot":
        """Build a snapshot over a private copy of metrics."""
        return cls(
            metrics=MappingProxyType(dict(metrics)),
            as_of=as_of or datetime.now(timezone.utc),
        )

    @classmethod
    def empty(cls) -> "Snapshot":
        return cls.create({})

    def __len__(self) -> int:
        return len(self.metrics)

