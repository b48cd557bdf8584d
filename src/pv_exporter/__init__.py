"""
OpenEBS PersistentVolume metrics exporter for Weave Scope.

This package polls Prometheus for per-volume I/O statistics, resolves each
volume to its Kubernetes PersistentVolume UID, and serves the result as a
Scope plugin report. It includes:

- PrometheusClient: Instant queries and value sanitization
- MetricsAggregator: Concurrent fan-out over the fixed query catalog
- KubernetesClient / IdentityResolver: PV name to UID mapping
- SnapshotStore: Atomically published refresh results
- ReportBuilder: Scope report synthesis
- RefreshLoop: Timer-driven refresh cycle
"""

from pv_exporter.aggregator import MetricsAggregator, QueryOutcome
from pv_exporter.errors import (
    AggregationError,
    ExporterError,
    IdentityLookupError,
    ParseError,
    TransportError,
)
from pv_exporter.identity import IdentityResolver
from pv_exporter.k8s_client import KubernetesClient, create_incluster_http
from pv_exporter.prom_client import PrometheusClient, sanitize_value
from pv_exporter.queries import QUERY_CATALOG, Query
from pv_exporter.refresh import RefreshLoop, RefreshState
from pv_exporter.report import (
    METRIC_TEMPLATES,
    Report,
    ReportBuilder,
    get_topology_key,
)
from pv_exporter.snapshot import SnapshotStore
from pv_exporter.types import (
    MetricField,
    RawSample,
    Snapshot,
    VolumeMetrics,
)

__all__ = [
    # Pipeline
    "PrometheusClient",
    "MetricsAggregator",
    "QueryOutcome",
    "KubernetesClient",
    "IdentityResolver",
    "SnapshotStore",
    "ReportBuilder",
    "RefreshLoop",
    "RefreshState",
    "create_incluster_http",
    "sanitize_value",
    "get_topology_key",
    # Catalog
    "Query",
    "QUERY_CATALOG",
    "METRIC_TEMPLATES",
    # Types
    "MetricField",
    "RawSample",
    "VolumeMetrics",
    "Snapshot",
    "Report",
    # Errors
    "ExporterError",
    "TransportError",
    "ParseError",
    "IdentityLookupError",
    "AggregationError",
]
