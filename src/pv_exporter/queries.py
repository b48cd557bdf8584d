"""
Fixed PromQL query catalog for OpenEBS volume statistics.

Each query is tagged with the MetricField it fills so results are matched to
fields by identity, not by comparing expression strings. The catalog is
built once at import time and never mutated.

Metric sources (OpenEBS volume exporter counters):
- IOPS: openebs_reads / openebs_writes averaged over 5 minutes
- Latency: openebs_read_time / openebs_write_time per operation, in ms
- Throughput: openebs_read_block_count / openebs_write_block_count, in MiB/s
"""

from dataclasses import dataclass

from pv_exporter.types import MetricField


@dataclass(frozen=True)
class Query:
    """
    A named PromQL expression polled every refresh cycle.

    Attributes:
        name: Stable identifier used in logs.
        expression: PromQL instant query.
        field: The per-volume statistic this query fills.
    """

    name: str
    expression: str
    field: MetricField


QUERY_CATALOG: tuple[Query, ...] = (
    Query(
        "iopsReadQuery",
        "increase(openebs_reads[5m])/300",
        MetricField.READ_IOPS,
    ),
    Query(
        "iopsWriteQuery",
        "increase(openebs_writes[5m])/300",
        MetricField.WRITE_IOPS,
    ),
    Query(
        "latencyReadQuery",
        "((increase(openebs_read_time[5m]))/(increase(openebs_reads[5m])))/1000000",
        MetricField.READ_LATENCY,
    ),
    Query(
        "latencyWriteQuery",
        "((increase(openebs_write_time[5m]))/(increase(openebs_writes[5m])))/1000000",
        MetricField.WRITE_LATENCY,
    ),
    Query(
        "throughputReadQuery",
        "increase(openebs_read_block_count[5m])/(1024*1024*60*5)",
        MetricField.READ_THROUGHPUT,
    ),
    Query(
        "throughputWriteQuery",
        "increase(openebs_write_block_count[5m])/(1024*1024*60*5)",
        MetricField.WRITE_THROUGHPUT,
    ),
)


def get_query(field: MetricField) -> Query:
    """Return the catalog query that fills the given field."""
    for query in QUERY_CATALOG:
        if query.field is field:
            return query
    raise KeyError(field)
