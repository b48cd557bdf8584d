"""
MetricsAggregator - concurrent fan-out over the query catalog.

Runs every catalog query at once and merges the per-query value maps into
one VolumeMetrics record per volume name.

Merge policy (partial acceptance):
- A volume's record is filled field by field from whichever queries
  returned it; fields whose query failed or lacked the volume stay 0.0
- A query that failed outright (transport or parse error) contributes
  nothing this cycle, the other queries are still merged
- Only when every query failed is the cycle abandoned (AggregationError)
"""

import asyncio
import logging
from dataclasses import dataclass

from pv_exporter.errors import AggregationError, ExporterError
from pv_exporter.prom_client import PrometheusClient
from pv_exporter.queries import QUERY_CATALOG, Query
from pv_exporter.types import QueryResult, VolumeMetrics, VolumeName

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryOutcome:
    """
    Result of running one catalog query for one cycle.

    Attributes:
        query: The catalog query that was run.
        values: Sanitized values by volume name, or None if the query failed.
        error: The failure, when values is None.
    """

    query: Query
    values: QueryResult | None = None
    error: ExporterError | None = None

    @property
    def ok(self) -> bool:
        return self.values is not None


class MetricsAggregator:
    """
    Fan-out/fan-in collector of all catalog queries.

    Example:
        aggregator = MetricsAggregator(PrometheusClient(http=http))
        by_name = await aggregator.aggregate()
        # {"pvc-1": VolumeMetrics(read_iops=7.0, ...)}
    """

    def __init__(
        self,
        prom: PrometheusClient,
        queries: tuple[Query, ...] = QUERY_CATALOG,
    ) -> None:
        self.prom = prom
        self.queries = queries

    async def _run_query(self, query: Query) -> QueryOutcome:
        try:
            values = await self.prom.get_volume_values(query.expression)
        except ExporterError as e:
            logger.warning(f"Query {query.name} failed ({e.kind}): {e}")
            return QueryOutcome(query=query, error=e)
        return QueryOutcome(query=query, values=values)

    async def collect(self) -> list[QueryOutcome]:
        """
        Run all queries concurrently and wait for every outcome.

        Returns:
            One QueryOutcome per catalog query, in catalog order.
        """
        outcomes = await asyncio.gather(*(self._run_query(q) for q in self.queries))
        return list(outcomes)

    @staticmethod
    def merge(outcomes: list[QueryOutcome]) -> dict[VolumeName, VolumeMetrics]:
        """
        Combine query outcomes into per-volume records.

        Args:
            outcomes: Outcomes from collect(); failed outcomes are ignored.

        Returns:
            Mapping of volume name to VolumeMetrics, zero-filled for fields
            with no data.
        """
        fields: dict[VolumeName, dict[str, float]] = {}
        for outcome in outcomes:
            if not outcome.ok:
                continue
            attr = outcome.query.field.attr
            for volume_name, value in outcome.values.items():
                fields.setdefault(volume_name, {})[attr] = value

        return {name: VolumeMetrics(**values) for name, values in fields.items()}

    @classmethod
    def combine(cls, outcomes: list[QueryOutcome]) -> dict[VolumeName, VolumeMetrics]:
        """
        Merge outcomes, refusing a cycle in which every query failed.

        Raises:
            AggregationError: If every query failed.
        """
        failed = [o.query.name for o in outcomes if not o.ok]
        if outcomes and len(failed) == len(outcomes):
            raise AggregationError(failed)
        return cls.merge(outcomes)

    async def aggregate(self) -> dict[VolumeName, VolumeMetrics]:
        """Collect and combine one cycle of metrics."""
        return self.combine(await self.collect())
