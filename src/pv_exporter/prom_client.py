"""
Prometheus API client for OpenEBS volume metrics collection.

This module provides the PrometheusClient class for querying per-volume
I/O statistics from Prometheus (or a Cortex agent exposing its query API).
It supports:
- Instant PromQL queries decoded into typed results
- Per-volume value extraction keyed by the volume label
- Total numeric sanitization of sample values

Key design decisions:
- Uses injected httpx.AsyncClient (base_url and timeout live on the client)
- Failures are raised as kind-tagged TransportError / ParseError; the client
  never retries
- Sample values that are not finite numbers map to 0.0 and are logged, never
  raised
"""

import logging
import math
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from pv_exporter.errors import ParseError, TransportError
from pv_exporter.responses import PrometheusQueryResponse, PrometheusVectorResult
from pv_exporter.types import QueryResult

logger = logging.getLogger(__name__)

DEFAULT_VOLUME_LABEL = "openebs_pv"


def sanitize_value(raw: Any) -> float:
    """
    Convert a Prometheus sample value to a non-negative finite float.

    Args:
        raw: Second element of the value pair, normally a string such as
            "7", "0.25", "NaN", "+Inf" or "-Inf".

    Returns:
        The parsed value, or 0.0 for anything that is not a finite
        non-negative number.
    """
    if isinstance(raw, bool) or raw is None:
        return 0.0
    if not isinstance(raw, (int, float, str)):
        logger.warning(f"Unexpected sample value type {type(raw).__name__}, using 0")
        return 0.0
    try:
        value = float(raw)
    except (ValueError, OverflowError):
        shown = repr(raw[:40]) if isinstance(raw, str) else f"{type(raw).__name__} out of range"
        logger.warning(f"Unparseable sample value {shown}, using 0")
        return 0.0

    # NaN, +Inf and -Inf parse successfully but are not usable values
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


@dataclass
class PrometheusClient:
    """
    Prometheus API client with injected httpx client.

    The httpx.AsyncClient should be pre-configured with the Prometheus server
    base_url and a bounded timeout.

    Attributes:
        http: Pre-configured httpx.AsyncClient.
        volume_label: Series label carrying the PersistentVolume name.

    Example:
        async with httpx.AsyncClient(base_url="http://prometheus:9090", timeout=10.0) as http:
            client = PrometheusClient(http=http)
            values = await client.get_volume_values("increase(openebs_reads[5m])/300")
            # {"pvc-1": 12.5, "pvc-2": 0.0}
    """

    http: httpx.AsyncClient
    volume_label: str = DEFAULT_VOLUME_LABEL

    async def instant_query(self, query: str) -> list[PrometheusVectorResult]:
        """
        Execute instant query at current time.

        Args:
            query: PromQL query string

        Returns:
            List of vector results (possibly empty)

        Raises:
            TransportError: On connection errors, timeouts and HTTP 4xx/5xx
            ParseError: On non-JSON bodies, unexpected shape, error status
                or a non-vector result type
        """
        try:
            response = await self.http.get("/api/v1/query", params={"query": query})
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise TransportError(query, f"timed out ({e.__class__.__name__})") from e
        except httpx.HTTPStatusError as e:
            raise TransportError(
                query, f"HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(query, str(e) or e.__class__.__name__) from e

        try:
            data = PrometheusQueryResponse.model_validate(response.json())
        except ValueError as e:
            # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
            reason = "invalid response shape" if isinstance(e, ValidationError) else "invalid JSON"
            raise ParseError(query, reason) from e

        if data.status != "success":
            raise ParseError(query, f"status {data.status!r}: {data.error or 'no detail'}")
        if data.data is None:
            raise ParseError(query, "missing data field")
        if data.data.resultType != "vector":
            raise ParseError(query, f"unexpected resultType {data.data.resultType!r}")

        return data.data.result

    async def get_volume_values(self, query: str) -> QueryResult:
        """
        Get per-volume values from an instant query.

        Args:
            query: PromQL query string returning one series per volume

        Returns:
            Mapping of volume name to sanitized value. Empty when the query
            returned no series - this is "no data", not an error.

        Raises:
            TransportError, ParseError: As instant_query
        """
        results = await self.instant_query(query)

        values: QueryResult = {}
        for result in results:
            sample = result.to_sample(self.volume_label)
            if sample is None:
                logger.debug(f"Skipping series without {self.volume_label} label: {result.metric}")
                continue
            values[sample.volume_name] = sanitize_value(sample.raw_value)
        return values
