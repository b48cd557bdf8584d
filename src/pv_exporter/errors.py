"""
Exception classes for metrics collection and identity resolution.

This module defines the failure kinds the refresh pipeline distinguishes:
- TransportError: Backend unreachable, timed out, or answered with HTTP error
- ParseError: Response body is not the expected Prometheus shape
- IdentityLookupError: PersistentVolume listing failed
- AggregationError: Every query in a refresh cycle failed

Per-query errors are caught by the aggregator and withhold only that query's
contribution for the cycle. Non-numeric sample values are never raised; they
are sanitized to 0.0 in prom_client.
"""


class ExporterError(Exception):
    """
    Base class for all pv-exporter failures.

    Attributes:
        kind: Short tag identifying the failure category
    """

    kind = "exporter"


class TransportError(ExporterError):
    """
    Raised when a backend fetch fails at the network or HTTP level.

    Covers connection refused, timeouts and 4xx/5xx responses.

    Attributes:
        query: The query expression that was being fetched
        reason: Description of the underlying failure
    """

    kind = "transport"

    def __init__(self, query: str, reason: str) -> None:
        self.query = query
        self.reason = reason
        super().__init__(f"Fetch failed for query {query!r}: {reason}")


class ParseError(ExporterError):
    """
    Raised when a backend response cannot be decoded.

    Covers non-JSON bodies, missing fields, error status and
    unexpected result types.

    Attributes:
        query: The query expression whose response was malformed
        reason: Description of what was wrong with the body
    """

    kind = "parse"

    def __init__(self, query: str, reason: str) -> None:
        self.query = query
        self.reason = reason
        super().__init__(f"Malformed response for query {query!r}: {reason}")


class IdentityLookupError(ExporterError):
    """
    Raised when the PersistentVolume listing cannot be obtained.

    Attributes:
        reason: Description of the cluster API failure
    """

    kind = "identity"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"PersistentVolume lookup failed: {reason}")


class AggregationError(ExporterError):
    """
    Raised when no query produced data in a refresh cycle.

    The refresh loop keeps the previously published snapshot when this
    is raised.

    Attributes:
        failed: Names of the queries that failed
    """

    kind = "aggregation"

    def __init__(self, failed: list[str]) -> None:
        self.failed = failed
        super().__init__(
            f"All {len(failed)} queries failed this cycle: {', '.join(failed)}"
        )
