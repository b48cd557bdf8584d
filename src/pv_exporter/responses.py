"""
Pydantic response types for external APIs.

This module provides Pydantic models for parsing responses from:
- Prometheus HTTP API (or a Cortex agent exposing it): instant vector queries
- Kubernetes API: PersistentVolume listings

These are API response types for external data validation. Internal
types (VolumeMetrics, Snapshot, etc.) are dataclasses in pv_exporter.types.

Notes:
- Prometheus values are [timestamp, "string_value"] pairs; the string must be
  converted to float and may be "NaN", "+Inf" or "-Inf"
- The value pair is decoded loosely so one malformed entry sanitizes to 0.0
  instead of failing the whole response
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pv_exporter.types import RawSample


# =============================================================================
# Prometheus Response Types
# =============================================================================
# Based on: https://prometheus.io/docs/prometheus/latest/querying/api/


class PrometheusVectorResult(BaseModel):
    """
    Single result from an instant vector query.

    The value pair is [unix_timestamp, "string_value"].
    """

    metric: dict[str, str] = Field(default_factory=dict)
    value: list[Any] = Field(default_factory=list)

    def raw_value(self) -> Any:
        """
        Return the value element of the pair.

        Returns None when the pair does not have exactly two elements, so
        the caller sanitizes it to 0.0.
        """
        if len(self.value) != 2:
            return None
        return self.value[1]

    def to_sample(self, volume_label: str) -> RawSample | None:
        """Convert to a RawSample, or None if the volume label is absent."""
        volume_name = self.metric.get(volume_label)
        if not volume_name:
            return None
        return RawSample(volume_name=volume_name, raw_value=self.raw_value())


class PrometheusData(BaseModel):
    """
    The 'data' field from Prometheus query response.

    Contains result type and the actual results.
    """

    model_config = ConfigDict(extra="allow")

    resultType: str  # "vector", "matrix", "scalar", "string"
    result: list[PrometheusVectorResult] = Field(default_factory=list)


class PrometheusQueryResponse(BaseModel):
    """
    Response from GET /api/v1/query (instant query).

    Example response:
    {
        "status": "success",
        "data": {
            "resultType": "vector",
            "result": [
                {"metric": {"openebs_pv": "pvc-1"}, "value": [1234567890, "7"]}
            ]
        }
    }
    """

    status: str  # "success" or "error"
    data: PrometheusData | None = None
    errorType: str | None = None
    error: str | None = None


# =============================================================================
# Kubernetes API Response Types
# =============================================================================
# Based on: GET /api/v1/persistentvolumes (core/v1 PersistentVolumeList)
# Only the metadata needed for identity resolution is modelled.


class ObjectMeta(BaseModel):
    """Subset of Kubernetes ObjectMeta."""

    model_config = ConfigDict(extra="ignore")

    name: str
    uid: str


class PersistentVolume(BaseModel):
    """A PersistentVolume item; spec and status are ignored."""

    model_config = ConfigDict(extra="ignore")

    metadata: ObjectMeta


class PersistentVolumeList(BaseModel):
    """
    Response from GET /api/v1/persistentvolumes.

    Example response:
    {
        "kind": "PersistentVolumeList",
        "apiVersion": "v1",
        "items": [
            {"metadata": {"name": "pvc-1", "uid": "6a3c..."}, "spec": {...}}
        ]
    }
    """

    model_config = ConfigDict(extra="ignore")

    kind: str = "PersistentVolumeList"
    items: list[PersistentVolume] = Field(default_factory=list)
