"""
SnapshotStore - the published state shared by the refresh loop and reports.

This is the only shared mutable object in the exporter. The refresh loop is
its single writer; report handlers read concurrently, possibly from a
threadpool, so access is guarded by a threading.Lock held only for the
reference swap.

Readers get an immutable Snapshot and never see a mix of two cycles.
"""

import logging
import threading
from datetime import datetime
from typing import Mapping

from pv_exporter.types import (
    Snapshot,
    VolumeIdentity,
    VolumeMetrics,
    VolumeName,
    VolumeUID,
)

logger = logging.getLogger(__name__)


def join_identity(
    metrics_by_name: Mapping[VolumeName, VolumeMetrics],
    identity: Mapping[VolumeName, VolumeUID],
) -> dict[VolumeUID, VolumeMetrics]:
    """
    Re-key metrics by UID, dropping volumes with no known identity.

    Args:
        metrics_by_name: Aggregated metrics keyed by volume name.
        identity: Volume name -> UID mapping.

    Returns:
        Metrics keyed by UID.
    """
    joined: dict[VolumeUID, VolumeMetrics] = {}
    for name, values in metrics_by_name.items():
        uid = identity.get(name)
        if uid is None:
            logger.debug(f"Dropping metrics for {name}: no PersistentVolume identity")
            continue
        joined[uid] = values
    return joined


class SnapshotStore:
    """
    Holder of the latest metrics, identity mapping and published snapshot.

    Example:
        store = SnapshotStore()
        store.replace({"pvc-1": VolumeMetrics(read_iops=7)}, identity={"pvc-1": "uid-9"})
        store.current_snapshot().metrics["uid-9"].read_iops  # 7
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._metrics_by_name: dict[VolumeName, VolumeMetrics] = {}
        self._identity: VolumeIdentity = {}
        self._snapshot = Snapshot.empty()

    @property
    def identity(self) -> VolumeIdentity:
        with self._lock:
            return dict(self._identity)

    @property
    def metrics_by_name(self) -> dict[VolumeName, VolumeMetrics]:
        with self._lock:
            return dict(self._metrics_by_name)

    def update_identity(self, identity: Mapping[VolumeName, VolumeUID]) -> None:
        """Replace the identity mapping; takes effect on the next replace()."""
        identity = dict(identity)
        with self._lock:
            self._identity = identity

    def replace(
        self,
        metrics_by_name: Mapping[VolumeName, VolumeMetrics],
        identity: Mapping[VolumeName, VolumeUID] | None = None,
        as_of: datetime | None = None,
    ) -> Snapshot:
        """
        Publish a new snapshot.

        Args:
            metrics_by_name: Aggregated metrics keyed by volume name.
            identity: New identity mapping; the stored one is used if None.
            as_of: Publication time, defaults to now.

        Returns:
            The snapshot that was published.
        """
        metrics_by_name = dict(metrics_by_name)
        with self._lock:
            if identity is not None:
                self._identity = dict(identity)
            snapshot = Snapshot.create(
                join_identity(metrics_by_name, self._identity), as_of=as_of
            )
            self._metrics_by_name = metrics_by_name
            self._snapshot = snapshot
        return snapshot

    def current_snapshot(self) -> Snapshot:
        """Return the last published snapshot."""
        with self._lock:
            return self._snapshot
