"""
Tests for SnapshotStore publication and identity join.

These tests verify the store correctly:
- Starts with an empty snapshot
- Re-keys metrics by UID and drops volumes without identity
- Publishes immutable snapshots that later replaces do not affect
- Keeps the stored identity when replace() is given none
- Serves consistent snapshots to concurrent readers
"""

import threading
from datetime import datetime, timezone

import pytest

from pv_exporter.snapshot import SnapshotStore, join_identity
from pv_exporter.types import Snapshot, VolumeMetrics


def test_initial_snapshot_is_empty():
    store = SnapshotStore()
    assert len(store.current_snapshot()) == 0
    assert dict(store.current_snapshot().metrics) == {}


def test_join_identity_drops_unknown_volumes():
    metrics = {"pv-a": VolumeMetrics(read_iops=1.0), "pv-ghost": VolumeMetrics(read_iops=9.0)}

    joined = join_identity(metrics, {"pv-a": "uid-1", "pv-other": "uid-2"})

    assert joined == {"uid-1": VolumeMetrics(read_iops=1.0)}


def test_replace_publishes_uid_keyed_snapshot():
    store = SnapshotStore()
    as_of = datetime(2024, 1, 1, tzinfo=timezone.utc)

    snapshot = store.replace(
        {"pv-A": VolumeMetrics(read_iops=7.0)}, identity={"pv-A": "uid-9"}, as_of=as_of
    )

    assert store.current_snapshot() is snapshot
    assert dict(snapshot.metrics) == {"uid-9": VolumeMetrics(read_iops=7.0)}
    assert snapshot.as_of == as_of
    assert store.identity == {"pv-A": "uid-9"}
    assert store.metrics_by_name == {"pv-A": VolumeMetrics(read_iops=7.0)}


def test_volume_without_identity_never_published():
    store = SnapshotStore()

    snapshot = store.replace(
        {"pv-A": VolumeMetrics(read_iops=7.0), "pv-B": VolumeMetrics(write_iops=3.0)},
        identity={"pv-A": "uid-9"},
    )

    assert "pv-B" not in snapshot.metrics
    assert list(snapshot.metrics) == ["uid-9"]


def test_empty_identity_publishes_empty_snapshot():
    store = SnapshotStore()
    store.replace({"pv-A": VolumeMetrics(read_iops=7.0)}, identity={"pv-A": "uid-9"})

    snapshot = store.replace({"pv-A": VolumeMetrics(read_iops=8.0)}, identity={})

    assert len(snapshot) == 0


def test_replace_without_identity_uses_stored_mapping():
    store = SnapshotStore()
    store.update_identity({"pv-A": "uid-9"})

    snapshot = store.replace({"pv-A": VolumeMetrics(write_latency=2.5)})

    assert snapshot.metrics["uid-9"].write_latency == 2.5


def test_published_snapshot_is_immutable():
    store = SnapshotStore()
    metrics = {"pv-A": VolumeMetrics(read_iops=7.0)}
    old = store.replace(metrics, identity={"pv-A": "uid-9"})

    # Mutating the caller's dict or replacing again must not leak into old
    metrics["pv-B"] = VolumeMetrics()
    store.replace({"pv-A": VolumeMetrics(read_iops=1.0)})

    assert dict(old.metrics) == {"uid-9": VolumeMetrics(read_iops=7.0)}
    with pytest.raises(TypeError):
        old.metrics["uid-x"] = VolumeMetrics()


def test_snapshot_create_copies_input():
    source = {"uid-1": VolumeMetrics()}
    snapshot = Snapshot.create(source)
    source["uid-2"] = VolumeMetrics()
    assert list(snapshot.metrics) == ["uid-1"]


def test_concurrent_readers_see_whole_snapshots():
    """Readers observe either the old or the new snapshot, never a mix."""
    store = SnapshotStore()
    identity = {f"pv-{i}": f"uid-{i}" for i in range(50)}
    store.update_identity(identity)
    errors: list[str] = []
    stop = threading.Event()

    def writer():
        for cycle in range(200):
            store.replace({name: VolumeMetrics(read_iops=float(cycle)) for name in identity})
        stop.set()

    def reader():
        while not stop.is_set():
            snapshot = store.current_snapshot()
            values = {m.read_iops for m in snapshot.metrics.values()}
            if len(values) > 1:
                errors.append(f"mixed cycles: {sorted(values)}")

    threads = [threading.Thread(target=reader) for _ in range(4)]
    threads.append(threading.Thread(target=writer))
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert errors == []
