"""
Tests for ReportBuilder and the Scope report wire format.

Tests cover:
- Topology key format, including the empty UID
- One node per snapshot volume with six metrics
- Values reported unchanged with declared ranges
- Empty snapshots still carry templates and the plugin descriptor
- Building twice differs only in sample timestamps
- Wire JSON keys and omitempty behaviour
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from pv_exporter.report import (
    METRIC_TEMPLATES,
    Metric,
    MetricTemplate,
    PluginSpec,
    ReportBuilder,
    get_topology_key,
)
from pv_exporter.types import MetricField, Snapshot, VolumeMetrics

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def builder():
    return ReportBuilder()


@pytest.fixture
def snapshot():
    return Snapshot.create(
        {
            "uid-9": VolumeMetrics(
                read_iops=7.0,
                write_iops=2.4,
                read_latency=1.25,
                write_latency=3.5,
                read_throughput=0.75,
                write_throughput=12.0,
            )
        }
    )


# =============================================================================
# Topology key
# =============================================================================


def test_topology_key():
    assert get_topology_key("abc-123") == "abc-123;<persistent_volume>"


def test_topology_key_empty_uid():
    assert get_topology_key("") == ";<persistent_volume>"


# =============================================================================
# build()
# =============================================================================


class TestBuild:
    """Tests for ReportBuilder.build()."""

    def test_one_node_per_volume(self, builder, snapshot):
        report = builder.build(snapshot, now=NOW)

        assert list(report.persistent_volume.nodes) == ["uid-9;<persistent_volume>"]

    def test_node_has_six_metrics_with_samples(self, builder, snapshot):
        report = builder.build(snapshot, now=NOW)
        metrics = report.persistent_volume.nodes["uid-9;<persistent_volume>"].metrics

        assert set(metrics) == {m.value for m in MetricField}
        assert metrics["readLatency"].samples[0].value == 1.25
        assert metrics["writeThroughput"].samples[0].value == 12.0
        for metric in metrics.values():
            assert len(metric.samples) == 1
            assert metric.samples[0].date == NOW
            assert metric.min == 0
            assert metric.max == 100

    def test_fractional_iops_reported_unchanged(self, builder):
        """A volume under one op/s still shows its real rate."""
        snapshot = Snapshot.create({"uid-1": VolumeMetrics(read_iops=0.4, write_iops=1.49)})

        metrics = builder.build(snapshot, now=NOW).persistent_volume.nodes[
            "uid-1;<persistent_volume>"
        ].metrics

        assert metrics["readIops"].samples[0].value == 0.4
        assert metrics["writeIops"].samples[0].value == 1.49

    def test_empty_snapshot_keeps_templates_and_plugin(self, builder):
        report = builder.build(Snapshot.empty(), now=NOW)

        assert report.persistent_volume.nodes == {}
        assert set(report.persistent_volume.metric_templates) == {m.value for m in MetricField}
        assert [p.id for p in report.plugins] == ["openebs"]
        assert report.plugins[0].interfaces == ["reporter"]

    def test_templates_match_metric_names(self, builder):
        templates = builder.metric_templates()

        assert templates["readIops"] == MetricTemplate(
            id="readIops", label="Iops(R)", format="", priority=0.1
        )
        assert templates["writeLatency"].format == "millisecond"
        assert templates["readThroughput"].label == "Throughput(R)"
        assert [t.priority for t in templates.values()] == [0.1, 0.2, 0.3, 0.4, 0.5, 0.6]

    def test_templates_are_copies(self, builder):
        templates = builder.metric_templates()
        templates["readIops"].label = "changed"

        assert METRIC_TEMPLATES[MetricField.READ_IOPS].label == "Iops(R)"

    def test_build_twice_differs_only_in_timestamps(self, builder, snapshot):
        first = builder.build(snapshot, now=NOW)
        second = builder.build(snapshot, now=NOW + timedelta(seconds=5))

        def strip_dates(report):
            data = report.model_dump(by_alias=True, mode="json")
            for node in data["PersistentVolume"]["nodes"].values():
                for metric in node["metrics"].values():
                    for sample in metric["samples"]:
                        sample.pop("date")
            return data

        assert first != second
        assert strip_dates(first) == strip_dates(second)

    def test_build_does_not_mutate_snapshot(self, builder, snapshot):
        before = dict(snapshot.metrics)
        builder.build(snapshot, now=NOW)
        assert dict(snapshot.metrics) == before


# =============================================================================
# Wire format
# =============================================================================


class TestWireFormat:
    """Tests for the JSON produced by render()."""

    def test_top_level_keys(self, builder, snapshot):
        data = json.loads(builder.render(builder.build(snapshot, now=NOW)))

        assert set(data) == {"PersistentVolume", "Plugins"}
        assert set(data["PersistentVolume"]) == {"nodes", "metric_templates"}

    def test_metric_shape(self, builder, snapshot):
        data = json.loads(builder.render(builder.build(snapshot, now=NOW)))
        metric = data["PersistentVolume"]["nodes"]["uid-9;<persistent_volume>"]["metrics"][
            "readIops"
        ]

        assert metric == {
            "samples": [{"date": "2024-05-01T12:00:00Z", "value": 7}],
            "min": 0,
            "max": 100,
        }

    def test_plugin_descriptor(self, builder):
        data = json.loads(builder.render(builder.build(Snapshot.empty(), now=NOW)))

        assert data["Plugins"] == [
            {
                "id": "openebs",
                "label": "OpenEBS Plugin",
                "description": "Adds graphs of metrics of OpenEBS PV",
                "interfaces": ["reporter"],
                "api_version": "1",
            }
        ]

    def test_empty_template_format_omitted(self, builder):
        data = json.loads(builder.render(builder.build(Snapshot.empty(), now=NOW)))
        templates = data["PersistentVolume"]["metric_templates"]

        assert templates["readIops"] == {"id": "readIops", "label": "Iops(R)", "priority": 0.1}
        assert templates["readLatency"] == {
            "id": "readLatency",
            "label": "Latency(R)",
            "format": "millisecond",
            "priority": 0.3,
        }

    def test_omitempty_fields_dropped(self):
        assert Metric().model_dump(mode="json") == {"min": 0, "max": 100}
        assert PluginSpec(id="x", label="X").model_dump(mode="json") == {
            "id": "x",
            "label": "X",
            "interfaces": ["reporter"],
        }
        assert MetricTemplate(id="m").model_dump(mode="json") == {"id": "m"}

    def test_fractional_values_kept(self, builder, snapshot):
        data = json.loads(builder.render(builder.build(snapshot, now=NOW)))
        metrics = data["PersistentVolume"]["nodes"]["uid-9;<persistent_volume>"]["metrics"]

        assert metrics["readLatency"]["samples"][0]["value"] == 1.25
        assert metrics["writeIops"]["samples"][0]["value"] == 2.4
        assert metrics["readIops"]["samples"][0]["value"] == 7

    def test_custom_plugin(self):
        builder = ReportBuilder(plugin=PluginSpec(id="iops", label="iops", api_version="1"))
        data = json.loads(builder.render(builder.build(Snapshot.empty(), now=NOW)))

        assert data["Plugins"][0]["id"] == "iops"
        assert "description" not in data["Plugins"][0]
