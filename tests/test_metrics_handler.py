"""
Tests for the fan-out collector.
"""

import threading

import pytest
from unittest.mock import Mock

from netapp_exporter.config import CollectionConfig
from netapp_exporter.data_models import QuotaEntry, QuotaReportPage, SearchCondition, VolumeSpaceInfo
from netapp_exporter.exceptions import APIError, NetworkError, ZapiError
from netapp_exporter.metrics_catalogue import MetricCatalogue
from netapp_exporter.metrics_handler import MetricsHandler
from netapp_exporter.metrics_transformer import MetricSink, MetricsTransformer


def quota_entry(tree, volume="v1", vserver="vs1"):
    return QuotaEntry(tree=tree, volume=volume, vserver=vserver,
                      disk_limit="1000", disk_used="200", file_limit="50", files_used="10")


@pytest.fixture
def client():
    client = Mock()
    client.list_volume_spaces.return_value = []
    client.get_quota_status.return_value = "on"
    client.report_quotas.return_value = QuotaReportPage()
    return client


@pytest.fixture
def transformer():
    return MetricsTransformer(MetricCatalogue())


def sample_index(samples):
    return {(s.descriptor.name, s.label_values): s.value for s in samples}


class TestMetricsHandlerFanOut:
    """Test cases for per-condition collection."""

    def test_empty_condition_list_means_wildcard(self, client, transformer):
        handler = MetricsHandler(client, transformer, conditions=[])

        assert handler.conditions == [SearchCondition()]

        handler.collect_into(MetricSink())
        condition = client.report_quotas.call_args[0][0]
        assert condition.is_wildcard()

    def test_failing_condition_is_isolated(self, client, transformer):
        first = SearchCondition(volume="v1")
        second = SearchCondition(volume="v2")
        third = SearchCondition(volume="v3")

        def report_quotas(condition, max_records, tag):
            if condition == second:
                raise NetworkError("connection reset")
            return QuotaReportPage(entries=[quota_entry(f"t-{condition.volume}", volume=condition.volume)])

        client.report_quotas.side_effect = report_quotas
        handler = MetricsHandler(client, transformer, conditions=[first, second, third])
        sink = MetricSink()

        summary = handler.collect_into(sink)

        volumes = {s.label_values[1] for s in sink.drain()}
        assert volumes == {"v1", "v3"}
        assert [r.success for r in summary.condition_results] == [True, False, True]
        assert summary.failed_conditions[0].condition == second
        assert "connection reset" in summary.failed_conditions[0].error

    def test_multi_page_condition(self, client, transformer):
        client.report_quotas.side_effect = [
            QuotaReportPage(entries=[quota_entry("A"), quota_entry("B")], next_tag="x"),
            QuotaReportPage(entries=[quota_entry("C")], next_tag=""),
        ]
        handler = MetricsHandler(client, transformer, conditions=[SearchCondition(vserver="vs1")])
        sink = MetricSink()

        summary = handler.collect_into(sink)

        assert summary.condition_results[0].entries == 3
        assert summary.condition_results[0].samples == 12
        assert client.report_quotas.call_count == 2
        assert len(sink.drain()) == 12

    def test_page_size_comes_from_collection_config(self, client, transformer):
        handler = MetricsHandler(client, transformer, conditions=[],
                                 collection_config=CollectionConfig(page_size=250))

        handler.collect_into(MetricSink())

        assert client.report_quotas.call_args[1]['max_records'] == 250

    def test_deadline_closes_sink(self, client, transformer):
        release = threading.Event()
        fast = SearchCondition(volume="fast")
        slow = SearchCondition(volume="slow")

        def report_quotas(condition, max_records, tag):
            if condition == slow:
                release.wait(5)
            return QuotaReportPage(entries=[quota_entry("t", volume=condition.volume)])

        client.report_quotas.side_effect = report_quotas
        handler = MetricsHandler(client, transformer, conditions=[fast, slow],
                                 collection_config=CollectionConfig(timeout_seconds=1))
        sink = MetricSink()

        try:
            summary = handler.collect_into(sink)
        finally:
            release.set()

        assert sink.closed
        assert [r.success for r in summary.condition_results] == [True, False]
        assert summary.condition_results[1].error == "collection deadline exceeded"
        assert {s.label_values[1] for s in sink.drain()} == {"fast"}


class TestMetricsHandlerVolumes:
    """Test cases for the volume family."""

    def setup_method(self):
        self.volume = VolumeSpaceInfo(volume="v1", vserver="vs1",
                                      total_used="500", total_used_percent="25")

    def test_status_on_is_emitted(self, client, transformer):
        client.list_volume_spaces.return_value = [self.volume]
        client.get_quota_status.return_value = "on"
        sink = MetricSink()

        MetricsHandler(client, transformer).collect_into(sink)

        index = sample_index(sink.drain())
        assert index[("netapp_quota_status", ("v1", "vs1", "on"))] == 1.0
        assert index[("netapp_volume_total_used_kbytes", ("v1", "vs1"))] == 500.0
        assert index[("netapp_volume_total_use_rate", ("v1", "vs1"))] == pytest.approx(0.25)

    def test_empty_status_is_not_emitted(self, client, transformer):
        client.list_volume_spaces.return_value = [self.volume]
        client.get_quota_status.return_value = ""
        sink = MetricSink()

        MetricsHandler(client, transformer).collect_into(sink)

        assert not any(s.descriptor.name == "netapp_quota_status" for s in sink.drain())

    def test_status_failure_keeps_usage_samples(self, client, transformer):
        client.list_volume_spaces.return_value = [self.volume]
        client.get_quota_status.side_effect = ZapiError("quota-status", "not found", "13040")
        sink = MetricSink()

        summary = MetricsHandler(client, transformer).collect_into(sink)

        names = {s.descriptor.name for s in sink.drain()}
        assert "netapp_quota_status" not in names
        assert "netapp_volume_total_used_kbytes" in names
        assert summary.volume_samples == 2

    def test_volume_listing_failure_still_yields_quotas(self, client, transformer):
        client.list_volume_spaces.side_effect = APIError("API error 503", status_code=503)
        client.report_quotas.return_value = QuotaReportPage(entries=[quota_entry("t1")])
        sink = MetricSink()

        summary = MetricsHandler(client, transformer).collect_into(sink)

        samples = sink.drain()
        assert summary.volumes == 0
        assert len(samples) == 4
        assert all(s.descriptor.name.startswith("netapp_quota_") for s in samples)


class TestMetricsHandlerCollect:
    """Test cases for collect_metrics and describe."""

    def test_end_to_end_quota_values(self, client, transformer):
        client.report_quotas.return_value = QuotaReportPage(entries=[quota_entry("t1")])
        handler = MetricsHandler(client, transformer)

        metrics, duration = handler.collect_metrics()

        values = {(m.name, tuple(m.labels.items())): m.value for m in metrics}
        labels = (("qtree", "t1"), ("volume", "v1"), ("vserver", "vs1"))
        assert values[("netapp_quota_disk_limit_kbytes", labels)] == 1000.0
        assert values[("netapp_quota_disk_use_kbytes", labels)] == 200.0
        assert values[("netapp_quota_file_limit", labels)] == 50.0
        assert values[("netapp_quota_file_use", labels)] == 10.0
        assert duration >= 0

    def test_scrape_duration_is_always_present(self, client, transformer):
        client.list_volume_spaces.side_effect = NetworkError("down")
        client.report_quotas.side_effect = NetworkError("down")

        metrics, duration = MetricsHandler(client, transformer).collect_metrics()

        assert len(metrics) == 1
        assert metrics[0].name == "netapp_exporter_scrape_duration_seconds"
        assert metrics[0].value == duration

    def test_describe_performs_no_io(self, client, transformer):
        handler = MetricsHandler(client, transformer, conditions=[SearchCondition(volume="v1")])

        descriptors = handler.describe()

        assert descriptors == transformer.catalogue.describe()
        assert client.method_calls == []

    def test_cycles_do_not_share_state(self, client, transformer):
        client.report_quotas.side_effect = [
            QuotaReportPage(entries=[quota_entry("t1")]),
            QuotaReportPage(entries=[]),
        ]
        handler = MetricsHandler(client, transformer)

        first, _ = handler.collect_metrics()
        second, _ = handler.collect_metrics()

        assert len(first) == 5
        assert len(second) == 1
