"""
Tests for quota report pagination.
"""

import pytest
from unittest.mock import Mock, call

from netapp_exporter.paginator import QuotaReportPaginator
from netapp_exporter.data_models import QuotaEntry, QuotaReportPage, SearchCondition
from netapp_exporter.exceptions import NetworkError, PaginationError


def make_entry(tree: str) -> QuotaEntry:
    return QuotaEntry(tree=tree, volume="v1", vserver="vs1",
                      disk_limit="1000", disk_used="200", file_limit="50", files_used="10")


class TestQuotaReportPaginator:
    """Test cases for QuotaReportPaginator."""

    def setup_method(self):
        self.client = Mock()
        self.condition = SearchCondition(volume="v1")
        self.paginator = QuotaReportPaginator(self.client, page_size=2)

    def test_single_page(self):
        self.client.report_quotas.return_value = QuotaReportPage(entries=[make_entry("a")], next_tag="")

        entries = self.paginator.fetch_all(self.condition)

        assert [e.tree for e in entries] == ["a"]
        self.client.report_quotas.assert_called_once_with(self.condition, max_records=2, tag="")

    def test_two_pages_are_concatenated_in_order(self):
        self.client.report_quotas.side_effect = [
            QuotaReportPage(entries=[make_entry("A"), make_entry("B")], next_tag="x"),
            QuotaReportPage(entries=[make_entry("C")], next_tag=""),
        ]

        entries = self.paginator.fetch_all(self.condition)

        assert [e.tree for e in entries] == ["A", "B", "C"]
        assert self.client.report_quotas.call_count == 2
        assert self.client.report_quotas.call_args_list == [
            call(self.condition, max_records=2, tag=""),
            call(self.condition, max_records=2, tag="x"),
        ]

    def test_empty_report(self):
        self.client.report_quotas.return_value = QuotaReportPage()

        assert self.paginator.fetch_all(self.condition) == []

    def test_failure_on_second_page_propagates(self):
        self.client.report_quotas.side_effect = [
            QuotaReportPage(entries=[make_entry("A"), make_entry("B")], next_tag="x"),
            NetworkError("connection reset"),
        ]

        with pytest.raises(NetworkError):
            self.paginator.fetch_all(self.condition)

        assert self.client.report_quotas.call_count == 2

    def test_repeated_tag_is_rejected(self):
        self.client.report_quotas.side_effect = [
            QuotaReportPage(entries=[make_entry("A")], next_tag="x"),
            QuotaReportPage(entries=[make_entry("B")], next_tag="x"),
        ]

        with pytest.raises(PaginationError) as exc_info:
            self.paginator.fetch_all(self.condition)

        assert exc_info.value.pages == 2

    def test_page_limit(self):
        paginator = QuotaReportPaginator(self.client, page_size=1, max_pages=3)
        self.client.report_quotas.side_effect = [
            QuotaReportPage(entries=[make_entry(str(i))], next_tag=f"tag-{i}") for i in range(10)
        ]

        with pytest.raises(PaginationError):
            paginator.fetch_all(self.condition)

        assert self.client.report_quotas.call_count == 3

    def test_page_limit_disabled(self):
        paginator = QuotaReportPaginator(self.client, page_size=1, max_pages=None)
        pages = [QuotaReportPage(entries=[make_entry(str(i))], next_tag=f"tag-{i}") for i in range(20)]
        pages.append(QuotaReportPage(entries=[], next_tag=""))
        self.client.report_quotas.side_effect = pages

        entries = paginator.fetch_all(self.condition)

        assert len(entries) == 20
        assert self.client.report_quotas.call_count == 21
