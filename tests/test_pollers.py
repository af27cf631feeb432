"""
Tests for the volume and quota pollers.
"""

import pytest
from unittest.mock import Mock

from netapp_exporter.pollers import QuotaPoller, VolumePoller
from netapp_exporter.data_models import QuotaEntry, SearchCondition, VolumeSpaceInfo
from netapp_exporter.exceptions import APIError, NetworkError, ZapiError


class TestVolumePoller:
    """Test cases for VolumePoller."""

    def setup_method(self):
        self.client = Mock()
        self.poller = VolumePoller(self.client)
        self.volume = VolumeSpaceInfo(volume="v1", vserver="vs1")

    def test_list_volumes_returns_client_records(self):
        self.client.list_volume_spaces.return_value = [self.volume]

        assert self.poller.list_volumes() == [self.volume]
        self.client.list_volume_spaces.assert_called_once_with()

    def test_list_volumes_propagates_errors(self):
        self.client.list_volume_spaces.side_effect = APIError("boom", status_code=500)

        with pytest.raises(APIError):
            self.poller.list_volumes()

    def test_fetch_status_is_keyed_by_vserver_and_volume(self):
        self.client.get_quota_status.return_value = "on"

        assert self.poller.fetch_status(self.volume) == "on"
        self.client.get_quota_status.assert_called_once_with("vs1", "v1")

    def test_fetch_status_passes_empty_status_through(self):
        self.client.get_quota_status.return_value = ""

        assert self.poller.fetch_status(self.volume) == ""

    @pytest.mark.parametrize("error", [
        NetworkError("unreachable"),
        ZapiError("quota-status", "Volume not found", "13040"),
    ])
    def test_fetch_status_failure_returns_none(self, error):
        self.client.get_quota_status.side_effect = error

        assert self.poller.fetch_status(self.volume) is None


class TestQuotaPoller:
    """Test cases for QuotaPoller."""

    def test_poll_delegates_to_paginator(self):
        paginator = Mock()
        entry = QuotaEntry("t1", "v1", "vs1", "1", "2", "3", "4")
        paginator.fetch_all.return_value = [entry]
        condition = SearchCondition(qtree="t1")

        assert QuotaPoller(paginator).poll(condition) == [entry]
        paginator.fetch_all.assert_called_once_with(condition)

    def test_poll_propagates_errors(self):
        paginator = Mock()
        paginator.fetch_all.side_effect = NetworkError("reset")

        with pytest.raises(NetworkError):
            QuotaPoller(paginator).poll(SearchCondition())
