"""
Pollers for the two independent data families: volumes and quota trees.
"""

from typing import List, Optional

from netapp_exporter.data_models import QuotaEntry, SearchCondition, VolumeSpaceInfo
from netapp_exporter.exceptions import TransportError
from netapp_exporter.logging_config import get_logger
from netapp_exporter.paginator import QuotaReportPaginator


class VolumePoller:
    """Volume space statistics plus per-volume quota status."""

    def __init__(self, client):
        self.client = client
        self.logger = get_logger(__name__)

    def list_volumes(self) -> List[VolumeSpaceInfo]:
        """
        All volume space records from a single call.

        Raises:
            TransportError: If the listing fails
        """
        return self.client.list_volume_spaces()

    def fetch_status(self, volume: VolumeSpaceInfo) -> Optional[str]:
        """
        Quota status of one volume.

        Returns:
            The status string (possibly empty), or None if the call failed.
            A failure only affects this volume.
        """
        try:
            return self.client.get_quota_status(volume.vserver, volume.volume)
        except TransportError as e:
            self.logger.warning(f"Quota status unavailable for {volume.vserver}:{volume.volume}: {str(e)[:200]}")
            return None


class QuotaPoller:
    """Quota tree entries for one search condition."""

    def __init__(self, paginator: QuotaReportPaginator):
        self.paginator = paginator

    def poll(self, condition: SearchCondition) -> List[QuotaEntry]:
        """
        Raises:
            TransportError: If any page of the report fails
        """
        return self.paginator.fetch_all(condition)
