"""
Cursor driven retrieval of the ONTAP quota report.
"""

from typing import List, Optional

from netapp_exporter.data_models import QuotaEntry, SearchCondition
from netapp_exporter.exceptions import PaginationError
from netapp_exporter.logging_config import get_logger


DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_PAGES = 10000


class QuotaReportPaginator:
    """
    Follows quota-report-iter continuation tags until the report is complete.

    The client is anything with a
    ``report_quotas(condition, max_records=..., tag=...)`` method returning a
    ``QuotaReportPage``.
    """

    def __init__(self, client, page_size: int = DEFAULT_PAGE_SIZE,
                 max_pages: Optional[int] = DEFAULT_MAX_PAGES):
        """
        Args:
            client: ONTAP client
            page_size: Records requested per call
            max_pages: Upper bound on calls per condition; None disables it
        """
        self.client = client
        self.page_size = page_size
        self.max_pages = max_pages

    def fetch_all(self, condition: SearchCondition) -> List[QuotaEntry]:
        """
        Retrieve every quota entry matching ``condition``.

        Entries are returned in the order the pages arrived. Any page
        failure propagates; nothing retrieved so far is returned.

        Raises:
            TransportError: If a page request fails
            PaginationError: If the backend repeats a tag or the page
                limit is reached
        """
        logger = get_logger(__name__)
        logger.set_context(condition=condition.describe())

        entries: List[QuotaEntry] = []
        tag = ""
        pages = 0

        while True:
            page = self.client.report_quotas(condition, max_records=self.page_size, tag=tag)
            pages += 1
            entries.extend(page.entries)
            logger.debug(f"Page {pages}: {len(page.entries)} entries")

            if not page.next_tag:
                return entries

            if page.next_tag == tag:
                raise PaginationError(
                    f"Quota report returned the same continuation tag twice after {pages} pages",
                    pages=pages
                )

            if self.max_pages is not None and pages >= self.max_pages:
                raise PaginationError(
                    f"Quota report did not finish within {self.max_pages} pages",
                    pages=pages
                )

            tag = page.next_tag
