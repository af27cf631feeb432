"""
ONTAP API client speaking ZAPI (XML over HTTPS with basic auth).

Only the three calls the exporter needs are exposed, plus a connection
test. Every call goes through the retry handler and raises a
``TransportError`` subclass when it cannot produce a result.
"""

import time
import xml.etree.ElementTree as ET  # nosec
from typing import Any, Dict, List, Optional

import requests

from netapp_exporter.data_models import QuotaEntry, QuotaReportPage, SearchCondition, VolumeSpaceInfo
from netapp_exporter.exceptions import (
    APIError, AuthenticationError, InvalidCredentialsError, ExporterError, ZapiError,
    create_api_error, create_network_error, create_timeout_error
)
from netapp_exporter.logging_config import get_logger, log_api_request
from netapp_exporter.retry_handler import RetryHandler, RetryConfig, create_retry_config


ZAPI_PATH = "/servlets/netapp.servlets.admin.XMLrequest_filer"
ZAPI_NAMESPACE = "http://www.netapp.com/filer/admin"


def _local_name(tag: str) -> str:
    # strips "{namespace}" from ElementTree tags
    return tag.rsplit('}', 1)[-1]


def _find_child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if _local_name(child.tag) == name:
            return child
    return None


def _find_children(element: Optional[ET.Element], name: str) -> List[ET.Element]:
    if element is None:
        return []
    return [child for child in element if _local_name(child.tag) == name]


def _child_text(element: ET.Element, name: str) -> str:
    child = _find_child(element, name)
    if child is None or child.text is None:
        return ""
    return child.text.strip()


def element_to_dict(element: ET.Element) -> Dict[str, str]:
    """Flatten the leaf children of a ZAPI element into ``{name: text}``."""
    return {
        _local_name(child.tag): (child.text or "").strip()
        for child in element
        if len(child) == 0
    }


def _append_children(parent: ET.Element, args: Dict[str, Any]) -> None:
    for key, value in args.items():
        child = ET.SubElement(parent, key)
        if isinstance(value, dict):
            _append_children(child, value)
        else:
            child.text = str(value)


class OntapClient:
    """
    ZAPI client for a single ONTAP cluster management endpoint.

    The client holds no per-request state and may be used from several
    threads at once.
    """

    def __init__(self, endpoint: str, user: str, password: str,
                 api_version: str = "1.20", ssl_verify: bool = True, timeout: int = 10,
                 retry_config: Optional[RetryConfig] = None):
        """
        Initialize the client.

        Args:
            endpoint: Base URL of the cluster, e.g. https://filer.example.com
            user: API user name
            password: API password
            api_version: ZAPI version sent in every request
            ssl_verify: Verify the server certificate
            timeout: Per-request timeout in seconds
            retry_config: Retry configuration (uses default if None)
        """
        self.base_url = endpoint.rstrip('/')
        self.url = f"{self.base_url}{ZAPI_PATH}"
        self.auth = (user, password)
        self.api_version = api_version
        self.ssl_verify = ssl_verify
        self.timeout = timeout
        self.logger = get_logger(__name__)

        self.retry_config = retry_config or create_retry_config()
        self.retry_handler = RetryHandler(self.retry_config)

    def build_request(self, api: str, args: Optional[Dict[str, Any]] = None,
                      vserver: Optional[str] = None) -> bytes:
        """
        Build the XML body for one ZAPI call.

        Args:
            api: ZAPI name, e.g. ``quota-report-iter``
            args: Nested mapping of child elements
            vserver: Tunnel the call to this vserver

        Returns:
            UTF-8 encoded request document
        """
        root = ET.Element('netapp', {'version': self.api_version, 'xmlns': ZAPI_NAMESPACE})
        if vserver:
            root.set('vfiler', vserver)
        call = ET.SubElement(root, api)
        _append_children(call, args or {})
        return ET.tostring(root, encoding='utf-8', xml_declaration=True)

    def parse_response(self, api: str, body: bytes) -> ET.Element:
        """
        Parse a ZAPI response and return its ``results`` element.

        Raises:
            APIError: If the body is not a ZAPI document
            ZapiError: If the call reported status="failed"
        """
        try:
            root = ET.fromstring(body)  # nosec
        except ET.ParseError as e:
            raise APIError(f"Invalid XML response for {api}: {e}", original_error=e)

        results = _find_child(root, 'results')
        if results is None:
            raise APIError(f"Invalid response for {api}: missing results element")

        if results.get('status') != 'passed':
            raise ZapiError(api, results.get('reason', 'no reason given'), results.get('errno'))

        return results

    def invoke(self, api: str, args: Optional[Dict[str, Any]] = None,
               vserver: Optional[str] = None) -> ET.Element:
        """
        Run one ZAPI call with retries.

        Returns:
            The ``results`` element of the response

        Raises:
            TransportError: If the call fails after all retries
        """
        payload = self.build_request(api, args, vserver)
        context = {'api': api}
        if vserver:
            context['vserver'] = vserver

        result = self.retry_handler.execute_with_retry(
            self._invoke_single_attempt,
            api,
            payload,
            context=context
        )

        if result.success:
            return result.result
        raise result.error

    def _invoke_single_attempt(self, api: str, payload: bytes) -> ET.Element:
        """Single HTTP round trip (used by the retry handler)."""
        start_time = time.time()
        try:
            response = requests.post(
                self.url,
                data=payload,
                headers={'Content-Type': 'text/xml; charset=utf-8', 'Accept': 'text/xml'},
                auth=self.auth,
                verify=self.ssl_verify,
                timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            self.logger.error(f"ZAPI {api} timed out after {self.timeout} seconds")
            raise create_timeout_error(self.timeout, f"ZAPI {api}")
        except requests.exceptions.RequestException as e:
            log_api_request(self.logger, 'POST', self.url, api=api, error=str(e)[:200])
            raise create_network_error(e, {'api': api})

        duration = time.time() - start_time
        log_api_request(self.logger, 'POST', self.url, api=api,
                        status_code=response.status_code, duration=duration)

        if response.status_code == 401:
            raise InvalidCredentialsError("ONTAP rejected the configured user or password")

        if response.status_code == 403:
            raise AuthenticationError(f"Access to {api} forbidden - check the API user's role")

        if response.status_code >= 400:
            error_text = response.text[:200] if response.text else "No error details"
            raise create_api_error(response.status_code, error_text, {'api': api})

        return self.parse_response(api, response.content)

    def list_volume_spaces(self) -> List[VolumeSpaceInfo]:
        """
        Retrieve space accounting for every volume with one call.

        Returns:
            List of VolumeSpaceInfo
        """
        results = self.invoke('volume-space-get-iter')

        attributes = _find_child(results, 'attributes-list')
        volumes = [
            VolumeSpaceInfo.from_api_response(element_to_dict(space_info))
            for space_info in _find_children(attributes, 'space-info')
        ]

        if _child_text(results, 'next-tag'):
            self.logger.warning(f"volume-space-get-iter returned more records than one call holds; "
                                f"using the first {len(volumes)}")

        self.logger.debug(f"Retrieved space info for {len(volumes)} volumes")
        return volumes

    def get_quota_status(self, vserver: str, volume: str) -> str:
        """
        Retrieve the quota enforcement status of one volume.

        Returns:
            Status string such as "on", "off" or "resizing"; may be empty
        """
        results = self.invoke('quota-status', {'volume': volume}, vserver=vserver)
        return _child_text(results, 'status')

    def report_quotas(self, condition: SearchCondition, max_records: int = 1000,
                      tag: str = "") -> QuotaReportPage:
        """
        Retrieve one page of the quota report.

        Args:
            condition: Filter; only its non-empty fields are sent
            max_records: Page size cap
            tag: Continuation tag from the previous page, empty for the first

        Returns:
            QuotaReportPage with the entries and the next tag ("" when done)
        """
        args: Dict[str, Any] = {'max-records': max_records}
        if tag:
            args['tag'] = tag
        query = condition.to_query()
        if query:
            args['query'] = {'quota': query}

        results = self.invoke('quota-report-iter', args)

        attributes = _find_child(results, 'attributes-list')
        entries = [
            QuotaEntry.from_api_response(element_to_dict(quota))
            for quota in _find_children(attributes, 'quota')
        ]

        return QuotaReportPage(entries=entries, next_tag=_child_text(results, 'next-tag'))

    def test_connection(self) -> bool:
        """
        Check endpoint, credentials and API version with system-get-version.

        Returns:
            True if the call succeeded
        """
        try:
            results = self.invoke('system-get-version')
            self.logger.info(f"Connected to ONTAP: {_child_text(results, 'version')}")
            return True
        except ExporterError as e:
            self.logger.error(f"ONTAP connection test failed: {str(e)[:200]}")
            return False
