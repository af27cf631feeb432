"""
Data models for the NetApp quota exporter.

Records coming from ONTAP keep their numeric fields in raw form
(``RawValue``); they are only turned into floats when a sample is emitted,
so one malformed field never invalidates the rest of a record.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional, Tuple, Union


# What ONTAP hands back for a numeric field. ZAPI sends strings, tests and
# other callers may hand over ints or floats.
RawValue = Union[int, float, str]


@dataclass
class PrometheusMetric:
    """
    Represents a single Prometheus metric with its metadata.

    Attributes:
        name: The metric name following Prometheus naming conventions
        value: The numeric value of the metric
        labels: Dictionary of label key-value pairs
        help_text: Human-readable description of the metric
        metric_type: Type of metric (gauge, counter, histogram, summary)
    """
    name: str
    value: float
    labels: Dict[str, str]
    help_text: str
    metric_type: str = "gauge"


@dataclass(frozen=True)
class MetricDescriptor:
    """Metric identity: name, help text and the ordered label schema."""
    name: str
    help_text: str
    label_names: Tuple[str, ...] = ()
    metric_type: str = "gauge"


@dataclass(frozen=True)
class MetricSample:
    """One value pushed into the metric sink."""
    descriptor: MetricDescriptor
    label_values: Tuple[str, ...]
    value: float

    def to_prometheus_metric(self) -> PrometheusMetric:
        return PrometheusMetric(
            name=self.descriptor.name,
            value=self.value,
            labels=dict(zip(self.descriptor.label_names, self.label_values)),
            help_text=self.descriptor.help_text,
            metric_type=self.descriptor.metric_type
        )


@dataclass(frozen=True)
class SearchCondition:
    """
    Quota report filter. Empty fields are wildcards.

    Attributes:
        qtree: Quota tree name
        volume: Volume name
        vserver: Vserver (SVM) name
    """
    qtree: str = ""
    volume: str = ""
    vserver: str = ""

    def to_query(self) -> Dict[str, str]:
        """Return the non-empty fields keyed by their ZAPI element names."""
        query = {}
        if self.volume:
            query['volume'] = self.volume
        if self.qtree:
            query['tree'] = self.qtree
        if self.vserver:
            query['vserver'] = self.vserver
        return query

    def is_wildcard(self) -> bool:
        return not (self.qtree or self.volume or self.vserver)

    def describe(self) -> str:
        """Short human readable form used in log messages."""
        if self.is_wildcard():
            return "*"
        return ",".join(f"{key}={value}" for key, value in self.to_query().items())


@dataclass(frozen=True)
class QuotaEntry:
    """
    One quota tree record from the quota report.

    Disk values are reported by ONTAP in kilobytes; ``"-"`` means the limit
    is not set.
    """
    tree: str
    volume: str
    vserver: str
    disk_limit: Optional[RawValue]
    disk_used: Optional[RawValue]
    file_limit: Optional[RawValue]
    files_used: Optional[RawValue]

    @classmethod
    def from_api_response(cls, item: Dict[str, Any]) -> 'QuotaEntry':
        """
        Create a QuotaEntry from a parsed ``quota`` element.

        Args:
            item: Mapping of ZAPI child element names to their text

        Returns:
            QuotaEntry instance
        """
        return cls(
            tree=item.get('tree') or "",
            volume=item.get('volume') or "",
            vserver=item.get('vserver') or "",
            disk_limit=item.get('disk-limit'),
            disk_used=item.get('disk-used'),
            file_limit=item.get('file-limit'),
            files_used=item.get('files-used')
        )


class UsageCategory(NamedTuple):
    """Maps one volume usage category to its record fields and metric stem."""
    metric_stem: str
    used_field: str
    percent_field: str
    title: str


VOLUME_USAGE_CATEGORIES: Tuple[UsageCategory, ...] = (
    UsageCategory('total', 'total_used', 'total_used_percent', 'Total'),
    UsageCategory('physical', 'physical_used', 'physical_used_percent', 'Physical'),
    UsageCategory('user', 'user_data', 'user_data_percent', 'User data'),
    UsageCategory('filesystem_metadata', 'filesystem_metadata',
                  'filesystem_metadata_percent', 'Filesystem metadata'),
    UsageCategory('performance_metadata', 'performance_metadata',
                  'performance_metadata_percent', 'Performance metadata'),
    UsageCategory('snapshot_reserve', 'snapshot_reserve',
                  'snapshot_reserve_percent', 'Snapshot reserve'),
)


def _strip_percent(value: Optional[RawValue]) -> Optional[RawValue]:
    # ONTAP renders percentages as "55%"
    if isinstance(value, str) and value.endswith('%'):
        return value[:-1]
    return value


@dataclass(frozen=True)
class VolumeSpaceInfo:
    """Space accounting of one volume, as returned by volume-space-get-iter."""
    volume: str
    vserver: str
    total_used: Optional[RawValue] = None
    total_used_percent: Optional[RawValue] = None
    physical_used: Optional[RawValue] = None
    physical_used_percent: Optional[RawValue] = None
    user_data: Optional[RawValue] = None
    user_data_percent: Optional[RawValue] = None
    filesystem_metadata: Optional[RawValue] = None
    filesystem_metadata_percent: Optional[RawValue] = None
    performance_metadata: Optional[RawValue] = None
    performance_metadata_percent: Optional[RawValue] = None
    snapshot_reserve: Optional[RawValue] = None
    snapshot_reserve_percent: Optional[RawValue] = None

    def used(self, category: UsageCategory) -> Optional[RawValue]:
        return getattr(self, category.used_field)

    def used_percent(self, category: UsageCategory) -> Optional[RawValue]:
        return getattr(self, category.percent_field)

    @classmethod
    def from_api_response(cls, item: Dict[str, Any]) -> 'VolumeSpaceInfo':
        """
        Create a VolumeSpaceInfo from a parsed ``space-info`` element.

        Percentage fields lose their trailing ``%`` here so the values that
        reach the normalizer are plain base-10 strings.
        """
        values = {}
        for category in VOLUME_USAGE_CATEGORIES:
            used_key = category.used_field.replace('_', '-')
            percent_key = category.percent_field.replace('_', '-')
            values[category.used_field] = item.get(used_key)
            values[category.percent_field] = _strip_percent(item.get(percent_key))

        return cls(
            volume=item.get('volume') or "",
            vserver=item.get('vserver') or "",
            **values
        )


@dataclass
class QuotaReportPage:
    """One page of quota-report-iter output."""
    entries: List[QuotaEntry] = field(default_factory=list)
    next_tag: str = ""
