"""
Catalogue of the metrics the exporter produces.

Built once at startup and handed to the transformer and the collector, so
each collector instance (and each test) owns an isolated set of
descriptors.
"""

from typing import Dict, List

from netapp_exporter.config import VALUE_UNITS
from netapp_exporter.data_models import MetricDescriptor, UsageCategory, VOLUME_USAGE_CATEGORIES


QUOTA_LABELS = ('qtree', 'volume', 'vserver')
VOLUME_LABELS = ('volume', 'vserver')
STATUS_LABELS = ('volume', 'vserver', 'status')


class MetricCatalogue:
    """
    Fixed set of metric descriptors for one deployment.

    ``value_unit`` is the unit ONTAP reports absolute sizes in for this
    deployment. It only shows up in metric names and help texts, values are
    never rescaled.
    """

    def __init__(self, namespace: str = "netapp", value_unit: str = "kbytes"):
        if value_unit not in VALUE_UNITS:
            raise ValueError(f"Unsupported value unit: {value_unit}")

        self.namespace = namespace
        self.value_unit = value_unit

        self.quota_disk_limit = MetricDescriptor(
            name=self._name(f"quota_disk_limit_{value_unit}"),
            help_text=f"Qtree disk limit in {value_unit}",
            label_names=QUOTA_LABELS
        )
        self.quota_disk_used = MetricDescriptor(
            name=self._name(f"quota_disk_use_{value_unit}"),
            help_text=f"Qtree disk current use in {value_unit}",
            label_names=QUOTA_LABELS
        )
        self.quota_file_limit = MetricDescriptor(
            name=self._name("quota_file_limit"),
            help_text="Qtree number of files limit",
            label_names=QUOTA_LABELS
        )
        self.quota_file_used = MetricDescriptor(
            name=self._name("quota_file_use"),
            help_text="Qtree number of files currently used",
            label_names=QUOTA_LABELS
        )
        self.quota_status = MetricDescriptor(
            name=self._name("quota_status"),
            help_text="Quota status of volume (always 1, the state is in the status label)",
            label_names=STATUS_LABELS
        )

        self.volume_used: Dict[str, MetricDescriptor] = {}
        self.volume_use_rate: Dict[str, MetricDescriptor] = {}
        for category in VOLUME_USAGE_CATEGORIES:
            self.volume_used[category.metric_stem] = MetricDescriptor(
                name=self._name(f"volume_{category.metric_stem}_used_{value_unit}"),
                help_text=f"{category.title} usage of volume ({value_unit})",
                label_names=VOLUME_LABELS
            )
            self.volume_use_rate[category.metric_stem] = MetricDescriptor(
                name=self._name(f"volume_{category.metric_stem}_use_rate"),
                help_text=f"{category.title} use rate of volume (0.0 to 1.0)",
                label_names=VOLUME_LABELS
            )

        self.scrape_duration = MetricDescriptor(
            name=self._name("exporter_scrape_duration_seconds"),
            help_text="Duration of the last collection cycle in seconds"
        )

    def _name(self, stem: str) -> str:
        return f"{self.namespace}_{stem}" if self.namespace else stem

    def quota_descriptors(self) -> List[MetricDescriptor]:
        """Quota tree descriptors in emission order."""
        return [self.quota_disk_limit, self.quota_disk_used, self.quota_file_limit, self.quota_file_used]

    def volume_used_descriptor(self, category: UsageCategory) -> MetricDescriptor:
        return self.volume_used[category.metric_stem]

    def volume_use_rate_descriptor(self, category: UsageCategory) -> MetricDescriptor:
        return self.volume_use_rate[category.metric_stem]

    def describe(self) -> List[MetricDescriptor]:
        """All descriptors; performs no I/O."""
        descriptors = self.quota_descriptors() + [self.quota_status]
        descriptors.extend(self.volume_used[c.metric_stem] for c in VOLUME_USAGE_CATEGORIES)
        descriptors.extend(self.volume_use_rate[c.metric_stem] for c in VOLUME_USAGE_CATEGORIES)
        descriptors.append(self.scrape_duration)
        return descriptors
