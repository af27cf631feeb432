"""
Turns ONTAP records into metric samples and samples into Prometheus text.

``MetricSink`` is the single write destination shared by the concurrent
collection workers of one scrape. ``MetricsTransformer`` converts quota
entries and volume records into samples, skipping any field that does not
normalize. It also renders the final exposition format.
"""

import math
import queue
import threading
from typing import Callable, Dict, Iterable, List, Sequence

from netapp_exporter.data_models import (
    MetricDescriptor, MetricSample, PrometheusMetric, QuotaEntry, RawValue,
    VolumeSpaceInfo, VOLUME_USAGE_CATEGORIES
)
from netapp_exporter.exceptions import LabelMismatchError, ValueNormalizationError
from netapp_exporter.logging_config import get_logger
from netapp_exporter.metrics_catalogue import MetricCatalogue
from netapp_exporter.normalizer import to_float, to_rate


class MetricSink:
    """
    Thread-safe sample queue for one collection cycle.

    Each ``emit`` is atomic and samples from one thread keep their order.
    Once closed, further samples are dropped.
    """

    def __init__(self):
        self._queue: "queue.Queue[MetricSample]" = queue.Queue()
        self._closed = threading.Event()
        self.logger = get_logger(__name__)

    def emit(self, descriptor: MetricDescriptor, label_values: Sequence[str], value: float) -> bool:
        """
        Push one sample.

        Args:
            descriptor: Metric identity
            label_values: Values in the descriptor's label order
            value: Sample value

        Returns:
            True if the sample was accepted, False if the sink is closed

        Raises:
            LabelMismatchError: If the label count differs from the schema
        """
        label_values = tuple(str(v) for v in label_values)
        if len(label_values) != len(descriptor.label_names):
            raise LabelMismatchError(descriptor.name, len(descriptor.label_names), len(label_values))

        if self._closed.is_set():
            self.logger.debug(f"Dropping late sample for {descriptor.name}")
            return False

        self._queue.put(MetricSample(descriptor, label_values, float(value)))
        return True

    def close(self) -> None:
        self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def drain(self) -> List[MetricSample]:
        """Remove and return every queued sample in arrival order."""
        samples = []
        while True:
            try:
                samples.append(self._queue.get_nowait())
            except queue.Empty:
                return samples


class MetricsTransformer:
    """
    Converts ONTAP records into samples using a MetricCatalogue.

    Every numeric field passes through the normalizer; a field that fails
    normalization costs exactly one sample.
    """

    def __init__(self, catalogue: MetricCatalogue):
        self.catalogue = catalogue
        self.logger = get_logger(__name__)

    def emit_quota_entry(self, sink: MetricSink, entry: QuotaEntry) -> int:
        """
        Emit disk-limit, disk-used, file-limit and files-used for one entry.

        Returns:
            Number of samples emitted (0 to 4)
        """
        labels = (entry.tree, entry.volume, entry.vserver)
        values = (entry.disk_limit, entry.disk_used, entry.file_limit, entry.files_used)

        emitted = 0
        for descriptor, raw in zip(self.catalogue.quota_descriptors(), values):
            if self._emit(sink, descriptor, labels, raw, to_float):
                emitted += 1
        return emitted

    def emit_volume_space(self, sink: MetricSink, volume: VolumeSpaceInfo) -> int:
        """
        Emit the six absolute usage samples followed by the six use rates.

        Returns:
            Number of samples emitted (0 to 12)
        """
        labels = (volume.volume, volume.vserver)
        emitted = 0

        for category in VOLUME_USAGE_CATEGORIES:
            if self._emit(sink, self.catalogue.volume_used_descriptor(category),
                          labels, volume.used(category), to_float):
                emitted += 1

        for category in VOLUME_USAGE_CATEGORIES:
            if self._emit(sink, self.catalogue.volume_use_rate_descriptor(category),
                          labels, volume.used_percent(category), to_rate):
                emitted += 1

        return emitted

    def emit_quota_status(self, sink: MetricSink, volume: VolumeSpaceInfo, status: str) -> bool:
        """Emit the status sample; an empty status is not reported."""
        if not status:
            return False
        return sink.emit(self.catalogue.quota_status, (volume.volume, volume.vserver, status), 1.0)

    def _emit(self, sink: MetricSink, descriptor: MetricDescriptor, labels: Sequence[str],
              raw: RawValue, convert: Callable[[RawValue], float]) -> bool:
        try:
            value = convert(raw)
        except ValueNormalizationError as e:
            self.logger.debug(f"Skipping {descriptor.name} {list(labels)}: {e}")
            return False
        return sink.emit(descriptor, labels, value)

    def to_prometheus_metrics(self, samples: Iterable[MetricSample]) -> List[PrometheusMetric]:
        return [sample.to_prometheus_metric() for sample in samples]

    def format_prometheus_metrics(self, metrics: List[PrometheusMetric]) -> str:
        """
        Render metrics in the Prometheus text exposition format (0.0.4).

        Metrics sharing a name are grouped under a single HELP/TYPE header,
        in order of first appearance.
        """
        if not metrics:
            return ""

        metrics_by_name: Dict[str, List[PrometheusMetric]] = {}
        for metric in metrics:
            metrics_by_name.setdefault(metric.name, []).append(metric)

        output_lines = []
        for metric_name, metric_list in metrics_by_name.items():
            help_text = metric_list[0].help_text.replace('\\', '\\\\').replace('\n', '\\n')
            output_lines.append(f"# HELP {metric_name} {help_text}")
            output_lines.append(f"# TYPE {metric_name} {metric_list[0].metric_type}")

            for metric in metric_list:
                output_lines.append(self._format_metric_line(metric))

        return '\n'.join(output_lines) + '\n'

    def _format_metric_line(self, metric: PrometheusMetric) -> str:
        """
        Format one sample line: ``name{label="value",...} value``.

        Labels keep their schema order.
        """
        value = self._format_value(metric.value)
        if not metric.labels:
            return f"{metric.name} {value}"

        label_pairs = []
        for key, label_value in metric.labels.items():
            escaped_value = label_value.replace('\\', '\\\\').replace('"', '\\"').replace('\n', '\\n')
            label_pairs.append(f'{key}="{escaped_value}"')

        return f"{metric.name}{{{','.join(label_pairs)}}} {value}"

    @staticmethod
    def _format_value(value: float) -> str:
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "+Inf" if value > 0 else "-Inf"
        return repr(float(value))
