"""
Metrics handler orchestrating one collection cycle per scrape.

The volume family is collected first on the calling thread, then every
search condition gets its own worker thread that retrieves the quota
report and pushes samples into the shared sink. A failure in one part is
logged and only costs that part's samples.
"""

import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from netapp_exporter.config import CollectionConfig
from netapp_exporter.data_models import MetricDescriptor, MetricSample, PrometheusMetric, SearchCondition
from netapp_exporter.exceptions import ExporterError
from netapp_exporter.logging_config import get_logger
from netapp_exporter.metrics_transformer import MetricSink, MetricsTransformer
from netapp_exporter.paginator import QuotaReportPaginator
from netapp_exporter.pollers import QuotaPoller, VolumePoller


@dataclass
class ConditionCollectionResult:
    """Outcome of collecting one search condition."""
    condition: SearchCondition
    success: bool
    entries: int = 0
    samples: int = 0
    error: Optional[str] = None
    duration: float = 0.0


@dataclass
class CollectionSummary:
    """What one collection cycle managed to gather."""
    volumes: int
    volume_samples: int
    condition_results: List[ConditionCollectionResult]

    @property
    def failed_conditions(self) -> List[ConditionCollectionResult]:
        return [r for r in self.condition_results if not r.success]


class MetricsHandler:
    """
    Fan-out collector.

    Holds only read-only configuration, so ``collect_metrics`` may run for
    overlapping scrapes at the same time; each call gets its own sink.
    """

    def __init__(self, client, transformer: MetricsTransformer,
                 conditions: Iterable[SearchCondition] = (),
                 collection_config: Optional[CollectionConfig] = None):
        """
        Initialize the metrics handler.

        Args:
            client: ONTAP client shared by all workers
            transformer: Record to sample converter
            conditions: Quota search conditions; empty means one wildcard
            collection_config: Page size, page limit and deadline
        """
        collection_config = collection_config or CollectionConfig()

        self.client = client
        self.transformer = transformer
        self.conditions: List[SearchCondition] = list(conditions) or [SearchCondition()]
        self.timeout_seconds = collection_config.timeout_seconds
        self.volume_poller = VolumePoller(client)
        self.quota_poller = QuotaPoller(QuotaReportPaginator(
            client,
            page_size=collection_config.page_size,
            max_pages=collection_config.max_pages
        ))
        self.logger = get_logger(__name__)

    def describe(self) -> List[MetricDescriptor]:
        """Every metric this handler can produce. No I/O."""
        return self.transformer.catalogue.describe()

    def collect_metrics(self) -> Tuple[List[PrometheusMetric], float]:
        """
        Run one full collection cycle.

        Returns:
            Tuple of (metrics list, collection duration in seconds)
        """
        start_time = time.time()
        sink = MetricSink()

        summary = self.collect_into(sink)

        duration = time.time() - start_time
        metrics = self.transformer.to_prometheus_metrics(sink.drain())
        metrics.append(MetricSample(self.transformer.catalogue.scrape_duration, (), duration).to_prometheus_metric())

        failed = summary.failed_conditions
        if failed:
            self.logger.warning(f"Partial collection: {len(failed)}/{len(summary.condition_results)} "
                                f"search conditions failed")
        self.logger.info(f"Collected {len(metrics)} metrics from {summary.volumes} volumes and "
                         f"{len(summary.condition_results)} search conditions in {duration:.3f}s")

        return metrics, duration

    def collect_into(self, sink: MetricSink) -> CollectionSummary:
        """
        Push every sample of one cycle into ``sink``.

        Returns after all condition workers finished or the collection
        deadline passed, whichever comes first.
        """
        deadline = time.time() + self.timeout_seconds if self.timeout_seconds else None

        volumes, volume_samples = self._collect_volumes(sink)
        condition_results = self._collect_conditions(sink, deadline)

        return CollectionSummary(
            volumes=volumes,
            volume_samples=volume_samples,
            condition_results=condition_results
        )

    def _collect_volumes(self, sink: MetricSink) -> Tuple[int, int]:
        """Volume usage, use rates and quota status. Never raises."""
        logger = get_logger(f"{__name__}.volumes")

        try:
            volumes = self.volume_poller.list_volumes()
        except ExporterError as e:
            logger.error(f"Volume space listing failed, skipping volume metrics: {str(e)[:200]}")
            return 0, 0
        except Exception as e:
            logger.error(f"Unexpected error listing volume spaces: {str(e)[:200]}")
            return 0, 0

        samples = 0
        for volume in volumes:
            samples += self.transformer.emit_volume_space(sink, volume)

            status = self.volume_poller.fetch_status(volume)
            if status and self.transformer.emit_quota_status(sink, volume, status):
                samples += 1

        logger.debug(f"Emitted {samples} samples for {len(volumes)} volumes")
        return len(volumes), samples

    def _collect_conditions(self, sink: MetricSink, deadline: Optional[float]) -> List[ConditionCollectionResult]:
        """Run one worker per condition and wait for all of them."""
        executor = ThreadPoolExecutor(max_workers=len(self.conditions), thread_name_prefix="quota-condition")
        future_to_condition = {
            executor.submit(self._collect_condition, sink, condition): condition
            for condition in self.conditions
        }

        timeout = None if deadline is None else max(0.0, deadline - time.time())
        _, not_done = wait(future_to_condition, timeout=timeout)

        if not_done:
            # Stragglers keep running until their own request timeout;
            # whatever they emit from now on is discarded.
            sink.close()
        executor.shutdown(wait=False)

        results = []
        for future, condition in future_to_condition.items():
            if future in not_done:
                self.logger.warning(f"Search condition {condition.describe()} did not finish "
                                    f"before the collection deadline")
                results.append(ConditionCollectionResult(
                    condition=condition,
                    success=False,
                    error="collection deadline exceeded"
                ))
                continue

            try:
                results.append(future.result())
            except Exception as e:
                self.logger.error(f"Unexpected error collecting condition {condition.describe()}: {str(e)[:200]}")
                results.append(ConditionCollectionResult(condition=condition, success=False, error=str(e)[:200]))

        return results

    def _collect_condition(self, sink: MetricSink, condition: SearchCondition) -> ConditionCollectionResult:
        """
        Retrieve and emit the quota entries of one condition.

        Runs on a worker thread. A failure ends this condition only.
        """
        condition_logger = get_logger(f"{__name__}.condition")
        condition_logger.set_context(condition=condition.describe())

        start_time = time.time()
        try:
            entries = self.quota_poller.poll(condition)

            samples = 0
            for entry in entries:
                samples += self.transformer.emit_quota_entry(sink, entry)

            duration = time.time() - start_time
            condition_logger.debug(f"Emitted {samples} samples for {len(entries)} quota entries "
                                   f"in {duration:.3f}s")

            return ConditionCollectionResult(
                condition=condition,
                success=True,
                entries=len(entries),
                samples=samples,
                duration=duration
            )

        except ExporterError as e:
            error_msg = str(e)[:200]
            condition_logger.error(f"Quota collection failed: {error_msg}")
            return ConditionCollectionResult(
                condition=condition,
                success=False,
                error=error_msg,
                duration=time.time() - start_time
            )

        except Exception as e:
            error_msg = f"Unexpected error: {str(e)[:200]}"
            condition_logger.error(error_msg)
            return ConditionCollectionResult(
                condition=condition,
                success=False,
                error=error_msg,
                duration=time.time() - start_time
            )

        finally:
            condition_logger.clear_context()
