"""Custom and external metrics provider backed by SigNoz."""
import logging
from datetime import datetime, timezone
from typing import List

from signoz_adapter.collectors.base import BaseCollector
from signoz_adapter.core.aggregation import matched_value, total_value, value_per_object_group
from signoz_adapter.core.config import AdapterConfig
from signoz_adapter.core.errors import MetricNotFoundError
from signoz_adapter.core.metric_types import (
    ExternalMetricValue,
    MetricInfo,
    MetricValue,
    NormalizedSeries,
)
from signoz_adapter.core.query_builder import QueryBuilder, combine_predicates, render_label_filters
from signoz_adapter.metrics.adapter_metrics import FALLBACK_AGGREGATIONS
from signoz_adapter.utils.series_normalizer import normalize_series

logger = logging.getLogger(__name__)


class SignozMetricsProvider:
    """Answers custom and external metric requests from SigNoz data.

    Every request runs one backend query over the configured lookback window
    and reduces it in memory; nothing is cached between requests.

    Args:
        config: Adapter configuration
        collector: Backend used to run queries
        object_lister: Collaborator with ``list_object_names(namespace, label_selector)``
    """

    def __init__(self, config: AdapterConfig, collector: BaseCollector, object_lister):
        self.config = config
        self.collector = collector
        self.object_lister = object_lister
        self.query_builder = QueryBuilder(
            group_by_label=config.group_by_label,
            step_seconds=config.step_seconds,
        )
        self.filter_expression = combine_predicates(
            config.query_mode,
            config.filter_expression,
            render_label_filters(config.label_filters, config.query_mode),
        )

    def is_allowed_metric(self, name: str) -> bool:
        return name in self.config.metrics

    def _require_allowed(self, metric: str, name: str = None) -> None:
        if not self.is_allowed_metric(metric):
            raise MetricNotFoundError(metric, "pods", name)

    def _fetch(self, metric: str) -> List[NormalizedSeries]:
        spec = self.query_builder.build(metric, self.config.timerange_minutes, self.filter_expression)
        raw = self.collector.query(spec)
        return normalize_series(raw, metric)

    def get_metric_by_name(self, namespace: str, name: str, metric: str) -> MetricValue:
        """Value of ``metric`` for a single pod.

        Raises:
            MetricNotFoundError: If the metric is not served, or no series is
                attributed to the pod while strict attribution is enabled
        """
        self._require_allowed(metric, name)
        series = self._fetch(metric)
        label_key = self.config.group_by_label

        value = matched_value(series, name, label_key)
        if value is None:
            if self.config.strict_attribution:
                raise MetricNotFoundError(metric, "pods", name)
            if series:
                logger.debug(f"No series labeled {label_key}={name}, summing all {len(series)} series")
                FALLBACK_AGGREGATIONS.labels(metric=metric).inc()
            value = total_value(series)

        return MetricValue(
            namespace=namespace,
            name=name,
            metric_name=metric,
            timestamp=datetime.now(tz=timezone.utc),
            window_seconds=self.config.window_seconds,
            value=value,
        )

    def get_metric_by_selector(self, namespace: str, selector: str, metric: str) -> List[MetricValue]:
        """Values of ``metric`` for every pod matching ``selector``.

        Pods without series are left out of the result.
        """
        self._require_allowed(metric)
        series = self._fetch(metric)
        pod_names = self.object_lister.list_object_names(namespace, selector)
        logger.debug(f"matched {len(pod_names)} pods, got {len(series)} series from signoz")

        by_pod = value_per_object_group(series, pod_names, self.config.group_by_label)
        now = datetime.now(tz=timezone.utc)
        return [
            MetricValue(
                namespace=namespace,
                name=pod_name,
                metric_name=metric,
                timestamp=now,
                window_seconds=self.config.window_seconds,
                value=value,
            )
            for pod_name, value in by_pod.items()
        ]

    def get_external_metric(self, namespace: str, metric: str) -> List[ExternalMetricValue]:
        """Total of ``metric`` across all series."""
        self._require_allowed(metric)
        series = self._fetch(metric)
        return [
            ExternalMetricValue(
                metric_name=metric,
                timestamp=datetime.now(tz=timezone.utc),
                window_seconds=self.config.window_seconds,
                value=total_value(series),
            )
        ]

    def list_all_metrics(self) -> List[MetricInfo]:
        return [MetricInfo(metric=m) for m in self.config.metrics]

    def list_all_external_metrics(self) -> List[str]:
        return list(self.config.metrics)
