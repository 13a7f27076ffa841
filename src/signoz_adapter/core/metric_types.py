"""Metric types shared by the query builder, collectors and provider."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


POD_LABEL_KEY = "k8s.pod.name"


class QueryMode(Enum):
    """How a query is sent to the backend."""
    PROMQL = "promql"
    BUILDER = "builder"


@dataclass(frozen=True)
class QuerySpec:
    """One logical metric request against the backend."""
    metric_name: str
    window_start: datetime
    window_end: datetime
    step_seconds: int
    group_by_label: str
    filter_expression: Optional[str] = None


@dataclass(frozen=True)
class RawSeries:
    """A decoded series: labels plus its (timestamp, value) points in backend order.

    Values are kept as the backend sent them (strings for PromQL responses,
    numbers for builder responses); parsing happens during normalization.
    """
    labels: Dict[str, str]
    values: List[Tuple[Any, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class NormalizedSeries:
    labels: Dict[str, str]
    value: float


@dataclass(frozen=True)
class MetricInfo:
    metric: str
    group_resource: str = "pods"
    namespaced: bool = True


def format_milli_quantity(value: float) -> str:
    """Render a float as a Kubernetes milli-quantity, e.g. 1.5 -> '1500m'.

    The conversion truncates toward zero.
    """
    return f"{int(value * 1000)}m"


@dataclass(frozen=True)
class MetricValue:
    """A custom metric value for a single described object."""
    namespace: str
    name: str
    metric_name: str
    timestamp: datetime
    window_seconds: int
    value: float
    kind: str = "Pod"
    api_version: str = "/v1"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "describedObject": {
                "kind": self.kind,
                "namespace": self.namespace,
                "name": self.name,
                "apiVersion": self.api_version,
            },
            "metric": {"name": self.metric_name, "selector": None},
            "timestamp": self.timestamp.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "windowSeconds": self.window_seconds,
            "value": format_milli_quantity(self.value),
        }


@dataclass(frozen=True)
class ExternalMetricValue:
    metric_name: str
    timestamp: datetime
    window_seconds: int
    value: float
    metric_labels: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metricName": self.metric_name,
            "metricLabels": dict(self.metric_labels),
            "timestamp": self.timestamp.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "windowSeconds": self.window_seconds,
            "value": format_milli_quantity(self.value),
        }


__all__ = [
    'POD_LABEL_KEY',
    'QueryMode',
    'QuerySpec',
    'RawSeries',
    'NormalizedSeries',
    'MetricInfo',
    'MetricValue',
    'ExternalMetricValue',
    'format_milli_quantity',
]
