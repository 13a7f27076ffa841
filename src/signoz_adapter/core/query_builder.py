"""
Query construction for the SigNoz query_range APIs.

A QuerySpec describes what to ask for; the encoders below turn it into either
Prometheus-compatible URL parameters or a v5 builder JSON body.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from signoz_adapter.core.metric_types import POD_LABEL_KEY, QueryMode, QuerySpec


PROMQL_PATH = "/api/v1/query_range"
BUILDER_PATH = "/api/v5/query_range"

BUILDER_QUERY_NAME = "A"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
SECOND = timedelta(seconds=1)
MILLISECOND = timedelta(milliseconds=1)


def _epoch(moment: datetime, unit: timedelta) -> int:
    """Whole ``unit``s since the Unix epoch, using exact integer arithmetic."""
    return (moment - EPOCH) // unit


def render_label_filters(label_filters: Mapping[str, str], mode: QueryMode) -> Optional[str]:
    """Render a label mapping as a predicate for the given query mode.

    Keys are sorted so the same mapping always yields the same predicate.

    Returns:
        The predicate, or None when there are no filters
    """
    if not label_filters:
        return None
    keys = sorted(label_filters)
    if mode == QueryMode.BUILDER:
        return " AND ".join(f"{k} = '{label_filters[k]}'" for k in keys)
    return ",".join(f'{k}="{label_filters[k]}"' for k in keys)


def combine_predicates(mode: QueryMode, *predicates: Optional[str]) -> Optional[str]:
    """Join the non-empty predicates, or return None if there are none."""
    parts = [p for p in predicates if p]
    if not parts:
        return None
    separator = " AND " if mode == QueryMode.BUILDER else ","
    return separator.join(parts)


class QueryBuilder:
    """Builds QuerySpecs for a fixed identifying label and step."""

    def __init__(self, group_by_label: str = POD_LABEL_KEY, step_seconds: int = 60):
        self.group_by_label = group_by_label
        self.step_seconds = step_seconds

    def build(self, metric_name: str, lookback_minutes: int,
              filter_expression: Optional[str] = None) -> QuerySpec:
        """Build a query over the last ``lookback_minutes`` minutes.

        The metric name is trusted: allow-list checks happen before this is
        called. An empty filter expression is treated as no filter.
        """
        end = datetime.now(tz=timezone.utc)
        start = end - timedelta(minutes=lookback_minutes)
        return QuerySpec(
            metric_name=metric_name,
            window_start=start,
            window_end=end,
            step_seconds=self.step_seconds,
            group_by_label=self.group_by_label,
            filter_expression=filter_expression or None,
        )


def to_promql(spec: QuerySpec) -> str:
    if spec.filter_expression is None:
        return spec.metric_name
    return spec.metric_name + "{" + spec.filter_expression + "}"


def to_query_params(spec: QuerySpec) -> Dict[str, str]:
    """URL parameters for ``GET /api/v1/query_range`` (times in epoch seconds)."""
    return {
        'query': to_promql(spec),
        'start': str(_epoch(spec.window_start, SECOND)),
        'end': str(_epoch(spec.window_end, SECOND)),
        'step': str(spec.step_seconds),
    }


def to_builder_payload(spec: QuerySpec,
                       time_aggregation: str = "latest",
                       space_aggregation: str = "sum") -> Dict[str, Any]:
    """JSON body for ``POST /api/v5/query_range`` (times in epoch milliseconds).

    The ``filter`` key is left out entirely when the query has no predicate.
    """
    query_spec: Dict[str, Any] = {
        'name': BUILDER_QUERY_NAME,
        'signal': 'metrics',
        'stepInterval': spec.step_seconds,
        'aggregations': [{
            'metricName': spec.metric_name,
            'timeAggregation': time_aggregation,
            'spaceAggregation': space_aggregation,
        }],
        'groupBy': [{
            'name': spec.group_by_label,
            'fieldDataType': 'string',
            'fieldContext': 'resource',
        }],
    }
    if spec.filter_expression is not None:
        query_spec['filter'] = {'expression': spec.filter_expression}

    return {
        'start': _epoch(spec.window_start, MILLISECOND),
        'end': _epoch(spec.window_end, MILLISECOND),
        'requestType': 'time_series',
        'compositeQuery': {
            'queries': [{'type': 'builder_query', 'spec': query_spec}],
        },
    }
