from typing import Dict, Any, List, Optional, Tuple
import logging
import math
import re

from signoz_adapter.core.errors import DecodeError, QueryRejectedError
from signoz_adapter.core.metric_types import NormalizedSeries, QueryMode, RawSeries
from signoz_adapter.metrics.adapter_metrics import DROPPED_SAMPLES

logger = logging.getLogger(__name__)

SUCCESS_STATUS = "success"

# plain decimal or exponent notation; no digit separators or padding
NUMBER_PATTERN = re.compile(r'[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?')


def _label_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _as_point(point: Any) -> Tuple[Any, Any]:
    """Turn a point into a (timestamp, value) pair; malformed points become (None, None)."""
    if isinstance(point, dict):
        return point.get('timestamp'), point.get('value')
    if isinstance(point, (list, tuple)) and len(point) >= 2:
        return point[0], point[1]
    return None, None


def _check_status(payload: Any) -> None:
    if not isinstance(payload, dict) or 'status' not in payload:
        raise DecodeError("response has no status field")
    status = payload['status']
    if status != SUCCESS_STATUS:
        raise QueryRejectedError(str(status), payload.get('error'))


def _decode_promql(payload: Dict[str, Any]) -> List[RawSeries]:
    """Decode a Prometheus-style ``data.result`` list.

    Each result carries either ``values`` (matrix, many points) or ``value``
    (vector, one point); both become the same ``RawSeries.values`` list.
    """
    data = payload.get('data')
    if not isinstance(data, dict):
        raise DecodeError("response has no data object")
    result = data.get('result') or []
    if not isinstance(result, list):
        raise DecodeError(f"unexpected result type {type(result).__name__}")

    series = []
    for item in result:
        if not isinstance(item, dict):
            raise DecodeError(f"unexpected series entry {item!r}")
        metric = item.get('metric') or {}
        if not isinstance(metric, dict):
            raise DecodeError(f"unexpected metric labels {metric!r}")
        labels = {str(k): _label_value(v) for k, v in metric.items() if v is not None}

        points = item.get('values') or []
        if not points and item.get('value'):
            points = [item['value']]
        series.append(RawSeries(labels=labels, values=[_as_point(p) for p in points]))
    return series


def _decode_builder(payload: Dict[str, Any]) -> List[RawSeries]:
    """Decode a v5 builder ``time_series`` response."""
    try:
        inner = payload['data']['data']
        results = inner.get('results') or []
        for warning in [inner.get('warning')] + list(inner.get('warnings') or []):
            if warning:
                message = warning.get('message') if isinstance(warning, dict) else warning
                logger.warning(f"SigNoz query warning: {message}")

        series = []
        for result in results:
            for aggregation in result.get('aggregations') or []:
                for entry in aggregation.get('series') or []:
                    labels = {
                        str(label['key']['name']): _label_value(label.get('value'))
                        for label in entry.get('labels') or []
                        if label.get('value') is not None
                    }
                    points = [_as_point(p) for p in entry.get('values') or []]
                    series.append(RawSeries(labels=labels, values=points))
        return series
    except (KeyError, TypeError, AttributeError) as e:
        raise DecodeError(f"unexpected builder response shape: {e!r}") from e


def decode_response(payload: Any, mode: QueryMode) -> List[RawSeries]:
    """Decode a query_range response body into raw series.

    Args:
        payload: Parsed JSON body
        mode: Query mode the request was sent with

    Returns:
        List of RawSeries with their points in backend order

    Raises:
        DecodeError: If the payload does not have the expected shape
        QueryRejectedError: If the backend reported a non-success status
    """
    _check_status(payload)
    if mode == QueryMode.BUILDER:
        return _decode_builder(payload)
    return _decode_promql(payload)


def _parse_value(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str) and not NUMBER_PATTERN.fullmatch(raw):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


def normalize_series(raw_series: List[RawSeries], metric_name: str = "") -> List[NormalizedSeries]:
    """Reduce every raw series to its latest value.

    Series without points are skipped. Series whose latest value is missing
    or not a finite number are dropped with a warning; they never count as 0.

    Args:
        raw_series: Decoded series
        metric_name: Metric name for logging context

    Returns:
        One NormalizedSeries per usable raw series, in input order
    """
    normalized = []
    for series in raw_series:
        if not series.values:
            logger.debug(f"Skipping series without values for metric {metric_name}: {series.labels}")
            continue
        _, raw = series.values[-1]
        value = _parse_value(raw)
        if value is None:
            logger.warning(f"skipping non-numeric value {raw!r} for metric {metric_name} {series.labels}")
            DROPPED_SAMPLES.labels(metric=metric_name).inc()
            continue
        normalized.append(NormalizedSeries(labels=series.labels, value=value))

    logger.debug(f"Normalized {len(normalized)} of {len(raw_series)} series for metric {metric_name}")
    return normalized
