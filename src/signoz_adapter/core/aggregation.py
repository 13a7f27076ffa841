"""Reductions from normalized series to per-object values."""
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from signoz_adapter.core.metric_types import NormalizedSeries, POD_LABEL_KEY

logger = logging.getLogger(__name__)


def total_value(series: List[NormalizedSeries]) -> float:
    """Sum of all series values; 0 for an empty list."""
    return sum((s.value for s in series), 0.0)


def matched_value(series: List[NormalizedSeries], object_name: str,
                  label_key: str = POD_LABEL_KEY) -> Optional[float]:
    """Sum the series attributed to ``object_name``, or None if none are."""
    matches = [s.value for s in series if s.labels.get(label_key) == object_name]
    if not matches:
        return None
    return sum(matches, 0.0)


def value_for_object(series: List[NormalizedSeries], object_name: str,
                     label_key: str = POD_LABEL_KEY) -> float:
    """Value of a metric for a single object.

    Sums every series whose identifying label equals ``object_name``. When no
    series carries that label value, all series are summed instead, because
    some sources do not tag every series with the per-object label. This
    cannot distinguish "no data for this object" from "not labeled per
    object" and over-reports when several objects share an unlabeled series.
    """
    value = matched_value(series, object_name, label_key)
    if value is not None:
        return value
    if series:
        logger.debug(f"No series labeled {label_key}={object_name}, summing all {len(series)} series")
    return total_value(series)


def value_per_object_group(series: List[NormalizedSeries], object_names: Iterable[str],
                           label_key: str = POD_LABEL_KEY) -> Dict[str, float]:
    """Per-object totals for the requested objects.

    Series without the identifying label are ignored, and objects with no
    series are left out of the result rather than reported as 0.
    """
    by_object: Dict[str, float] = defaultdict(float)
    for s in series:
        if label_key in s.labels:
            by_object[s.labels[label_key]] += s.value

    result = {}
    for name in object_names:
        if name not in by_object:
            logger.debug(f"no series for {label_key}={name}, skipping")
            continue
        result[name] = by_object[name]
    return result
