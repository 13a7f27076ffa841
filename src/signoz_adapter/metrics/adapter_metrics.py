"""Prometheus metrics describing the adapter itself."""
from prometheus_client import Counter, Histogram

BACKEND_QUERIES = Counter(
    'signoz_adapter_backend_queries_total',
    'Total number of queries sent to SigNoz',
    ['mode']
)
BACKEND_QUERY_ERRORS = Counter(
    'signoz_adapter_backend_query_errors_total',
    'Total number of failed SigNoz queries',
    ['kind']
)
BACKEND_QUERY_DURATION = Histogram(
    'signoz_adapter_backend_query_duration_seconds',
    'Time spent waiting for SigNoz query responses',
    ['mode']
)
DROPPED_SAMPLES = Counter(
    'signoz_adapter_dropped_samples_total',
    'Series dropped because their latest value was missing or not a finite number',
    ['metric']
)
FALLBACK_AGGREGATIONS = Counter(
    'signoz_adapter_fallback_aggregations_total',
    'Lookups where no series matched the object and all series were summed instead',
    ['metric']
)
