"""Adapter configuration.

Configuration is read once at startup from a YAML file, completed from the
environment and finally overridden by command line flags. The result is an
immutable ``AdapterConfig`` that is handed to every component that needs it.
"""
import logging
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from signoz_adapter.core.errors import ConfigError
from signoz_adapter.core.metric_types import POD_LABEL_KEY, QueryMode

logger = logging.getLogger(__name__)

DEFAULT_TIMERANGE_MINUTES = 5
DEFAULT_STEP_SECONDS = 60
DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class AdapterConfig:
    endpoint: str
    api_key: str
    metrics: Tuple[str, ...]
    timerange_minutes: int = DEFAULT_TIMERANGE_MINUTES
    step_seconds: int = DEFAULT_STEP_SECONDS
    label_filters: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    filter_expression: Optional[str] = None
    group_by_label: str = POD_LABEL_KEY
    query_mode: QueryMode = QueryMode.PROMQL
    time_aggregation: str = "latest"
    space_aggregation: str = "sum"
    strict_attribution: bool = False
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    disable_ssl: bool = False
    server_host: str = "0.0.0.0"
    server_port: int = 8080
    kubeconfig: Optional[str] = None

    @property
    def window_seconds(self) -> int:
        return self.timerange_minutes * 60


def parse_metric_list(value: Any) -> Tuple[str, ...]:
    """Parse a comma-separated string or a list of metric names."""
    if value is None:
        return ()
    if isinstance(value, str):
        value = value.split(',')
    return tuple(name.strip() for name in value if str(name).strip())


def parse_label_filters(value: Any) -> Dict[str, str]:
    """Parse label filters given as a mapping or as ``key=value,key2=value2``.

    Raises:
        ConfigError: If a pair does not have the ``key=value`` form
    """
    if not value:
        return {}
    if isinstance(value, dict):
        return {str(k).strip(): str(v).strip() for k, v in value.items()}

    filters = {}
    for pair in str(value).split(','):
        parts = pair.strip().split('=', 1)
        if len(parts) != 2:
            raise ConfigError(f"invalid label filter {pair!r}: expected key=value")
        filters[parts[0].strip()] = parts[1].strip()
    return filters


def _parse_positive_int(value: Any, name: str) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"invalid value for {name}: {value!r}")
    if parsed <= 0:
        raise ConfigError(f"{name} must be positive, got {parsed}")
    return parsed


def _read_config_file(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return {}
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"unable to read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def load_config(path: Optional[str] = None,
                overrides: Optional[Dict[str, Any]] = None,
                environ: Optional[Mapping[str, str]] = None) -> AdapterConfig:
    """Build the adapter configuration.

    Args:
        path: Optional path to a YAML configuration file
        overrides: Flat mapping of values taking precedence over everything else
            (keys are ``AdapterConfig`` field names; ``None`` values are ignored)
        environ: Environment to read fallbacks from, defaults to ``os.environ``

    Returns:
        AdapterConfig: The validated configuration

    Raises:
        ConfigError: If a required value is missing or a value is invalid
    """
    environ = os.environ if environ is None else environ
    raw = _read_config_file(path)
    signoz = raw.get('signoz') or {}
    query = raw.get('query') or {}
    server = raw.get('server') or {}
    kube = raw.get('kubernetes') or {}

    values: Dict[str, Any] = {
        'endpoint': signoz.get('endpoint') or environ.get('SIGNOZ_URL'),
        'api_key': signoz.get('api_key') or environ.get('SIGNOZ_API_KEY'),
        'query_mode': signoz.get('query_mode', QueryMode.PROMQL.value),
        'timeout_seconds': signoz.get('timeout_seconds', DEFAULT_TIMEOUT_SECONDS),
        'disable_ssl': bool(signoz.get('disable_ssl', False)),
        'metrics': query.get('metrics') or environ.get('SIGNOZ_METRICS'),
        'timerange_minutes': query.get('timerange_minutes') or environ.get('SIGNOZ_TIMERANGE_MINUTES')
                             or DEFAULT_TIMERANGE_MINUTES,
        'step_seconds': query.get('step_seconds', DEFAULT_STEP_SECONDS),
        'label_filters': query.get('label_filters') or environ.get('SIGNOZ_LABEL_FILTERS'),
        'filter_expression': query.get('filter_expression'),
        'group_by_label': query.get('group_by_label') or POD_LABEL_KEY,
        'time_aggregation': query.get('time_aggregation', 'latest'),
        'space_aggregation': query.get('space_aggregation', 'sum'),
        'strict_attribution': bool(query.get('strict_attribution', False)),
        'server_host': server.get('host', '0.0.0.0'),
        'server_port': server.get('port', 8080),
        'kubeconfig': kube.get('kubeconfig'),
    }
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    if not values['endpoint']:
        raise ConfigError("--signoz-endpoint or SIGNOZ_URL is required")
    if not values['api_key']:
        raise ConfigError("--signoz-api-key or SIGNOZ_API_KEY is required")

    metrics = parse_metric_list(values['metrics'])
    if not metrics:
        raise ConfigError("--signoz-metrics or SIGNOZ_METRICS is required")

    try:
        query_mode = QueryMode(values['query_mode'])
    except ValueError:
        raise ConfigError(f"unknown query mode {values['query_mode']!r}, expected one of "
                          f"{[m.value for m in QueryMode]}")

    filter_expression = values['filter_expression']
    if filter_expression is not None:
        filter_expression = str(filter_expression).strip() or None

    try:
        timeout_seconds = float(values['timeout_seconds'])
    except (TypeError, ValueError):
        raise ConfigError(f"invalid value for timeout_seconds: {values['timeout_seconds']!r}")

    config = AdapterConfig(
        endpoint=str(values['endpoint']).rstrip('/'),
        api_key=str(values['api_key']),
        metrics=metrics,
        timerange_minutes=_parse_positive_int(values['timerange_minutes'], 'SIGNOZ_TIMERANGE_MINUTES'),
        step_seconds=_parse_positive_int(values['step_seconds'], 'step_seconds'),
        label_filters=MappingProxyType(parse_label_filters(values['label_filters'])),
        filter_expression=filter_expression,
        group_by_label=str(values['group_by_label']),
        query_mode=query_mode,
        time_aggregation=str(values['time_aggregation']),
        space_aggregation=str(values['space_aggregation']),
        strict_attribution=bool(values['strict_attribution']),
        timeout_seconds=timeout_seconds,
        disable_ssl=bool(values['disable_ssl']),
        server_host=str(values['server_host']),
        server_port=_parse_positive_int(values['server_port'], 'server_port'),
        kubeconfig=values['kubeconfig'],
    )
    logger.debug(f"Loaded configuration: endpoint={config.endpoint}, mode={config.query_mode.value}, "
                 f"metrics={list(config.metrics)}")
    return config
