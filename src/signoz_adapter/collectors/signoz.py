from typing import Dict, Any, List, Optional
from datetime import datetime, timezone
import json
import logging
import time

import requests
from prometheus_api_client import PrometheusConnect

from signoz_adapter.collectors.base import BaseCollector
from signoz_adapter.core.config import AdapterConfig
from signoz_adapter.core.errors import DecodeError, QueryRejectedError, TransportError
from signoz_adapter.core.metric_types import QueryMode, QuerySpec, RawSeries
from signoz_adapter.core.query_builder import (
    BUILDER_PATH,
    PROMQL_PATH,
    to_builder_payload,
    to_query_params,
)
from signoz_adapter.metrics.adapter_metrics import (
    BACKEND_QUERIES,
    BACKEND_QUERY_DURATION,
    BACKEND_QUERY_ERRORS,
)
from signoz_adapter.utils.series_normalizer import decode_response

logger = logging.getLogger(__name__)

API_KEY_HEADER = "SIGNOZ-API-KEY"


class SignozCollector(BaseCollector):
    """SigNoz query_range client.

    Every call to ``query`` sends exactly one HTTP request with a fixed
    timeout. Failures are raised to the caller; nothing is retried here.
    """

    def __init__(self, config: AdapterConfig, session: Optional[requests.Session] = None):
        """Initialize SigNoz collector.

        Args:
            config: Adapter configuration
            session: Optional requests session, mainly for tests
        """
        super().__init__(config)
        self.session = session or requests.Session()
        self.session.headers[API_KEY_HEADER] = config.api_key
        self.session.verify = not config.disable_ssl

        self.prom = PrometheusConnect(
            url=config.endpoint,
            headers={API_KEY_HEADER: config.api_key},
            disable_ssl=config.disable_ssl
        )
        self._available_metrics: Optional[List[str]] = None
        logger.info(f"Initialized SignozCollector with URL: {config.endpoint} (mode={config.query_mode.value})")

    def _send(self, spec: QuerySpec) -> requests.Response:
        mode = self.config.query_mode
        if mode == QueryMode.BUILDER:
            url = self.config.endpoint + BUILDER_PATH
            payload = to_builder_payload(spec, self.config.time_aggregation, self.config.space_aggregation)
            logger.debug(f"querying signoz: POST {url} {json.dumps(payload)}")
            return self.session.post(url, json=payload, timeout=self.config.timeout_seconds)

        url = self.config.endpoint + PROMQL_PATH
        params = to_query_params(spec)
        logger.debug(f"querying signoz: GET {url} {params}")
        return self.session.get(url, params=params, timeout=self.config.timeout_seconds)

    def query(self, spec: QuerySpec) -> List[RawSeries]:
        mode = self.config.query_mode
        BACKEND_QUERIES.labels(mode=mode.value).inc()
        started = time.monotonic()
        try:
            try:
                response = self._send(spec)
                body = response.content
            except requests.exceptions.RequestException as e:
                raise TransportError(f"querying signoz for {spec.metric_name}: {e}") from e
            finally:
                BACKEND_QUERY_DURATION.labels(mode=mode.value).observe(time.monotonic() - started)

            logger.debug(f"signoz response ({response.status_code}): {body[:2048]!r}")
            if response.status_code != 200:
                raise TransportError(
                    f"signoz returned {response.status_code} for {spec.metric_name}: "
                    f"{body.decode('utf-8', errors='replace')}"
                )

            try:
                payload = json.loads(body)
            except ValueError as e:
                raise DecodeError(f"decoding response for {spec.metric_name}: {e}") from e

            series = decode_response(payload, mode)
        except TransportError:
            BACKEND_QUERY_ERRORS.labels(kind='transport').inc()
            raise
        except DecodeError:
            BACKEND_QUERY_ERRORS.labels(kind='decode').inc()
            raise
        except QueryRejectedError:
            BACKEND_QUERY_ERRORS.labels(kind='rejected').inc()
            raise

        self.last_collection = datetime.now(tz=timezone.utc)
        logger.debug(f"Query for {spec.metric_name} returned {len(series)} series")
        return series

    def get_available_metrics(self) -> List[str]:
        """Get list of metric names SigNoz reports through its Prometheus API.

        Returns:
            List of available metric names, empty if SigNoz could not be asked
        """
        if self._available_metrics is None:
            try:
                self._available_metrics = self.prom.all_metrics()
            except Exception as e:
                logger.warning(f"Error getting available metrics: {str(e)}")
                return []

        return self._available_metrics

    def health_check(self) -> Dict[str, Any]:
        """Check SigNoz reachability.

        Returns:
            Dictionary with health status and details
        """
        try:
            if self.prom.check_prometheus_connection():
                status = "healthy"
            else:
                status = "unhealthy: endpoint did not answer OK"
        except Exception as e:
            status = f"unhealthy: {str(e)}"

        return {
            "status": status,
            "last_collection": self.last_collection.isoformat() if self.last_collection else None,
            "signoz_url": self.config.endpoint,
            "query_mode": self.config.query_mode.value,
        }
