import argparse
import logging
import sys
import time
from typing import Any, Dict, Optional

from signoz_adapter.api.server import start_server
from signoz_adapter.collectors.kubernetes import KubernetesObjectLister
from signoz_adapter.collectors.signoz import SignozCollector
from signoz_adapter.core.config import AdapterConfig, load_config
from signoz_adapter.core.errors import ConfigError
from signoz_adapter.core.provider import SignozMetricsProvider

logger = logging.getLogger(__name__)

HEALTH_CHECK_INTERVAL_SECONDS = 60


class SignozAdapter:
    """Wires configuration, SigNoz collector, pod lister and API server together."""

    def __init__(self, config: AdapterConfig):
        self.config = config
        self.collector = self._init_collector()
        self.object_lister = self._init_object_lister()
        self.provider = SignozMetricsProvider(config, self.collector, self.object_lister)
        self.server = None

    def _init_collector(self) -> SignozCollector:
        return SignozCollector(self.config)

    def _init_object_lister(self) -> KubernetesObjectLister:
        return KubernetesObjectLister(kubeconfig=self.config.kubeconfig)

    def check_backend(self) -> None:
        """Log backend health and any configured metric SigNoz does not know about."""
        health = self.collector.health_check()
        if health["status"] != "healthy":
            logger.warning(f"SigNoz health check failed: {health['status']}")
            return
        unknown = self.collector.validate_metrics(list(self.config.metrics))
        if unknown:
            logger.warning(f"Configured metrics not reported by SigNoz: {unknown}")

    def run(self) -> None:
        self.check_backend()
        self.server = start_server(self.provider, self.config.server_host, self.config.server_port,
                                   collector=self.collector)
        logger.info(f"starting signoz metrics adapter, endpoint={self.config.endpoint}, "
                    f"metrics={list(self.config.metrics)}")
        try:
            while True:
                time.sleep(HEALTH_CHECK_INTERVAL_SECONDS)
                health = self.collector.health_check()
                if health["status"] != "healthy":
                    logger.warning(f"SigNoz health check failed: {health['status']}")
        except KeyboardInterrupt:
            logger.info("Received interrupt signal, shutting down gracefully...")
            self.server.shutdown()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='SigNoz custom metrics adapter')
    parser.add_argument('--config', help='Path to YAML configuration file')
    parser.add_argument('--signoz-endpoint', help='SigNoz query endpoint (e.g. https://signoz.example.com)')
    parser.add_argument('--signoz-api-key', help='SigNoz API key for authentication')
    parser.add_argument('--signoz-timerange-minutes', type=int,
                        help='Time range in minutes to use for signoz queries')
    parser.add_argument('--signoz-metrics', help='Comma-separated list of metric names to expose')
    parser.add_argument('--signoz-label-filters',
                        help='Comma-separated label filters appended to every query '
                             '(e.g. deployment.environment=prod,service.name=myapp)')
    parser.add_argument('--signoz-query-mode', choices=['promql', 'builder'], help='Query API to use')
    parser.add_argument('--port', type=int, help='Port to serve the metrics API on')
    parser.add_argument('--log-level', default='INFO', help='Logging level')
    return parser.parse_args(argv)


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Optional[Any]]:
    return {
        'endpoint': args.signoz_endpoint,
        'api_key': args.signoz_api_key,
        'timerange_minutes': args.signoz_timerange_minutes,
        'metrics': args.signoz_metrics,
        'label_filters': args.signoz_label_filters,
        'query_mode': args.signoz_query_mode,
        'server_port': args.port,
    }


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        config = load_config(args.config, overrides_from_args(args))
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)

    adapter = SignozAdapter(config)
    adapter.run()


if __name__ == '__main__':
    main()
