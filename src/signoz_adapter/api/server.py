"""JSON HTTP surface for the custom and external metrics APIs."""
import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from threading import Thread
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, unquote, urlsplit

from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from signoz_adapter.core.errors import (
    AdapterError,
    DecodeError,
    MetricNotFoundError,
    ObjectListingError,
    QueryRejectedError,
    TransportError,
)

logger = logging.getLogger(__name__)

CUSTOM_METRICS_GROUP = "custom.metrics.k8s.io"
CUSTOM_METRICS_VERSION = "v1beta2"
EXTERNAL_METRICS_GROUP = "external.metrics.k8s.io"
EXTERNAL_METRICS_VERSION = "v1beta1"

CUSTOM_PREFIX = f"/apis/{CUSTOM_METRICS_GROUP}/{CUSTOM_METRICS_VERSION}"
EXTERNAL_PREFIX = f"/apis/{EXTERNAL_METRICS_GROUP}/{EXTERNAL_METRICS_VERSION}"


def error_status(exc: AdapterError) -> int:
    """HTTP status code for an adapter error."""
    if isinstance(exc, MetricNotFoundError):
        return 404
    if isinstance(exc, (TransportError, ObjectListingError)):
        return 503
    if isinstance(exc, (DecodeError, QueryRejectedError)):
        return 502
    return 500


def status_body(code: int, message: str) -> Dict[str, Any]:
    reasons = {404: "NotFound", 500: "InternalError", 502: "InternalError", 503: "ServiceUnavailable"}
    return {
        "kind": "Status",
        "apiVersion": "v1",
        "metadata": {},
        "status": "Failure",
        "message": message,
        "reason": reasons.get(code, "InternalError"),
        "code": code,
    }


def _resource_list(group_version: str, names: List[str], namespaced: bool = True) -> Dict[str, Any]:
    return {
        "kind": "APIResourceList",
        "apiVersion": "v1",
        "groupVersion": group_version,
        "resources": [
            {
                "name": name,
                "singularName": "",
                "namespaced": namespaced,
                "kind": "MetricValueList" if group_version.startswith(CUSTOM_METRICS_GROUP)
                else "ExternalMetricValueList",
                "verbs": ["get"],
            }
            for name in names
        ],
    }


def _split_path(path: str, prefix: str) -> Optional[List[str]]:
    if path == prefix:
        return []
    if not path.startswith(prefix + "/"):
        return None
    return [unquote(p) for p in path[len(prefix) + 1:].split("/") if p]


def make_handler(provider, collector=None):
    """Build a request handler class bound to ``provider``."""

    class _Handler(BaseHTTPRequestHandler):
        def _send_json(self, data, status=200):
            body = json.dumps(data).encode()
            self._send_body(body, "application/json", status)

        def _send_body(self, body: bytes, content_type: str, status: int = 200):
            try:
                self.send_response(status)
                self.send_header("Content-Type", content_type)
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)
            except (BrokenPipeError, ConnectionResetError):
                logger.warning("Connection to client lost while sending response")

        def _send_error(self, code: int, message: str):
            self._send_json(status_body(code, message), status=code)

        def _handle_custom(self, parts: List[str], query: Dict[str, List[str]]) -> Tuple[int, Dict[str, Any]]:
            if not parts:
                names = [f"{info.group_resource}/{info.metric}" for info in provider.list_all_metrics()]
                return 200, _resource_list(f"{CUSTOM_METRICS_GROUP}/{CUSTOM_METRICS_VERSION}", names)

            # namespaces/{ns}/pods/{name|*}/{metric}
            if len(parts) != 5 or parts[0] != "namespaces" or parts[2] != "pods":
                return 404, status_body(404, f"the server could not find the requested resource {self.path}")
            namespace, name, metric = parts[1], parts[3], parts[4]

            if name == "*":
                selector = query.get("labelSelector", [""])[0]
                values = provider.get_metric_by_selector(namespace, selector, metric)
            else:
                values = [provider.get_metric_by_name(namespace, name, metric)]
            return 200, {
                "kind": "MetricValueList",
                "apiVersion": f"{CUSTOM_METRICS_GROUP}/{CUSTOM_METRICS_VERSION}",
                "metadata": {},
                "items": [v.to_dict() for v in values],
            }

        def _handle_external(self, parts: List[str]) -> Tuple[int, Dict[str, Any]]:
            if not parts:
                return 200, _resource_list(
                    f"{EXTERNAL_METRICS_GROUP}/{EXTERNAL_METRICS_VERSION}",
                    provider.list_all_external_metrics(),
                )
            # namespaces/{ns}/{metric}
            if len(parts) != 3 or parts[0] != "namespaces":
                return 404, status_body(404, f"the server could not find the requested resource {self.path}")
            values = provider.get_external_metric(parts[1], parts[2])
            return 200, {
                "kind": "ExternalMetricValueList",
                "apiVersion": f"{EXTERNAL_METRICS_GROUP}/{EXTERNAL_METRICS_VERSION}",
                "metadata": {},
                "items": [v.to_dict() for v in values],
            }

        def do_GET(self):
            url = urlsplit(self.path)
            path = url.path.rstrip("/") or "/"
            query = parse_qs(url.query)

            if path == "/metrics":
                self._send_body(generate_latest(), CONTENT_TYPE_LATEST)
                return
            if path == "/healthz":
                self._send_json({"status": "ok"})
                return
            if path == "/readyz":
                health = collector.health_check() if collector is not None else {"status": "healthy"}
                code = 200 if health.get("status") == "healthy" else 503
                self._send_json(health, status=code)
                return

            try:
                custom_parts = _split_path(path, CUSTOM_PREFIX)
                external_parts = _split_path(path, EXTERNAL_PREFIX)
                if custom_parts is not None:
                    code, body = self._handle_custom(custom_parts, query)
                elif external_parts is not None:
                    code, body = self._handle_external(external_parts)
                else:
                    code, body = 404, status_body(404, f"the server could not find the requested resource {path}")
            except AdapterError as e:
                code = error_status(e)
                if code == 404:
                    logger.debug(f"{path}: {e}")
                else:
                    logger.error(f"Error serving {path}: {e}")
                self._send_error(code, str(e))
                return
            except Exception as e:
                logger.exception(f"Unexpected error serving {path}")
                self._send_error(500, f"internal error: {e}")
                return

            self._send_json(body, status=code)

        def log_message(self, format, *args):
            logger.debug("%s - %s", self.address_string(), format % args)

    return _Handler


def start_server(provider, host: str, port: int, collector=None) -> ThreadingHTTPServer:
    """Start a background HTTP server for ``provider``.

    Returns:
        The running server; call ``shutdown()`` to stop it
    """
    server = ThreadingHTTPServer((host, port), make_handler(provider, collector))
    thread = Thread(target=server.serve_forever, daemon=True)
    thread.start()
    logger.info(f"Metrics API server running on {host}:{server.server_address[1]}")
    return server
