"""
Pytest configuration for SigNoz metrics adapter tests.
"""

import sys
import os
import pytest

# Add src/ to the Python path so tests run without installing the package
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.join(project_root, 'src'))

# Configure logging for tests
import logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

from signoz_adapter.core.config import load_config
from signoz_adapter.core.metric_types import RawSeries


@pytest.fixture
def adapter_config():
    """Provide a minimal PromQL-mode configuration."""
    return load_config(
        overrides={
            'endpoint': 'http://signoz.test:8080',
            'api_key': 'test-key',
            'metrics': 'phpfpm_active_processes,http_requests_inflight',
        },
        environ={},
    )


@pytest.fixture
def builder_config():
    """Provide a minimal builder-mode configuration."""
    return load_config(
        overrides={
            'endpoint': 'http://signoz.test:8080',
            'api_key': 'test-key',
            'metrics': 'phpfpm_active_processes',
            'query_mode': 'builder',
        },
        environ={},
    )


class StubCollector:
    """Collector double returning canned series and counting calls."""

    def __init__(self, series=None, error=None):
        self.series = series or []
        self.error = error
        self.calls = []

    def query(self, spec):
        self.calls.append(spec)
        if self.error is not None:
            raise self.error
        return self.series

    def health_check(self):
        return {"status": "healthy", "last_collection": None}


class StubObjectLister:
    """Object lister double returning a fixed list of names."""

    def __init__(self, names=None, error=None):
        self.names = names or []
        self.error = error
        self.calls = []

    def list_object_names(self, namespace, label_selector=""):
        self.calls.append((namespace, label_selector))
        if self.error is not None:
            raise self.error
        return list(self.names)


def pod_series(pod, *values):
    """RawSeries labelled with a pod name and PromQL-style string points."""
    labels = {'k8s.pod.name': pod} if pod is not None else {}
    return RawSeries(labels=labels, values=[(1720000000 + i * 60, v) for i, v in enumerate(values)])


@pytest.fixture
def make_series():
    return pod_series


@pytest.fixture
def stub_collector_factory():
    return StubCollector


@pytest.fixture
def stub_lister_factory():
    return StubObjectLister
