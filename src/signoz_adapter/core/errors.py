"""Error types raised by the adapter."""
from typing import Optional


class AdapterError(Exception):
    """Base class for all adapter errors."""


class ConfigError(AdapterError):
    """Raised when the adapter configuration is missing or invalid."""


class MetricNotFoundError(AdapterError):
    """Raised when a metric is not served for the requested object."""

    def __init__(self, metric: str, resource: str = "pods", name: Optional[str] = None):
        self.metric = metric
        self.resource = resource
        self.name = name
        if name:
            message = f'the server could not find the metric {metric} for {resource} {name}'
        else:
            message = f'the server could not find the descriptor for metric {metric}'
        super().__init__(message)


class TransportError(AdapterError):
    """Raised when the backend could not be reached or answered with a non-OK status."""


class DecodeError(AdapterError):
    """Raised when the backend response is not valid JSON or has an unexpected shape."""


class QueryRejectedError(AdapterError):
    """Raised when the backend decoded fine but reported the query as failed."""

    def __init__(self, status: str, error: Optional[str] = None):
        self.status = status
        self.error = error
        message = f"query failed with status: {status}"
        if error:
            message = f"{message} ({error})"
        super().__init__(message)


class ObjectListingError(AdapterError):
    """Raised when the object-resolution collaborator fails."""
