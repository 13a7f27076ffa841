from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional
from datetime import datetime

from signoz_adapter.core.config import AdapterConfig
from signoz_adapter.core.metric_types import QuerySpec, RawSeries


class BaseCollector(ABC):
    """Base class for metric backends."""

    def __init__(self, config: AdapterConfig):
        """Initialize the collector with configuration.

        Args:
            config: Adapter configuration
        """
        self.config = config
        self.last_collection: Optional[datetime] = None

    @abstractmethod
    def query(self, spec: QuerySpec) -> List[RawSeries]:
        """Run a single range query.

        Args:
            spec: Query to run

        Returns:
            Decoded series, points still unparsed

        Raises:
            TransportError: If the backend could not be reached
            DecodeError: If the response could not be decoded
            QueryRejectedError: If the backend reported the query as failed
        """
        pass

    @abstractmethod
    def get_available_metrics(self) -> List[str]:
        """Get list of metric names known to the backend."""
        pass

    def validate_metrics(self, metrics: List[str]) -> List[str]:
        """Return the configured metrics the backend does not know about.

        An empty list is returned when the backend cannot list its metrics.
        """
        available = self.get_available_metrics()
        if not available:
            return []
        return [m for m in metrics if m not in available]

    def health_check(self) -> Dict[str, Any]:
        """Check collector health.

        Returns:
            Dictionary with health status and details
        """
        return {
            "status": "healthy",
            "last_collection": self.last_collection,
        }
