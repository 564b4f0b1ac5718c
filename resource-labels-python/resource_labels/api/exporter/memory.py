import threading
import typing

from opentelemetry.sdk.metrics.export import MetricExporter, MetricExportResult, MetricsData


class InMemoryMetricExporter(MetricExporter):
    """Implementation of :class:`.MetricExporter` that stores exported batches in memory.

    This class can be used for testing purposes. It stores the exported batches
    in a list in memory that can be retrieved using the
    :func:`.get_exported_metrics` method.
    """

    def __init__(self, preferred_temporality=None, preferred_aggregation=None):
        super().__init__(preferred_temporality=preferred_temporality, preferred_aggregation=preferred_aggregation)
        self._exported = []
        self._stopped = False
        self._lock = threading.Lock()

    def clear(self):
        """Clear list of exported batches."""
        with self._lock:
            self._exported.clear()

    def get_exported_metrics(self) -> typing.List[MetricsData]:
        """Get list of exported batches."""
        with self._lock:
            return list(self._exported)

    def export(self, metrics_data: MetricsData, timeout_millis: float = 10_000, **kwargs) -> MetricExportResult:
        """Stores a batch in memory."""
        if self._stopped:
            return MetricExportResult.FAILURE
        with self._lock:
            self._exported.append(metrics_data)
        return MetricExportResult.SUCCESS

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        return True

    def shutdown(self, timeout_millis: float = 30_000, **kwargs) -> None:
        """Shut downs the exporter.

        Calls to export after the exporter has been shut down will fail.
        """
        self._stopped = True

    def __str__(self) -> str:
        return "InMemory"
