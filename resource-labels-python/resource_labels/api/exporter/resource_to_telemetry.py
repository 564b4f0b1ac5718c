import logging
from typing import Optional

from opentelemetry.sdk.metrics.export import MetricExporter, MetricExportResult, MetricsData

from resource_labels.api.convert import convert_resource_to_labels
from resource_labels.api.settings import ResourceToTelemetrySettings, default_resource_to_telemetry_settings

logger = logging.getLogger(__name__)


class ResourceToTelemetryExporter(MetricExporter):
    """
    Wraps another exporter and, when enabled, adds each batch's resource attributes as datapoint labels before the
    batch is handed to it.  Useful for backends that drop resource-level metadata (eg: Prometheus).
    """

    def __init__(self, delegate: MetricExporter, settings: Optional[ResourceToTelemetrySettings] = None):
        super().__init__(preferred_temporality=delegate._preferred_temporality,
                         preferred_aggregation=delegate._preferred_aggregation)
        self.delegate = delegate
        self.settings = settings or default_resource_to_telemetry_settings()

    def export(self, metrics_data: MetricsData, timeout_millis: float = 10_000, **kwargs) -> MetricExportResult:
        if self.settings.enabled:
            metrics_data = convert_resource_to_labels(metrics_data)
        return self.delegate.export(metrics_data, timeout_millis=timeout_millis, **kwargs)

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        return self.delegate.force_flush(timeout_millis=timeout_millis)

    def shutdown(self, timeout_millis: float = 30_000, **kwargs) -> None:
        self.delegate.shutdown(timeout_millis=timeout_millis, **kwargs)

    def __str__(self) -> str:
        return f"ResourceToTelemetry(enabled={self.settings.enabled}, delegate={self.delegate})"
