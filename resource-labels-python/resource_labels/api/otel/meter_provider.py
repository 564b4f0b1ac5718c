import logging
from typing import Optional, Sequence

from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from resource_labels.api.exporter.resource_to_telemetry import ResourceToTelemetryExporter
from resource_labels.api.helpers.environment import Environment
from resource_labels.api.settings import ResourceToTelemetrySettings

logger = logging.getLogger(__name__)

_DEFAULT_INTERVAL_MILLIS = 10_000


def create_meter_provider(exporters: Sequence[MetricExporter],
                          resource: Optional[Resource] = None,
                          settings: Optional[ResourceToTelemetrySettings] = None,
                          export_interval_millis: Optional[float] = None) -> MeterProvider:
    """
    Creates a meter provider that periodically exports to each of the given exporters, adding resource attributes
    as datapoint labels when `settings.enabled` is set.

    :param exporters: metric exporters
    :param resource: resource describing this process.  Defaults to `Resource.create()`
    :param settings: resource-to-telemetry settings.  Read from the environment when not specified
    :param export_interval_millis: export interval.  Defaults to `METRICS_INTERVAL` (seconds) or 10 seconds
    :return: the new meter provider
    """
    Environment.initialize()

    if settings is None:
        settings = ResourceToTelemetrySettings.from_environment()
    if export_interval_millis is None:
        export_interval_millis = Environment.export_interval_millis or _DEFAULT_INTERVAL_MILLIS

    readers = []
    for exporter in exporters:
        logger.info(f"Added metrics exporter: {exporter} [resource_to_telemetry: {settings.enabled}]")
        readers.append(PeriodicExportingMetricReader(ResourceToTelemetryExporter(exporter, settings),
                                                     export_interval_millis=export_interval_millis))

    return MeterProvider(metric_readers=readers, resource=resource or Resource.create())
