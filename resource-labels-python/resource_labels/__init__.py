from resource_labels.api import (
    MetricShape,
    ResourceToTelemetrySettings,
    attribute_value_to_string,
    clone_metrics_data,
    convert_resource_to_labels,
    default_resource_to_telemetry_settings,
    extract_labels_from_resource,
)
from resource_labels.api.exporter.resource_to_telemetry import ResourceToTelemetryExporter
from resource_labels.api.otel.meter_provider import create_meter_provider


def initialize_json_logger():
    """
    Registers the Json log formatter on all root log handlers.
    :return: None
    """
    import logging
    from resource_labels.api.logger.json import JsonLogFormatter

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.setFormatter(JsonLogFormatter())
