from resource_labels.api.attributes import attribute_value_to_string
from resource_labels.api.clone import clone_metrics_data
from resource_labels.api.convert import (
    MetricShape,
    add_labels_to_data_points,
    add_labels_to_metric,
    convert_resource_to_labels,
    data_points_of,
    extract_labels_from_resource,
    join_labels,
    metric_shape,
)
from resource_labels.api.settings import ResourceToTelemetrySettings, default_resource_to_telemetry_settings
