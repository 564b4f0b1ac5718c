import logging
from contextvars import ContextVar
from dataclasses import replace
from enum import Enum
from typing import Dict, Mapping, MutableMapping, MutableSequence, Optional, Sequence

from opentelemetry.sdk.metrics.export import Gauge, Histogram, Metric, MetricsData, Sum
from opentelemetry.sdk.resources import Resource

from resource_labels.api.attributes import attribute_value_to_string
from resource_labels.api.clone import clone_metrics_data

logger = logging.getLogger(__name__)

# resource whose metrics are being converted, included in log records by JsonLogFormatter
current_resource: ContextVar[Optional[Resource]] = ContextVar('current_resource', default=None)


class MetricShape(Enum):
    GAUGE = 'gauge'
    SUM = 'sum'
    HISTOGRAM = 'histogram'
    OTHER = 'other'


_SHAPES = (
    (Gauge, MetricShape.GAUGE),
    (Sum, MetricShape.SUM),
    (Histogram, MetricShape.HISTOGRAM),
)


def metric_shape(metric: Metric) -> MetricShape:
    for data_type, shape in _SHAPES:
        if isinstance(metric.data, data_type):
            return shape
    return MetricShape.OTHER


def data_points_of(metric: Metric) -> Optional[Sequence]:
    """
    Returns the datapoints that resource labels should be added to, or None when the metric's shape is not one that
    receives resource labels (those metrics are passed through untouched).
    """
    if metric_shape(metric) == MetricShape.OTHER:
        return None
    return metric.data.data_points


def extract_labels_from_resource(resource: Resource) -> Dict[str, str]:
    """
    Converts all of a resource's attributes into labels.

    :param resource: the resource
    :return: label name -> stringified attribute value, in attribute order
    """
    labels = {}
    for key, value in resource.attributes.items():
        labels[key] = attribute_value_to_string(value)
    return labels


def join_labels(source: Mapping[str, str], target: MutableMapping[str, str]):
    """
    Copies labels from `source` into `target`.  Labels that already exist in `target` are kept as-is.
    """
    for key, value in source.items():
        if key not in target:
            target[key] = value


def add_labels_to_data_points(data_points: MutableSequence, labels: Mapping[str, str]):
    """
    Adds `labels` to each datapoint.  Datapoints without attributes are replaced (in `data_points`) by a copy with
    an empty label mapping first.
    """
    for i, point in enumerate(data_points):
        if point.attributes is None:
            point = data_points[i] = replace(point, attributes={})
        join_labels(labels, point.attributes)


def add_labels_to_metric(metric: Metric, labels: Mapping[str, str]):
    data_points = data_points_of(metric)
    if data_points is not None:
        add_labels_to_data_points(data_points, labels)


def convert_resource_to_labels(metrics_data: MetricsData) -> MetricsData:
    """
    Copies every resource attribute onto each gauge, sum and histogram datapoint under that resource.

    The input document is never modified: it's cloned first and the clone is updated and returned.  Labels already
    present on a datapoint take precedence over resource attributes with the same name.

    :param metrics_data: exported metrics
    :return: a new document with resource labels added to the datapoints
    """
    clone = clone_metrics_data(metrics_data)
    for resource_metrics in clone.resource_metrics:
        token = current_resource.set(resource_metrics.resource)
        try:
            labels = extract_labels_from_resource(resource_metrics.resource)
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    add_labels_to_metric(metric, labels)
        finally:
            current_resource.reset(token)

    logger.debug(f"Converted resource attributes to labels for {len(clone.resource_metrics)} resource(s)")
    return clone
