import copy
from dataclasses import fields, is_dataclass, replace
from typing import Any

from opentelemetry.sdk.metrics.export import Metric, MetricsData


def _clone_data_point(point: Any) -> Any:
    if not is_dataclass(point):
        return copy.deepcopy(point)
    changes = {}
    for f in fields(point):
        if f.name == 'attributes':
            changes[f.name] = None if point.attributes is None else dict(point.attributes)
        else:
            changes[f.name] = copy.deepcopy(getattr(point, f.name))
    return replace(point, **changes)


def _clone_data(data: Any) -> Any:
    if is_dataclass(data) and hasattr(data, 'data_points'):
        return replace(data, data_points=[_clone_data_point(p) for p in data.data_points])
    return copy.deepcopy(data)


def clone_metric(metric: Metric) -> Metric:
    return replace(metric, data=_clone_data(metric.data))


def clone_metrics_data(metrics_data: MetricsData) -> MetricsData:
    """
    Deep-copies a metrics document.

    The exported SDK data model is made of frozen dataclasses, so the copy is rebuilt top-down. Each datapoint's
    `attributes` becomes a new mutable dict (same key order, `None` stays `None`) that the caller owns, which lets the
    copy be updated in place without touching the original. Resources and instrumentation scopes are immutable and are shared.

    :param metrics_data: document to copy
    :return: the new document
    """
    return MetricsData(resource_metrics=[
        replace(resource_metrics, scope_metrics=[
            replace(scope_metrics, metrics=[clone_metric(m) for m in scope_metrics.metrics])
            for scope_metrics in resource_metrics.scope_metrics
        ])
        for resource_metrics in metrics_data.resource_metrics
    ])
