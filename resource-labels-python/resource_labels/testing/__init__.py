from logging import LogRecord
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import pytest
from decorator import contextmanager
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    AggregationTemporality,
    Gauge,
    Histogram,
    HistogramDataPoint,
    Metric,
    MetricExportResult,
    MetricsData,
    NumberDataPoint,
    ResourceMetrics,
    ScopeMetrics,
    Sum,
)
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.util.instrumentation import InstrumentationScope

from resource_labels.api.exporter.memory import InMemoryMetricExporter
from resource_labels.api.exporter.resource_to_telemetry import ResourceToTelemetryExporter
from resource_labels.api.logger.json import JsonLogFormatter
from resource_labels.api.otel.meter_provider import create_meter_provider
from resource_labels.api.settings import ResourceToTelemetrySettings

START_TIME = 1_600_000_000_000_000_000
TIME = START_TIME + 10_000_000_000


def iter_data_points(metrics_data: MetricsData) -> Iterator[Tuple[ResourceMetrics, ScopeMetrics, Metric, object]]:
    """
    Yields (resource metrics, scope metrics, metric, datapoint) for every datapoint in the document, in document order.
    Metrics whose data has no datapoints are skipped.
    """
    for resource_metrics in metrics_data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                for point in getattr(metric.data, 'data_points', ()):
                    yield resource_metrics, scope_metrics, metric, point


def snapshot_labels(metrics_data: MetricsData) -> List[Tuple[str, Dict]]:
    """Copies the (metric name, labels) of every datapoint so they can be compared later."""
    return [(metric.name, dict(point.attributes or {})) for _, _, metric, point in iter_data_points(metrics_data)]


class MetricsDocumentBuilder:
    """
    Builds `MetricsData` documents for tests:

    ```
    metrics_data = MetricsDocumentBuilder() \
        .resource({'region': 'us-east'}) \
        .scope('scope1') \
        .gauge('gauge1', [{'host': 'a'}, {}]) \
        .build()
    ```

    Each entry of `points` is the label mapping of one datapoint.
    """

    def __init__(self):
        self._resources: List[Tuple[Resource, List[Tuple[InstrumentationScope, List[Metric]]]]] = []

    def resource(self, attributes: Optional[Mapping] = None, schema_url: str = '') -> 'MetricsDocumentBuilder':
        self._resources.append((Resource(dict(attributes or {}), schema_url), []))
        return self

    def scope(self, name: str, version: Optional[str] = None) -> 'MetricsDocumentBuilder':
        if not self._resources:
            self.resource()
        self._resources[-1][1].append((InstrumentationScope(name, version), []))
        return self

    def metric(self, name: str, data, description: str = '', unit: str = '1') -> 'MetricsDocumentBuilder':
        if not self._resources or not self._resources[-1][1]:
            self.scope('default')
        self._resources[-1][1][-1][1].append(Metric(name=name, description=description, unit=unit, data=data))
        return self

    @staticmethod
    def _number_points(points: Sequence[Optional[Mapping]], value) -> List[NumberDataPoint]:
        return [NumberDataPoint(attributes=dict(attributes or {}),
                                start_time_unix_nano=START_TIME,
                                time_unix_nano=TIME,
                                value=value) for attributes in points]

    def gauge(self, name: str, points: Sequence[Optional[Mapping]] = ({},), value=1) -> 'MetricsDocumentBuilder':
        return self.metric(name, Gauge(data_points=self._number_points(points, value)))

    def sum(self, name: str, points: Sequence[Optional[Mapping]] = ({},), value=1, monotonic: bool = True,
            temporality: AggregationTemporality = AggregationTemporality.CUMULATIVE) -> 'MetricsDocumentBuilder':
        return self.metric(name, Sum(data_points=self._number_points(points, value),
                                     aggregation_temporality=temporality,
                                     is_monotonic=monotonic))

    def histogram(self, name: str, points: Sequence[Optional[Mapping]] = ({},),
                  explicit_bounds: Sequence[float] = (0.0, 10.0),
                  bucket_counts: Sequence[int] = (1, 2, 0),
                  total: float = 12.0,
                  temporality: AggregationTemporality = AggregationTemporality.CUMULATIVE) -> 'MetricsDocumentBuilder':
        data_points = [HistogramDataPoint(attributes=dict(attributes or {}),
                                          start_time_unix_nano=START_TIME,
                                          time_unix_nano=TIME,
                                          count=sum(bucket_counts),
                                          sum=total,
                                          bucket_counts=list(bucket_counts),
                                          explicit_bounds=list(explicit_bounds),
                                          min=0.0,
                                          max=total) for attributes in points]
        return self.metric(name, Histogram(data_points=data_points, aggregation_temporality=temporality))

    def build(self) -> MetricsData:
        return MetricsData(resource_metrics=[
            ResourceMetrics(resource=resource,
                            scope_metrics=[ScopeMetrics(scope=scope, metrics=metrics, schema_url='')
                                           for scope, metrics in scopes],
                            schema_url='')
            for resource, scopes in self._resources
        ])


class PipelineFixture:
    """
    An in-memory export pipeline: batches exported through `exporter` are converted (when enabled) and captured by
    `memory_exporter`.
    """

    def __init__(self, enabled: bool = True):
        self.memory_exporter = InMemoryMetricExporter()
        self.exporter = ResourceToTelemetryExporter(self.memory_exporter, ResourceToTelemetrySettings(enabled=enabled))
        self.caplog = JsonLogCaptureFormatter()

    def export(self, metrics_data: MetricsData) -> MetricExportResult:
        return self.exporter.export(metrics_data)

    def settings(self, settings: ResourceToTelemetrySettings):
        """
        Temporarily replace the exporter's settings within a context
        """

        @contextmanager
        def wrapper():
            previous = self.exporter.settings
            self.exporter.settings = settings
            try:
                yield self.exporter
            finally:
                self.exporter.settings = previous

        return wrapper()

    def meter_provider(self, resource: Optional[Resource] = None) -> MeterProvider:
        """
        Creates a meter provider that exports to this pipeline.  Call `force_flush()` on it to export.
        """
        return create_meter_provider([self.memory_exporter],
                                     resource=resource,
                                     settings=self.exporter.settings,
                                     export_interval_millis=3_600_000)

    def get_exported_metrics(self) -> List[MetricsData]:
        return self.memory_exporter.get_exported_metrics()

    def last_export(self) -> MetricsData:
        exported = self.get_exported_metrics()
        if not exported:
            pytest.fail("No metrics have been exported!")
        return exported[-1]

    def get_data_points(self,
                        name_filter: Callable[[str], bool] = lambda v: True,
                        label_filter: Callable[[Dict], bool] = lambda v: True) -> List:
        points = []
        for _, _, metric, point in iter_data_points(self.last_export()):
            if name_filter(metric.name) and label_filter(dict(point.attributes)):
                points.append(point)
        return points

    def get_data_point(self, name: str, labels: Dict[str, str]):
        """
        Returns the datapoint of metric `name` whose labels exactly equal `labels`.  Fails the test (listing what was
        exported) if there's no match.
        """
        candidates = []
        for _, _, metric, point in iter_data_points(self.last_export()):
            if metric.name != name:
                continue
            candidates.append(point)
            if dict(point.attributes) == labels:
                return point

        msg = f"No matching datapoint found!\n\nMetric:\n\t{name} {labels}\n\nExported datapoint(s):\n"
        if candidates:
            for point in candidates:
                msg = f"{msg}\t{name} {dict(point.attributes)}\n"
        else:
            msg = f"{msg}\t(none)"
        pytest.fail(msg)


class JsonLogCaptureFormatter(JsonLogFormatter):

    def __init__(self):
        super(JsonLogCaptureFormatter, self).__init__()
        self.records = []

    def add_fields(self, log_record, record, message_dict):
        super(JsonLogCaptureFormatter, self).add_fields(log_record, record, message_dict)
        self.records.append(log_record)

    def find_records(self, f: Callable[[LogRecord], bool]) -> Iterator[LogRecord]:
        return filter(f, self.records)

    def assert_log_contains(self, text: str, level: Optional[str] = None):
        for record in self.records:
            if text in record['message']:
                if level and level.upper() != record['level']:
                    pytest.fail(f"Assertion failed! Expected log message containing '{text}' to be level '{level}' "
                                f"but instead got '{record['level']}'")
                return

        pytest.fail(f"Assertion failed! Could not find expected text in logs: {text}")
