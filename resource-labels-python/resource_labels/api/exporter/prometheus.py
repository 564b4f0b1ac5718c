# Copyright The OpenTelemetry Authors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Publishes exported metrics to `Prometheus <https://prometheus.io/>`_.

Prometheus only supports labels on individual samples, so this exporter is typically wrapped in a
:class:`~resource_labels.api.exporter.resource_to_telemetry.ResourceToTelemetryExporter` to keep resource attributes.

.. code:: python

    from opentelemetry.sdk.resources import Resource
    from resource_labels import ResourceToTelemetrySettings, create_meter_provider
    from resource_labels.api.exporter.prometheus import PrometheusMetricExporter

    provider = create_meter_provider([PrometheusMetricExporter()],
                                     resource=Resource.create({"service.name": "checkout"}),
                                     settings=ResourceToTelemetrySettings(enabled=True))
"""

import logging
import os
import re
import threading
from typing import Dict, Iterable, Optional, Sequence

from opentelemetry.sdk.metrics.export import (
    Gauge,
    Histogram,
    Metric,
    MetricExporter,
    MetricExportResult,
    MetricsData,
    Sum,
)
from prometheus_client.core import (
    REGISTRY,
    CounterMetricFamily,
    GaugeMetricFamily,
    HistogramMetricFamily,
)

from resource_labels.api.attributes import attribute_value_to_string

logger = logging.getLogger(__name__)

_HISTOGRAM_RESERVED_LABELS = ('le',)


class PrometheusMetricExporter(MetricExporter):
    """Prometheus metric exporter.

    Args:
        bind_address: host:port for the scrape endpoint
        prefix: single-word application prefix relevant to the domain
            the metric belongs to.
        start_server: start the HTTP scrape endpoint
        registry: prometheus registry to publish to
    """

    def __init__(self, bind_address: str = os.environ.get('METRICS_PROMETHEUS_BIND_ADDRESS', '0.0.0.0:9102'),
                 prefix: str = os.environ.get('METRICS_PROMETHEUS_PREFIX', ''),
                 start_server: bool = True,
                 registry=REGISTRY):

        super().__init__()

        if ':' not in bind_address:
            bind_address = f"{bind_address}:9102"

        self.prefix = prefix
        self.bind_address = bind_address
        self.registry = registry

        self._collector = CustomCollector(prefix)
        self.registry.register(self._collector)

        if start_server:
            from prometheus_client import start_http_server

            metrics_bind_address, metrics_port = bind_address.rsplit(':', 1)
            start_http_server(port=int(metrics_port), addr=metrics_bind_address, registry=self.registry)

    def export(self, metrics_data: MetricsData, timeout_millis: float = 10_000, **kwargs) -> MetricExportResult:
        self._collector.set_metrics_data(metrics_data)
        return MetricExportResult.SUCCESS

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        return True

    def shutdown(self, timeout_millis: float = 30_000, **kwargs) -> None:
        self.registry.unregister(self._collector)

    def __str__(self) -> str:
        return f"Prometheus({self.bind_address})"


class CustomCollector:
    """CustomCollector represents the Prometheus Collector object
    https://github.com/prometheus/client_python#custom-collectors
    """

    def __init__(self, prefix: str = ""):
        self._prefix = prefix
        self._metrics_data: Optional[MetricsData] = None
        self._lock = threading.Lock()
        self._non_letters_nor_digits_re = re.compile(
            r"[^\w]", re.UNICODE | re.IGNORECASE
        )

    def set_metrics_data(self, metrics_data: MetricsData) -> None:
        with self._lock:
            self._metrics_data = metrics_data

    def collect(self):
        """Collect delivers the most recently exported batch as Prometheus Metrics.
        Collect is invoked every time a prometheus.Gatherer is run
        for example when the HTTP endpoint is invoked by Prometheus.
        """
        with self._lock:
            metrics_data = self._metrics_data

        if metrics_data is None:
            return

        for resource_metrics in metrics_data.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    prometheus_metric = self._translate_to_prometheus(metric)
                    if prometheus_metric is not None:
                        yield prometheus_metric

    def _labels(self, metric_name: str, attributes, reserved: Sequence[str] = ()) -> Dict[str, str]:
        """
        Converts datapoint attributes into Prometheus labels.  When several attributes sanitize to the same label
        name, the first one (datapoint labels come before resource labels) is kept.  Reserved label names are dropped.
        """
        labels = {}
        for key, value in (attributes or {}).items():
            name = self._sanitize(key)
            if name in reserved:
                logger.warning(f"Dropping reserved label '{key}' from metric '{metric_name}'")
                continue
            if name in labels:
                logger.warning(f"Label '{key}' of metric '{metric_name}' collides with another label named "
                               f"'{name}', keeping the first value")
                continue
            labels[name] = attribute_value_to_string(value)
        return labels

    def _translate_to_prometheus(self, metric: Metric):
        metric_name = ""
        if self._prefix != "":
            metric_name = self._prefix + "_"
        metric_name += self._sanitize(metric.name)

        description = metric.description or ""
        data = metric.data

        if isinstance(data, Sum) and data.is_monotonic:
            prometheus_metric = CounterMetricFamily(name=metric_name, documentation=description)
            for point in data.data_points:
                prometheus_metric.add_sample(f"{prometheus_metric.name}_total",
                                             self._labels(metric_name, point.attributes), point.value)
        elif isinstance(data, (Gauge, Sum)):
            prometheus_metric = GaugeMetricFamily(name=metric_name, documentation=description)
            for point in data.data_points:
                prometheus_metric.add_sample(metric_name, self._labels(metric_name, point.attributes), point.value)
        elif isinstance(data, Histogram):
            prometheus_metric = HistogramMetricFamily(name=metric_name, documentation=description)
            for point in data.data_points:
                labels = self._labels(metric_name, point.attributes, reserved=_HISTOGRAM_RESERVED_LABELS)
                for le, count in self._cumulative_buckets(point.explicit_bounds, point.bucket_counts):
                    prometheus_metric.add_sample(f"{metric_name}_bucket", dict(labels, le=le), count)
                prometheus_metric.add_sample(f"{metric_name}_count", labels, point.count)
                prometheus_metric.add_sample(f"{metric_name}_sum", labels, point.sum)
        else:
            logger.warning("Unsupported metric type. %s", type(data))
            return None

        return prometheus_metric

    @staticmethod
    def _cumulative_buckets(explicit_bounds: Iterable[float], bucket_counts: Iterable[int]):
        bounds = [str(float(bound)) for bound in explicit_bounds] + ["+Inf"]
        total = 0
        for le, count in zip(bounds, bucket_counts):
            total += count
            yield le, total

    def _sanitize(self, key: str) -> str:
        """sanitize the given metric name or label according to Prometheus rule.
        Replace all characters other than [A-Za-z0-9_] with '_'.
        """
        return self._non_letters_nor_digits_re.sub("_", key)
