from typing import Dict, Iterable, List, Optional, Type, TypeVar, Union

from prometheus_client import REGISTRY, Counter, Gauge
from prometheus_client.metrics import MetricWrapperBase
from prometheus_client.registry import CollectorRegistry

from ascii_memcache.metrics.base import BaseMetricsCollector, MetricDefinition

_M = TypeVar("_M", bound=MetricWrapperBase)


class PrometheusMetricsCollector(BaseMetricsCollector):
    """
    Publishes the client metrics on a prometheus registry.

    Several clients (eg: the ones of a pool) can share one collector,
    metrics are only registered the first time they are declared.
    """

    def __init__(
        self,
        namespace: str = "",
        registry: Optional[CollectorRegistry] = None,
    ) -> None:
        super().__init__(namespace=namespace)
        self._registry: CollectorRegistry = registry or REGISTRY
        self._counters: Dict[str, Counter] = {}
        self._gauges: Dict[str, Gauge] = {}

    def _full_namespace(self, namespace: str) -> str:
        return "_".join(part for part in (self._namespace, namespace) if part)

    def _register(
        self,
        kind: Type[_M],
        known: Dict[str, _M],
        definitions: Iterable[MetricDefinition],
        namespace: str,
    ) -> None:
        for definition in definitions:
            if definition.name in known:
                continue
            known[definition.name] = kind(
                name=definition.name,
                documentation=definition.documentation,
                labelnames=definition.labelnames,
                namespace=namespace,
                registry=self._registry,
            )

    def init_metrics(
        self,
        metrics: List[MetricDefinition],
        gauges: List[MetricDefinition],
        namespace: str = "",
    ) -> None:
        namespace = self._full_namespace(namespace)
        self._register(Counter, self._counters, metrics, namespace)
        self._register(Gauge, self._gauges, gauges, namespace)

    def metric_inc(
        self,
        key: str,
        value: Union[float, int] = 1,
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        counter = self._counters[key]
        (counter.labels(**labels) if labels else counter).inc(value)

    def gauge_set(
        self,
        key: str,
        value: float,
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        gauge = self._gauges[key]
        (gauge.labels(**labels) if labels else gauge).set(value)

    def get_counters(self) -> Dict[str, float]:
        """
        Flattened view of every sample: labelled counters are summed
        under the metric name and also reported as name[label=value].
        """
        counters: Dict[str, float] = {}
        for counter in self._counters.values():
            for metric in counter.collect():
                total = 0.0
                for sample in metric.samples:
                    # Skip the _created timestamps
                    if sample.name != f"{metric.name}_total":
                        continue
                    total += sample.value
                    if sample.labels:
                        counters[_labelled(metric.name, sample.labels)] = sample.value
                counters[metric.name] = total
        for gauge in self._gauges.values():
            for metric in gauge.collect():
                for sample in metric.samples:
                    name = (
                        _labelled(metric.name, sample.labels)
                        if sample.labels
                        else metric.name
                    )
                    counters[name] = sample.value
        return counters


def _labelled(name: str, labels: Dict[str, str]) -> str:
    return f"{name}[{','.join(f'{k}={v}' for k, v in sorted(labels.items()))}]"
