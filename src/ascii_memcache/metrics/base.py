from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, NamedTuple, Optional, Union


class MetricDefinition(NamedTuple):
    name: str
    documentation: str
    labelnames: Iterable[str] = ()


# Counters a connection updates while it runs. Every settled command is
# counted once in `replies`, labelled with its outcome: "ok", the server
# error token (eg: NOT_FOUND, CLIENT_ERROR), "connection_lost" or
# "protocol_error".
CLIENT_METRICS: List[MetricDefinition] = [
    MetricDefinition("commands", "Number of commands written to the server"),
    MetricDefinition(
        "replies", "Number of settled commands by outcome", labelnames=("outcome",)
    ),
    MetricDefinition("reconnects", "Number of reconnection attempts"),
    MetricDefinition("connection_errors", "Number of connection failures"),
]
CLIENT_GAUGES: List[MetricDefinition] = [
    MetricDefinition("queue_size", "Commands waiting or in flight"),
]


class BaseMetricsCollector(ABC):
    """
    Sink for the client metrics, see PrometheusMetricsCollector.

    Connections declare their metrics once with init_metrics(), under
    the "client" namespace, then update them by name:

        collector.metric_inc("commands")
        collector.metric_inc("replies", labels={"outcome": "NOT_FOUND"})
        collector.gauge_set("queue_size", 3)

    A collector may be shared by many connections, declaring a metric
    that is already known must be a no-op.
    """

    def __init__(self, namespace: str = "") -> None:
        self._namespace = namespace

    @abstractmethod
    def init_metrics(
        self,
        metrics: List[MetricDefinition],
        gauges: List[MetricDefinition],
        namespace: str = "",
    ) -> None:
        ...  # pragma: no cover

    @abstractmethod
    def metric_inc(
        self,
        key: str,
        value: Union[float, int] = 1,
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        ...  # pragma: no cover

    @abstractmethod
    def gauge_set(
        self,
        key: str,
        value: float,
        labels: Optional[Dict[str, str]] = None,
    ) -> None:
        ...  # pragma: no cover

    @abstractmethod
    def get_counters(self) -> Dict[str, float]:
        """Current value of every counter and gauge, by name"""
        ...  # pragma: no cover
