"""
Prometheus collector plumbing shared by both exporters.

Collectors are custom ``prometheus_client`` collectors bound to an
explicitly passed ``CollectorRegistry``; nothing is registered on the
global default registry, so independent exporter instances can coexist
in one process (and in one test run).

Usage:
    registry = CollectorRegistry()
    collector = SpeedtestCollector(refresher, namespace="")
    collector.register(registry)
    ExporterServer(registry, ":9801").start()
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

from prometheus_client import CollectorRegistry
from prometheus_client.core import GaugeMetricFamily, Metric

from scrape_exporters.common.logging_config import get_logger

logger = get_logger(__name__)

__all__ = [
    "GaugeSpec",
    "SnapshotCollector",
    "metric_name",
]


def metric_name(namespace: str, name: str) -> str:
    """Prefix name with namespace when one is configured."""
    namespace = (namespace or "").strip("_")
    return f"{namespace}_{name}" if namespace else name


@dataclass(frozen=True)
class GaugeSpec:
    """Static description of one gauge family."""
    name: str
    documentation: str
    labels: Tuple[str, ...] = ()


class SnapshotCollector:
    """
    Base class for collectors that publish a snapshot at scrape time.

    Subclasses declare ``GAUGES`` and implement ``collect()`` using
    ``self.family(key)`` to get a fresh, empty family per scrape.
    """

    GAUGES: Dict[str, GaugeSpec] = {}

    def __init__(self, namespace: str = ""):
        self.namespace = namespace

    def family(self, key: str) -> GaugeMetricFamily:
        spec = self.GAUGES[key]
        return GaugeMetricFamily(
            metric_name(self.namespace, spec.name),
            spec.documentation,
            labels=list(spec.labels) if spec.labels else None,
        )

    def describe(self) -> List[Metric]:
        """
        Static descriptors, so registering never triggers a refresh.
        """
        return [self.family(key) for key in self.GAUGES]

    def collect(self) -> Iterable[Metric]:  # pragma: no cover - abstract
        raise NotImplementedError

    def metric_names(self) -> Sequence[str]:
        return [metric_name(self.namespace, spec.name) for spec in self.GAUGES.values()]

    def register(self, registry: CollectorRegistry) -> None:
        registry.register(self)
        logger.debug(f"Registered {type(self).__name__}: {', '.join(self.metric_names())}")
