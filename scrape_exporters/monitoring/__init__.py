"""
Monitoring module - Prometheus collector plumbing.
Provides the snapshot collector base class and gauge descriptions.
"""
from scrape_exporters.monitoring.metrics import (
    GaugeSpec,
    SnapshotCollector,
    metric_name,
)

__all__ = [
    "GaugeSpec",
    "SnapshotCollector",
    "metric_name",
]
