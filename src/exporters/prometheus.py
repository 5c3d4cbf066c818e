# src/exporters/prometheus.py - Prometheus textfile exporter
"""
Exports analysis metrics in Prometheus text format.

Metrics are kept in a private registry and written to a flat file (e.g. for
the node_exporter textfile collector); no HTTP endpoint is started.
"""

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, write_to_textfile
from typing import Dict, Optional
import logging

from src.collector.profiling_reader import ItemKind, ProfilingItem


DEFAULT_BUCKETS_US = [1000, 5000, 10000, 50000, 100000, 500000, 1000000, 5000000]


class PrometheusExporter:
    """
    Collects method exit metrics and writes them as a Prometheus textfile.
    """

    def __init__(self, buckets_us: Optional[list] = None):
        """
        Initialize the Prometheus exporter.

        Args:
            buckets_us: Duration histogram buckets in microseconds
        """
        self.logger = logging.getLogger(__name__)
        self.registry = CollectorRegistry()

        self.method_duration = Histogram(
            'profiling_log_method_duration_microseconds',
            'Execution time of profiled methods in microseconds',
            ['method'],
            buckets=buckets_us or DEFAULT_BUCKETS_US,
            registry=self.registry
        )

        self.items = Counter(
            'profiling_log_items_total',
            'Number of profiling items read',
            ['kind'],
            registry=self.registry
        )

        self.batches = Gauge(
            'profiling_log_batches',
            'Number of profiling batches found',
            registry=self.registry
        )

        self.progress_records = Gauge(
            'profiling_log_progress_records',
            'Number of progress records found',
            registry=self.registry
        )

    def record_item(self, item: ProfilingItem):
        """
        Record a profiling item; exits feed the duration histogram.

        Args:
            item: ProfilingItem
        """
        self.items.labels(kind=item.kind.value.lower()).inc()
        if item.kind == ItemKind.EXIT:
            self.method_duration.labels(method=item.method).observe(item.etime)

    def record_summary(self, summary: Dict):
        """
        Record run-level values from an analysis summary.
        """
        self.batches.set(summary.get('batches', 0))
        self.progress_records.set(summary.get('progress_records', 0))

    def write(self, path: str) -> str:
        """
        Write all metrics to a textfile.

        Args:
            path: Output file path

        Returns:
            Path to output file
        """
        write_to_textfile(str(path), self.registry)
        self.logger.info(f"Prometheus metrics written to {path}")
        return str(path)
