# src/analyzer/profiling_analyzer.py - Profiling log analysis run
"""
Runs one sequential analysis pass over a directory of profiling logs.
"""

from pathlib import Path
from typing import Callable, Dict, List, Optional
import logging

from src.analyzer.categorizer import Categorizer
from src.analyzer.histogram import Histogram
from src.analyzer.report_generator import ReportGenerator, count_categories
from src.collector.entry_reader import LogEntryAssembler
from src.collector.invocation_tracker import InvocationTracker
from src.collector.line_reader import MultiFileLineReader
from src.collector.profiling_reader import ProfilingItem, ProfilingItemReader
from src.collector.throughput import ThroughputCounter
from src.utils.config import Config


class ProfilingLogAnalyzer:
    """
    Drives the reader pipeline and the aggregations for one run.

    Pipeline: MultiFileLineReader -> LogEntryAssembler -> ProfilingItemReader
    -> InvocationTracker (histogram, per-thread summaries, long invocations)
    -> Categorizer -> ReportGenerator.
    """

    def __init__(self, config: Config, log_directory, output_dir=None):
        """
        Initialize the analyzer.

        Args:
            config: Analyzer configuration
            log_directory: Directory with the log files
            output_dir: Report directory (default: ``output.directory`` or the
                parent of the log directory)

        Raises:
            TemplateError: If a category definition is malformed
        """
        self.config = config
        self.log_directory = Path(log_directory)
        output = output_dir or config.get('output.directory') or self.log_directory.parent
        self.output_dir = Path(output)
        self.logger = logging.getLogger(__name__)

        # Compile categories before reading anything
        self.categorizer = Categorizer.from_config(config.get('categories', []), config.get('subcategories', []))

        self.item_callbacks: List[Callable[[ProfilingItem], None]] = []

        self.throughput = ThroughputCounter()
        self.histogram = Histogram(config.get('histogram.bucket_size_us', 10_000),
                                   config.get('histogram.upper_boundary_us', 1_000_000))
        self.tracker = InvocationTracker(self._tracker_config(), histogram=self.histogram)
        self.reader: Optional[ProfilingItemReader] = None

    def _tracker_config(self) -> Dict:
        return {
            'root_methods': self.config.get('invocations.root_methods', []),
            'long_threshold_us': self.config.get('invocations.long_threshold_us', 50_000),
            'long_include': self.config.get('invocations.long_include', []),
            'long_exclude': self.config.get('invocations.long_exclude', []),
            'histogram_exclude': self.config.get('histogram.exclude', []),
            'per_batch': self.config.get('histogram.per_batch', False),
            'per_thread_type': self.config.get('histogram.per_thread_type', True),
        }

    def register_callback(self, callback: Callable[[ProfilingItem], None]):
        """
        Register a function called for each profiling item read.

        Args:
            callback: Function that takes a ProfilingItem
        """
        self.item_callbacks.append(callback)

    def build_reader(self) -> ProfilingItemReader:
        """
        Build the reader pipeline over the log directory.
        """
        timestamp_format = self.config.get('log.timestamp_format')
        line_reader = MultiFileLineReader(self.log_directory, timestamp_format,
                                          self.config.get('log.timestamp_length', 23))
        assembler = LogEntryAssembler(line_reader,
                                      default_logger=self.config.get('log.default_logger', 'PROFILING'),
                                      timestamp_format=timestamp_format,
                                      mark_after=self.config.get('profiling.mark_after_lines', 500_000))
        reader = ProfilingItemReader(assembler, {
            'idle_gap_ms': self.config.get('profiling.idle_gap_ms', 60_000),
            'profiling_logger': self.config.get('log.profiling_logger', 'PROFILING'),
        }, throughput_counter=self.throughput)
        reader.set_new_batch_listener(self.tracker.on_new_batch)
        return reader

    def run(self) -> Dict:
        """
        Read all logs, write the reports and return run statistics.
        """
        self.reader = reader = self.build_reader()
        items = 0

        reports = ReportGenerator(self.output_dir, self.config.get('invocations.selected_methods', []))
        with reader.entry_reader.line_reader, reports:
            for item in reader:
                items += 1
                for callback in self.item_callbacks:
                    callback(item)
                closed = self.tracker.process_item(item)
                if closed is not None:
                    reports.write_closed_invocation(closed, reader.first_timestamp)

        long_invocations = self.tracker.long_invocations
        for invocation in long_invocations:
            self.categorizer.categorize(invocation)
        category_counts = count_categories(long_invocations)

        threshold = self.tracker.long_threshold_us
        outputs = {
            'per_minute': str(reports.write_per_minute(self.throughput.get_counts_per_minute())),
            'histogram': str(reports.write_histogram(self.histogram, self.tracker.per_batch,
                                                     self.tracker.per_thread_type)),
            'category_counts': str(reports.write_category_counts(category_counts, threshold)),
        }
        txt_path, csv_path = reports.write_long_invocations(long_invocations, threshold)
        outputs['long_invocations_txt'] = str(txt_path)
        outputs['long_invocations_csv'] = str(csv_path)

        summary = self.get_summary(items, category_counts, outputs)
        self.logger.info(f"Total lines: {summary['total_lines']}, log entry lines: {summary['log_records']}, "
                         f"continuation lines: {summary['continuation_lines']}")
        self.logger.info(f"Long invocations: {len(long_invocations)}")
        return summary

    def get_summary(self, items: int, category_counts: Dict[str, int], outputs: Dict[str, str]) -> Dict:
        """
        Get run statistics.
        """
        reader = self.reader
        assembler = reader.entry_reader
        summary = {
            'log_directory': str(self.log_directory),
            'files': [str(f.path) for f in assembler.line_reader.files],
            'total_lines': assembler.total_lines,
            'log_records': assembler.total_records,
            'continuation_lines': assembler.continuation_lines,
            'batches': reader.batch,
            'profiling_items': items,
            'forced_closures': reader.forced_closures,
            'dropped_open_items': reader.dropped_items,
            'malformed_headers': reader.malformed_headers,
            'last_progress': reader.last_progress,
            'progress_records': self.throughput.total,
            'minutes': len(self.throughput.counts),
            'histogram_variables': len(self.histogram.variables),
            'absolute_maximum_us': self.histogram.absolute_maximum,
            'category_counts': category_counts,
            'top_methods': [
                {'method': method, 'count': times.count, 'total_us': times.total_time,
                 'max_us': times.max_time, 'avg_us': times.avg_time}
                for method, times in self.tracker.get_top_methods(10)
            ],
            'outputs': outputs,
        }
        summary.update(self.tracker.get_stats())
        return summary
