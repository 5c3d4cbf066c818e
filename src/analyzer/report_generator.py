# src/analyzer/report_generator.py - Report generation
"""
Generates the delimited and text report files of an analysis run.
"""

import csv
from collections import Counter
from pathlib import Path
from typing import Dict, IO, Iterable, List, Optional, Tuple
import logging

from src.analyzer.histogram import Histogram
from src.utils.helpers import format_timestamp, millis_between, short_method_name


ALL_INVOCATIONS_FILE = 'invocations-all.txt'
SELECTED_INVOCATIONS_FILE = 'invocations-selected.csv'
PER_MINUTE_FILE = 'per-minute.csv'
HISTOGRAM_FILE_FORMAT = 'methods-performance-histogram-{step}{batch}{thread}.csv'
LONG_INVOCATIONS_TXT_FORMAT = 'invocations-long-{millis}.txt'
LONG_INVOCATIONS_CSV_FORMAT = 'invocations-long-{millis}.csv'
CATEGORY_COUNTS_FORMAT = 'slow-query-category-counts-{millis}.csv'

UNCATEGORIZED = 'uncategorized'
DELIMITER = ';'


def histogram_rows(histogram: Histogram) -> List[List]:
    """
    Rows of the histogram table: bucket, from, to, millis, counts per variable.
    """
    rows = []
    for i in range(histogram.bucket_count):
        lower, upper = histogram.bucket_bounds(i)
        rows.append([i, lower, upper, f"{(upper + 1) / 1000.0:f}"] + histogram.get_bucket(i))
    return rows


def format_parameters(parameters: Dict) -> str:
    return '{' + ', '.join(f"{k}={v}" for k, v in parameters.items()) + '}'


def count_categories(invocations: Iterable) -> Dict[str, int]:
    """
    Number of invocations per category name, sorted by name.
    """
    counts = Counter(inv.category_name or UNCATEGORIZED for inv in invocations)
    return dict(sorted(counts.items()))


class ReportGenerator:
    """
    Writes report files into an output directory.

    Enclosing invocation reports are streamed while the log is read
    (``open_invocation_reports`` / ``write_closed_invocation`` /
    ``close``); everything else is written once at the end of the run.
    """

    def __init__(self, output_dir, selected_methods: Optional[List[str]] = None):
        """
        Initialize the report generator.

        Args:
            output_dir: Directory for report files (created if missing)
            selected_methods: Methods whose max time is extracted per enclosing invocation
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.selected_methods = list(selected_methods or [])
        self.logger = logging.getLogger(__name__)

        self._all_out: Optional[IO[str]] = None
        self._selected_out: Optional[IO[str]] = None
        self._selected_writer = None

    def open_invocation_reports(self):
        self._all_out = open(self.output_dir / ALL_INVOCATIONS_FILE, 'w', encoding='utf-8')
        self._selected_out = open(self.output_dir / SELECTED_INVOCATIONS_FILE, 'w', encoding='utf-8', newline='')
        self._selected_writer = csv.writer(self._selected_out, delimiter=DELIMITER)
        self._selected_writer.writerow(
            ['Timestamp', 'Second', 'Thread', 'Progress'] + [short_method_name(m) for m in self.selected_methods]
        )

    def write_closed_invocation(self, closed, first_timestamp):
        """
        Append one closed enclosing invocation to the streamed reports.

        Args:
            closed: ClosedInvocation
            first_timestamp: Timestamp of the first record of the stream
        """
        timestamp = format_timestamp(closed.timestamp)
        self._all_out.write(
            f"Method calls for entry #{closed.sequence_number} [{closed.thread_name}] "
            f"at {timestamp} (progress: {closed.progress}):\n"
        )
        self._all_out.write(closed.summary.dump() + "\n\n")

        row = [timestamp, millis_between(first_timestamp, closed.timestamp) // 1000,
               closed.thread_name, closed.progress]
        for method in self.selected_methods:
            times = closed.summary.get(method)
            row.append(times.max_time if times is not None and times.max_time is not None else 0)
        self._selected_writer.writerow(row)

    def close(self):
        for handle in (self._all_out, self._selected_out):
            if handle is not None:
                handle.close()
        self._all_out = self._selected_out = self._selected_writer = None

    def write_per_minute(self, counts: List[int]) -> Path:
        path = self.output_dir / PER_MINUTE_FILE
        with open(path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.writer(f, delimiter=DELIMITER)
            writer.writerow(['Minute', 'Objects'])
            writer.writerows(enumerate(counts))
        self.logger.info(f"Per-minute throughput written to: {path}")
        return path

    def write_histogram(self, histogram: Histogram, per_batch: bool = False, per_thread_type: bool = False) -> Path:
        path = self.output_dir / HISTOGRAM_FILE_FORMAT.format(
            step=histogram.bucket_size,
            batch='-batch' if per_batch else '',
            thread='-thread' if per_thread_type else '',
        )
        with open(path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.writer(f, delimiter=DELIMITER)
            writer.writerow(['Bucket', 'From', 'To', 'Millis'] + histogram.get_variable_names())
            writer.writerows(histogram_rows(histogram))
        self.logger.info(f"Histogram written to: {path}")
        return path

    def write_long_invocations(self, invocations: List, threshold_us: int) -> Tuple[Path, Path]:
        """
        Write long invocations, slowest first.

        Invocations are expected to be categorized already.
        """
        millis = threshold_us // 1000
        txt_path = self.output_dir / LONG_INVOCATIONS_TXT_FORMAT.format(millis=millis)
        csv_path = self.output_dir / LONG_INVOCATIONS_CSV_FORMAT.format(millis=millis)
        ordered = sorted(invocations, key=lambda inv: inv.execution_time, reverse=True)

        with open(txt_path, 'w', encoding='utf-8') as txt, \
                open(csv_path, 'w', encoding='utf-8', newline='') as csv_file:
            writer = csv.writer(csv_file, delimiter=DELIMITER)
            for inv in ordered:
                timestamp = format_timestamp(inv.timestamp)
                category = inv.category_name or UNCATEGORIZED
                parameters = format_parameters(inv.category_parameters)
                txt.write(
                    f"{timestamp} {'[' + inv.thread_name + ']':<30} {inv.method:<60} {inv.execution_time:10d} "
                    f"{category:<70} {parameters:<100} {inv.arguments} -> {inv.return_value}\n"
                )
                writer.writerow([timestamp, inv.thread_name, inv.method, inv.execution_time,
                                 category, parameters, inv.arguments, inv.return_value])

        self.logger.info(f"Long invocations written to: {txt_path}, {csv_path}")
        return txt_path, csv_path

    def write_category_counts(self, counts: Dict[str, int], threshold_us: int) -> Path:
        path = self.output_dir / CATEGORY_COUNTS_FORMAT.format(millis=threshold_us // 1000)
        with open(path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.writer(f, delimiter=DELIMITER)
            writer.writerow(['Category', 'Count'])
            writer.writerows(counts.items())
        self.logger.info(f"Category counts written to: {path}")
        return path

    def __enter__(self):
        self.open_invocation_reports()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
