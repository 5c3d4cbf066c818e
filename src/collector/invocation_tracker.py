# src/collector/invocation_tracker.py - Method invocation tracking
"""
Pairs profiling entries and exits into method invocations and aggregates
their timings inside enclosing (root method) invocations.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional
import logging

from src.analyzer.categorizer import Categorization
from src.analyzer.histogram import Histogram
from src.collector.aggregator import Event, EventAggregator, EventsSummary, Times
from src.collector.profiling_reader import ItemKind, ProfilingItem
from src.utils.helpers import ThreadType, compile_patterns, matches_any


ARGUMENTS_PREFIX = '###### args: '
RETURN_VALUE_PREFIX = '###### retval: '


def _strip_prefix(text: str, prefix: str) -> str:
    return text[len(prefix):] if text.startswith(prefix) else text


@dataclass
class MethodInvocation:
    """
    A completed method call: an entry and the exit with the same sequence number.
    """
    entry: ProfilingItem
    exit: ProfilingItem
    categorization: Optional[Categorization] = None

    @property
    def timestamp(self) -> datetime:
        return self.exit.timestamp

    @property
    def method(self) -> str:
        return self.entry.method

    @property
    def thread_name(self) -> str:
        return self.entry.thread_name

    @property
    def execution_time(self) -> int:
        """Execution time in microseconds"""
        return self.exit.etime

    @property
    def arguments(self) -> str:
        if self.entry.second_record is None:
            return ''
        return _strip_prefix(self.entry.second_record.message, ARGUMENTS_PREFIX)

    @property
    def return_value(self) -> str:
        if self.exit.second_record is None:
            return ''
        return _strip_prefix(self.exit.second_record.message, RETURN_VALUE_PREFIX)

    @property
    def category_name(self) -> Optional[str]:
        return self.categorization.name if self.categorization is not None else None

    @property
    def category_parameters(self) -> Dict[str, Optional[str]]:
        return self.categorization.all_parameters if self.categorization is not None else {}


@dataclass
class ClosedInvocation:
    """
    An enclosing invocation that has just finished, with the timings of all
    exits seen on its thread while it was open.
    """
    sequence_number: int
    thread_name: str
    timestamp: datetime
    progress: int
    summary: EventsSummary = field(default_factory=EventsSummary)


class InvocationTracker:
    """
    Tracks enclosing invocations per thread.

    A thread is tracked from the entry of a root method until the exit with
    the same sequence number. Items of untracked threads are ignored.
    """

    def __init__(self, config: Optional[Dict] = None, histogram: Optional[Histogram] = None):
        """
        Initialize the tracker.

        Args:
            config: Optional configuration dictionary:
                - root_methods: Methods starting an enclosing invocation
                - long_threshold_us: Minimal execution time of a long invocation
                - long_include / long_exclude: Method regexes for long invocations
                - histogram_exclude: Method regexes left out of the histogram
                - per_batch / per_thread_type: Extra histogram variables
                - bucket_size_us / upper_boundary_us: Histogram geometry
            histogram: Histogram to fill (created from config if not given)
        """
        self.config = config or {}
        self.root_methods = set(self.config.get('root_methods', []))
        self.long_threshold_us = self.config.get('long_threshold_us', 50_000)
        self.long_include = compile_patterns(self.config.get('long_include'))
        self.long_exclude = compile_patterns(self.config.get('long_exclude'))
        self.histogram_exclude = compile_patterns(self.config.get('histogram_exclude'))
        self.per_batch = self.config.get('per_batch', False)
        self.per_thread_type = self.config.get('per_thread_type', True)

        self.histogram = histogram if histogram is not None else Histogram(
            self.config.get('bucket_size_us', 10_000),
            self.config.get('upper_boundary_us', 1_000_000),
        )
        self.aggregator = EventAggregator()
        # method name -> times of all tracked exits, across batches
        self.method_times: Dict[str, Times] = {}

        # thread name -> sequence number of the enclosing entry
        self.enclosing: Dict[str, int] = {}
        # sequence number -> entry waiting for its exit
        self.pending_entries: Dict[int, ProfilingItem] = {}

        self.long_invocations: List[MethodInvocation] = []
        self.invocation_count = 0
        self.closed_count = 0
        self.orphan_exits = 0

        self.logger = logging.getLogger(__name__)

    def on_new_batch(self, batch: int, record):
        """
        Forget all in-flight state; registered as the reader's batch listener.
        """
        self.logger.debug(f"Batch {batch} started at {record.timestamp}, resetting tracker state")
        self.aggregator.reset()
        self.enclosing.clear()
        self.pending_entries.clear()

    def process_item(self, item: ProfilingItem) -> Optional[ClosedInvocation]:
        """
        Process one profiling item.

        Returns:
            The enclosing invocation closed by this item, if any
        """
        thread_name = item.thread_name

        if thread_name not in self.enclosing:
            if item.kind == ItemKind.ENTRY and item.method in self.root_methods:
                self.enclosing[thread_name] = item.sequence_number
            else:
                return None

        enclosing_seq = self.enclosing[thread_name]

        if item.kind == ItemKind.ENTRY:
            self.pending_entries[item.sequence_number] = item
            return None

        self._pair_exit(item)
        self._update_histogram(item)
        self.method_times.setdefault(item.method, Times()).register(item.etime)
        self.aggregator.register_event(thread_name, Event(item.method, item.timestamp, item.etime))

        if item.sequence_number != enclosing_seq:
            return None

        del self.enclosing[thread_name]
        self.closed_count += 1
        return ClosedInvocation(
            sequence_number=enclosing_seq,
            thread_name=thread_name,
            timestamp=item.timestamp,
            progress=item.progress,
            summary=self.aggregator.close_tag(thread_name) or EventsSummary(),
        )

    def _pair_exit(self, item: ProfilingItem):
        entry = self.pending_entries.pop(item.sequence_number, None)
        if entry is None:
            self.orphan_exits += 1
            self.logger.warning(f"Method exit without entry: {item}")
            return

        self.invocation_count += 1
        if self.is_long(item):
            self.long_invocations.append(MethodInvocation(entry, item))

    def is_long(self, item: ProfilingItem) -> bool:
        # An empty include list admits every method
        return (item.etime >= self.long_threshold_us
                and (not self.long_include or matches_any(item.method, self.long_include))
                and not matches_any(item.method, self.long_exclude))

    def histogram_variables(self, item: ProfilingItem) -> List[str]:
        """
        Names of the histogram variables an exit is counted in.
        """
        if matches_any(item.method, self.histogram_exclude):
            return []

        thread_type = ThreadType.determine(item.thread_name)
        variables = []
        if self.per_batch:
            if self.per_thread_type:
                variables.append(f"{item.method}:{item.batch:03d}:{thread_type}")
            variables.append(f"{item.method}:{item.batch:03d}")
        elif self.per_thread_type:
            variables.append(f"{item.method}:{thread_type}")
        variables.append(item.method)
        return variables

    def _update_histogram(self, item: ProfilingItem):
        for variable in self.histogram_variables(item):
            self.histogram.add_value(variable, item.etime)

    def get_stats(self) -> Dict:
        """
        Get tracker statistics.
        """
        return {
            'open_enclosing_invocations': len(self.enclosing),
            'pending_entries': len(self.pending_entries),
            'closed_enclosing_invocations': self.closed_count,
            'invocations': self.invocation_count,
            'orphan_exits': self.orphan_exits,
            'long_invocations': len(self.long_invocations),
        }

    def get_top_methods(self, n: int = 10) -> List[tuple]:
        """
        Get top N methods by total execution time.

        Returns:
            List of (method, Times) tuples
        """
        ordered = sorted(self.method_times.items(), key=lambda x: x[1].total_time, reverse=True)
        return ordered[:n]
