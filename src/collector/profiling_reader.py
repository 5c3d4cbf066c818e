# src/collector/profiling_reader.py - Profiling entry/exit reader
"""
Reads profiling items (method entries and exits) from a log record stream.

Profiling output comes in pairs of records per thread::

    #### Entry: 83329    ...model.impl.sync.SynchronizationServiceImpl->notifyChange
    ###### args: (...)
    ##### Exit: 83329    ...model.impl.sync.SynchronizationServiceImpl->notifyChange etime: 7.708 ms
    ###### retval: ...

The second record of each pair is optional. An item is handed out when its
second record arrives, or when the next Entry/Exit header for the same
thread shows that no second record is coming.
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, Iterator, Optional
import logging

from src.collector.entry_reader import DEFAULT_LOGGER, LogEntryAssembler, LogRecord
from src.collector.throughput import ThroughputCounter
from src.utils.helpers import millis_between


ENTRY_MARKER = '#### Entry: '
EXIT_MARKER = '##### Exit: '

ENTRY_PATTERN = re.compile(r'#### Entry: (?P<seq>\d+)\s+\.\.\.(?P<method>\S+)')
EXIT_PATTERN = re.compile(r'##### Exit: (?P<seq>\d+)\s+\.\.\.(?P<method>\S+) etime: (?P<etime>\S+) ms')

# ...... (this one: 2984 ms, avg: 2984 ms) (total progress: 1, wall clock avg: 4098 ms)
PROGRESS_PATTERN = re.compile(r'\(total progress: (?P<total>\d+), wall clock avg: \d+ ms\)$')

DEFAULT_IDLE_GAP_MS = 60_000


class ItemKind(Enum):
    ENTRY = 'ENTRY'
    EXIT = 'EXIT'

    def __str__(self):
        return self.value


@dataclass
class ProfilingItem:
    """
    A method entry or exit, with its optional descriptive second record.
    """
    kind: ItemKind
    sequence_number: int
    method: str
    etime: Optional[int]
    first_record: LogRecord
    progress: int
    batch: int
    new_batch: bool
    second_record: Optional[LogRecord] = None

    @property
    def thread_name(self) -> str:
        return self.first_record.thread_name

    @property
    def timestamp(self):
        return self.first_record.timestamp

    def __str__(self):
        return (f"{self.kind} #{self.sequence_number} ({self.method}:{self.etime}) "
                f"p:{self.progress}, b:{self.batch}{' (new) ' if self.new_batch else ' '}"
                f"{self.first_record} / {self.second_record}")


def parse_etime(text: str) -> int:
    """
    Convert an elapsed time in (fractional) milliseconds to microseconds.

    Digits beyond microsecond precision are truncated.

    Raises:
        ValueError: If the text is not a finite decimal number
    """
    try:
        value = Decimal(text)
        if not value.is_finite():
            raise ValueError(f"Invalid elapsed time: {text!r}")
        return int(value * 1000)
    except ArithmeticError:
        raise ValueError(f"Invalid elapsed time: {text!r}")


def get_kind(message: str) -> Optional[ItemKind]:
    if ENTRY_MARKER in message:
        return ItemKind.ENTRY
    elif EXIT_MARKER in message:
        return ItemKind.EXIT
    return None


NewBatchListener = Callable[[int, LogRecord], None]


class ProfilingItemReader:
    """
    State machine pairing profiling headers with their second records.

    State kept per run: current batch number, timestamp of the last profiling
    header, the last reported progress and the open (not yet returned) item
    of each thread.
    """

    def __init__(self, entry_reader: Optional[LogEntryAssembler] = None, config: Optional[Dict] = None,
                 throughput_counter: Optional[ThroughputCounter] = None):
        """
        Initialize the reader.

        Args:
            entry_reader: Source of log records (may be omitted when records
                are fed through step())
            config: Optional configuration dictionary:
                - idle_gap_ms: Idle time starting a new batch
                - profiling_logger: Logger name of profiling records
            throughput_counter: Counter receiving progress events
        """
        self.entry_reader = entry_reader
        self.config = config or {}
        self.idle_gap_ms = self.config.get('idle_gap_ms', DEFAULT_IDLE_GAP_MS)
        self.profiling_logger = self.config.get('profiling_logger', DEFAULT_LOGGER)
        self.throughput_counter = throughput_counter if throughput_counter is not None else ThroughputCounter()

        self.batch = 0
        self.first_timestamp = None
        self.last_progress = 0
        self.last_profiling_timestamp = None
        self.open_items: Dict[str, ProfilingItem] = {}

        self.forced_closures = 0
        self.dropped_items = 0
        self.malformed_headers = 0

        self._new_batch_listener: Optional[NewBatchListener] = None
        self.logger = logging.getLogger(__name__)

    def set_new_batch_listener(self, listener: Optional[NewBatchListener]):
        """
        Register a function called as ``listener(batch_number, record)``
        whenever a new batch starts.
        """
        self._new_batch_listener = listener

    def read_item(self) -> Optional[ProfilingItem]:
        """
        Read the next complete profiling item.

        Returns:
            ProfilingItem, or None when the input is exhausted
        """
        while True:
            record = self.entry_reader.read_record()
            if record is None:
                return self._flush_open_item()
            item = self.step(record)
            if item is not None:
                return item

    def __iter__(self) -> Iterator[ProfilingItem]:
        while True:
            item = self.read_item()
            if item is None:
                return
            yield item

    def step(self, record: LogRecord) -> Optional[ProfilingItem]:
        """
        Feed one record into the state machine.

        Returns:
            A completed item, or None if no item is ready yet
        """
        if self.first_timestamp is None:
            self.first_timestamp = record.timestamp
        self._register_progress(record)

        if record.logger != self.profiling_logger:
            return None

        kind = get_kind(record.message)
        if kind is None:
            return self._attach_second_record(record)

        new_batch = self._check_batch(record)
        self.last_profiling_timestamp = record.timestamp

        item = self._parse_header(kind, record, new_batch)
        if item is None:
            return None

        existing = self.open_items.pop(record.thread_name, None)
        self.open_items[record.thread_name] = item
        if existing is not None:
            self.forced_closures += 1
            self.logger.info(f"Unexpected open item {existing} (got {record})")
            return existing
        return None

    def _register_progress(self, record: LogRecord):
        match = PROGRESS_PATTERN.search(record.message)
        if not match:
            return

        self.last_progress = int(match.group('total'))
        elapsed = millis_between(self.first_timestamp, record.timestamp)
        if elapsed < 0:
            self.logger.warning(f"Progress record precedes the first record of the stream, not counted: {record}")
            return
        self.throughput_counter.register_progress(elapsed)

    def _check_batch(self, record: LogRecord) -> bool:
        if (self.last_profiling_timestamp is not None
                and millis_between(self.last_profiling_timestamp, record.timestamp) < self.idle_gap_ms):
            return False

        self.batch += 1
        self.logger.info(f"Starting collecting batch {self.batch} @ {record.timestamp}")
        if self.open_items:
            self.logger.warning(f"Found {len(self.open_items)} open profiling items, dropping them: "
                                f"{', '.join(str(i) for i in self.open_items.values())}")
            self.dropped_items += len(self.open_items)
            self.open_items.clear()
        if self._new_batch_listener is not None:
            self._new_batch_listener(self.batch, record)
        return True

    def _parse_header(self, kind: ItemKind, record: LogRecord, new_batch: bool) -> Optional[ProfilingItem]:
        pattern = ENTRY_PATTERN if kind == ItemKind.ENTRY else EXIT_PATTERN
        match = pattern.fullmatch(record.message)
        etime = None
        if match and kind == ItemKind.EXIT:
            try:
                etime = parse_etime(match.group('etime'))
            except ValueError:
                match = None

        if not match:
            self.malformed_headers += 1
            self.logger.warning(f"Profiling entry/exit message does not match the corresponding pattern: "
                                f"'{record.message}' in {record}")
            return None

        return ProfilingItem(
            kind=kind,
            sequence_number=int(match.group('seq')),
            method=match.group('method'),
            etime=etime,
            first_record=record,
            progress=self.last_progress,
            batch=self.batch,
            new_batch=new_batch,
        )

    def _attach_second_record(self, record: LogRecord) -> Optional[ProfilingItem]:
        existing = self.open_items.pop(record.thread_name, None)
        if existing is None:
            self.logger.info(f"Unexpected profiling continuation line: {record}, ignoring")
            return None
        existing.second_record = record
        return existing

    def _flush_open_item(self) -> Optional[ProfilingItem]:
        if not self.open_items:
            return None
        thread_name = next(iter(self.open_items))
        item = self.open_items.pop(thread_name)
        self.logger.debug(f"End of input, returning open item {item}")
        return item

    @property
    def total_lines(self) -> int:
        return self.entry_reader.total_lines if self.entry_reader else 0

    @property
    def total_records(self) -> int:
        return self.entry_reader.total_records if self.entry_reader else 0
