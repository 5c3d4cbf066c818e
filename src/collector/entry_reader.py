# src/collector/entry_reader.py - Log record assembly
"""
Groups raw log lines into structured log records.

A structured line looks like::

    2019-05-27 09:42:11,230 [midPointScheduler_Worker-6] DEBUG: #### Entry: 83329 ...a->b
    2019-05-29 16:43:51,904 [pool-1-thread-1] DEBUG (PROFILING): ##### Exit: 817268 ...a->b etime: 7.708 ms

Lines that do not match (stack traces, multi-line messages) belong to the
record preceding them, so a record is only handed out once the next
structured line or the end of input has been seen.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, List, Optional
import logging

from src.collector.line_reader import LogFilePosition, MultiFileLineReader
from src.utils.helpers import DEFAULT_TIMESTAMP_FORMAT, parse_timestamp


TIMESTAMP_REGEX = r'\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2},\d{3}'

LOG_LINE_PATTERN = re.compile(
    r'(?P<timestamp>' + TIMESTAMP_REGEX + r') \[(?P<thread>\S+)] (?P<level>\S+)'
    r'(?:\s+\((?P<logger>\S+)\))?: (?P<message>.*)'
)

DEFAULT_LOGGER = 'PROFILING'


@dataclass
class LogRecord:
    """
    One structured log record with its continuation lines.
    """
    timestamp: datetime
    thread_name: str
    level: str
    logger: str
    message: str
    first_line: str
    position: Optional[LogFilePosition] = None
    other_lines: List[str] = field(default_factory=list)

    def add_line(self, line: str):
        self.other_lines.append(line)

    def __str__(self):
        message = self.message if len(self.message) <= 30 else self.message[:27] + '...'
        return f"@{self.timestamp} [{self.thread_name}] {self.level} ({self.logger}): {message} @{self.position}"


def parse_record(line: str, position: Optional[LogFilePosition] = None,
                 default_logger: str = DEFAULT_LOGGER,
                 timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT) -> Optional[LogRecord]:
    """
    Parse a structured log line.

    Returns:
        LogRecord, or None if the line is not a structured line

    Raises:
        ValueError: If the line is structured but its timestamp is invalid
    """
    match = LOG_LINE_PATTERN.fullmatch(line)
    if not match:
        return None

    return LogRecord(
        timestamp=parse_timestamp(match.group('timestamp'), timestamp_format),
        thread_name=match.group('thread'),
        level=match.group('level'),
        logger=match.group('logger') or default_logger,
        message=match.group('message'),
        first_line=line,
        position=position,
    )


class LogEntryAssembler:
    """
    Turns a line stream into a stream of LogRecords.

    Keeps exactly one record of look-ahead: the currently open record
    collects continuation lines until the next structured line arrives.
    """

    def __init__(self, line_reader: MultiFileLineReader, default_logger: str = DEFAULT_LOGGER,
                 timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT, mark_after: int = 500_000):
        """
        Initialize the assembler.

        Args:
            line_reader: Source of raw lines
            default_logger: Logger assigned to lines without an explicit one
            timestamp_format: strptime format of the record timestamp
            mark_after: Log a progress message every N raw lines
        """
        self.line_reader = line_reader
        self.default_logger = default_logger
        self.timestamp_format = timestamp_format
        self.mark_after = mark_after

        self.total_lines = 0
        self.total_records = 0
        self.first_timestamp: Optional[datetime] = None

        self._current: Optional[LogRecord] = None
        self.logger = logging.getLogger(__name__)

    @property
    def continuation_lines(self) -> int:
        return self.total_lines - self.total_records

    def read_record(self) -> Optional[LogRecord]:
        """
        Read the next complete record.

        Returns:
            LogRecord, or None at the end of input
        """
        while True:
            line = self.line_reader.read_line()
            if line is None:
                break

            self.total_lines += 1
            if self.mark_after and self.total_lines % self.mark_after == 0:
                self.logger.info(f"{self.total_lines} lines processed ({self.total_records} records)")

            position = self.line_reader.current_position
            try:
                record = parse_record(line, position, self.default_logger, self.timestamp_format)
            except ValueError as e:
                self.logger.warning(f"Cannot parse timestamp in {position}: {line} ({e})")
                continue

            if record is not None:
                if self.first_timestamp is None:
                    self.first_timestamp = record.timestamp
                self.total_records += 1
                previous, self._current = self._current, record
                if previous is not None:
                    return previous
            elif self._current is not None:
                self._current.add_line(line)
            else:
                self.logger.warning(f"Log line without context -- skipping: {line}")

        previous, self._current = self._current, None
        return previous

    def __iter__(self) -> Iterator[LogRecord]:
        while True:
            record = self.read_record()
            if record is None:
                return
            yield record
