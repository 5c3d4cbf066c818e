# src/collector/line_reader.py - Multi-file log line reader
"""
Reads a directory of log files as one logical stream of lines.

Files are ordered by the timestamp found at the start of their first line.
The merge is file-granular: each file is read to its end before the next
one is opened, and lines are never re-sorted across files.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import IO, Iterator, List, Optional, Tuple
import logging

from src.utils.helpers import DEFAULT_TIMESTAMP_FORMAT, parse_timestamp


@dataclass(frozen=True)
class LogFile:
    """
    A scanned log file and the timestamp of its first line.
    """
    path: Path
    start_timestamp: datetime


@dataclass(frozen=True)
class LogFilePosition:
    """
    Position of a line in the log corpus (1-based line number).
    """
    path: Path
    line_number: int

    def __str__(self):
        return f"[{self.path}:{self.line_number}]"


class MultiFileLineReader:
    """
    Pull-based line reader over a set of log files.

    Use ``read_line()`` to get the next line (None at the end) or iterate
    over the reader to get ``(line, position)`` tuples.
    """

    def __init__(self, directory, timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
                 timestamp_length: int = 23):
        """
        Scan the directory and prepare reading.

        Args:
            directory: Directory searched recursively for log files
            timestamp_format: strptime format of the leading timestamp
            timestamp_length: Number of leading characters holding the timestamp

        Raises:
            FileNotFoundError: If the directory does not exist
            NotADirectoryError: If the path is not a directory
        """
        self.directory = Path(directory)
        self.timestamp_format = timestamp_format
        self.timestamp_length = timestamp_length
        self.logger = logging.getLogger(__name__)

        self.files: List[LogFile] = self._scan_files()

        self._file_index = 0
        self._current_file: Optional[LogFile] = None
        self._handle: Optional[IO[str]] = None
        self._line_number = 0

    def _scan_files(self) -> List[LogFile]:
        if not self.directory.exists():
            raise FileNotFoundError(f"Log directory not found: {self.directory}")
        if not self.directory.is_dir():
            raise NotADirectoryError(f"Not a directory: {self.directory}")

        files = []
        for path in sorted(p for p in self.directory.rglob('*') if p.is_file()):
            with open(path, 'r', encoding='utf-8', errors='replace') as f:
                first_line = f.readline()

            if not first_line:
                self.logger.warning(f"Empty log file {path}, skipping")
                continue

            try:
                start = parse_timestamp(first_line[:self.timestamp_length], self.timestamp_format)
            except ValueError as e:
                self.logger.warning(f"Cannot parse log file {path}, skipping: {e}")
                continue

            files.append(LogFile(path=path, start_timestamp=start))

        # Stable sort: files starting at the same instant keep path order
        files.sort(key=lambda info: info.start_timestamp)
        self.logger.info(f"Found {len(files)} log file(s) in {self.directory}")
        return files

    def read_line(self) -> Optional[str]:
        """
        Read the next line, advancing across file boundaries.

        Returns:
            Line without its line terminator, or None when all files are read
        """
        while True:
            if self._handle is None:
                if self._file_index >= len(self.files):
                    self._current_file = None
                    return None
                self._current_file = self.files[self._file_index]
                self._file_index += 1
                self.logger.info(f"Opening file {self._current_file.path}")
                self._handle = open(self._current_file.path, 'r', encoding='utf-8', errors='replace')
                self._line_number = 0

            line = self._handle.readline()
            if line:
                self._line_number += 1
                return line.rstrip('\r\n')

            self._handle.close()
            self._handle = None

    @property
    def current_position(self) -> Optional[LogFilePosition]:
        """Position of the line most recently returned by ``read_line()``."""
        if self._current_file is None:
            return None
        return LogFilePosition(self._current_file.path, self._line_number)

    def close(self):
        """Close the file currently being read, if any."""
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __iter__(self) -> Iterator[Tuple[str, LogFilePosition]]:
        while True:
            line = self.read_line()
            if line is None:
                return
            yield line, self.current_position

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
