# src/analyzer/throughput_extractor.py - Throughput of a single log file
"""
Counts timestamped lines per minute in one flat log file, e.g. a file that
holds one "object done" line per processed object.
"""

from pathlib import Path
from typing import List
import logging

from src.collector.throughput import ThroughputCounter
from src.utils.helpers import DEFAULT_TIMESTAMP_FORMAT, millis_between, parse_timestamp


logger = logging.getLogger(__name__)


def extract_throughput(log_file, timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
                       timestamp_length: int = 23) -> List[int]:
    """
    Count lines per minute since the first timestamped line.

    Lines shorter than the timestamp or without a parseable timestamp are
    skipped; lines earlier than the first one are not counted.

    Returns:
        Counts per minute
    """
    counter = ThroughputCounter()
    first = None
    skipped = 0

    with open(log_file, 'r', encoding='utf-8', errors='replace') as f:
        for line in f:
            if len(line.rstrip('\r\n')) < timestamp_length:
                skipped += 1
                continue
            try:
                timestamp = parse_timestamp(line[:timestamp_length], timestamp_format)
            except ValueError as e:
                logger.debug(f"{e} in {line.rstrip()}")
                skipped += 1
                continue

            if first is None:
                first = timestamp
            elapsed = millis_between(first, timestamp)
            if elapsed < 0:
                skipped += 1
                continue
            counter.register_progress(elapsed)

    logger.info(f"Counted {counter.total} line(s) in {log_file} ({skipped} skipped)")
    return counter.get_counts_per_minute()


def write_counts(counts: List[int], output_file) -> Path:
    """Write one count per line."""
    path = Path(output_file)
    with open(path, 'w', encoding='utf-8') as f:
        for count in counts:
            f.write(f"{count}\n")
    return path
