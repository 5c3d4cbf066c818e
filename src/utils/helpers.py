# src/utils/helpers.py - Helper functions
"""
General utility and helper functions.
"""

import re
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, List, Optional, Pattern
import logging


logger = logging.getLogger(__name__)

DEFAULT_TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S,%f'

_ONE_MS = timedelta(milliseconds=1)


class ThreadType(Enum):
    """
    Coarse role of a server thread, derived from its name.
    """
    COORDINATOR = 'COORDINATOR'
    WORKER = 'WORKER'
    OTHER = 'OTHER'

    @classmethod
    def determine(cls, thread_name: str) -> 'ThreadType':
        if thread_name.startswith('midPointScheduler_Worker-'):
            return cls.COORDINATOR
        elif thread_name.startswith('pool-'):
            return cls.WORKER
        else:
            return cls.OTHER

    def __str__(self):
        return self.value


def parse_timestamp(text: str, timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT) -> datetime:
    """
    Parse a log timestamp such as ``2019-05-27 09:42:11,230``.

    Raises:
        ValueError: If the text does not match the format
    """
    return datetime.strptime(text, timestamp_format)


def format_timestamp(timestamp: datetime) -> str:
    """Format a timestamp back into the log file notation (millisecond precision)."""
    return timestamp.strftime('%Y-%m-%d %H:%M:%S,') + f"{timestamp.microsecond // 1000:03d}"


def millis_between(earlier: datetime, later: datetime) -> int:
    """Whole milliseconds from ``earlier`` to ``later`` (negative if reversed)."""
    return (later - earlier) // _ONE_MS


def compile_patterns(patterns: Optional[Iterable[str]]) -> List[Pattern]:
    """
    Compile a list of regular expressions from configuration.

    Args:
        patterns: Regex strings (None is treated as empty)

    Returns:
        List of compiled patterns
    """
    return [re.compile(p) for p in (patterns or [])]


def matches_any(text: str, patterns: Iterable[Pattern]) -> bool:
    """True if any pattern matches the whole text."""
    return any(p.fullmatch(text) for p in patterns)


def format_duration(duration_us: int) -> str:
    """
    Format duration in microseconds to human-readable string.

    Args:
        duration_us: Duration in microseconds

    Returns:
        Formatted string (e.g., "1.5ms")
    """
    if duration_us < 1000:
        return f"{duration_us}us"
    elif duration_us < 1_000_000:
        return f"{duration_us/1000:.1f}ms"
    else:
        return f"{duration_us/1_000_000:.1f}s"


def short_method_name(method: str) -> str:
    """Part of a ``component.Class->method`` name after the arrow."""
    return method.split('->', 1)[1] if '->' in method else method
