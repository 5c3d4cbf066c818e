# src/collector/aggregator.py - Event aggregation and statistics
"""
Aggregates timed events per tag (thread) until the tag is closed.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional
import logging


@dataclass(frozen=True)
class Event:
    """
    A timed event, e.g. one method exit.
    """
    type: str
    timestamp: datetime
    duration_us: int


@dataclass
class Times:
    """
    Count, total, min and max duration of one event type (microseconds).
    """
    count: int = 0
    total_time: int = 0
    min_time: Optional[int] = None
    max_time: Optional[int] = None

    def register(self, duration_us: int):
        self.count += 1
        self.total_time += duration_us
        if self.min_time is None or duration_us < self.min_time:
            self.min_time = duration_us
        if self.max_time is None or duration_us > self.max_time:
            self.max_time = duration_us

    @property
    def avg_time(self) -> float:
        return self.total_time / self.count if self.count else 0.0


class EventsSummary:
    """
    Times per event type collected under one tag.
    """

    def __init__(self):
        self.events: Dict[str, Times] = {}

    def register_event(self, event: Event):
        self.events.setdefault(event.type, Times()).register(event.duration_us)

    def get(self, event_type: str) -> Optional[Times]:
        return self.events.get(event_type)

    def event_types(self) -> List[str]:
        return sorted(self.events)

    def dump(self) -> str:
        """
        Render the summary, one line per event type, times in milliseconds.
        """
        lines = []
        for name in self.event_types():
            times = self.events[name]
            lines.append(
                f" - {name:<80}: {times.count:6d} in {times.total_time / 1000.0:10.3f} ms "
                f"[min: {(times.min_time or 0) / 1000.0:9.3f} "
                f"max: {(times.max_time or 0) / 1000.0:9.3f} "
                f"avg: {times.avg_time / 1000.0:9.3f}]"
            )
        return "\n".join(lines)


class EventAggregator:
    """
    Keeps one open EventsSummary per tag.

    A summary is created on the first event of its tag and handed out
    (and forgotten) when the tag is closed.
    """

    def __init__(self):
        self.open_tags: Dict[str, EventsSummary] = {}
        self.total_events = 0
        self.logger = logging.getLogger(__name__)

    def register_event(self, tag: str, event: Event):
        """
        Add an event to the summary of a tag.

        Args:
            tag: Grouping key (thread name)
            event: Event to register
        """
        self.open_tags.setdefault(tag, EventsSummary()).register_event(event)
        self.total_events += 1

    def close_tag(self, tag: str) -> Optional[EventsSummary]:
        """
        Close a tag.

        Returns:
            The tag's summary, or None if no event was registered for it
        """
        return self.open_tags.pop(tag, None)

    def reset(self):
        """
        Discard all open summaries.
        """
        if self.open_tags:
            self.logger.debug(f"Discarding {len(self.open_tags)} open event summaries")
        self.open_tags.clear()
