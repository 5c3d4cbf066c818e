# src/collector/throughput.py - Per-minute throughput counting
"""
Counts progress events per minute since the start of the log stream.
"""

from typing import List


class ThroughputCounter:
    """
    Per-minute counter of progress events.

    Minute ``i`` covers elapsed times ``[i*60000, (i+1)*60000)`` ms.
    """

    MINUTE_MS = 60_000

    def __init__(self):
        self.counts: List[int] = []

    def register_progress(self, elapsed_ms: int):
        """
        Register one progress event.

        Args:
            elapsed_ms: Milliseconds since the first record of the stream (>= 0)
        """
        if elapsed_ms < 0:
            raise ValueError(f"Elapsed time must not be negative: {elapsed_ms}")
        minute = elapsed_ms // self.MINUTE_MS
        if len(self.counts) <= minute:
            self.counts.extend([0] * (minute + 1 - len(self.counts)))
        self.counts[minute] += 1

    def get_counts_per_minute(self) -> List[int]:
        return list(self.counts)

    @property
    def total(self) -> int:
        return sum(self.counts)
