# src/analyzer/histogram.py - Bucketed timing histogram
"""
Fixed-size bucket histogram over several named variables.
"""

from typing import Dict, List


class Histogram:
    """
    Counts values per variable in buckets of ``bucket_size``.

    Values above ``upper_boundary`` are clamped into the top bucket
    (index ``upper_boundary // bucket_size``); the largest value ever added
    is kept as ``absolute_maximum``.
    """

    def __init__(self, bucket_size: int = 10_000, upper_boundary: int = 1_000_000):
        if bucket_size <= 0:
            raise ValueError(f"Bucket size must be positive: {bucket_size}")
        self.bucket_size = bucket_size
        self.upper_boundary = upper_boundary
        self.absolute_maximum = 0
        self.variables: Dict[str, List[int]] = {}

    def bucket_index(self, value: int) -> int:
        return min(value, self.upper_boundary) // self.bucket_size

    def add_value(self, variable: str, value: int):
        """
        Count a value for a variable.

        Args:
            variable: Variable name
            value: Value, e.g. elapsed time in microseconds
        """
        counts = self.variables.setdefault(variable, [])
        bucket = self.bucket_index(value)
        if len(counts) <= bucket:
            counts.extend([0] * (bucket + 1 - len(counts)))
        counts[bucket] += 1

        if value > self.absolute_maximum:
            self.absolute_maximum = value

    def get_variable_names(self) -> List[str]:
        return sorted(self.variables)

    @property
    def bucket_count(self) -> int:
        """Number of buckets needed to show every variable."""
        return max((len(counts) for counts in self.variables.values()), default=0)

    def get_bucket(self, number: int) -> List[int]:
        """
        Counts of all variables (in name order) for one bucket.
        """
        return [
            counts[number] if number < len(counts) else 0
            for _, counts in sorted(self.variables.items())
        ]

    def get_counts(self, variable: str) -> List[int]:
        return list(self.variables.get(variable, []))

    def bucket_bounds(self, number: int):
        """
        Lower and upper bound of a bucket.

        The last bucket extends up to the absolute maximum.

        Returns:
            Tuple (lower, upper), both inclusive
        """
        lower = number * self.bucket_size
        if number < self.bucket_count - 1:
            upper = (number + 1) * self.bucket_size - 1
        else:
            upper = self.absolute_maximum
        return lower, upper
