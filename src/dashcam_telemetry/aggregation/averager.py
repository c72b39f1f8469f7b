"""
Incremental Averager
====================

Running mean for one (metric, minute bucket) pair.

The mean is recomputed from count and sum on every fold, so it can never
drift from the values that produced it and cannot be set on its own.
"""

from datetime import datetime


class Average:
    """
    Incremental mean accumulator.

    Attributes:
        count: Number of values folded
        sum: Sum of values folded
        value: sum / count
        timestamp: Latest device timestamp folded

    Example:
        avg = Average(5.0, ts)
        avg.fold(7.0, ts)
        assert (avg.count, avg.sum, avg.value) == (2, 12.0, 6.0)
    """

    __slots__ = ("_count", "_sum", "_value", "_timestamp")

    def __init__(self, value: float, timestamp: datetime) -> None:
        self._count = 1
        self._sum = value
        self._value = value
        self._timestamp = timestamp

    @property
    def count(self) -> int:
        return self._count

    @property
    def sum(self) -> float:
        return self._sum

    @property
    def value(self) -> float:
        return self._value

    @property
    def timestamp(self) -> datetime:
        return self._timestamp

    def fold(self, value: float, timestamp: datetime) -> None:
        """Add one value to the mean."""
        self._count += 1
        self._sum += value
        self._value = self._sum / self._count
        self._timestamp = max(self._timestamp, timestamp)

    def copy(self) -> "Average":
        clone = Average.__new__(Average)
        clone._count = self._count
        clone._sum = self._sum
        clone._value = self._value
        clone._timestamp = self._timestamp
        return clone

    def to_dict(self) -> dict:
        return {
            "count": self._count,
            "sum": self._sum,
            "value": self._value,
            "timestamp": self._timestamp.isoformat(),
        }

    def __repr__(self) -> str:
        return (
            f"Average(count={self._count}, sum={self._sum:.3f}, "
            f"value={self._value:.3f}, ts={self._timestamp.isoformat()})"
        )
