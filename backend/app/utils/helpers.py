"""
Utility helper functions
"""
from datetime import datetime, timezone
from typing import Iterator, Sequence, TypeVar

T = TypeVar("T")

SECONDS_PER_DAY = 24 * 60 * 60


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from start to end, floored (negative if end is earlier)"""
    return int((end - start).total_seconds() // SECONDS_PER_DAY)


def truncate_text(text: str, length: int = 100) -> str:
    """Truncate text to specified length"""
    if not text:
        return ""
    if len(text) <= length:
        return text
    return text[:length] + "..."


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most `size` items"""
    size = max(1, int(size))
    for start in range(0, len(items), size):
        yield items[start:start + size]


def clamp(value: float, lower: float, upper: float | None = None) -> float:
    if value < lower:
        return lower
    if upper is not None and value > upper:
        return upper
    return value
