"""Fixed-width time windows used as the alert idempotency unit.

A bucket is ``floor(epoch_ms / width_ms)``. Two timestamps inside the same
window share a bucket; each window crossed advances the bucket by one.
No I/O, no state.
"""

from datetime import datetime, timezone

DEFAULT_BUCKET_WIDTH_MS = 300_000  # 5 minutes


def to_epoch_ms(value: datetime | int | float) -> int:
    """Normalize a datetime or epoch-milliseconds value to integer milliseconds.

    Naive datetimes are treated as UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    return int(value)


def bucket(
    timestamp: datetime | int | float,
    width_ms: int = DEFAULT_BUCKET_WIDTH_MS,
) -> int:
    """Map a timestamp to its bucket identifier.

    Args:
        timestamp: Aware datetime or epoch milliseconds.
        width_ms: Window width in milliseconds.

    Returns:
        Integer bucket number.
    """
    if width_ms <= 0:
        raise ValueError(f"Bucket width must be positive, got {width_ms}")
    return to_epoch_ms(timestamp) // width_ms


def bucket_start(b: int, width_ms: int = DEFAULT_BUCKET_WIDTH_MS) -> int:
    """First millisecond of bucket ``b``."""
    return b * width_ms


def bucket_end(b: int, width_ms: int = DEFAULT_BUCKET_WIDTH_MS) -> int:
    """Last millisecond of bucket ``b`` (inclusive)."""
    return (b + 1) * width_ms - 1


def bucket_bounds(
    b: int,
    width_ms: int = DEFAULT_BUCKET_WIDTH_MS,
) -> tuple[datetime, datetime]:
    """Start and inclusive end of bucket ``b`` as UTC datetimes."""
    start = datetime.fromtimestamp(bucket_start(b, width_ms) / 1000, tz=timezone.utc)
    end = datetime.fromtimestamp(bucket_end(b, width_ms) / 1000, tz=timezone.utc)
    return start, end
