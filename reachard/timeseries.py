"""Aggregation of raw incident and latency samples into chart-ready data.

All functions are pure. Time arithmetic uses integer seconds and hour
boundaries always floor, never round, so a sample cannot leak into the
neighbouring hour.
"""

from collections.abc import Iterable, Sequence

from .models import Bucket, LatencySeries

SECONDS_PER_HOUR = 3600

# Number of hourly buckets in the incident row (trailing 24 hours).
HOURS = 24

WINDOW_SECONDS = HOURS * SECONDS_PER_HOUR


def window_start(now: int) -> int:
    """Return the ``since`` timestamp for the trailing 24-hour window."""
    return now - WINDOW_SECONDS


def target_age(time_added: int, now: int) -> int:
    """Return how long a target has existed, in seconds."""
    return now - time_added


def incident_buckets(timestamps: Iterable[int], now: int, target_age: int) -> list[Bucket]:
    """Bucket incident timestamps into the last 24 hours.

    Index 0 is the most recent hour, index 23 the hour that started 24 hours
    ago. Hours older than the target are UNKNOWN even if an incident falls in
    them; the age override runs last.

    Args:
        timestamps: Incident times in seconds since the epoch, any order.
        now: Current time in seconds since the epoch.
        target_age: Seconds since the target was created.

    Returns:
        List of 24 Bucket values.
    """
    buckets = [Bucket.HEALTHY] * HOURS

    for timestamp in timestamps:
        offset = (now - timestamp) // SECONDS_PER_HOUR
        if 0 <= offset < HOURS:
            buckets[offset] = Bucket.INCIDENT

    age_hours = target_age // SECONDS_PER_HOUR
    for offset in range(HOURS):
        if offset > age_hours:
            buckets[offset] = Bucket.UNKNOWN

    return buckets


def null_gaps(values: Sequence[float | None]) -> list[tuple[int, int]]:
    """Return (start, end) index pairs of consecutive None runs, inclusive."""
    gaps: list[tuple[int, int]] = []
    start: int | None = None

    for i, value in enumerate(values):
        if value is None:
            if start is None:
                start = i
        elif start is not None:
            gaps.append((start, i - 1))
            start = None

    if start is not None:
        gaps.append((start, len(values) - 1))
    return gaps


def find_gaps(
    timestamps: Sequence[int],
    values: Sequence[float | None],
    expected_step: int,
    gaps: Iterable[tuple[int, int]] = (),
) -> list[tuple[int, int]]:
    """Find positions where a latency chart must not draw a connecting line.

    A gap (i - 1, i) is inserted between adjacent non-null samples whose
    timestamps are further apart than ``expected_step``. Runs of None values
    and any gaps passed in are merged with the computed ones.

    Args:
        timestamps: Ascending sample times in seconds.
        values: Samples parallel to timestamps, None where missing.
        expected_step: Sampling interval in seconds.
        gaps: Pre-existing gaps to merge.

    Returns:
        Deduplicated gaps sorted ascending by start position.

    Raises:
        ValueError: If the sequences differ in length or the step is not positive.
    """
    if len(timestamps) != len(values):
        raise ValueError(f"timestamps and values differ in length ({len(timestamps)} != {len(values)})")
    if expected_step <= 0:
        raise ValueError(f"expected step must be positive, got {expected_step}")

    merged = {(start, end) for start, end in gaps}
    merged.update(null_gaps(values))

    for i in range(1, len(timestamps)):
        if values[i - 1] is None or values[i] is None:
            continue
        if timestamps[i] - timestamps[i - 1] > expected_step:
            merged.add((i - 1, i))

    return sorted(merged)


def latency_series(
    timestamps: Sequence[int],
    values: Sequence[float | None],
    expected_step: int,
) -> LatencySeries:
    """Package latency samples with their gap annotations."""
    return LatencySeries(
        timestamps=tuple(timestamps),
        values=tuple(values),
        gaps=tuple(find_gaps(timestamps, values, expected_step)),
    )
