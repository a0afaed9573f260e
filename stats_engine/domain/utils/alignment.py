"""
Period alignment for trend comparisons.

Maps a previous period's values onto the current period's dates so both can
be drawn on one chart and compared point by point.
"""

import logging
from typing import List, Sequence

from ..models import DateInterval, ObservationPoint

logger = logging.getLogger(__name__)


def align_previous(
    current: Sequence[ObservationPoint], previous: Sequence[ObservationPoint]
) -> List[ObservationPoint]:
    """
    Pair previous values with current dates, aligned from the latest point.

    Both series are matched from their last elements backward. When the
    lengths differ, the earliest elements of the longer series are dropped.

    Parameters
    ----------
    current : Sequence[ObservationPoint]
        Current period series (provides dates)
    previous : Sequence[ObservationPoint]
        Previous period series (provides values)

    Returns
    -------
    List[ObservationPoint]
        ``min(len(current), len(previous))`` points in chronological order

    Examples
    --------
    >>> from datetime import datetime, timezone
    >>> d = [datetime(2025, 1, day, tzinfo=timezone.utc) for day in (1, 2, 3)]
    >>> cur = [ObservationPoint(timestamp=t, value=0) for t in d]
    >>> prev = [ObservationPoint(timestamp=t, value=v) for t, v in zip(d, (7, 9))]
    >>> [(p.timestamp.day, p.value) for p in align_previous(cur, prev)]
    [(2, 7), (3, 9)]
    """
    pairs = zip(reversed(current), reversed(previous))
    aligned = [
        ObservationPoint(timestamp=cur.timestamp, value=prev.value)
        for cur, prev in pairs
    ]
    aligned.reverse()
    return aligned


def shift_previous(
    previous: Sequence[ObservationPoint],
    current_interval: DateInterval,
    previous_interval: DateInterval,
) -> List[ObservationPoint]:
    """
    Shift previous points by the offset between the two period starts.

    Unlike :func:`align_previous`, this keeps every previous point that lands
    inside the current interval even when the current series is partial or
    empty.

    Returns
    -------
    List[ObservationPoint]
        Shifted points that fall within ``current_interval``
    """
    if not previous:
        return []
    offset = current_interval.start - previous_interval.start
    shifted = [
        ObservationPoint(timestamp=point.timestamp + offset, value=point.value)
        for point in previous
    ]
    kept = [point for point in shifted if current_interval.contains(point.timestamp)]
    if len(kept) < len(shifted):
        logger.debug(
            "alignment.shift_previous.dropped",
            extra={"dropped": len(shifted) - len(kept)},
        )
    return kept
