"""
Time-bucketed aggregation of observation streams.

Provides the bucket reduction, the dense (gap-filled) bucket sequence and the
period processing that combines both into a chart-ready series and a total.
Every function is a pure function of its arguments; the calendar that defines
bucket boundaries is supplied by the caller.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..metrics import AggregationStrategy, MetricLike, RowRecord, get_metric_spec
from ..models import DateInterval, ObservationPoint, PeriodData, SiteStatsReport
from .calendar import Granularity, StatsCalendar

logger = logging.getLogger(__name__)


def truncating_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


def reduce_values(total: int, count: int, strategy: AggregationStrategy) -> int:
    """Collapse a running ``(total, count)`` pair using ``strategy``."""
    if strategy is AggregationStrategy.AVERAGE:
        return truncating_div(total, count)
    return total


@dataclass(frozen=True)
class TimeBucketAggregator:
    """Groups observations into calendar buckets and reduces each bucket.

    Example
    -------
    >>> from datetime import timezone
    >>> aggregator = TimeBucketAggregator(StatsCalendar(timezone.utc))
    >>> points = [
    ...     ObservationPoint(timestamp="2025-01-15T10:15:00Z", value=120),
    ...     ObservationPoint(timestamp="2025-01-15T14:30:00Z", value=200),
    ...     ObservationPoint(timestamp="2025-01-16T11:20:00Z", value=300),
    ... ]
    >>> sorted(aggregator.aggregate(points, Granularity.DAY, "views").values())
    [300, 320]
    """

    calendar: StatsCalendar

    def aggregate(
        self,
        points: Iterable[ObservationPoint],
        granularity: Granularity,
        metric: MetricLike,
    ) -> Dict[datetime, int]:
        """
        Reduce observations to one value per bucket.

        Parameters
        ----------
        points : Iterable[ObservationPoint]
            Observations in any order
        granularity : Granularity
            Bucket width
        metric : MetricLike
            Metric whose aggregation strategy reduces each bucket

        Returns
        -------
        Dict[datetime, int]
            Bucket start (as a UTC instant) -> reduced value. Buckets without
            observations are absent, not zero.
        """
        strategy = get_metric_spec(metric).aggregation_strategy
        buckets: Dict[datetime, Tuple[int, int]] = {}

        for point in points:
            key = self.calendar.to_utc(
                self.calendar.truncate(point.timestamp, granularity)
            )
            total, count = buckets.get(key, (0, 0))
            buckets[key] = (total + point.value, count + 1)

        return {
            key: reduce_values(total, count, strategy)
            for key, (total, count) in buckets.items()
        }

    def dense_sequence(
        self,
        interval: DateInterval,
        granularity: Granularity,
        step_multiplier: int = 1,
        now: Optional[datetime] = None,
    ) -> List[datetime]:
        """
        Generate one instant per expected step of ``interval``.

        Steps start at ``interval.start`` and advance by ``step_multiplier``
        units of ``granularity`` while strictly before ``interval.end`` and not
        after ``now``, so no future buckets are produced.

        Parameters
        ----------
        interval : DateInterval
            Half-open interval to cover
        granularity : Granularity
            Step unit
        step_multiplier : int, default=1
            Units per step
        now : datetime or None
            Upper bound; defaults to ``calendar.now()``

        Returns
        -------
        List[datetime]
            Chronological bucket starts
        """
        to_utc = self.calendar.to_utc
        limit = to_utc(now if now is not None else self.calendar.now())
        end = to_utc(interval.end)
        dates: List[datetime] = []
        current = interval.start
        while to_utc(current) < end and to_utc(current) <= limit:
            dates.append(current)
            following = self.calendar.add(current, granularity, step_multiplier)
            if to_utc(following) <= to_utc(current):
                logger.warning(
                    "aggregation.dense_sequence.stalled",
                    extra={"at": current.isoformat(), "granularity": granularity.value},
                )
                break
            current = following
        return dates

    def process_period(
        self,
        points: Iterable[ObservationPoint],
        interval: DateInterval,
        granularity: Granularity,
        metric: MetricLike,
        now: Optional[datetime] = None,
    ) -> PeriodData:
        """
        Aggregate observations into a dense series plus a period total.

        Every expected bucket yields exactly one point; buckets without data
        are filled with zero. The total is computed over the dense series, so
        for averaged metrics a zero-filled gap counts toward the denominator.

        Returns
        -------
        PeriodData
            ``series`` in chronological order and ``total`` (``None`` when the
            series is empty)
        """
        reduced = self.aggregate(points, granularity, metric)
        expected = self.dense_sequence(interval, granularity, now=now)

        series = [
            ObservationPoint(
                timestamp=bucket_start,
                value=reduced.get(
                    self.calendar.to_utc(
                        self.calendar.truncate(bucket_start, granularity)
                    ),
                    0,
                ),
            )
            for bucket_start in expected
        ]
        total = total_value(series, metric)

        logger.debug(
            "aggregation.process_period",
            extra={
                "metric": get_metric_spec(metric).key,
                "granularity": granularity.value,
                "buckets": len(series),
                "populated": len(reduced),
            },
        )
        return PeriodData(series=series, total=total)

    def summarize_site_metrics(
        self,
        points_by_metric: Mapping[MetricLike, Sequence[ObservationPoint]],
        interval: DateInterval,
        granularity: Granularity,
        now: Optional[datetime] = None,
    ) -> SiteStatsReport:
        """
        Process several metrics over the same interval.

        Raw points outside ``[interval.start, interval.end)`` are dropped before
        aggregation.

        Returns
        -------
        SiteStatsReport
            Dense series keyed by metric key and a record of period totals
        """
        if now is None:
            now = self.calendar.now()
        totals = RowRecord()
        series: Dict[str, List[ObservationPoint]] = {}

        for metric, points in points_by_metric.items():
            spec = get_metric_spec(metric)
            in_range = [p for p in points if interval.contains(p.timestamp)]
            period = self.process_period(
                in_range, interval, granularity, spec, now=now
            )
            series[spec.key] = period.series
            totals.set(spec, period.total)

        return SiteStatsReport(totals=totals, series=series)


def total_value(points: Sequence[ObservationPoint], metric: MetricLike) -> Optional[int]:
    """
    Total of a series under the metric's aggregation strategy.

    Returns
    -------
    int or None
        Sum, or truncated mean over every point, or None if ``points`` is empty

    Examples
    --------
    >>> from datetime import datetime, timezone
    >>> t = datetime(2025, 1, 1, tzinfo=timezone.utc)
    >>> pts = [ObservationPoint(timestamp=t, value=v) for v in (10, 0, 30)]
    >>> total_value(pts, "bounceRate")
    13
    """
    if not points:
        return None
    total = sum(point.value for point in points)
    return reduce_values(total, len(points), get_metric_spec(metric).aggregation_strategy)
