"""
Tests for time-bucketed aggregation.
"""

import random
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from stats_engine.domain.metrics import AggregationStrategy, SiteMetric, WordAdsMetric
from stats_engine.domain.models import DateInterval, ObservationPoint
from stats_engine.domain.utils.aggregation import (
    TimeBucketAggregator,
    reduce_values,
    total_value,
    truncating_div,
)
from stats_engine.domain.utils.calendar import Granularity, StatsCalendar


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _point(ts: datetime, value: int) -> ObservationPoint:
    return ObservationPoint(timestamp=ts, value=value)


@pytest.fixture
def aggregator(calendar):
    return TimeBucketAggregator(calendar)


# ============================================================================
# aggregate() tests
# ============================================================================


def test_hourly_aggregation_sums_within_hour(aggregator):
    """Test several points in one hour collapse into one bucket."""
    points = [
        _point(_utc(2025, 1, 15, 14, 15), 100),
        _point(_utc(2025, 1, 15, 14, 30), 200),
        _point(_utc(2025, 1, 15, 14, 45), 150),
        _point(_utc(2025, 1, 15, 15, 10), 300),
    ]
    result = aggregator.aggregate(points, Granularity.HOUR, SiteMetric.VIEWS)
    assert result == {_utc(2025, 1, 15, 14): 450, _utc(2025, 1, 15, 15): 300}


def test_daily_aggregation(aggregator):
    """Test daily buckets sum hourly points."""
    points = [
        _point(_utc(2025, 1, 15, 8), 100),
        _point(_utc(2025, 1, 15, 14), 200),
        _point(_utc(2025, 1, 15, 20), 150),
        _point(_utc(2025, 1, 16, 10), 300),
    ]
    result = aggregator.aggregate(points, Granularity.DAY, SiteMetric.VIEWS)
    assert result == {_utc(2025, 1, 15): 450, _utc(2025, 1, 16): 300}


def test_monthly_aggregation(aggregator):
    """Test monthly buckets."""
    points = [
        _point(_utc(2025, 1, 15, 8), 100),
        _point(_utc(2025, 1, 20, 14), 200),
        _point(_utc(2025, 2, 10, 10), 300),
    ]
    result = aggregator.aggregate(points, Granularity.MONTH, SiteMetric.VIEWS)
    assert result == {_utc(2025, 1, 1): 300, _utc(2025, 2, 1): 300}


def test_average_strategy_uses_integer_division(aggregator):
    """Test averaged metrics divide by the bucket's observation count."""
    points = [
        _point(_utc(2025, 1, 15, 10), 120),
        _point(_utc(2025, 1, 15, 14), 200),
        _point(_utc(2025, 1, 15, 20), 150),
        _point(_utc(2025, 1, 16, 11), 300),
        _point(_utc(2025, 1, 16, 15), 180),
    ]
    result = aggregator.aggregate(points, Granularity.DAY, SiteMetric.BOUNCE_RATE)
    assert result == {_utc(2025, 1, 15): 156, _utc(2025, 1, 16): 240}


def test_aggregate_accepts_string_keys_and_wordads_metrics(aggregator):
    """Test metric lookup by key and by ad-revenue enum."""
    points = [_point(_utc(2025, 1, 1, 1), 10), _point(_utc(2025, 1, 1, 2), 21)]
    assert aggregator.aggregate(points, Granularity.DAY, "views") == {
        _utc(2025, 1, 1): 31
    }
    assert aggregator.aggregate(points, Granularity.DAY, WordAdsMetric.CPM) == {
        _utc(2025, 1, 1): 15
    }


def test_aggregate_empty_input(aggregator):
    """Test no points yields no buckets."""
    assert aggregator.aggregate([], Granularity.DAY, SiteMetric.VIEWS) == {}


def test_aggregate_is_order_independent(aggregator):
    """Test shuffling the input does not change the reduction."""
    points = [
        _point(_utc(2025, 1, 1) + timedelta(hours=h), h * 7 % 13) for h in range(72)
    ]
    expected = aggregator.aggregate(points, Granularity.DAY, SiteMetric.TIME_ON_SITE)
    shuffled = list(points)
    random.Random(42).shuffle(shuffled)
    assert (
        aggregator.aggregate(shuffled, Granularity.DAY, SiteMetric.TIME_ON_SITE)
        == expected
    )


def test_aggregate_respects_calendar_timezone(now):
    """Test bucket boundaries follow the calendar timezone, not UTC."""
    minus3 = timezone(timedelta(hours=-3))
    aggregator = TimeBucketAggregator(StatsCalendar(timezone=minus3))
    points = [
        _point(_utc(2025, 1, 15, 2), 5),  # 23:00 on Jan 14 local
        _point(_utc(2025, 1, 15, 4), 7),  # 01:00 on Jan 15 local
    ]
    result = aggregator.aggregate(points, Granularity.DAY, SiteMetric.VIEWS)
    assert result == {
        datetime(2025, 1, 14, tzinfo=minus3): 5,
        datetime(2025, 1, 15, tzinfo=minus3): 7,
    }


# ============================================================================
# dense_sequence() tests
# ============================================================================


def test_dense_sequence_end_is_exclusive(aggregator, now):
    """Test one step per day and no step at interval end."""
    interval = DateInterval(start=_utc(2025, 1, 1), end=_utc(2025, 1, 4))
    dates = aggregator.dense_sequence(interval, Granularity.DAY, now=now)
    assert dates == [_utc(2025, 1, 1), _utc(2025, 1, 2), _utc(2025, 1, 3)]


def test_dense_sequence_capped_by_now(aggregator):
    """Test no future buckets are generated."""
    interval = DateInterval(start=_utc(2025, 1, 1), end=_utc(2025, 1, 8))
    dates = aggregator.dense_sequence(
        interval, Granularity.DAY, now=_utc(2025, 1, 3, 12)
    )
    assert dates == [_utc(2025, 1, 1), _utc(2025, 1, 2), _utc(2025, 1, 3)]


def test_dense_sequence_uses_calendar_clock_when_now_omitted():
    """Test the calendar clock bounds the sequence by default."""
    cal = StatsCalendar(clock=lambda: _utc(2025, 1, 2))
    interval = DateInterval(start=_utc(2025, 1, 1), end=_utc(2025, 1, 8))
    dates = TimeBucketAggregator(cal).dense_sequence(interval, Granularity.DAY)
    assert dates == [_utc(2025, 1, 1), _utc(2025, 1, 2)]


def test_dense_sequence_step_multiplier(aggregator, now):
    """Test multi-unit steps."""
    interval = DateInterval(start=_utc(2025, 1, 1), end=_utc(2025, 1, 1, 7))
    dates = aggregator.dense_sequence(
        interval, Granularity.HOUR, step_multiplier=3, now=now
    )
    assert dates == [_utc(2025, 1, 1, 0), _utc(2025, 1, 1, 3), _utc(2025, 1, 1, 6)]


def test_dense_sequence_monthly(aggregator, now):
    """Test calendar months of different lengths."""
    interval = DateInterval(start=_utc(2025, 1, 1), end=_utc(2025, 4, 1))
    dates = aggregator.dense_sequence(interval, Granularity.MONTH, now=now)
    assert dates == [_utc(2025, 1, 1), _utc(2025, 2, 1), _utc(2025, 3, 1)]


def test_dense_sequence_zero_length_interval(aggregator, now):
    """Test an empty interval yields no steps."""
    interval = DateInterval(start=_utc(2025, 1, 1), end=_utc(2025, 1, 1))
    assert aggregator.dense_sequence(interval, Granularity.DAY, now=now) == []


def test_dense_sequence_stops_when_clock_does_not_advance(now):
    """Test a calendar step that fails to advance ends the sequence."""

    class StuckCalendar(StatsCalendar):
        def add(self, instant, granularity, value=1):
            return instant

    interval = DateInterval(start=_utc(2025, 1, 1), end=_utc(2025, 1, 8))
    dates = TimeBucketAggregator(StuckCalendar()).dense_sequence(
        interval, Granularity.DAY, now=now
    )
    assert dates == [_utc(2025, 1, 1)]


# ============================================================================
# process_period() tests
# ============================================================================


def test_process_period_sum(aggregator, now):
    """Test sum series and total over fully populated days."""
    points = [
        _point(_utc(2025, 1, 1, 9), 10),
        _point(_utc(2025, 1, 2, 9), 20),
        _point(_utc(2025, 1, 3, 9), 30),
    ]
    interval = DateInterval(start=_utc(2025, 1, 1), end=_utc(2025, 1, 4))
    period = aggregator.process_period(
        points, interval, Granularity.DAY, SiteMetric.VIEWS, now=now
    )
    assert [p.value for p in period.series] == [10, 20, 30]
    assert [p.timestamp for p in period.series] == [
        _utc(2025, 1, 1),
        _utc(2025, 1, 2),
        _utc(2025, 1, 3),
    ]
    assert period.total == 60


def test_process_period_average_counts_gaps(aggregator, now):
    """Test zero-filled gaps count toward an averaged total."""
    points = [_point(_utc(2025, 1, 1, 9), 10), _point(_utc(2025, 1, 3, 9), 30)]
    interval = DateInterval(start=_utc(2025, 1, 1), end=_utc(2025, 1, 4))
    period = aggregator.process_period(
        points, interval, Granularity.DAY, SiteMetric.BOUNCE_RATE, now=now
    )
    assert [p.value for p in period.series] == [10, 0, 30]
    assert period.total == 13


def test_process_period_series_length_matches_dense_sequence(aggregator, now):
    """Test gap filling yields exactly one point per expected bucket."""
    interval = DateInterval(start=_utc(2025, 1, 1), end=_utc(2025, 3, 1))
    expected = aggregator.dense_sequence(interval, Granularity.WEEK, now=now)
    for points in ([], [_point(_utc(2025, 1, 20), 4)]):
        period = aggregator.process_period(
            points, interval, Granularity.WEEK, SiteMetric.VIEWS, now=now
        )
        assert len(period.series) == len(expected)


def test_process_period_empty_points_zero_fills(aggregator, now):
    """Test no observations still produce an all-zero dense series."""
    interval = DateInterval(start=_utc(2025, 1, 1), end=_utc(2025, 1, 3))
    period = aggregator.process_period(
        [], interval, Granularity.DAY, SiteMetric.VIEWS, now=now
    )
    assert [p.value for p in period.series] == [0, 0]
    assert period.total == 0


def test_process_period_empty_interval_has_no_total(aggregator, now):
    """Test an empty series has an absent total rather than zero."""
    interval = DateInterval(start=_utc(2025, 1, 1), end=_utc(2025, 1, 1))
    period = aggregator.process_period(
        [_point(_utc(2025, 1, 1), 5)], interval, Granularity.DAY, "views", now=now
    )
    assert period.series == []
    assert period.total is None


def test_process_period_unaligned_start_finds_bucket(aggregator, now):
    """Test an interval starting mid-day still picks up that day's bucket."""
    points = [_point(_utc(2025, 1, 1, 3), 8)]
    interval = DateInterval(start=_utc(2025, 1, 1, 12), end=_utc(2025, 1, 2, 12))
    period = aggregator.process_period(
        points, interval, Granularity.DAY, SiteMetric.VIEWS, now=now
    )
    assert [(p.timestamp, p.value) for p in period.series] == [(_utc(2025, 1, 1, 12), 8)]


def test_process_period_order_independent_length(aggregator, now):
    """Test series is identical regardless of input order."""
    points = [_point(_utc(2025, 1, d, 5), d) for d in range(1, 10)]
    interval = DateInterval(start=_utc(2025, 1, 1), end=_utc(2025, 1, 10))
    forward = aggregator.process_period(
        points, interval, Granularity.DAY, SiteMetric.VIEWS, now=now
    )
    backward = aggregator.process_period(
        list(reversed(points)), interval, Granularity.DAY, SiteMetric.VIEWS, now=now
    )
    assert forward == backward


# ============================================================================
# summarize_site_metrics() / totals
# ============================================================================


def test_summarize_site_metrics_filters_and_totals(aggregator, now):
    """Test per-metric series, totals and filtering of out-of-range points."""
    interval = DateInterval(start=_utc(2025, 1, 1), end=_utc(2025, 1, 3))
    report = aggregator.summarize_site_metrics(
        {
            SiteMetric.VIEWS: [
                _point(_utc(2024, 12, 31, 23), 999),
                _point(_utc(2025, 1, 1, 5), 4),
                _point(_utc(2025, 1, 2, 5), 6),
                _point(_utc(2025, 1, 3, 0), 999),
            ],
            SiteMetric.BOUNCE_RATE: [_point(_utc(2025, 1, 1, 5), 50)],
        },
        interval,
        Granularity.DAY,
        now=now,
    )
    assert [p.value for p in report.series["views"]] == [4, 6]
    assert report.totals.get(SiteMetric.VIEWS) == 10
    assert [p.value for p in report.series["bounceRate"]] == [50, 0]
    assert report.totals.get(SiteMetric.BOUNCE_RATE) == 25


def test_total_value_rules():
    """Test sum, average and empty totals."""
    pts = [_point(_utc(2025, 1, 1), v) for v in (10, 0, 30)]
    assert total_value(pts, SiteMetric.VIEWS) == 40
    assert total_value(pts, SiteMetric.BOUNCE_RATE) == 13
    assert total_value([], SiteMetric.VIEWS) is None


def test_truncating_division_rounds_toward_zero():
    """Test averaging truncates rather than floors."""
    assert truncating_div(7, 2) == 3
    assert truncating_div(-7, 2) == -3
    assert reduce_values(-7, 2, AggregationStrategy.AVERAGE) == -3
    assert reduce_values(-7, 2, AggregationStrategy.SUM) == -7


# ============================================================================
# DST transitions (America/New_York)
# ============================================================================

NEW_YORK = ZoneInfo("America/New_York")
AFTER_2025 = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def new_york():
    return TimeBucketAggregator(StatsCalendar(timezone=NEW_YORK))


def _ny_day(month: int, day: int) -> DateInterval:
    return DateInterval(
        start=datetime(2025, month, day, tzinfo=NEW_YORK),
        end=datetime(2025, month, day + 1, tzinfo=NEW_YORK),
    )


def test_dense_sequence_hourly_over_fall_back_day(new_york):
    """Test the 25-hour day yields 25 distinct hourly buckets."""
    dates = new_york.dense_sequence(_ny_day(11, 2), Granularity.HOUR, now=AFTER_2025)
    instants = [d.astimezone(timezone.utc) for d in dates]
    assert len(dates) == 25
    assert instants[0] == _utc(2025, 11, 2, 4)
    assert all(b - a == timedelta(hours=1) for a, b in zip(instants, instants[1:]))
    assert [d.hour for d in dates[:4]] == [0, 1, 1, 2]


def test_dense_sequence_hourly_over_spring_forward_day(new_york):
    """Test the 23-hour day skips the missing 02:00 bucket."""
    dates = new_york.dense_sequence(_ny_day(3, 9), Granularity.HOUR, now=AFTER_2025)
    assert len(dates) == 23
    assert [d.hour for d in dates[:4]] == [0, 1, 3, 4]


def test_dense_sequence_daily_across_fall_back(new_york):
    """Test day steps stay on local midnight across the transition."""
    interval = DateInterval(
        start=datetime(2025, 11, 1, tzinfo=NEW_YORK),
        end=datetime(2025, 11, 4, tzinfo=NEW_YORK),
    )
    dates = new_york.dense_sequence(interval, Granularity.DAY, now=AFTER_2025)
    assert [(d.day, d.hour) for d in dates] == [(1, 0), (2, 0), (3, 0)]
    assert dates[2].utcoffset() == timedelta(hours=-5)


def test_aggregate_keeps_repeated_hour_buckets_apart(new_york):
    """Test 01:30 EDT and 01:30 EST land in different hourly buckets."""
    points = [
        _point(_utc(2025, 11, 2, 5, 30), 3),
        _point(_utc(2025, 11, 2, 6, 30), 4),
    ]
    result = new_york.aggregate(points, Granularity.HOUR, SiteMetric.VIEWS)
    assert result == {_utc(2025, 11, 2, 5): 3, _utc(2025, 11, 2, 6): 4}


def test_process_period_hourly_over_fall_back_day(new_york):
    """Test the series covers every hour of the long day."""
    start = _utc(2025, 11, 2, 4)
    points = [_point(start + timedelta(hours=h), 1) for h in range(25)]
    period = new_york.process_period(
        points, _ny_day(11, 2), Granularity.HOUR, SiteMetric.VIEWS, now=AFTER_2025
    )
    assert len(period.series) == 25
    assert all(p.value == 1 for p in period.series)
    assert period.total == 25
