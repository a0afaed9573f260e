"""Canonical data model consumed and produced by the engine.

These Pydantic models are the shapes a data source hands to the engine and
the shapes the presentation layer reads back. All of them are plain values:
the aggregation, alignment and ranking code never mutates its inputs.

Timezone handling
-----------------
Observation timestamps are timezone-aware instants. The calendar that turns
them into buckets (site timezone, first weekday) is supplied separately by
the caller; an observation never carries its own calendar.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .metrics import RowRecord


class ObservationPoint(BaseModel):
    """Single timestamped integer observation.

    Attributes
    ----------
    timestamp: datetime
        Observation instant, or bucket start once aggregated.
    value: int
        Observed value. Monetary metrics are expressed in cents.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    value: int


class DateInterval(BaseModel):
    """Half-open interval ``[start, end)``."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, instant: datetime) -> bool:
        """``start <= instant < end``, compared as absolute instants when aware."""
        if instant.tzinfo is None or self.start.tzinfo is None:
            return self.start <= instant < self.end
        return _as_utc(self.start) <= _as_utc(instant) < _as_utc(self.end)


def _as_utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc)


class PeriodData(BaseModel):
    """Dense series for one period plus its total.

    Attributes
    ----------
    series: List[ObservationPoint]
        One point per expected bucket, zero-filled where no data exists.
    total: Optional[int]
        Period total under the metric's aggregation strategy; ``None`` when
        the series is empty.
    """

    series: List[ObservationPoint] = Field(default_factory=list)
    total: Optional[int] = None


class RankedListMetrics(BaseModel):
    """Summary values precomputed over a ranked list."""

    model_config = ConfigDict(frozen=True)

    max_value: int = 0
    total: int = 0
    previous_total: int = 0


class SiteStatsReport(BaseModel):
    """Per-metric dense series and totals for one interval.

    Attributes
    ----------
    totals: RowRecord
        Period total per metric; metrics with an empty series stay absent.
    series: Dict[str, List[ObservationPoint]]
        Dense series keyed by metric key.
    """

    totals: RowRecord = Field(default_factory=RowRecord)
    series: Dict[str, List[ObservationPoint]] = Field(default_factory=dict)
