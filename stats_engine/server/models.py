"""Tool request/response models for the HTTP and CLI surfaces."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..domain.items import RankedItem
from ..domain.metrics import METRIC_CATALOG
from ..domain.models import ObservationPoint, PeriodData, RankedListMetrics
from ..domain.utils.calendar import (
    ComparisonPeriod,
    Granularity,
    load_timezone,
    parse_instant,
)


class CalendarParams(BaseModel):
    """Calendar context shared by tool requests.

    Unset fields fall back to the server settings. Naive datetimes anywhere in
    the request are read in the resolved timezone.
    """

    timezone: Optional[str] = Field(
        default=None, description="IANA timezone; defaults to server setting."
    )
    first_weekday: Optional[int] = Field(
        default=None, ge=0, le=6, description="0 = Monday ... 6 = Sunday."
    )
    now: Optional[datetime] = Field(
        default=None,
        description="Reference 'now' capping generated buckets; defaults to clock.",
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            load_timezone(value)
        return value


class MetricParams(BaseModel):
    metric: str = Field(..., description="Metric key, e.g. 'views' or 'bounceRate'.")

    @field_validator("metric")
    @classmethod
    def validate_metric(cls, value: str) -> str:
        if value not in METRIC_CATALOG:
            options = ", ".join(sorted(METRIC_CATALOG))
            raise ValueError(f"Unknown metric {value!r}; expected one of {options}")
        return value


class ProcessPeriodRequest(CalendarParams, MetricParams):
    """Request for dense series processing of one metric.

    ``points`` may span both the requested interval and, when ``comparison``
    is set, the previous interval; each period only uses its own points.
    """

    granularity: Granularity = Field(Granularity.DAY)
    start: datetime
    end: datetime
    points: List[ObservationPoint] = Field(default_factory=list)
    comparison: Optional[ComparisonPeriod] = Field(
        default=None,
        description="Also process the comparison period and align it.",
    )

    @model_validator(mode="after")
    def check_interval(self) -> "ProcessPeriodRequest":
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self


class TrendModel(BaseModel):
    current: int
    previous: int
    delta: int
    sign: str
    sentiment: str
    percentage: Optional[float] = None


class ProcessPeriodResponse(BaseModel):
    metric: str
    granularity: Granularity
    current: PeriodData
    previous: Optional[PeriodData] = None
    aligned_previous: Optional[List[ObservationPoint]] = None
    trend: Optional[TrendModel] = None


class AlignPreviousRequest(BaseModel):
    current: List[ObservationPoint] = Field(default_factory=list)
    previous: List[ObservationPoint] = Field(default_factory=list)


class AlignPreviousResponse(BaseModel):
    series: List[ObservationPoint]


class MergeTopListRequest(CalendarParams, MetricParams):
    """Request to merge daily top-list snapshots over a date range."""

    start: datetime
    end: datetime
    limit: Optional[int] = Field(
        default=None, ge=0, description="Defaults to the server top_list_limit."
    )
    snapshots: Dict[str, List[RankedItem]] = Field(
        default_factory=dict,
        description=(
            "Day -> items. Keys are ISO-8601 datetimes or plain yyyy-MM-dd dates"
            " (midnight in the request timezone)."
        ),
    )
    comparison: Optional[ComparisonPeriod] = Field(
        default=None,
        description="Also merge the comparison period for previous values.",
    )

    @field_validator("snapshots")
    @classmethod
    def validate_snapshot_days(
        cls, value: Dict[str, List[RankedItem]]
    ) -> Dict[str, List[RankedItem]]:
        bad = [day for day in value if parse_instant(day) is None]
        if bad:
            raise ValueError(f"Unparseable snapshot days: {', '.join(bad)}")
        return value


class MergeTopListResponse(BaseModel):
    metric: str
    items: List[RankedItem]
    previous_items: List[RankedItem] = Field(default_factory=list)
    metrics: RankedListMetrics


class TopListMetricsRequest(MetricParams):
    items: List[RankedItem] = Field(default_factory=list)
    previous_items: List[RankedItem] = Field(default_factory=list)


class MetricInfo(BaseModel):
    key: str
    aggregation_strategy: str
    higher_is_better: bool


class CapabilitiesResponse(BaseModel):
    """Server capabilities summary for diagnostics and clients."""

    version: str
    data_model_version: str
    http_auth: str
    cors_origins: List[str]
    tools: List[str]
    granularities: List[str]
    metrics: List[MetricInfo]
