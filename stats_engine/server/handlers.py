"""Tool handlers shared by the HTTP server and the CLI.

Each handler validates nothing beyond what its request model already checks;
it resolves the calendar context, calls the engine and wraps the result in a
response model.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

from pydantic import BaseModel

from ..config.models import EnvSettings
from ..domain.items import RankedItem
from ..domain.metrics import get_metric_spec
from ..domain.models import DateInterval, ObservationPoint, RankedListMetrics
from ..domain.utils.aggregation import TimeBucketAggregator
from ..domain.utils.alignment import align_previous
from ..domain.utils.calendar import StatsCalendar, load_timezone, parse_instant
from ..domain.utils.ranking import compute_list_metrics, index_by_id, merge_top_list
from ..domain.utils.trends import Trend
from .models import (
    AlignPreviousRequest,
    AlignPreviousResponse,
    CalendarParams,
    MergeTopListRequest,
    MergeTopListResponse,
    ProcessPeriodRequest,
    ProcessPeriodResponse,
    TopListMetricsRequest,
    TrendModel,
)

logger = logging.getLogger(__name__)


def resolve_calendar(params: CalendarParams, settings: EnvSettings) -> StatsCalendar:
    """Build the calendar for a request, falling back to server settings."""
    tz = load_timezone(params.timezone or settings.timezone)
    first_weekday = (
        params.first_weekday
        if params.first_weekday is not None
        else settings.first_weekday
    )
    clock: Optional[Callable[[], datetime]] = None
    if params.now is not None:
        fixed_now = params.now if params.now.tzinfo else params.now.replace(tzinfo=tz)
        clock = lambda: fixed_now  # noqa: E731
    return StatsCalendar(timezone=tz, first_weekday=first_weekday, clock=clock)


def _localized(
    points: Sequence[ObservationPoint], calendar: StatsCalendar
) -> List[ObservationPoint]:
    return [
        point
        if point.timestamp.tzinfo
        else ObservationPoint(
            timestamp=calendar.localize(point.timestamp), value=point.value
        )
        for point in points
    ]


def _interval(start: datetime, end: datetime, calendar: StatsCalendar) -> DateInterval:
    return DateInterval(start=calendar.localize(start), end=calendar.localize(end))


def handle_process_period(
    req: ProcessPeriodRequest, settings: EnvSettings
) -> ProcessPeriodResponse:
    """Process one metric for an interval and, optionally, its comparison period."""
    calendar = resolve_calendar(req, settings)
    aggregator = TimeBucketAggregator(calendar)
    now = calendar.now()
    interval = _interval(req.start, req.end, calendar)
    points = _localized(req.points, calendar)

    current = aggregator.process_period(
        [p for p in points if interval.contains(p.timestamp)],
        interval,
        req.granularity,
        req.metric,
        now=now,
    )
    response = ProcessPeriodResponse(
        metric=req.metric, granularity=req.granularity, current=current
    )
    if req.comparison is None:
        return response

    previous_interval = calendar.comparison_interval(interval, req.comparison)
    previous = aggregator.process_period(
        [p for p in points if previous_interval.contains(p.timestamp)],
        previous_interval,
        req.granularity,
        req.metric,
        now=now,
    )
    response.previous = previous
    response.aligned_previous = align_previous(current.series, previous.series)
    if current.total is not None and previous.total is not None:
        trend = Trend(current.total, previous.total, req.metric)
        response.trend = TrendModel(
            current=trend.current,
            previous=trend.previous,
            delta=trend.delta,
            sign=trend.sign,
            sentiment=trend.sentiment.value,
            percentage=(
                float(trend.percentage) if trend.percentage is not None else None
            ),
        )
    return response


def handle_align_previous(
    req: AlignPreviousRequest, settings: EnvSettings
) -> AlignPreviousResponse:
    _ = settings
    return AlignPreviousResponse(series=align_previous(req.current, req.previous))


def _snapshot_days(
    raw: Dict[str, List[RankedItem]], calendar: StatsCalendar
) -> Dict[datetime, List[RankedItem]]:
    """Key snapshots by day start; keys naming the same instant are combined."""
    days: Dict[datetime, List[RankedItem]] = {}
    for key, items in raw.items():
        day = parse_instant(key, calendar.timezone)
        if day is None:
            raise ValueError(f"Unparseable snapshot day: {key!r}")
        days.setdefault(calendar.to_utc(day), []).extend(items)
    return days


def handle_merge_top_list(
    req: MergeTopListRequest, settings: EnvSettings
) -> MergeTopListResponse:
    """Merge the requested range and, optionally, its comparison range."""
    calendar = resolve_calendar(req, settings)
    interval = _interval(req.start, req.end, calendar)
    limit = req.limit if req.limit is not None else settings.top_list_limit
    snapshots = _snapshot_days(req.snapshots, calendar)

    items = merge_top_list(snapshots, interval, req.metric, limit)
    previous_items: List[RankedItem] = []
    if req.comparison is not None:
        previous_interval = calendar.comparison_interval(interval, req.comparison)
        current_ids = {item.id for item in items}
        previous_items = [
            item
            for item in merge_top_list(snapshots, previous_interval, req.metric)
            if item.id in current_ids
        ]

    metrics = compute_list_metrics(items, index_by_id(previous_items), req.metric)
    logger.info(
        "tools.merge_top_list",
        extra={
            "metric": req.metric,
            "days": len(snapshots),
            "items": len(items),
            "previous_items": len(previous_items),
        },
    )
    return MergeTopListResponse(
        metric=req.metric,
        items=items,
        previous_items=previous_items,
        metrics=metrics,
    )


def handle_top_list_metrics(
    req: TopListMetricsRequest, settings: EnvSettings
) -> RankedListMetrics:
    _ = settings
    spec = get_metric_spec(req.metric)
    return compute_list_metrics(req.items, index_by_id(req.previous_items), spec)


ToolHandler = Callable[[Any, EnvSettings], BaseModel]

TOOLS: Dict[str, Tuple[Type[BaseModel], ToolHandler]] = {
    "process_period": (ProcessPeriodRequest, handle_process_period),
    "align_previous": (AlignPreviousRequest, handle_align_previous),
    "merge_top_list": (MergeTopListRequest, handle_merge_top_list),
    "top_list_metrics": (TopListMetricsRequest, handle_top_list_metrics),
}


def run_tool(name: str, payload: Any, settings: EnvSettings) -> BaseModel:
    """Validate ``payload`` for tool ``name`` and run its handler.

    Raises
    ------
    KeyError
        If no tool is registered under ``name``.
    pydantic.ValidationError
        If the payload does not match the tool's request model.
    """
    request_model, handler = TOOLS[name]
    request = request_model.model_validate(payload)
    return handler(request, settings)
