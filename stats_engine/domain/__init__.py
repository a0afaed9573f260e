"""Domain model and engine operations for stats aggregation and ranking."""

from .items import ItemID, RankedItem, TopListType
from .metrics import (
    AggregationStrategy,
    MetricSpec,
    RowRecord,
    SiteMetric,
    WordAdsMetric,
    get_metric_spec,
)
from .models import DateInterval, ObservationPoint, PeriodData, RankedListMetrics

__all__ = [
    "AggregationStrategy",
    "DateInterval",
    "ItemID",
    "MetricSpec",
    "ObservationPoint",
    "PeriodData",
    "RankedItem",
    "RankedListMetrics",
    "RowRecord",
    "SiteMetric",
    "TopListType",
    "WordAdsMetric",
    "get_metric_spec",
]
