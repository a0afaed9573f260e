"""
Top-list merging and ranked-list summary metrics.

Daily leaderboard snapshots are merged into one ranked list per date range:
items are deduplicated by identity, the selected metric is summed across the
included days and the result is sorted by that metric. Summary metrics (max,
total, previous total) are then derived from the ranked list and its
previous-period counterpart.
"""

import logging
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..items import ItemID, RankedItem, RankedItemProtocol, TopListType
from ..metrics import MetricLike, MetricSpec, get_metric_spec
from ..models import DateInterval, RankedListMetrics

logger = logging.getLogger(__name__)


def merge_top_list(
    daily_snapshots: Mapping[datetime, Sequence[RankedItem]],
    interval: DateInterval,
    metric: MetricLike,
    limit: Optional[int] = None,
) -> List[RankedItem]:
    """
    Merge per-day snapshots into one ranked, deduplicated list.

    The first occurrence of an identity (days visited in chronological order)
    supplies the representative item; only the selected metric is summed
    across days, other metric slots keep their first-occurrence values.
    Ranking is descending by the metric and stable, so ties keep encounter
    order.

    Parameters
    ----------
    daily_snapshots : Mapping[datetime, Sequence[RankedItem]]
        Day start -> items observed that day
    interval : DateInterval
        Only days with ``start <= day < end`` are included
    metric : MetricLike
        Metric that is summed and ranked on
    limit : int or None
        Maximum number of items returned

    Returns
    -------
    List[RankedItem]
        Fresh item copies; the snapshots are not modified
    """
    spec = get_metric_spec(metric)
    merged: Dict[ItemID, Tuple[RankedItem, int]] = {}

    days = sorted(day for day in daily_snapshots if interval.contains(day))
    for day in days:
        for item in daily_snapshots[day]:
            value = item.metrics.get(spec) or 0
            if item.id in merged:
                representative, running = merged[item.id]
                merged[item.id] = (representative, running + value)
            else:
                merged[item.id] = (item, value)

    items: List[RankedItem] = []
    for representative, total in merged.values():
        copy = representative.model_copy(deep=True)
        copy.metrics.set(spec, total)
        items.append(copy)

    items.sort(key=lambda i: i.metrics.get(spec) or 0, reverse=True)
    if limit is not None:
        items = items[: max(limit, 0)]

    logger.debug(
        "ranking.merge",
        extra={
            "metric": spec.key,
            "days": len(days),
            "unique_items": len(merged),
            "returned": len(items),
        },
    )
    return items


def compute_list_metrics(
    items: Sequence[RankedItemProtocol],
    previous_items: Mapping[ItemID, RankedItemProtocol],
    metric: MetricLike,
) -> RankedListMetrics:
    """
    Summary values for a ranked list.

    ``max_value`` ignores items where the metric is absent, while ``total`` and
    ``previous_total`` count an absent value as zero.

    Examples
    --------
    >>> from stats_engine.domain.items import SearchTerm
    >>> from stats_engine.domain.metrics import RowRecord
    >>> terms = [
    ...     SearchTerm(term="a", metrics=RowRecord.of(views=10)),
    ...     SearchTerm(term="b"),
    ...     SearchTerm(term="c", metrics=RowRecord.of(views=30)),
    ... ]
    >>> m = compute_list_metrics(terms, {}, "views")
    >>> (m.max_value, m.total)
    (30, 40)
    """
    spec = get_metric_spec(metric)
    present = [v for v in (item.metrics.get(spec) for item in items) if v is not None]
    return RankedListMetrics(
        max_value=max(present, default=0),
        total=sum(item.metrics.get(spec) or 0 for item in items),
        previous_total=sum(
            item.metrics.get(spec) or 0 for item in previous_items.values()
        ),
    )


def index_by_id(items: Sequence[RankedItemProtocol]) -> Dict[ItemID, RankedItemProtocol]:
    """Key items by identity; later duplicates replace earlier ones."""
    return {item.id: item for item in items}


class TopListData:
    """A ranked list together with its previous-period counterpart.

    Metrics are computed once on construction; build a new instance whenever
    the items, the previous items or the metric change.
    """

    def __init__(
        self,
        list_type: TopListType,
        metric: MetricLike,
        items: Sequence[RankedItemProtocol],
        previous_items: Optional[Mapping[ItemID, RankedItemProtocol]] = None,
    ) -> None:
        self.list_type = list_type
        self.metric: MetricSpec = get_metric_spec(metric)
        self.items: List[RankedItemProtocol] = list(items)
        self.previous_items: Dict[ItemID, RankedItemProtocol] = dict(
            previous_items or {}
        )
        self.metrics = compute_list_metrics(
            self.items, self.previous_items, self.metric
        )

    @property
    def list_id(self) -> Tuple[TopListType, str]:
        return (self.list_type, self.metric.key)

    def previous_item(self, item: RankedItemProtocol) -> Optional[RankedItemProtocol]:
        return self.previous_items.get(item.id)
