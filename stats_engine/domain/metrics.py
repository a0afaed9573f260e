"""Metric catalog and the sparse per-metric record.

Every metric known to the engine carries a :class:`MetricSpec` that tells the
aggregation code how to reduce several observations into one value (sum or
average) and whether an increase is good news. Site traffic metrics and
ad-revenue metrics share one catalog so a single lookup serves both.

:class:`RowRecord` holds one optional integer per metric key. An absent slot
means "not measured for this item", which is different from an explicit zero.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator


class AggregationStrategy(Enum):
    """Rule for reducing several values of one metric into a single value."""

    SUM = "sum"  # Total of all values
    AVERAGE = "average"  # Integer mean (truncating division)


class MetricSpec(BaseModel):
    """Unit of measurement and its reduction rule.

    Attributes
    ----------
    key: str
        Stable metric identifier (e.g., "views", "bounceRate").
    aggregation_strategy: AggregationStrategy
        How observations collapse inside one bucket or one period.
    higher_is_better: bool
        Whether an increase is a positive change (false for bounce rate).
    """

    model_config = ConfigDict(frozen=True)

    key: str
    aggregation_strategy: AggregationStrategy
    higher_is_better: bool = True


class SiteMetric(str, Enum):
    """Site traffic metrics."""

    VIEWS = "views"
    VISITORS = "visitors"
    LIKES = "likes"
    COMMENTS = "comments"
    POSTS = "posts"
    TIME_ON_SITE = "timeOnSite"
    BOUNCE_RATE = "bounceRate"
    DOWNLOADS = "downloads"

    @property
    def spec(self) -> MetricSpec:
        return METRIC_CATALOG[self.value]

    @property
    def aggregation_strategy(self) -> AggregationStrategy:
        return self.spec.aggregation_strategy

    @property
    def higher_is_better(self) -> bool:
        return self.spec.higher_is_better


class WordAdsMetric(str, Enum):
    """Ad-revenue metrics. Monetary values are stored in cents."""

    IMPRESSIONS = "impressions"
    CPM = "cpm"
    REVENUE = "revenue"

    @property
    def spec(self) -> MetricSpec:
        return METRIC_CATALOG[self.value]

    @property
    def aggregation_strategy(self) -> AggregationStrategy:
        return self.spec.aggregation_strategy

    @property
    def higher_is_better(self) -> bool:
        return self.spec.higher_is_better


def _spec(
    key: str,
    strategy: AggregationStrategy = AggregationStrategy.SUM,
    higher_is_better: bool = True,
) -> MetricSpec:
    return MetricSpec(
        key=key, aggregation_strategy=strategy, higher_is_better=higher_is_better
    )


METRIC_CATALOG: Dict[str, MetricSpec] = {
    spec.key: spec
    for spec in (
        _spec("views"),
        _spec("visitors"),
        _spec("likes"),
        _spec("comments"),
        _spec("posts"),
        _spec("timeOnSite", AggregationStrategy.AVERAGE),
        _spec("bounceRate", AggregationStrategy.AVERAGE, higher_is_better=False),
        _spec("downloads"),
        _spec("impressions"),
        _spec("cpm", AggregationStrategy.AVERAGE),
        _spec("revenue"),
    )
}

MetricLike = Union[MetricSpec, SiteMetric, WordAdsMetric, str]


def get_metric_spec(metric: MetricLike) -> MetricSpec:
    """Resolve an enum member, spec or string key to its :class:`MetricSpec`.

    Raises
    ------
    KeyError
        If a key is not part of the catalog.
    """
    if isinstance(metric, MetricSpec):
        return metric
    key = metric.value if isinstance(metric, Enum) else metric
    try:
        return METRIC_CATALOG[key]
    except KeyError:
        raise KeyError(f"Unknown metric: {key}") from None


class RowRecord(RootModel[Dict[str, int]]):
    """Sparse record with one optional integer slot per metric.

    Serializes as a plain ``{metric_key: value}`` mapping. Setting a slot to
    ``None`` removes it.

    Examples
    --------
    >>> record = RowRecord.of(views=120)
    >>> record.get(SiteMetric.VIEWS)
    120
    >>> record.get("likes") is None
    True
    """

    root: Dict[str, int] = Field(default_factory=dict)

    @field_validator("root", mode="before")
    @classmethod
    def _drop_absent_slots(cls, value: object) -> object:
        if not isinstance(value, dict):
            return value
        slots: Dict[object, object] = {}
        for key, slot in value.items():
            name = key.value if isinstance(key, Enum) else key
            if name not in METRIC_CATALOG:
                raise ValueError(f"Unknown metric: {name}")
            if slot is not None:
                slots[name] = slot
        return slots

    @classmethod
    def of(cls, **values: Optional[int]) -> "RowRecord":
        return cls.model_validate(values)

    def get(self, metric: MetricLike) -> Optional[int]:
        return self.root.get(get_metric_spec(metric).key)

    def set(self, metric: MetricLike, value: Optional[int]) -> None:
        key = get_metric_spec(metric).key
        if value is None:
            self.root.pop(key, None)
        else:
            self.root[key] = value

    def __getitem__(self, metric: MetricLike) -> Optional[int]:
        return self.get(metric)

    def __setitem__(self, metric: MetricLike, value: Optional[int]) -> None:
        self.set(metric, value)

    def __len__(self) -> int:
        return len(self.root)
