"""Change between a current and a previous value, judged per metric."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from ..metrics import MetricLike, get_metric_spec


class TrendSentiment(Enum):
    """Perceived quality of a change.

    Growth in views is positive, growth in bounce rate is negative.
    """

    NEUTRAL = "neutral"
    POSITIVE = "positive"
    NEGATIVE = "negative"

    def reversed(self) -> "TrendSentiment":
        if self is TrendSentiment.POSITIVE:
            return TrendSentiment.NEGATIVE
        if self is TrendSentiment.NEGATIVE:
            return TrendSentiment.POSITIVE
        return self


@dataclass(frozen=True)
class Trend:
    current: int
    previous: int
    metric: MetricLike

    @property
    def delta(self) -> int:
        return self.current - self.previous

    @property
    def sign(self) -> str:
        return "+" if self.current >= self.previous else "-"

    @property
    def sentiment(self) -> TrendSentiment:
        if self.current == self.previous:
            return TrendSentiment.NEUTRAL
        sentiment = (
            TrendSentiment.POSITIVE
            if self.current > self.previous
            else TrendSentiment.NEGATIVE
        )
        if get_metric_spec(self.metric).higher_is_better:
            return sentiment
        return sentiment.reversed()

    @property
    def percentage(self) -> Optional[Decimal]:
        """Relative change, e.g. ``Decimal("0.5")`` for 50%; None when previous is 0."""
        if self.previous == 0:
            return None
        return Decimal(abs(self.delta)) / Decimal(abs(self.previous))
