"""
Calendar arithmetic and timestamp parsing in a site timezone.

Bucket boundaries depend on a calendar: where a day starts depends on the
site timezone and where a week starts depends on the first weekday. The
:class:`StatsCalendar` carries both, plus an optional clock, and is always
passed in explicitly so results never depend on the machine's locale.
"""

import calendar as _calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Callable, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..models import DateInterval

logger = logging.getLogger(__name__)


class Granularity(Enum):
    """Calendar unit used as bucket width."""

    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @classmethod
    def parse(cls, value: Union["Granularity", str]) -> "Granularity":
        """Return the granularity for ``value``.

        Raises
        ------
        ValueError
            If ``value`` names no supported granularity.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            options = ", ".join(g.value for g in cls)
            raise ValueError(
                f"Unknown granularity: {value!r} (expected one of {options})"
            ) from None


class ComparisonPeriod(Enum):
    """How the previous period of a date range is chosen."""

    PRECEDING_PERIOD = "preceding_period"
    SAME_PERIOD_LAST_YEAR = "same_period_last_year"


def load_timezone(name: str) -> tzinfo:
    """Resolve an IANA timezone name.

    Raises
    ------
    ValueError
        If the name is unknown.
    """
    if name.upper() in ("UTC", "Z"):
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Invalid timezone: {name}") from exc


@dataclass(frozen=True)
class StatsCalendar:
    """Calendar context for bucket truncation and "now".

    Parameters
    ----------
    timezone: tzinfo
        Site reporting timezone.
    first_weekday: int
        First day of the week, 0 = Monday ... 6 = Sunday.
    clock: Callable[[], datetime] or None
        Optional source of the current time; defaults to the system clock.
    """

    timezone: tzinfo = timezone.utc
    first_weekday: int = 0
    clock: Optional[Callable[[], datetime]] = None

    def now(self) -> datetime:
        if self.clock is not None:
            return self.clock()
        return datetime.now(self.timezone)

    def localize(self, instant: datetime) -> datetime:
        """Express ``instant`` in the calendar timezone (naive means local)."""
        if instant.tzinfo is None:
            return instant.replace(tzinfo=self.timezone)
        return instant.astimezone(self.timezone)

    def to_utc(self, instant: datetime) -> datetime:
        """Absolute instant of ``instant`` in UTC (naive means local).

        Datetimes sharing one ``ZoneInfo`` compare by wall clock and ignore
        ``fold``, so ordering and hashing across a DST fall-back go through
        this.
        """
        return self.localize(instant).astimezone(timezone.utc)

    def truncate(self, instant: datetime, granularity: Granularity) -> datetime:
        """Return the start of the ``granularity`` unit containing ``instant``.

        Examples
        --------
        >>> cal = StatsCalendar()
        >>> cal.truncate(datetime(2025, 1, 15, 14, 30, tzinfo=timezone.utc),
        ...              Granularity.DAY)
        datetime.datetime(2025, 1, 15, 0, 0, tzinfo=datetime.timezone.utc)
        """
        local = self.localize(instant)
        if granularity is Granularity.HOUR:
            return local.replace(minute=0, second=0, microsecond=0)
        day = local.date()
        if granularity is Granularity.WEEK:
            day -= timedelta(days=(day.weekday() - self.first_weekday) % 7)
        elif granularity is Granularity.MONTH:
            day = day.replace(day=1)
        elif granularity is Granularity.YEAR:
            day = day.replace(month=1, day=1)
        return self._midnight(day)

    def add(self, instant: datetime, granularity: Granularity, value: int = 1) -> datetime:
        """Advance ``instant`` by ``value`` units of ``granularity``.

        Hours are absolute durations. Larger units move the wall clock in the
        calendar timezone; the day of month is clamped when the target month
        is shorter.
        """
        if granularity is Granularity.HOUR:
            return self.localize(self.to_utc(instant) + timedelta(hours=value))
        local = self.localize(instant).replace(tzinfo=None)
        if granularity is Granularity.DAY:
            shifted = local + timedelta(days=value)
        elif granularity is Granularity.WEEK:
            shifted = local + timedelta(weeks=value)
        elif granularity is Granularity.MONTH:
            shifted = _add_months(local, value)
        else:
            shifted = _add_months(local, 12 * value)
        return shifted.replace(tzinfo=self.timezone)

    def comparison_interval(
        self,
        interval: DateInterval,
        period: ComparisonPeriod = ComparisonPeriod.PRECEDING_PERIOD,
    ) -> DateInterval:
        """Return the interval a date range is compared against."""
        if period is ComparisonPeriod.SAME_PERIOD_LAST_YEAR:
            return DateInterval(
                start=self.add(interval.start, Granularity.YEAR, -1),
                end=self.add(interval.end, Granularity.YEAR, -1),
            )
        return DateInterval(
            start=interval.start - interval.duration, end=interval.start
        )

    def _midnight(self, day: date) -> datetime:
        return datetime(day.year, day.month, day.day, tzinfo=self.timezone)


def _add_months(value: datetime, months: int) -> datetime:
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    last_day = _calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(value.day, last_day))


def parse_instant(
    value: Optional[Union[str, int, float, datetime]], tz: tzinfo = timezone.utc
) -> Optional[datetime]:
    """
    Parse an instant from the formats data sources emit.

    Supports:
    - ISO8601 strings (with or without 'Z' suffix)
    - Plain ``yyyy-MM-dd`` dates, read as midnight in ``tz``
    - Unix timestamps in seconds (< 10000000000) or milliseconds

    Naive values are interpreted in ``tz``.

    Parameters
    ----------
    value : str, int, float, datetime or None
        The timestamp to parse
    tz : tzinfo, default=UTC
        Site timezone used for naive values and plain dates

    Returns
    -------
    datetime or None
        Timezone-aware datetime, or None if parsing fails

    Examples
    --------
    >>> parse_instant("2025-01-15T10:15:00Z")
    datetime.datetime(2025, 1, 15, 10, 15, tzinfo=datetime.timezone.utc)
    >>> parse_instant("2025-01-15")
    datetime.datetime(2025, 1, 15, 0, 0, tzinfo=datetime.timezone.utc)
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=tz)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            seconds = value / 1000.0 if value >= 10000000000 else value
            return datetime.fromtimestamp(seconds, tz=timezone.utc).astimezone(tz)
        except (ValueError, OverflowError, OSError):
            logger.warning(
                "calendar.parse_unix_failed",
                extra={"value": value, "error": "invalid timestamp"},
            )
            return None
    if isinstance(value, str) and value:
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.warning(
                "calendar.parse_iso8601_failed",
                extra={"value": value, "error": "invalid format"},
            )
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=tz)
    return None
