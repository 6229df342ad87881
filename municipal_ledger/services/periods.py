"""
Billing periods.

A period is a calendar month in the billing timezone, held as a pair of
inclusive instants. Consecutive periods leave no gap: the end of one month
is the last microsecond before the start of the next.
"""
import calendar
import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from municipal_ledger.config import settings
from municipal_ledger.errors import InvalidPeriod

PERIOD_PATTERN = re.compile(r"([0-9]{4})-([0-9]{2})")

# A month and both its neighbours must be representable as datetimes.
MIN_YEAR, MAX_YEAR = 2, 9998


def billing_timezone() -> ZoneInfo:
    try:
        return ZoneInfo(settings.BILLING_TIMEZONE)
    except ZoneInfoNotFoundError:
        raise InvalidPeriod(f"Unknown billing timezone '{settings.BILLING_TIMEZONE}'")


@dataclass(frozen=True)
class Period:
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise InvalidPeriod("Period bounds must be timezone-aware")
        if self.start > self.end:
            raise InvalidPeriod("Period start must not be after its end")

        tz = self.start.tzinfo
        local_start = self.start.astimezone(tz)
        local_end = self.end.astimezone(tz)
        if (local_start.year, local_start.month) != (local_end.year, local_end.month):
            raise InvalidPeriod("Period must lie within a single calendar month")

    @classmethod
    def from_token(cls, token: str, tz: ZoneInfo | None = None) -> "Period":
        """
        Builds the full calendar month for a YYYY-MM token, e.g. "2025-12".
        """
        match = PERIOD_PATTERN.fullmatch(token or "")
        if not match:
            raise InvalidPeriod(f"Invalid period '{token}'. Use YYYY-MM (e.g., 2025-12)")

        year, month = int(match.group(1)), int(match.group(2))
        if not 1 <= month <= 12:
            raise InvalidPeriod(f"Invalid month in period '{token}'")

        return cls.month(year, month, tz)

    @classmethod
    def month(cls, year: int, month: int, tz: ZoneInfo | None = None) -> "Period":
        if not MIN_YEAR <= year <= MAX_YEAR:
            raise InvalidPeriod(f"Year {year} is outside {MIN_YEAR}-{MAX_YEAR}")

        tz = tz or billing_timezone()
        try:
            last_day = calendar.monthrange(year, month)[1]
            start = datetime(year, month, 1, tzinfo=tz)
            end = datetime.combine(start.replace(day=last_day).date(), time.max, tzinfo=tz)
        except (ValueError, OverflowError) as e:
            raise InvalidPeriod(f"Invalid period {year:04d}-{month:02d}: {str(e)}") from e
        return cls(start=start, end=end)

    @property
    def is_degenerate(self) -> bool:
        return self.start == self.end

    @property
    def token(self) -> str:
        return f"{self.start.year:04d}-{self.start.month:02d}"

    def contains(self, moment: datetime) -> bool:
        if self.is_degenerate:
            return False
        return self.start <= moment <= self.end

    def next(self) -> "Period":
        following = self.end + timedelta(microseconds=1)
        return Period.month(following.year, following.month, self.start.tzinfo)

    def previous(self) -> "Period":
        preceding = self.start - timedelta(microseconds=1)
        return Period.month(preceding.year, preceding.month, self.start.tzinfo)
