"""
Period Models

A budget lives in a calendar month; queries arrive either as an exact
(month, year) pair or as an arbitrary [start_date, end_date] range. This
module turns both into the two things the engine needs:

1. Month filters - which (year, month) budget rows a query selects
2. Date windows - which transaction timestamps a query covers

Budget listing, persisted history lookup and the derived-history fallback
all build their filters through PeriodFilter, so the three always select
the same months.
"""

import calendar
from datetime import date, datetime, time, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


END_OF_DAY = time(23, 59, 59, 999000)


def end_of_day(value: datetime) -> datetime:
    """Normalize a timestamp to 23:59:59.999 of its calendar day."""
    return datetime.combine(value.date(), END_OF_DAY)


def month_start(year: int, month: int) -> datetime:
    return datetime(year, month, 1)


def month_end(year: int, month: int) -> datetime:
    last_day = calendar.monthrange(year, month)[1]
    return datetime.combine(date(year, month, last_day), END_OF_DAY)


def to_naive_utc(value: datetime) -> datetime:
    """
    Bring a timestamp to the stored convention: naive, in UTC.

    Offset-aware values (e.g. ISO strings ending in "Z") are converted to
    UTC and stripped; naive values are taken as already being UTC.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _coerce_datetime(value):
    # Plain dates mean midnight of that day
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    return value


class DateWindow(BaseModel):
    """A closed timestamp interval [start, end]."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator('start', 'end')
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @model_validator(mode='after')
    def validate_order(self) -> 'DateWindow':
        if self.end < self.start:
            raise ValueError("Window end cannot be before start")
        return self

    @classmethod
    def for_month(cls, year: int, month: int) -> 'DateWindow':
        """The budget period of (month, year)."""
        return cls(start=month_start(year, month), end=month_end(year, month))

    @classmethod
    def for_range(cls, start: datetime, end: datetime) -> 'DateWindow':
        """A requested range: start kept verbatim, end pushed to end of day."""
        return cls(start=start, end=end_of_day(to_naive_utc(end)))

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    def intersect(self, other: 'DateWindow') -> Optional['DateWindow']:
        """
        Overlap of two windows, or None when they are disjoint.

        effective start = max(starts), effective end = min(ends)
        """
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if start > end:
            return None
        return DateWindow(start=start, end=end)


class MonthSpan(BaseModel):
    """
    One disjunct of a month filter.

    Selects (year, month) when first_year <= year <= last_year and
    first_month <= month <= last_month.
    """
    model_config = ConfigDict(frozen=True)

    first_year: int
    last_year: int
    first_month: int = Field(default=1, ge=1, le=12)
    last_month: int = Field(default=12, ge=1, le=12)

    def contains(self, year: int, month: int) -> bool:
        return (
            self.first_year <= year <= self.last_year
            and self.first_month <= month <= self.last_month
        )


def month_spans_for_range(start: datetime, end: datetime) -> list[MonthSpan]:
    """
    Build the month filter for a date range.

    Single year:  year = Y AND start_month <= month <= end_month
    Multi-year:   (year = Y1 AND month >= start_month)
                  OR (Y1 < year < Y2)
                  OR (year = Y2 AND month <= end_month)
    """
    if start.year == end.year:
        return [
            MonthSpan(
                first_year=start.year,
                last_year=start.year,
                first_month=start.month,
                last_month=end.month,
            )
        ]

    spans = [
        MonthSpan(
            first_year=start.year,
            last_year=start.year,
            first_month=start.month,
        )
    ]
    if end.year - start.year > 1:
        spans.append(MonthSpan(first_year=start.year + 1, last_year=end.year - 1))
    spans.append(
        MonthSpan(
            first_year=end.year,
            last_year=end.year,
            last_month=end.month,
        )
    )
    return spans


class PeriodFilter(BaseModel):
    """
    Filter over budgets and history rows.

    Either an exact (month, year) pair or a (start_date, end_date) range;
    when both are given the exact pair wins. Category is optional.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    month: Optional[int] = Field(default=None, ge=1, le=12)
    year: Optional[int] = Field(default=None, ge=1000, le=9999)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    category: Optional[str] = Field(default=None, min_length=1)

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def accept_plain_dates(cls, v):
        return _coerce_datetime(v)

    @field_validator('start_date', 'end_date')
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return v
        return to_naive_utc(v)

    @field_validator('category', mode='before')
    @classmethod
    def blank_category_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode='after')
    def validate_pairs(self) -> 'PeriodFilter':
        if (self.month is None) != (self.year is None):
            raise ValueError("Month and year must be provided together")
        if (self.start_date is None) != (self.end_date is None):
            raise ValueError("Start date and end date must be provided together")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self

    @property
    def has_month(self) -> bool:
        return self.month is not None and self.year is not None

    @property
    def has_range(self) -> bool:
        return self.start_date is not None and self.end_date is not None

    @property
    def has_period(self) -> bool:
        return self.has_month or self.has_range

    def month_spans(self) -> list[MonthSpan]:
        """Month disjuncts this filter selects; empty means every month."""
        if self.has_month:
            return [
                MonthSpan(
                    first_year=self.year,
                    last_year=self.year,
                    first_month=self.month,
                    last_month=self.month,
                )
            ]
        if self.has_range:
            return month_spans_for_range(self.start_date, self.end_date)
        return []

    def lookup_window(self) -> Optional[DateWindow]:
        """Transaction window covered by this filter, if it has a period."""
        if self.has_month:
            return DateWindow.for_month(self.year, self.month)
        if self.has_range:
            return DateWindow.for_range(self.start_date, self.end_date)
        return None

    def accepts(self, category: str, month: int, year: int) -> bool:
        """Does a row with these fields pass the filter?"""
        if self.category is not None and category != self.category:
            return False
        spans = self.month_spans()
        if not spans:
            return True
        return any(span.contains(year, month) for span in spans)


class HistoryFilter(PeriodFilter):
    """History query filter with pagination."""

    limit: Optional[int] = Field(default=None, ge=1)
    skip: int = Field(default=0, ge=0)
