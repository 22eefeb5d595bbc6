"""
Tests for period filters.

Budget listing, history lookup and history derivation all select months
through PeriodFilter, so the month-selection rules are pinned down here.
"""

import pytest
from datetime import date, datetime, timezone

from fintrack.models.period import (
    HistoryFilter,
    MonthSpan,
    PeriodFilter,
    month_end,
    month_spans_for_range,
)


def selected_months(filters: PeriodFilter, years=range(2021, 2027)):
    return [
        (year, month)
        for year in years
        for month in range(1, 13)
        if filters.accepts("Food", month, year)
    ]


class TestMonthSpans:
    """Month filters built from date ranges."""

    def test_single_year_range(self):
        spans = month_spans_for_range(datetime(2024, 3, 5), datetime(2024, 6, 1))
        assert spans == [MonthSpan(first_year=2024, last_year=2024, first_month=3, last_month=6)]

    def test_adjacent_years_have_no_middle_span(self):
        spans = month_spans_for_range(datetime(2023, 11, 15), datetime(2024, 2, 10))
        assert len(spans) == 2

    def test_multi_year_range_includes_whole_middle_years(self):
        spans = month_spans_for_range(datetime(2022, 10, 1), datetime(2024, 2, 1))
        assert len(spans) == 3
        assert spans[1] == MonthSpan(first_year=2023, last_year=2023)

    def test_month_end_handles_leap_year(self):
        assert month_end(2024, 2) == datetime(2024, 2, 29, 23, 59, 59, 999000)
        assert month_end(2023, 2).day == 28


class TestPeriodFilter:
    """Row selection and input validation."""

    def test_cross_year_range_selects_expected_months(self):
        filters = PeriodFilter(start_date=datetime(2023, 11, 15), end_date=datetime(2024, 2, 10))
        assert selected_months(filters) == [
            (2023, 11),
            (2023, 12),
            (2024, 1),
            (2024, 2),
        ]

    def test_three_year_range_selects_every_middle_month(self):
        filters = PeriodFilter(start_date=datetime(2022, 12, 1), end_date=datetime(2024, 1, 31))
        months = selected_months(filters)
        assert months[0] == (2022, 12)
        assert months[-1] == (2024, 1)
        assert len(months) == 14

    def test_exact_month(self):
        filters = PeriodFilter(month=3, year=2024)
        assert selected_months(filters) == [(2024, 3)]

    def test_month_wins_over_range(self):
        filters = PeriodFilter(
            month=3,
            year=2024,
            start_date=datetime(2023, 1, 1),
            end_date=datetime(2023, 12, 31),
        )
        assert selected_months(filters) == [(2024, 3)]
        assert filters.lookup_window().start == datetime(2024, 3, 1)

    def test_no_period_selects_everything(self):
        filters = PeriodFilter()
        assert not filters.has_period
        assert filters.lookup_window() is None
        assert filters.accepts("Food", 7, 1999)

    def test_category_filter(self):
        filters = PeriodFilter(month=3, year=2024, category="Rent")
        assert filters.accepts("Rent", 3, 2024)
        assert not filters.accepts("Food", 3, 2024)

    def test_blank_category_means_any(self):
        assert PeriodFilter(category="   ").category is None

    def test_plain_dates_are_accepted(self):
        filters = PeriodFilter(start_date=date(2024, 1, 15), end_date=date(2024, 1, 20))
        window = filters.lookup_window()
        assert window.start == datetime(2024, 1, 15)
        assert window.end == datetime(2024, 1, 20, 23, 59, 59, 999000)

    def test_iso_strings_are_accepted(self):
        filters = PeriodFilter.model_validate(
            {"start_date": "2024-01-15", "end_date": "2024-01-20T10:00:00"}
        )
        assert filters.has_range

    def test_offset_aware_strings_become_naive_utc(self):
        filters = PeriodFilter.model_validate(
            {"start_date": "2024-01-15T00:00:00Z", "end_date": "2024-01-20T01:00:00+02:00"}
        )
        assert filters.start_date == datetime(2024, 1, 15)
        assert filters.end_date == datetime(2024, 1, 19, 23, 0)
        assert filters.lookup_window().contains(datetime(2024, 1, 19, 23, 30))

    def test_aware_and_naive_bounds_can_be_mixed(self):
        filters = PeriodFilter(
            start_date=datetime(2024, 1, 15, tzinfo=timezone.utc),
            end_date=datetime(2024, 1, 20),
        )
        assert filters.start_date.tzinfo is None
        assert selected_months(filters) == [(2024, 1)]

    def test_month_without_year_is_rejected(self):
        with pytest.raises(ValueError, match="Month and year must be provided together"):
            PeriodFilter(month=3)

    def test_start_without_end_is_rejected(self):
        with pytest.raises(ValueError, match="Start date and end date must be provided together"):
            PeriodFilter(start_date=datetime(2024, 1, 1))

    def test_reversed_range_is_rejected(self):
        with pytest.raises(ValueError, match="End date cannot be before start date"):
            PeriodFilter(start_date=datetime(2024, 2, 1), end_date=datetime(2024, 1, 1))

    def test_history_filter_pagination_bounds(self):
        assert HistoryFilter().skip == 0
        with pytest.raises(ValueError):
            HistoryFilter(limit=0)
        with pytest.raises(ValueError):
            HistoryFilter(skip=-1)
