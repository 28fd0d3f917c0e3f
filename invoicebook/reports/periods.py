"""
Report period resolution.

Turns a FinancialOverviewRequest into a concrete, inclusive DateRange in UTC.
Quarters follow the fiscal year: with fiscal_year_start_month=4, Q1 is
April-June and fiscal year 2026 runs April 2026 - March 2027.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

from invoicebook.models.financial import DatePreset, DateRange, FinancialOverviewRequest, Quarter


ONE_MICROSECOND = timedelta(microseconds=1)

# Placeholder start for allTime when there are no invoices yet
ALL_TIME_FLOOR = datetime(2000, 1, 1, tzinfo=timezone.utc)

QUARTERS = (Quarter.Q1, Quarter.Q2, Quarter.Q3, Quarter.Q4)


def month_start(year: int, month: int) -> datetime:
    """First instant of a month; month may run past 12 (rolls into later years)."""
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return datetime(year, month, 1, tzinfo=timezone.utc)


def month_end(year: int, month: int) -> datetime:
    """Last instant of a month."""
    return month_start(year, month + 1) - ONE_MICROSECOND


def day_start(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def day_end(day: date) -> datetime:
    return day_start(day) + timedelta(days=1) - ONE_MICROSECOND


def quarter_from_month(month: int, fiscal_year_start_month: int = 1) -> Quarter:
    fiscal_month = (month - fiscal_year_start_month) % 12
    return QUARTERS[fiscal_month // 3]


def fiscal_year_of(moment: datetime, fiscal_year_start_month: int = 1) -> int:
    """Fiscal years are named after the calendar year they start in."""
    return moment.year if moment.month >= fiscal_year_start_month else moment.year - 1


def quarter_range(quarter: Quarter, year: int, fiscal_year_start_month: int = 1) -> DateRange:
    first_month = fiscal_year_start_month + quarter.index * 3
    start = month_start(year, first_month)
    end = month_start(year, first_month + 3) - ONE_MICROSECOND
    return DateRange(start=start, end=end, label=f"{quarter.value} {year}")


def current_quarter_range(now: datetime, fiscal_year_start_month: int = 1) -> DateRange:
    quarter = quarter_from_month(now.month, fiscal_year_start_month)
    return quarter_range(quarter, fiscal_year_of(now, fiscal_year_start_month), fiscal_year_start_month)


def all_time_range(invoice_dates: Iterable[datetime], now: datetime) -> DateRange:
    """
    From the first month with an invoice to the end of the current month
    (or of the latest invoice's month, if that is later).
    """
    dates = list(invoice_dates)
    if not dates:
        return DateRange(start=ALL_TIME_FLOOR, end=now, label="All Time")

    earliest = min(dates)
    latest = max(dates)
    end = max(month_end(latest.year, latest.month), month_end(now.year, now.month))
    return DateRange(start=month_start(earliest.year, earliest.month), end=end, label="All Time")


def resolve_date_range(
    request: FinancialOverviewRequest,
    now: datetime,
    fiscal_year_start_month: int = 1,
    invoice_dates: Optional[Iterable[datetime]] = None,
) -> DateRange:
    """
    Resolution order: preset, then the legacy quarter + year pair, then the
    current fiscal quarter. A custom preset without both dates also falls
    back to the current quarter.
    """
    year = request.year or now.year
    preset = request.preset

    if preset is None and request.quarter is not None:
        return quarter_range(request.quarter, year, fiscal_year_start_month)

    if preset in (DatePreset.Q1, DatePreset.Q2, DatePreset.Q3, DatePreset.Q4):
        return quarter_range(Quarter(preset.value), year, fiscal_year_start_month)

    if preset is DatePreset.THIS_YEAR:
        return DateRange(
            start=month_start(now.year, 1),
            end=month_end(now.year, 12),
            label=str(now.year),
        )

    if preset is DatePreset.YEAR_TO_DATE:
        return DateRange(start=month_start(now.year, 1), end=now, label=f"YTD {now.year}")

    if preset is DatePreset.ALL_TIME:
        return all_time_range(invoice_dates or [], now)

    if preset is DatePreset.CUSTOM and request.start_date and request.end_date:
        return DateRange(
            start=day_start(request.start_date),
            end=day_end(request.end_date),
            label="Custom Range",
        )

    return current_quarter_range(now, fiscal_year_start_month)


def previous_range(current: DateRange) -> DateRange:
    """The equally long period ending right before `current` starts."""
    end = current.start - ONE_MICROSECOND
    return DateRange(start=end - current.duration, end=end, label="Previous period")
