"""
Financial Aggregator

DESIGN DECISION: Reports are DERIVED, never stored. Every request re-reads
the invoice files and recomputes everything, so there is no index or cache
that could drift from the documents.

Revenue is recognized on a CASH BASIS:
- paid                 -> revenue (subtotal) and VAT (tax amount)
- sent / overdue       -> outstanding, not revenue
- draft / cancelled    -> ignored for money, still counted per status

Invoices are placed in periods by their creation date.
"""

from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from invoicebook.lifecycle.status import days_past_due
from invoicebook.models.base import ZERO
from invoicebook.models.document import Document, DocumentStatus, DocumentType
from invoicebook.models.financial import (
    AgingBucket,
    DateRange,
    FinancialOverview,
    FinancialOverviewRequest,
    MonthlyRevenue,
    PeriodComparison,
    PeriodSummary,
    Quarter,
    RevenuePoint,
    StatusBreakdown,
    TimeGranularity,
    VatBreakdown,
)
from invoicebook.reports.periods import (
    ONE_MICROSECOND,
    day_start,
    month_end,
    month_start,
    previous_range,
    resolve_date_range,
)


MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# (label, lowest day count) in ascending order; lower bounds are inclusive
AGING_BUCKETS = (
    ("0-30", None),
    ("31-60", 31),
    ("61-90", 61),
    ("90+", 91),
)

STATUS_ORDER = (
    DocumentStatus.DRAFT,
    DocumentStatus.SENT,
    DocumentStatus.OVERDUE,
    DocumentStatus.PAID,
    DocumentStatus.CANCELLED,
)


# =============================================================================
# CLASSIFICATION
# =============================================================================

def is_recognized(invoice: Document) -> bool:
    """Counts as revenue (cash basis)."""
    return invoice.status == DocumentStatus.PAID


def is_outstanding(invoice: Document) -> bool:
    """Issued and still owed."""
    return invoice.status not in (DocumentStatus.PAID, DocumentStatus.CANCELLED, DocumentStatus.DRAFT)


def invoices_only(documents: Iterable[Document]) -> list[Document]:
    return [d for d in documents if d.document_type is DocumentType.INVOICE]


def in_range(invoices: Iterable[Document], date_range: DateRange) -> list[Document]:
    return [inv for inv in invoices if date_range.contains(inv.created_at)]


class _Totals:
    """Running cash-basis totals for a group of invoices."""

    def __init__(self):
        self.revenue = ZERO
        self.vat = ZERO
        self.paid = ZERO
        self.outstanding = ZERO
        self.count = 0

    def add(self, invoice: Document) -> None:
        self.count += 1
        if is_recognized(invoice):
            self.revenue += invoice.subtotal
            self.vat += invoice.tax_amount
            self.paid += invoice.total
        elif is_outstanding(invoice):
            self.outstanding += invoice.total

    @classmethod
    def of(cls, invoices: Iterable[Document]) -> "_Totals":
        totals = cls()
        for invoice in invoices:
            totals.add(invoice)
        return totals


# =============================================================================
# PARTS OF THE OVERVIEW
# =============================================================================

def vat_breakdown(invoices: Iterable[Document]) -> list[VatBreakdown]:
    """Revenue and VAT of paid invoices per tax rate, highest rate first."""
    by_rate: dict[Decimal, VatBreakdown] = {}
    for invoice in invoices:
        if not is_recognized(invoice):
            continue
        rate = invoice.tax_rate
        entry = by_rate.setdefault(rate, VatBreakdown(rate=rate))
        entry.revenue += invoice.subtotal
        entry.vat_amount += invoice.tax_amount
    return sorted(by_rate.values(), key=lambda b: b.rate, reverse=True)


def period_summary(
    invoices: list[Document],
    date_range: DateRange,
    now: datetime,
    quarter: Optional[Quarter] = None,
) -> PeriodSummary:
    """Totals for invoices created inside `date_range` (already filtered)."""
    totals = _Totals.of(invoices)
    overdue = sum(
        (inv.total for inv in invoices if is_outstanding(inv) and inv.due_date < now),
        ZERO,
    )
    return PeriodSummary(
        quarter=quarter,
        year=date_range.start.year,
        label=date_range.label,
        start_date=date_range.start,
        end_date=date_range.end,
        total_revenue=totals.revenue,
        total_vat=totals.vat,
        vat_breakdown=vat_breakdown(invoices),
        invoice_count=totals.count,
        paid_amount=totals.paid,
        outstanding_amount=totals.outstanding,
        overdue_amount=overdue,
    )


def aging_report(invoices: Iterable[Document], now: datetime) -> list[AgingBucket]:
    """
    Outstanding invoices bucketed by whole days past due.

    Invoices not yet due (negative days) fall in the first bucket.
    """
    buckets = [AgingBucket(label=label) for label, _ in AGING_BUCKETS]
    for invoice in invoices:
        if not is_outstanding(invoice):
            continue
        days = days_past_due(invoice, now)
        index = 0
        for position, (_, lower_bound) in enumerate(AGING_BUCKETS):
            if lower_bound is not None and days >= lower_bound:
                index = position
        bucket = buckets[index]
        bucket.count += 1
        bucket.amount += invoice.total
        bucket.invoice_ids.append(invoice.id)
    return buckets


def status_breakdown(invoices: Iterable[Document]) -> list[StatusBreakdown]:
    """Count and amount per stored status; statuses with no invoices are omitted."""
    by_status: dict[DocumentStatus, StatusBreakdown] = {}
    for invoice in invoices:
        entry = by_status.setdefault(invoice.status, StatusBreakdown(status=invoice.status.value))
        entry.count += 1
        entry.amount += invoice.total
    return [by_status[status] for status in STATUS_ORDER if status in by_status]


def previous_period_comparison(
    current_revenue: Decimal,
    all_invoices: Iterable[Document],
    date_range: DateRange,
) -> Optional[PeriodComparison]:
    """
    Revenue of the preceding period of equal length.

    None when the previous period had no revenue (a percentage would be
    meaningless).
    """
    previous = previous_range(date_range)
    previous_revenue = _Totals.of(in_range(all_invoices, previous)).revenue
    if previous_revenue == ZERO:
        return None
    change = (current_revenue - previous_revenue) / previous_revenue * 100
    return PeriodComparison(revenue=previous_revenue, percentage_change=float(change))


def choose_granularity(date_range: DateRange) -> TimeGranularity:
    """Under 4 weeks: daily. Under ~4 months: weekly. Otherwise monthly."""
    days = date_range.duration.total_seconds() / 86400
    if days / 7 < 4:
        return TimeGranularity.DAY
    if days / 30 < 4:
        return TimeGranularity.WEEK
    return TimeGranularity.MONTH


def _buckets(date_range: DateRange, granularity: TimeGranularity) -> list[tuple[str, datetime, datetime]]:
    buckets = []
    if granularity is TimeGranularity.DAY:
        current = day_start(date_range.start.date())
        while current <= date_range.end:
            label = f"{MONTH_NAMES[current.month - 1][:3]} {current.day}"
            following = current + timedelta(days=1)
            buckets.append((label, current, following - ONE_MICROSECOND))
            current = following

    elif granularity is TimeGranularity.WEEK:
        # Weeks start on Monday
        current = day_start(date_range.start.date())
        current -= timedelta(days=current.weekday())
        week = 1
        while current <= date_range.end:
            following = current + timedelta(days=7)
            buckets.append((f"Week {week}", current, following - ONE_MICROSECOND))
            current = following
            week += 1

    else:
        spans_years = date_range.start.year != date_range.end.year
        year, month = date_range.start.year, date_range.start.month
        current = month_start(year, month)
        while current <= date_range.end:
            label = MONTH_NAMES[current.month - 1][:3]
            if spans_years:
                label = f"{label} {current.year}"
            buckets.append((label, current, month_end(current.year, current.month)))
            current = month_start(current.year, current.month + 1)

    return buckets


def time_series(
    invoices: list[Document],
    date_range: DateRange,
    granularity: Optional[TimeGranularity] = None,
) -> tuple[TimeGranularity, list[RevenuePoint]]:
    granularity = granularity or choose_granularity(date_range)
    points = []
    for label, start, end in _buckets(date_range, granularity):
        bucket_range = DateRange(start=start, end=end, label=label)
        totals = _Totals.of(in_range(invoices, bucket_range))
        points.append(RevenuePoint(
            label=label,
            start_date=start,
            end_date=end,
            revenue=totals.revenue,
            vat_amount=totals.vat,
            invoice_count=totals.count,
            paid_amount=totals.paid,
            outstanding_amount=totals.outstanding,
        ))
    return granularity, points


def monthly_revenue(invoices: Iterable[Document], year: int) -> list[MonthlyRevenue]:
    """Twelve calendar months of `year`, empty months included."""
    by_month: defaultdict[int, _Totals] = defaultdict(_Totals)
    for invoice in invoices:
        if invoice.created_at.year == year:
            by_month[invoice.created_at.month].add(invoice)

    months = []
    for month in range(1, 13):
        totals = by_month[month]
        months.append(MonthlyRevenue(
            month=month,
            year=year,
            month_name=MONTH_NAMES[month - 1],
            revenue=totals.revenue,
            vat_amount=totals.vat,
            invoice_count=totals.count,
            paid_amount=totals.paid,
            outstanding_amount=totals.outstanding,
        ))
    return months


def year_to_date(invoices: Iterable[Document], year: int) -> tuple[Decimal, Decimal, int]:
    """(revenue, vat, number of paid invoices) for invoices created in `year`."""
    paid = [inv for inv in invoices if inv.created_at.year == year and is_recognized(inv)]
    totals = _Totals.of(paid)
    return totals.revenue, totals.vat, totals.count


# =============================================================================
# OVERVIEW
# =============================================================================

def build_financial_overview(
    documents: Iterable[Document],
    request: FinancialOverviewRequest,
    now: datetime,
    fiscal_year_start_month: int = 1,
) -> FinancialOverview:
    """
    Compute the full overview from the invoice corpus.

    Pure function: `now` is passed in so results are reproducible.
    """
    invoices = invoices_only(documents)
    date_range = resolve_date_range(
        request,
        now,
        fiscal_year_start_month,
        invoice_dates=[inv.created_at for inv in invoices],
    )
    year = request.year or now.year

    selected = in_range(invoices, date_range)
    quarter = request.quarter if request.preset is None else None
    if request.preset is not None and request.preset.value in Quarter.__members__:
        quarter = Quarter(request.preset.value)
    if request.preset is None and request.quarter is None:
        quarter = Quarter(date_range.label.split()[0])

    summary = period_summary(selected, date_range, now, quarter)
    granularity, series = time_series(selected, date_range)
    ytd_revenue, ytd_vat, ytd_count = year_to_date(invoices, year)

    return FinancialOverview(
        period_summary=summary,
        monthly_revenue=monthly_revenue(invoices, year),
        time_series_revenue=series,
        time_series_granularity=granularity,
        ytd_revenue=ytd_revenue,
        ytd_vat=ytd_vat,
        ytd_invoice_count=ytd_count,
        aging=aging_report(invoices, now),
        status_breakdown=status_breakdown(selected),
        previous_period_comparison=previous_period_comparison(
            summary.total_revenue, invoices, date_range
        ),
        fiscal_year_start_month=fiscal_year_start_month,
    )
