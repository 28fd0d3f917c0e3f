"""
Financial Report Models

Reports are computed on request from the invoice files and never stored.
Revenue is recognized on a cash basis: only PAID invoices count.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field, model_validator

from invoicebook.models.base import ZERO, CamelModel


class Quarter(str, Enum):
    Q1 = "Q1"
    Q2 = "Q2"
    Q3 = "Q3"
    Q4 = "Q4"

    @property
    def index(self) -> int:
        """Zero-based position within the fiscal year."""
        return int(self.value[1]) - 1


class DatePreset(str, Enum):
    """Named report periods."""
    Q1 = "Q1"
    Q2 = "Q2"
    Q3 = "Q3"
    Q4 = "Q4"
    THIS_YEAR = "thisYear"
    YEAR_TO_DATE = "yearToDate"
    ALL_TIME = "allTime"
    CUSTOM = "custom"


class TimeGranularity(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class DateRange(CamelModel):
    """Inclusive range of timestamps a report covers."""

    start: datetime
    end: datetime
    label: str

    @property
    def duration(self):
        return self.end - self.start

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


class FinancialOverviewRequest(CamelModel):
    """
    How the caller describes the period.

    `preset` wins; otherwise the legacy `quarter` + `year` pair is used;
    otherwise the current quarter.
    """

    preset: Optional[DatePreset] = None
    year: Optional[int] = Field(default=None, ge=1970, le=9999)
    quarter: Optional[Quarter] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode='after')
    def validate_custom_range(self) -> 'FinancialOverviewRequest':
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class VatBreakdown(CamelModel):
    rate: Decimal
    revenue: Decimal = ZERO
    vat_amount: Decimal = ZERO


class PeriodSummary(CamelModel):
    """Totals for one period (maps onto a quarterly VAT return)."""

    quarter: Optional[Quarter] = None
    year: int
    label: str
    start_date: datetime
    end_date: datetime
    total_revenue: Decimal = ZERO
    total_vat: Decimal = ZERO
    vat_breakdown: list[VatBreakdown] = Field(default_factory=list)
    invoice_count: int = 0
    paid_amount: Decimal = ZERO
    outstanding_amount: Decimal = ZERO
    overdue_amount: Decimal = ZERO


class AgingBucket(CamelModel):
    label: str
    count: int = 0
    amount: Decimal = ZERO
    invoice_ids: list[str] = Field(default_factory=list)


class StatusBreakdown(CamelModel):
    status: str
    count: int = 0
    amount: Decimal = ZERO


class PeriodComparison(CamelModel):
    """Revenue of the equally long period right before the selected one."""

    revenue: Decimal
    percentage_change: float


class RevenuePoint(CamelModel):
    """One bucket of a revenue time series (also used for calendar months)."""

    label: str
    start_date: datetime
    end_date: datetime
    revenue: Decimal = ZERO
    vat_amount: Decimal = ZERO
    invoice_count: int = 0
    paid_amount: Decimal = ZERO
    outstanding_amount: Decimal = ZERO


class MonthlyRevenue(CamelModel):
    month: int = Field(..., ge=1, le=12)
    year: int
    month_name: str
    revenue: Decimal = ZERO
    vat_amount: Decimal = ZERO
    invoice_count: int = 0
    paid_amount: Decimal = ZERO
    outstanding_amount: Decimal = ZERO


class FinancialOverview(CamelModel):
    period_summary: PeriodSummary
    monthly_revenue: list[MonthlyRevenue] = Field(default_factory=list)
    time_series_revenue: list[RevenuePoint] = Field(default_factory=list)
    time_series_granularity: TimeGranularity
    ytd_revenue: Decimal = ZERO
    ytd_vat: Decimal = ZERO
    ytd_invoice_count: int = 0
    aging: list[AgingBucket] = Field(default_factory=list)
    status_breakdown: list[StatusBreakdown] = Field(default_factory=list)
    previous_period_comparison: Optional[PeriodComparison] = None
    fiscal_year_start_month: int = 1


# =============================================================================
# DASHBOARD
# =============================================================================

class OverdueInvoice(CamelModel):
    id: str
    document_number: str
    customer_name: str
    total: Decimal
    due_date: datetime
    days_overdue: int


class TopInvoice(CamelModel):
    id: str
    document_number: str
    customer_name: str
    total: Decimal
    paid_date: datetime


class TopCustomer(CamelModel):
    id: str
    name: str
    company: Optional[str] = None
    total_revenue: Decimal
    invoice_count: int


class DashboardStats(CamelModel):
    total_earnings_all_time: Decimal = ZERO
    total_earnings_this_year: Decimal = ZERO
    total_earnings_this_month: Decimal = ZERO
    total_customers: int = 0
    total_invoices: int = 0
    total_offers: int = 0
    outstanding_amount: Decimal = ZERO
    overdue_amount: Decimal = ZERO
    overdue_count: int = 0
    overdue_invoices: list[OverdueInvoice] = Field(default_factory=list)
    top_paid_invoices: list[TopInvoice] = Field(default_factory=list)
    top_customers: list[TopCustomer] = Field(default_factory=list)
    average_invoice_value: Decimal = ZERO
    biggest_invoice_ever: Optional[TopInvoice] = None
